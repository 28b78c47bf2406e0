"""In-memory business profile provider."""
import yaml
from pathlib import Path
from typing import List, Optional

from voice_gateway.services.business.base import (
    BusinessProfile,
    BusinessProfileProvider,
    ServiceOffering,
)


def _normalize_number(phone_number: str) -> str:
    """Strip formatting so '+1 (647) 788-2883' and '+16477882883' compare equal."""
    return "".join(ch for ch in phone_number if ch.isdigit() or ch == "+")


class InMemoryBusinessProvider(BusinessProfileProvider):
    """In-memory business profile provider using YAML configuration."""

    def __init__(self, profiles_file: Optional[str] = None):
        """Initialize with optional profiles file path."""
        if profiles_file is None:
            profiles_file = Path(__file__).parent / "data" / "businesses.yaml"
        self.profiles_file = Path(profiles_file)
        self._profiles: Optional[List[BusinessProfile]] = None

    async def _load_profiles(self) -> List[BusinessProfile]:
        """Load profiles from YAML file."""
        if self._profiles is None:
            if not self.profiles_file.exists():
                # Default profile if file doesn't exist
                self._profiles = [
                    BusinessProfile(
                        id="waismofit",
                        name="Wais Mo Fitness",
                        business_type="fitness coaching",
                        timezone="America/Toronto",
                        services=[
                            ServiceOffering(
                                id="consult_30",
                                label="30-minute intro call",
                                duration_minutes=30,
                                price=0,
                                description="Free discovery call to understand goals.",
                            ),
                        ],
                        phone_numbers=["+16477882883"],
                    )
                ]
            else:
                with open(self.profiles_file, "r") as f:
                    data = yaml.safe_load(f) or {}
                    self._profiles = [
                        BusinessProfile(**profile)
                        for profile in data.get("businesses", [])
                    ]
        return self._profiles

    async def get_profiles(self) -> List[BusinessProfile]:
        """Get all known business profiles."""
        return list(await self._load_profiles())

    async def get_profile(self, business_id: str) -> Optional[BusinessProfile]:
        """Get a business profile by its identifier."""
        business_id_lower = business_id.lower().strip()
        for profile in await self._load_profiles():
            if profile.id.lower() == business_id_lower:
                return profile
        return None

    async def get_profile_by_phone_number(
        self, phone_number: str
    ) -> Optional[BusinessProfile]:
        """Get the business profile that owns a dialed number."""
        wanted = _normalize_number(phone_number)
        if not wanted:
            return None
        for profile in await self._load_profiles():
            if any(_normalize_number(n) == wanted for n in profile.phone_numbers):
                return profile
        return None
