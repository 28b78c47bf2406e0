"""Business profile provider interface."""
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict


class ServiceOffering(BaseModel):
    """A bookable service offered by a business."""

    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    duration_minutes: int
    price: Optional[float] = None
    description: Optional[str] = None


class BusinessProfile(BaseModel):
    """Business profile model.

    Treated as a value object: once resolved for a call it is never mutated.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    business_type: Optional[str] = None
    timezone: str = "America/Toronto"
    services: List[ServiceOffering] = []
    policies: Dict[str, str] = {}
    agent_api_key: Optional[str] = None
    phone_numbers: List[str] = []
    greeting: Optional[str] = None
    tts_voice: Optional[str] = None
    language: str = "en-US"

    def get_service(self, service_id: str) -> Optional[ServiceOffering]:
        """Get a service by its id."""
        for service in self.services:
            if service.id == service_id:
                return service
        return None


class BusinessProfileProvider(ABC):
    """Abstract base class for business profile providers."""

    @abstractmethod
    async def get_profiles(self) -> List[BusinessProfile]:
        """Get all known business profiles."""
        pass

    @abstractmethod
    async def get_profile(self, business_id: str) -> Optional[BusinessProfile]:
        """Get a business profile by its identifier."""
        pass

    @abstractmethod
    async def get_profile_by_phone_number(
        self, phone_number: str
    ) -> Optional[BusinessProfile]:
        """Get the business profile that owns a dialed number."""
        pass
