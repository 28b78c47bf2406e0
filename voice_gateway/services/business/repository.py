"""Business profile repository."""
import logging
from typing import List, Optional

from voice_gateway.services.business.base import BusinessProfile, BusinessProfileProvider

logger = logging.getLogger(__name__)


class BusinessRepository:
    """Repository for business profile lookups."""

    def __init__(
        self,
        provider: BusinessProfileProvider,
        default_agent_api_key: Optional[str] = None,
    ):
        self.provider = provider
        self.default_agent_api_key = default_agent_api_key

    async def get_profiles(self) -> List[BusinessProfile]:
        """Get all profiles."""
        return await self.provider.get_profiles()

    async def get_profile(self, business_id: str) -> Optional[BusinessProfile]:
        """Get a configured profile by business id."""
        return await self.provider.get_profile(business_id)

    async def get_profile_for_number(self, phone_number: str) -> Optional[BusinessProfile]:
        """Get the configured profile that owns a dialed number."""
        return await self.provider.get_profile_by_phone_number(phone_number)

    async def resolve_profile(self, business_id: str) -> BusinessProfile:
        """
        Get the profile for a resolved business id.

        Identifiers handed out by the remote resolver may have no local
        profile; those calls get a generic profile named after the id that
        books with the default credential.
        """
        profile = await self.get_profile(business_id)
        if profile is not None:
            return profile

        logger.warning(
            f"[BUSINESS] No local profile for businessId={business_id}, using generic profile"
        )
        return BusinessProfile(
            id=business_id,
            name=business_id,
            agent_api_key=self.default_agent_api_key,
        )

    def get_credential(self, profile: BusinessProfile) -> Optional[str]:
        """Get the booking API credential for a profile."""
        return profile.agent_api_key or self.default_agent_api_key

    def get_greeting(self, profile: BusinessProfile) -> str:
        """Get the opening line spoken to callers."""
        if profile.greeting:
            return profile.greeting
        return f"Hi, thanks for calling {profile.name}. How can I help you today?"
