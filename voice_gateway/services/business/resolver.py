"""Dialed number to business resolution."""
import logging
from typing import Optional

import httpx

from voice_gateway.services.business.repository import BusinessRepository

logger = logging.getLogger(__name__)


class BusinessResolver:
    """
    Maps the number a caller dialed to a business identifier.

    Lookup order: an identifier already known for the call, the remote
    resolver endpoint, the local profile directory, then the configured
    default business. Every failure is downgraded to "not found" (None).
    """

    def __init__(
        self,
        repository: BusinessRepository,
        resolver_url: Optional[str] = None,
        default_business_id: Optional[str] = None,
        timeout: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.repository = repository
        self.resolver_url = resolver_url
        self.default_business_id = default_business_id
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def resolve(
        self,
        dialed_number: Optional[str],
        known_business_id: Optional[str] = None,
    ) -> Optional[str]:
        """
        Resolve a business identifier.

        Args:
            dialed_number: Number the caller dialed (E.164, as sent by Twilio)
            known_business_id: Identifier already carried by the call, if any

        Returns:
            Business identifier, or None when no business is found
        """
        if known_business_id:
            return known_business_id

        business_id = None
        if dialed_number:
            business_id = await self._resolve_remote(dialed_number)
            if not business_id:
                business_id = await self._resolve_local(dialed_number)

        if not business_id and self.default_business_id:
            logger.info(
                f"[RESOLVER] Falling back to default businessId={self.default_business_id} "
                f"for To={dialed_number}"
            )
            business_id = self.default_business_id

        if not business_id:
            logger.warning(f"[RESOLVER] No business found for To={dialed_number}")
        return business_id

    async def _resolve_remote(self, dialed_number: str) -> Optional[str]:
        """Query the remote resolver endpoint."""
        if not self.resolver_url:
            return None

        try:
            response = await self.client.get(self.resolver_url, params={"to": dialed_number})
        except httpx.HTTPError as e:
            logger.error(
                f"[RESOLVER] Resolver unreachable for To={dialed_number} - "
                f"Error: {type(e).__name__}: {str(e)}"
            )
            return None

        if response.status_code != 200:
            logger.error(
                f"[RESOLVER] Resolve failed for To={dialed_number} - Status: {response.status_code}"
            )
            return None

        try:
            data = response.json()
        except ValueError:
            logger.error(f"[RESOLVER] Resolver returned non-JSON body for To={dialed_number}")
            return None

        business_id = data.get("businessId") if isinstance(data, dict) else None
        if business_id:
            logger.info(f"[RESOLVER] Resolved To={dialed_number} -> businessId={business_id}")
            return str(business_id)
        return None

    async def _resolve_local(self, dialed_number: str) -> Optional[str]:
        """Look the number up in the local profile directory."""
        try:
            profile = await self.repository.get_profile_for_number(dialed_number)
        except Exception as e:
            logger.error(
                f"[RESOLVER] Local directory lookup failed for To={dialed_number} - "
                f"Error: {type(e).__name__}: {str(e)}",
                exc_info=True,
            )
            return None

        if profile:
            logger.info(f"[RESOLVER] Local directory matched To={dialed_number} -> {profile.id}")
            return profile.id
        return None

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()
