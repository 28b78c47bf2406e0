"""Booking API client."""
import logging
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)

AVAILABILITY_PATH = "/api/agent/availability"
BOOK_PATH = "/api/agent/book"


class BookingAPIError(Exception):
    """The booking API rejected a request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class BookingClient:
    """
    Client for the scheduling backend.

    The per-business credential travels only in a request header. Requests
    are never retried: a booking whose response was lost must not be sent
    twice.
    """

    def __init__(
        self,
        base_url: str,
        api_key_header: str = "x-book8-agent-key",
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key_header = api_key_header
        self.client = client or httpx.AsyncClient(
            timeout=timeout,
            transport=httpx.AsyncHTTPTransport(retries=0),
        )

    async def _post(
        self, path: str, credential: Optional[str], body: Dict[str, Any]
    ) -> Dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        if credential:
            headers[self.api_key_header] = credential

        response = await self.client.post(f"{self.base_url}{path}", json=body, headers=headers)

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {"data": data}

        if response.status_code >= 400 or data.get("ok") is False:
            message = data.get("error") or f"Booking API error {response.status_code} for {path}"
            logger.error(
                f"[BOOKING API] Request failed - Path: {path}, "
                f"Status: {response.status_code}, Error: {message}"
            )
            raise BookingAPIError(str(message), status_code=response.status_code)

        return data

    async def check_availability(
        self,
        credential: Optional[str],
        date: str,
        timezone: str,
        duration_minutes: int,
    ) -> Dict[str, Any]:
        """Get open slots for a date."""
        return await self._post(
            AVAILABILITY_PATH,
            credential,
            {"date": date, "timezone": timezone, "durationMinutes": duration_minutes},
        )

    async def book_appointment(
        self,
        credential: Optional[str],
        start: str,
        guest_name: str,
        guest_phone: str,
        guest_email: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create a booking."""
        body: Dict[str, Any] = {
            "start": start,
            "guestName": guest_name,
            "guestPhone": guest_phone,
        }
        if guest_email:
            body["guestEmail"] = guest_email
        return await self._post(BOOK_PATH, credential, body)

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()
