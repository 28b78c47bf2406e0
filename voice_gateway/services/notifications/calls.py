"""Best-effort call lifecycle notifications."""
import asyncio
import logging
from typing import Any, Awaitable, Dict, Optional, Set

import httpx

logger = logging.getLogger(__name__)

START_PATH = "/internal/calls/start"
END_PATH = "/internal/calls/end"
INTERNAL_SECRET_HEADER = "x-book8-internal-secret"


def map_call_outcome(call_status: Optional[str]) -> str:
    """Collapse Twilio terminal statuses into completed/failed."""
    return "completed" if (call_status or "").lower() == "completed" else "failed"


def parse_duration(call_duration: Optional[str]) -> Optional[int]:
    """Parse Twilio's CallDuration (seconds as a string)."""
    if call_duration is None or call_duration == "":
        return None
    try:
        return int(call_duration)
    except (TypeError, ValueError):
        return None


class CallLifecycleNotifier:
    """
    Tells the core API when calls start and end.

    Every notification runs as a background task; failures are logged and
    never reach the caller-facing flow.
    """

    def __init__(
        self,
        base_url: Optional[str],
        internal_secret: Optional[str] = None,
        timeout: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/") if base_url else None
        self.internal_secret = internal_secret.strip() if internal_secret else None
        self.client = client or httpx.AsyncClient(timeout=timeout)
        self._pending: Set[asyncio.Task] = set()

    @property
    def enabled(self) -> bool:
        return bool(self.base_url)

    def call_started(
        self,
        call_sid: str,
        caller_number: Optional[str],
        dialed_number: Optional[str],
        business_id: Optional[str],
    ) -> None:
        """Schedule the call-start notification."""
        self.schedule(
            self._post(
                START_PATH,
                {
                    "callSid": call_sid,
                    "from": caller_number,
                    "to": dialed_number,
                    "businessId": business_id,
                },
            )
        )

    def call_ended(
        self,
        call_sid: str,
        call_status: Optional[str],
        caller_number: Optional[str],
        dialed_number: Optional[str],
        business_id: Optional[str],
        duration_seconds: Optional[int],
        direction: Optional[str] = None,
        timestamp: Optional[str] = None,
    ) -> None:
        """Schedule the call-end notification."""
        self.schedule(
            self._post(
                END_PATH,
                {
                    "callSid": call_sid,
                    "status": map_call_outcome(call_status),
                    "from": caller_number,
                    "to": dialed_number,
                    "businessId": business_id,
                    "durationSeconds": duration_seconds,
                    "direction": direction,
                    "timestamp": timestamp,
                },
            )
        )

    def schedule(self, coro: Awaitable[Any]) -> None:
        """Run a coroutine in the background, logging instead of raising."""
        task = asyncio.ensure_future(self._guard(coro))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _guard(self, coro: Awaitable[Any]) -> None:
        try:
            await coro
        except Exception as e:
            logger.error(
                f"[NOTIFY] Background notification failed - Error: {type(e).__name__}: {str(e)}",
                exc_info=True,
            )

    async def _post(self, path: str, body: Dict[str, Any]) -> bool:
        if not self.enabled:
            logger.debug(f"[NOTIFY] Core API not configured, skipping {path}")
            return False

        headers = {"Content-Type": "application/json"}
        if self.internal_secret:
            headers[INTERNAL_SECRET_HEADER] = self.internal_secret
        else:
            logger.warning(f"[NOTIFY] No internal secret configured for {path}")

        try:
            response = await self.client.post(f"{self.base_url}{path}", json=body, headers=headers)
        except httpx.HTTPError as e:
            logger.error(
                f"[NOTIFY] {path} unreachable - CallSid: {body.get('callSid')}, "
                f"Error: {type(e).__name__}: {str(e)}"
            )
            return False

        if response.status_code >= 400:
            logger.error(
                f"[NOTIFY] {path} rejected - CallSid: {body.get('callSid')}, "
                f"Status: {response.status_code}, Body: {response.text[:500]}"
            )
            return False

        logger.info(f"[NOTIFY] {path} delivered - CallSid: {body.get('callSid')}")
        return True

    async def drain(self, timeout: float = 5.0) -> None:
        """Wait for pending notifications, including ones scheduled meanwhile."""
        while self._pending:
            _, pending = await asyncio.wait(set(self._pending), timeout=timeout)
            if pending:
                for task in pending:
                    task.cancel()
                return

    async def aclose(self) -> None:
        """Drain pending notifications and close the HTTP client."""
        await self.drain()
        await self.client.aclose()
