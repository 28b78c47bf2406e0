"""In-memory call session store."""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from voice_gateway.services.agent.prompt import BASE_SYSTEM_PROMPT
from voice_gateway.services.call_session.models import CallSession, utcnow

logger = logging.getLogger(__name__)


class SessionStore:
    """
    Owns the lifetime of call sessions.

    Sessions are created lazily on the first event for a call, deleted when
    the call ends, and swept once idle for longer than the TTL. Map updates
    are single dict operations (setdefault/pop).
    """

    def __init__(
        self,
        ttl_seconds: int = 20 * 60,
        sweep_interval_seconds: int = 60,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.ttl = timedelta(seconds=ttl_seconds)
        self.sweep_interval_seconds = sweep_interval_seconds
        self.clock = clock
        self._sessions: Dict[str, CallSession] = {}
        self._sweeper: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, call_sid: str) -> bool:
        return call_sid in self._sessions

    def get_or_create(self, call_sid: str) -> CallSession:
        """Get the session for a call, creating it on first contact."""
        now = self.clock()
        session = self._sessions.get(call_sid)
        if session is None:
            session = self._sessions.setdefault(
                call_sid, CallSession.start(call_sid, BASE_SYSTEM_PROMPT, now)
            )
            logger.debug(f"[SESSION STORE] Session ready - CallSid: {call_sid}")
        session.touch(now)
        return session

    def get(self, call_sid: str) -> Optional[CallSession]:
        """Get an existing session without creating or refreshing it."""
        return self._sessions.get(call_sid)

    def delete(self, call_sid: str) -> Optional[CallSession]:
        """Remove a session. Deleting an unknown call is a no-op."""
        session = self._sessions.pop(call_sid, None)
        if session is not None:
            logger.info(f"[SESSION STORE] Session removed - CallSid: {call_sid}")
        return session

    def sweep(self, now: Optional[datetime] = None) -> int:
        """
        Remove sessions idle for longer than the TTL.

        Returns:
            Number of sessions removed
        """
        cutoff = (now or self.clock()) - self.ttl
        removed = 0
        for call_sid, session in list(self._sessions.items()):
            if session.last_active_at < cutoff and self._sessions.get(call_sid) is session:
                self._sessions.pop(call_sid, None)
                removed += 1
                logger.info(f"[SESSION STORE] Cleaned up expired session - CallSid: {call_sid}")
        return removed

    async def _sweep_forever(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_seconds)
            try:
                self.sweep()
            except Exception as e:
                logger.error(
                    f"[SESSION STORE] Sweep failed - Error: {type(e).__name__}: {str(e)}",
                    exc_info=True,
                )

    def start_sweeper(self) -> None:
        """Start the periodic expiry sweep on the running event loop."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_forever())
            logger.info(
                f"[SESSION STORE] Sweeper started - interval: {self.sweep_interval_seconds}s, "
                f"ttl: {int(self.ttl.total_seconds())}s"
            )

    async def stop_sweeper(self) -> None:
        """Stop the periodic sweep."""
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None
