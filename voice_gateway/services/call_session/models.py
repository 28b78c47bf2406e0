"""Call session models."""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel

from voice_gateway.services.agent.state import ChatMessage

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CallSession(BaseModel):
    """Conversation state for one phone call.

    ``messages[0]`` is always the single system entry; the store seeds it and
    the agent refreshes its content in place.
    """

    call_sid: str
    messages: List[ChatMessage] = []
    business_id: Optional[str] = None
    caller_number: Optional[str] = None
    dialed_number: Optional[str] = None
    created_at: datetime
    last_active_at: datetime
    greeted: bool = False
    turn_count: int = 0

    @classmethod
    def start(cls, call_sid: str, system_prompt: str, now: datetime) -> "CallSession":
        """Create a fresh session with its system message seeded."""
        return cls(
            call_sid=call_sid,
            messages=[ChatMessage(role="system", content=system_prompt)],
            created_at=now,
            last_active_at=now,
        )

    def touch(self, now: datetime) -> None:
        """Record activity."""
        if now > self.last_active_at:
            self.last_active_at = now

    def age_seconds(self, now: Optional[datetime] = None) -> int:
        """Seconds since the session was created."""
        return int(((now or utcnow()) - self.created_at).total_seconds())

    def assign_business(self, business_id: str) -> str:
        """
        Bind the call to a business.

        The first assignment wins for the lifetime of the call; later,
        different identifiers are ignored.

        Returns:
            The business id the call is bound to
        """
        if self.business_id is None:
            self.business_id = business_id
        elif self.business_id != business_id:
            logger.warning(
                f"[SESSION] Ignoring businessId={business_id} for CallSid={self.call_sid}, "
                f"already bound to {self.business_id}"
            )
        return self.business_id

    def set_system_prompt(self, content: str) -> None:
        """Replace the content of the system entry."""
        if self.messages and self.messages[0].role == "system":
            self.messages[0] = ChatMessage(role="system", content=content)
        else:
            self.messages.insert(0, ChatMessage(role="system", content=content))

    def add_user_message(self, text: str) -> None:
        self.messages.append(ChatMessage(role="user", content=text))
        self.turn_count += 1

    def add_assistant_message(self, text: str) -> None:
        self.messages.append(ChatMessage(role="assistant", content=text))

    def add_message(self, message: ChatMessage) -> None:
        self.messages.append(message)

    def model_messages(self, limit: Optional[int] = None) -> List[ChatMessage]:
        """
        Get the history to send to the model.

        Keeps the system entry plus at most ``limit`` of the latest messages,
        cut at a user message so tool results never lose their request.
        """
        system, history = self.messages[:1], self.messages[1:]
        if limit is None or len(history) <= limit:
            return system + history

        tail = history[-limit:]
        for index, message in enumerate(tail):
            if message.role == "user":
                return system + tail[index:]
        # No user message inside the window; keep the latest one instead
        for index in range(len(history) - 1, -1, -1):
            if history[index].role == "user":
                return system + history[index:]
        return system + tail
