"""Call states and transition inputs."""
from enum import Enum
from typing import Optional

from pydantic import BaseModel

# Twilio CallStatus values after which the call is over
TERMINAL_CALL_STATUSES = frozenset(["completed", "failed", "busy", "no-answer", "canceled"])


class CallState(str, Enum):
    """States of a call as seen by the webhook handler."""

    NEW = "new"  # No caller speech yet
    AWAITING_TURN = "awaiting_turn"  # Caller utterance received, needs a reply
    ENDED = "ended"  # Terminal call status received

    def __str__(self) -> str:
        """Return the string value of the state."""
        return self.value


class CallEvent(BaseModel):
    """One webhook hit for a call.

    ``business_id`` is the continuation token carried through the gather and
    redirect URLs, so identity survives the stateless round-trips.
    """

    call_sid: str
    dialed_number: Optional[str] = None
    caller_number: Optional[str] = None
    speech_result: Optional[str] = None
    call_status: Optional[str] = None
    business_id: Optional[str] = None
    call_duration: Optional[str] = None
    direction: Optional[str] = None
    timestamp: Optional[str] = None

    def classify(self) -> CallState:
        """Decide which transition this event triggers."""
        if self.call_status and self.call_status.lower() in TERMINAL_CALL_STATUSES:
            return CallState.ENDED
        if self.speech_result and self.speech_result.strip():
            return CallState.AWAITING_TURN
        return CallState.NEW


class ResponseAction(str, Enum):
    """What the transport should do next."""

    GATHER = "gather"
    HANGUP = "hangup"
    ACKNOWLEDGE = "acknowledge"


class CallResponse(BaseModel):
    """Transport-agnostic response to a call event."""

    action: ResponseAction
    message: str = ""
    business_id: Optional[str] = None
    voice: Optional[str] = None
    language: Optional[str] = None

    @classmethod
    def gather(cls, message: str, business_id: Optional[str], **kwargs) -> "CallResponse":
        return cls(action=ResponseAction.GATHER, message=message, business_id=business_id, **kwargs)

    @classmethod
    def hangup(cls, message: str, **kwargs) -> "CallResponse":
        return cls(action=ResponseAction.HANGUP, message=message, **kwargs)

    @classmethod
    def acknowledge(cls) -> "CallResponse":
        return cls(action=ResponseAction.ACKNOWLEDGE)
