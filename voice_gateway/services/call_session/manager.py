"""Call session manager."""
import logging
from typing import Optional

from voice_gateway.services.agent.agent import AgentService
from voice_gateway.services.business.repository import BusinessRepository
from voice_gateway.services.business.resolver import BusinessResolver
from voice_gateway.services.call_session.models import CallSession
from voice_gateway.services.call_session.states import CallEvent, CallResponse, CallState
from voice_gateway.services.call_session.store import SessionStore
from voice_gateway.services.notifications.calls import CallLifecycleNotifier, parse_duration
from voice_gateway.services.speech.tts import to_spoken_reply

logger = logging.getLogger(__name__)

NOT_CONFIGURED_MESSAGE = "This number is not yet configured for a business. Goodbye."
UNKNOWN_BUSINESS_MESSAGE = (
    "I'm sorry, I'm having trouble identifying this business. Please try calling again."
)
TECHNICAL_ISSUE_MESSAGE = (
    "I'm sorry, I'm experiencing a technical issue. Please try calling again in a moment."
)
REPROMPT_MESSAGE = "Sorry, I didn't catch that. How can I help you today?"


class CallSessionManager:
    """
    Drives one call through NEW -> AWAITING_TURN -> ENDED.

    Invoked once per webhook hit. Whatever happens inside, ``handle_event``
    returns a well-formed response for the transport.
    """

    def __init__(
        self,
        store: SessionStore,
        resolver: BusinessResolver,
        repository: BusinessRepository,
        agent_service: AgentService,
        notifier: CallLifecycleNotifier,
        reply_max_sentences: int = 2,
        reply_max_chars: int = 220,
    ):
        self.store = store
        self.resolver = resolver
        self.repository = repository
        self.agent_service = agent_service
        self.notifier = notifier
        self.reply_max_sentences = reply_max_sentences
        self.reply_max_chars = reply_max_chars

    async def handle_event(self, event: CallEvent) -> CallResponse:
        """Process one webhook event for a call."""
        state = event.classify()
        logger.info(
            f"[CALL] Event - CallSid: {event.call_sid}, state: {state}, "
            f"businessId: {event.business_id or '-'}, status: {event.call_status or '-'}"
        )

        try:
            if state == CallState.ENDED:
                return await self.end_call(event)
            if state == CallState.AWAITING_TURN:
                return await self.process_turn(event)
            return await self.start_call(event)
        except Exception as e:
            logger.error(
                f"[CALL] Unhandled error - CallSid: {event.call_sid}, state: {state}, "
                f"Error: {type(e).__name__}: {str(e)}",
                exc_info=True,
            )
            if state == CallState.ENDED:
                return CallResponse.acknowledge()
            return CallResponse.hangup(TECHNICAL_ISSUE_MESSAGE)

    async def start_call(self, event: CallEvent) -> CallResponse:
        """Greet the caller, or reprompt when they said nothing."""
        session = self.store.get_or_create(event.call_sid)
        self._remember_parties(session, event)
        first_contact = session.business_id is None and not event.business_id

        business_id = await self._resolve_business(session, event)
        if not business_id:
            logger.warning(f"[CALL] No business for To={event.dialed_number} - CallSid: {event.call_sid}")
            self.store.delete(event.call_sid)
            return CallResponse.hangup(NOT_CONFIGURED_MESSAGE)

        profile = await self.repository.resolve_profile(business_id)

        if first_contact:
            self._notify_started(session)

        if session.greeted:
            message = REPROMPT_MESSAGE
        else:
            message = self.repository.get_greeting(profile)
            session.greeted = True

        return CallResponse.gather(
            message,
            business_id,
            voice=profile.tts_voice,
            language=profile.language,
        )

    async def process_turn(self, event: CallEvent) -> CallResponse:
        """Run one caller turn through the agent."""
        session = self.store.get_or_create(event.call_sid)
        self._remember_parties(session, event)
        session.greeted = True

        business_id = await self._resolve_business(session, event)
        if not business_id:
            logger.warning(f"[CALL] Business lost mid-call - CallSid: {event.call_sid}")
            return CallResponse.hangup(UNKNOWN_BUSINESS_MESSAGE)

        profile = await self.repository.resolve_profile(business_id)

        utterance = event.speech_result.strip()
        logger.info(
            f"[CALL] Caller said: '{utterance[:200]}' - CallSid: {event.call_sid}, "
            f"turn: {session.turn_count + 1}"
        )
        session.add_user_message(utterance)

        reply = await self.agent_service.run_turn(
            session,
            profile,
            credential=self.repository.get_credential(profile),
        )
        spoken = to_spoken_reply(reply, self.reply_max_sentences, self.reply_max_chars)

        return CallResponse.gather(
            spoken,
            business_id,
            voice=profile.tts_voice,
            language=profile.language,
        )

    async def end_call(self, event: CallEvent) -> CallResponse:
        """Clean up after a terminal call status."""
        session: Optional[CallSession] = None
        try:
            session = self.store.delete(event.call_sid)
        except Exception as e:
            logger.error(
                f"[CALL] Failed to delete session - CallSid: {event.call_sid}, "
                f"Error: {type(e).__name__}: {str(e)}",
                exc_info=True,
            )

        try:
            self._notify_ended(session, event)
        except Exception as e:
            logger.error(
                f"[CALL] Failed to schedule end notification - CallSid: {event.call_sid}, "
                f"Error: {type(e).__name__}: {str(e)}",
                exc_info=True,
            )

        logger.info(f"[CALL] Call ended - CallSid: {event.call_sid}, status: {event.call_status}")
        return CallResponse.acknowledge()

    async def _resolve_business(self, session: CallSession, event: CallEvent) -> Optional[str]:
        """Resolve once per call and cache the result on the session."""
        known = session.business_id or event.business_id
        business_id = await self.resolver.resolve(event.dialed_number, known_business_id=known)
        if business_id:
            return session.assign_business(business_id)
        return None

    @staticmethod
    def _remember_parties(session: CallSession, event: CallEvent) -> None:
        if event.caller_number and not session.caller_number:
            session.caller_number = event.caller_number
        if event.dialed_number and not session.dialed_number:
            session.dialed_number = event.dialed_number

    def _notify_started(self, session: CallSession) -> None:
        try:
            self.notifier.call_started(
                session.call_sid,
                caller_number=session.caller_number,
                dialed_number=session.dialed_number,
                business_id=session.business_id,
            )
        except Exception as e:
            logger.error(
                f"[CALL] Failed to schedule start notification - CallSid: {session.call_sid}, "
                f"Error: {type(e).__name__}: {str(e)}",
                exc_info=True,
            )

    def _notify_ended(self, session: Optional[CallSession], event: CallEvent) -> None:
        duration = parse_duration(event.call_duration)
        if duration is None and session is not None:
            duration = session.age_seconds()

        business_id = event.business_id or (session.business_id if session else None)
        caller_number = event.caller_number or (session.caller_number if session else None)
        dialed_number = event.dialed_number or (session.dialed_number if session else None)

        if business_id:
            self.notifier.call_ended(
                event.call_sid,
                call_status=event.call_status,
                caller_number=caller_number,
                dialed_number=dialed_number,
                business_id=business_id,
                duration_seconds=duration,
                direction=event.direction,
                timestamp=event.timestamp,
            )
            return

        if not self.notifier.enabled:
            return

        # Status callbacks can arrive after the session expired; resolve in the background
        async def resolve_and_notify() -> None:
            resolved = await self.resolver.resolve(dialed_number)
            self.notifier.call_ended(
                event.call_sid,
                call_status=event.call_status,
                caller_number=caller_number,
                dialed_number=dialed_number,
                business_id=resolved,
                duration_seconds=duration,
                direction=event.direction,
                timestamp=event.timestamp,
            )

        self.notifier.schedule(resolve_and_notify())
