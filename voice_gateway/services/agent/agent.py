"""LLM agent service."""
import logging
from datetime import datetime
from typing import Any, List, Optional

from openai import AsyncOpenAI

from voice_gateway.core.config import settings
from voice_gateway.services.agent.prompt import build_system_prompt
from voice_gateway.services.agent.state import ChatMessage, ToolCallRequest
from voice_gateway.services.agent.tool_executor import ToolExecutor
from voice_gateway.services.agent.tools import TOOLS
from voice_gateway.services.business.base import BusinessProfile
from voice_gateway.services.call_session.models import CallSession

logger = logging.getLogger(__name__)

MODEL_ERROR_REPLY = "I'm sorry, I'm having trouble right now. Could you say that again?"
EMPTY_REPLY_FALLBACK = "Sorry, I couldn't come up with an answer. Could you say that again?"
LOOKUP_FALLBACK_REPLY = "Let me look into that for you. Could you tell me once more what you need?"


class AgentService:
    """
    Runs the model/tool loop for one conversational turn.

    The session is only borrowed for the duration of ``run_turn``; the
    service keeps no reference to it afterwards.
    """

    def __init__(
        self,
        tool_executor: ToolExecutor,
        client: Optional[Any] = None,
        model: Optional[str] = None,
        max_tool_rounds: Optional[int] = None,
        history_max_messages: Optional[int] = None,
        temperature: Optional[float] = None,
    ):
        self.tool_executor = tool_executor
        self.client = client or AsyncOpenAI(
            api_key=settings.openai_api_key,
            timeout=settings.openai_timeout_seconds,
        )
        self.model = model or settings.openai_model
        self.max_tool_rounds = (
            settings.max_tool_rounds if max_tool_rounds is None else max_tool_rounds
        )
        self.history_max_messages = (
            settings.history_max_messages if history_max_messages is None else history_max_messages
        )
        self.temperature = settings.openai_temperature if temperature is None else temperature

    async def run_turn(
        self,
        session: CallSession,
        profile: BusinessProfile,
        credential: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> str:
        """
        Produce the assistant reply to the latest caller message.

        The caller utterance must already be appended to the session. The
        assistant's tool-call messages, the tool results and the final reply
        are appended in order.

        Returns:
            Non-empty reply text
        """
        session.set_system_prompt(build_system_prompt(profile, now))

        logger.info(
            f"[AGENT] Turn started - CallSid: {session.call_sid}, business: {profile.id}, "
            f"history: {len(session.messages)} messages"
        )

        try:
            reply = await self._run_tool_loop(session, profile, credential)
        except Exception as e:
            logger.error(
                f"[AGENT] Model call failed - CallSid: {session.call_sid}, "
                f"Error: {type(e).__name__}: {str(e)}",
                exc_info=True,
            )
            reply = MODEL_ERROR_REPLY

        session.add_assistant_message(reply)
        logger.info(f"[AGENT] Turn finished - CallSid: {session.call_sid}, reply: '{reply}'")
        return reply

    async def _run_tool_loop(
        self,
        session: CallSession,
        profile: BusinessProfile,
        credential: Optional[str],
    ) -> str:
        message = await self._complete(session)
        rounds = 0

        while True:
            tool_calls = self._tool_calls(message)
            if not tool_calls:
                break

            if rounds >= self.max_tool_rounds:
                logger.warning(
                    f"[AGENT] Tool round limit ({self.max_tool_rounds}) reached - "
                    f"CallSid: {session.call_sid}, dropping {len(tool_calls)} pending call(s)"
                )
                return LOOKUP_FALLBACK_REPLY
            rounds += 1

            session.add_message(
                ChatMessage(
                    role="assistant",
                    content=getattr(message, "content", None) or None,
                    tool_calls=tool_calls,
                )
            )
            for request in tool_calls:
                result = await self.tool_executor.execute(request, profile, credential)
                session.add_message(result.to_message())

            logger.info(
                f"[AGENT] Tool round {rounds} done - CallSid: {session.call_sid}, "
                f"tools: {[call.name for call in tool_calls]}"
            )
            message = await self._complete(session)

        content = (getattr(message, "content", None) or "").strip()
        if not content:
            logger.warning(f"[AGENT] Model returned empty content - CallSid: {session.call_sid}")
            return EMPTY_REPLY_FALLBACK
        return content

    async def _complete(self, session: CallSession) -> Any:
        """Ask the model for the next assistant message."""
        messages = [
            message.to_openai()
            for message in session.model_messages(self.history_max_messages)
        ]
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            tools=TOOLS,
            tool_choice="auto",
            temperature=self.temperature,
        )
        if not response.choices:
            raise ValueError("Model returned no choices")
        return response.choices[0].message

    @staticmethod
    def _tool_calls(message: Any) -> List[ToolCallRequest]:
        """Extract tool-call requests from an assistant message."""
        requests = []
        for call in getattr(message, "tool_calls", None) or []:
            function = getattr(call, "function", None)
            if function is None:
                continue
            requests.append(
                ToolCallRequest(
                    id=call.id,
                    name=function.name,
                    arguments=function.arguments or "{}",
                )
            )
        return requests
