"""Unit tests for the agent tool loop."""
import json
from datetime import datetime, timezone

import httpx
import pytest

from conftest import make_completion, make_tool_call
from voice_gateway.services.agent.agent import (
    EMPTY_REPLY_FALLBACK,
    LOOKUP_FALLBACK_REPLY,
    MODEL_ERROR_REPLY,
)
from voice_gateway.services.call_session.models import CallSession
from voice_gateway.services.speech.tts import to_spoken_reply

AVAILABILITY_ARGS = {"date": "2025-06-02", "timezone": "America/Toronto", "durationMinutes": 30}
NOW = datetime(2025, 6, 1, 16, 0, tzinfo=timezone.utc)


@pytest.fixture
def session():
    session = CallSession.start("CA100", "seed prompt", NOW)
    session.assign_business("waismofit")
    return session


class TestAgentService:
    """Test the model/tool loop."""

    @pytest.mark.asyncio
    async def test_availability_round_trip(
        self, make_agent, session, waismofit_profile, booking_requests
    ):
        """Test a lookup followed by a spoken answer listing the open times."""
        agent, client = make_agent(
            make_completion(
                tool_calls=[make_tool_call("call_1", "check_availability", AVAILABILITY_ARGS)]
            ),
            make_completion(
                "Tomorrow I have 10 AM or 2 PM open. Which one works better for you?"
            ),
        )
        session.add_user_message("what times are open tomorrow")

        reply = await agent.run_turn(session, waismofit_profile, credential="waismo-key", now=NOW)

        assert "10" in reply and "2 PM" in reply
        spoken = to_spoken_reply(reply)
        assert len(spoken) <= 220
        assert spoken == reply

        assert client.chat.completions.create.await_count == 2
        assert len(booking_requests) == 1
        assert json.loads(booking_requests[0].content) == AVAILABILITY_ARGS

        roles = [m.role for m in session.messages]
        assert roles == ["system", "user", "assistant", "tool", "assistant"]
        assert session.messages[2].tool_calls[0].id == "call_1"
        assert session.messages[3].tool_call_id == "call_1"
        assert json.loads(session.messages[3].content)["slots"] == ["10:00", "14:00"]
        assert session.messages[-1].content == reply

    @pytest.mark.asyncio
    async def test_second_model_call_sees_tool_result(self, make_agent, session, waismofit_profile):
        """Test that the tool result is sent back paired with its request."""
        agent, client = make_agent(
            make_completion(
                tool_calls=[make_tool_call("call_1", "check_availability", AVAILABILITY_ARGS)]
            ),
            make_completion("I have 10 AM or 2 PM."),
        )
        session.add_user_message("what times are open tomorrow")

        await agent.run_turn(session, waismofit_profile, credential="waismo-key", now=NOW)

        second_call = client.chat.completions.create.await_args_list[1]
        messages = second_call.kwargs["messages"]
        assert messages[0]["role"] == "system"
        assert "2025-06-01" in messages[0]["content"]
        assert "Wais Mo Fitness" in messages[0]["content"]
        assert messages[2]["role"] == "assistant"
        assert messages[2]["tool_calls"][0]["function"]["name"] == "check_availability"
        assert messages[3] == {
            "role": "tool",
            "tool_call_id": "call_1",
            "content": json.dumps({"ok": True, "slots": ["10:00", "14:00"]}),
        }
        assert second_call.kwargs["tool_choice"] == "auto"
        assert len(second_call.kwargs["tools"]) == 2

    @pytest.mark.asyncio
    async def test_tool_round_limit(self, make_agent, session, waismofit_profile, booking_requests):
        """Test that tool requests past the round limit fall back to a fixed reply."""
        lookup = [
            make_completion(
                tool_calls=[make_tool_call(f"call_{i}", "check_availability", AVAILABILITY_ARGS)]
            )
            for i in range(5)
        ]
        agent, client = make_agent(*lookup, max_tool_rounds=3)
        session.add_user_message("any time next week?")

        reply = await agent.run_turn(session, waismofit_profile, credential="waismo-key", now=NOW)

        assert reply == LOOKUP_FALLBACK_REPLY
        assert client.chat.completions.create.await_count == 4
        assert len(booking_requests) == 3

        # Every stored tool request has its result; the unanswered one is dropped
        requested = [c.id for m in session.messages if m.role == "assistant" for c in m.tool_calls]
        answered = [m.tool_call_id for m in session.messages if m.role == "tool"]
        assert requested == answered == ["call_0", "call_1", "call_2"]
        assert session.messages[-1].content == LOOKUP_FALLBACK_REPLY

    @pytest.mark.asyncio
    async def test_multiple_tools_in_one_round(self, make_agent, session, waismofit_profile):
        """Test that each tool call in a round gets its own result, in order."""
        agent, _ = make_agent(
            make_completion(
                tool_calls=[
                    make_tool_call("call_a", "check_availability", AVAILABILITY_ARGS),
                    make_tool_call("call_b", "check_availability", {**AVAILABILITY_ARGS, "date": "2025-06-03"}),
                ]
            ),
            make_completion("Both days have openings at 10 and 2."),
        )
        session.add_user_message("tomorrow or the day after?")

        await agent.run_turn(session, waismofit_profile, credential="waismo-key", now=NOW)

        tool_messages = [m for m in session.messages if m.role == "tool"]
        assert [m.tool_call_id for m in tool_messages] == ["call_a", "call_b"]

    @pytest.mark.asyncio
    async def test_empty_reply_fallback(self, make_agent, session, waismofit_profile):
        """Test that an empty completion still yields speakable text."""
        agent, _ = make_agent(make_completion("   "))
        session.add_user_message("hello?")

        reply = await agent.run_turn(session, waismofit_profile, now=NOW)

        assert reply == EMPTY_REPLY_FALLBACK

    @pytest.mark.asyncio
    async def test_model_error_returns_apology(self, make_agent, session, waismofit_profile):
        """Test that a failing model call is turned into the fixed apology."""
        agent, _ = make_agent(httpx.ConnectError("network down"))
        session.add_user_message("can I book a session?")

        reply = await agent.run_turn(session, waismofit_profile, now=NOW)

        assert reply == MODEL_ERROR_REPLY
        assert [m.role for m in session.messages] == ["system", "user", "assistant"]

    @pytest.mark.asyncio
    async def test_tool_error_is_reported_to_model(self, make_agent, session, waismofit_profile):
        """Test that a bad tool call does not abort the turn."""
        agent, client = make_agent(
            make_completion(tool_calls=[make_tool_call("call_1", "check_availability", "{oops")]),
            make_completion("Sorry, which day did you have in mind?"),
        )
        session.add_user_message("book me in")

        reply = await agent.run_turn(session, waismofit_profile, now=NOW)

        assert reply == "Sorry, which day did you have in mind?"
        tool_message = [m for m in session.messages if m.role == "tool"][0]
        assert json.loads(tool_message.content)["ok"] is False

    @pytest.mark.asyncio
    async def test_history_window(self, make_agent, waismofit_profile):
        """Test that long histories are trimmed to start at a caller message."""
        session = CallSession.start("CA200", "seed prompt", NOW)
        for i in range(30):
            session.add_user_message(f"question {i}")
            session.add_assistant_message(f"answer {i}")
        session.add_user_message("last question")
        agent, client = make_agent(make_completion("Sure."))

        await agent.run_turn(session, waismofit_profile, now=NOW)

        messages = client.chat.completions.create.await_args.kwargs["messages"]
        assert messages[0]["role"] == "system"
        assert messages[1]["role"] == "user"
        assert len(messages) <= 25
        assert messages[-1] == {"role": "user", "content": "last question"}
