"""Unit tests for the HTTP endpoints."""
from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

from conftest import make_completion, make_tool_call
from voice_gateway.core.config import settings
from voice_gateway.core.dependencies import (
    get_agent_service,
    get_business_repository,
    get_session_manager,
    get_session_store,
    get_twiml_renderer,
)
from voice_gateway.main import app
from voice_gateway.services.business.resolver import BusinessResolver
from voice_gateway.services.call_session.manager import CallSessionManager
from voice_gateway.services.notifications.calls import CallLifecycleNotifier
from voice_gateway.services.speech.tts import TwiMLRenderer


@pytest.fixture
def notifier():
    return Mock(spec=CallLifecycleNotifier)


@pytest.fixture
def client_factory(session_store, business_repository, notifier, make_agent, monkeypatch):
    """Build a test client whose call flow uses a scripted model."""
    monkeypatch.setattr(settings, "base_url", "https://voice.test")

    def _client(*responses, agent_service=None):
        if agent_service is None:
            agent_service, _ = make_agent(*responses)
        manager = CallSessionManager(
            store=session_store,
            resolver=BusinessResolver(business_repository),
            repository=business_repository,
            agent_service=agent_service,
            notifier=notifier,
        )
        app.dependency_overrides[get_session_manager] = lambda: manager
        app.dependency_overrides[get_twiml_renderer] = lambda: TwiMLRenderer()
        app.dependency_overrides[get_session_store] = lambda: session_store
        app.dependency_overrides[get_agent_service] = lambda: agent_service
        app.dependency_overrides[get_business_repository] = lambda: business_repository
        return TestClient(app)

    yield _client
    app.dependency_overrides.clear()


class TestVoiceWebhooks:
    """Test the Twilio-facing endpoints."""

    def test_incoming_call_returns_gather(self, client_factory, session_store):
        """Test that an inbound call is greeted with a gather."""
        client = client_factory()

        response = client.post(
            "/webhooks/voice/incoming",
            data={"CallSid": "CA1", "To": "+16477882883", "From": "+15550001111"},
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/xml")
        assert "<Gather" in response.text
        assert "https://voice.test/webhooks/voice/gather?businessId=waismofit" in response.text
        assert "Wais Mo Fitness" in response.text
        assert "CA1" in session_store

    def test_incoming_call_unknown_number(self, client_factory):
        """Test that an unconfigured number hangs up."""
        client = client_factory()

        response = client.post(
            "/webhooks/voice/incoming", data={"CallSid": "CA1", "To": "+19999999999"}
        )

        assert response.status_code == 200
        assert "not yet configured" in response.text
        assert "<Hangup" in response.text

    def test_gather_runs_agent(self, client_factory, booking_requests):
        """Test a caller turn end to end."""
        client = client_factory(
            make_completion(
                tool_calls=[
                    make_tool_call(
                        "call_1",
                        "check_availability",
                        {"date": "2025-06-02", "timezone": "America/Toronto", "durationMinutes": 30},
                    )
                ]
            ),
            make_completion("I have 10 AM or 2 PM tomorrow. Which would you like?"),
        )

        response = client.post(
            "/webhooks/voice/gather?businessId=waismofit",
            data={"CallSid": "CA1", "SpeechResult": "what times are open tomorrow"},
        )

        assert response.status_code == 200
        assert "I have 10 AM or 2 PM tomorrow. Which would you like?" in response.text
        assert "businessId=waismofit" in response.text
        assert len(booking_requests) == 1

    def test_gather_without_speech_reprompts(self, client_factory):
        """Test that an empty gather is treated like a fresh entry."""
        client = client_factory()
        client.post("/webhooks/voice/incoming", data={"CallSid": "CA1", "To": "+16477882883"})

        response = client.post(
            "/webhooks/voice/gather?businessId=waismofit", data={"CallSid": "CA1"}
        )

        assert response.status_code == 200
        assert "catch that. How can I help you today?" in response.text
        assert "<Gather" in response.text

    def test_handler_failure_returns_fallback_twiml(self, client_factory):
        """Test that even a broken manager yields valid TwiML."""
        client = client_factory()
        broken = Mock()
        broken.handle_event = AsyncMock(side_effect=RuntimeError("boom"))
        app.dependency_overrides[get_session_manager] = lambda: broken

        response = client.post(
            "/webhooks/voice/gather", data={"CallSid": "CA1", "SpeechResult": "hello"}
        )

        assert response.status_code == 200
        assert "technical issue" in response.text
        assert "<Hangup" in response.text

    def test_status_completed_removes_session(self, client_factory, session_store, notifier):
        """Test that a completed status callback clears the call."""
        client = client_factory()
        client.post("/webhooks/voice/incoming", data={"CallSid": "CA1", "To": "+16477882883"})

        response = client.post(
            "/webhooks/voice/status",
            data={"CallSid": "CA1", "CallStatus": "completed", "CallDuration": "65"},
        )

        assert response.status_code == 200
        assert "<Response" in response.text
        assert "CA1" not in session_store
        assert notifier.call_ended.call_args.kwargs["duration_seconds"] == 65

    def test_status_in_progress_is_ignored(self, client_factory, session_store, notifier):
        """Test that non-terminal statuses leave the call alone."""
        client = client_factory()
        client.post("/webhooks/voice/incoming", data={"CallSid": "CA1", "To": "+16477882883"})

        response = client.post(
            "/webhooks/voice/status", data={"CallSid": "CA1", "CallStatus": "in-progress"}
        )

        assert response.status_code == 200
        assert "CA1" in session_store
        notifier.call_ended.assert_not_called()


class TestServiceEndpoints:
    """Test health and debug endpoints."""

    def test_health(self, client_factory, session_store):
        client = client_factory()
        session_store.get_or_create("CA1")

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {
            "status": "healthy",
            "service": "voice-booking-gateway",
            "activeSessions": 1,
        }

    def test_debug_chat_disabled_by_default(self, client_factory, monkeypatch):
        monkeypatch.setattr(settings, "enable_debug_endpoints", False)
        client = client_factory(make_completion("Hi there."))

        response = client.post(
            "/debug/agent-chat", json={"businessId": "waismofit", "message": "hi"}
        )

        assert response.status_code == 404

    def test_debug_chat(self, client_factory, monkeypatch, session_store):
        """Test a text-only agent turn."""
        monkeypatch.setattr(settings, "enable_debug_endpoints", True)
        client = client_factory(
            make_completion(
                tool_calls=[
                    make_tool_call(
                        "call_1",
                        "check_availability",
                        {"date": "2025-06-02", "durationMinutes": 30},
                    )
                ]
            ),
            make_completion("I have 10 AM or 2 PM."),
        )

        response = client.post(
            "/debug/agent-chat",
            json={
                "businessId": "waismofit",
                "messages": [
                    {"role": "user", "content": "hi"},
                    {"role": "assistant", "content": "Hello! How can I help?"},
                ],
                "message": "any times tomorrow?",
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data == {
            "ok": True,
            "reply": "I have 10 AM or 2 PM.",
            "businessId": "waismofit",
            "toolCalls": ["check_availability"],
        }
        assert len(session_store) == 0

    def test_debug_chat_requires_message(self, client_factory, monkeypatch):
        monkeypatch.setattr(settings, "enable_debug_endpoints", True)
        client = client_factory()

        response = client.post("/debug/agent-chat", json={"businessId": "waismofit"})

        assert response.status_code == 400

    def test_debug_chat_accepts_handle(self, client_factory, monkeypatch):
        """Test that the business can be named with handle instead of businessId."""
        monkeypatch.setattr(settings, "enable_debug_endpoints", True)
        client = client_factory(make_completion("Hi, how can I help?"))

        response = client.post(
            "/debug/agent-chat", json={"handle": "cutzbarber", "message": "hi"}
        )

        assert response.status_code == 200
        assert response.json()["businessId"] == "cutzbarber"
        assert response.json()["reply"] == "Hi, how can I help?"

    def test_debug_chat_requires_business(self, client_factory, monkeypatch):
        monkeypatch.setattr(settings, "enable_debug_endpoints", True)
        client = client_factory()

        response = client.post("/debug/agent-chat", json={"message": "hi"})

        assert response.status_code == 400
        assert "handle" in response.json()["detail"]
