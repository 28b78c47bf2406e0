"""Shared test fixtures and configuration."""
import json
import os
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import httpx
import pytest

# Set test environment variables before importing app
os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ.setdefault("BOOKING_API_BASE_URL", "https://booking.test")
os.environ.setdefault("BOOKING_AGENT_API_KEY", "default-agent-key")

from voice_gateway.services.agent.agent import AgentService
from voice_gateway.services.agent.tool_executor import ToolExecutor
from voice_gateway.services.booking.client import BookingClient
from voice_gateway.services.business.in_memory_profiles import InMemoryBusinessProvider
from voice_gateway.services.business.repository import BusinessRepository
from voice_gateway.services.call_session.store import SessionStore


def make_tool_call(call_id: str, name: str, arguments) -> SimpleNamespace:
    """Build a tool call shaped like the OpenAI SDK object."""
    if not isinstance(arguments, str):
        arguments = json.dumps(arguments)
    return SimpleNamespace(
        id=call_id,
        type="function",
        function=SimpleNamespace(name=name, arguments=arguments),
    )


def make_completion(content=None, tool_calls=None) -> SimpleNamespace:
    """Build a chat completion shaped like the OpenAI SDK object."""
    message = SimpleNamespace(role="assistant", content=content, tool_calls=tool_calls)
    return SimpleNamespace(choices=[SimpleNamespace(index=0, message=message)])


def make_openai_client(*responses) -> Mock:
    """Mock OpenAI client returning (or raising) the given responses in order."""
    client = Mock()
    client.chat.completions.create = AsyncMock(side_effect=list(responses))
    return client


def make_booking_client(handler) -> BookingClient:
    """Booking client whose HTTP traffic is served by ``handler``."""
    return BookingClient(
        "https://booking.test",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


@pytest.fixture
def test_profiles_path():
    """Return path to test business profiles YAML file."""
    return Path(__file__).parent / "fixtures" / "test_businesses.yaml"


@pytest.fixture
def business_repository(test_profiles_path):
    """Create business repository with test data."""
    provider = InMemoryBusinessProvider(profiles_file=str(test_profiles_path))
    return BusinessRepository(provider, default_agent_api_key="default-agent-key")


@pytest.fixture
async def waismofit_profile(business_repository):
    """Resolved profile of the fitness business."""
    return await business_repository.resolve_profile("waismofit")


@pytest.fixture
def session_store():
    """Fresh session store."""
    return SessionStore(ttl_seconds=20 * 60, sweep_interval_seconds=60)


@pytest.fixture
def booking_requests():
    """Requests received by the stub booking API."""
    return []


@pytest.fixture
def stub_booking_client(booking_requests):
    """Booking client backed by a stub API with fixed slots."""

    def handler(request: httpx.Request) -> httpx.Response:
        booking_requests.append(request)
        if request.url.path == "/api/agent/availability":
            return httpx.Response(200, json={"ok": True, "slots": ["10:00", "14:00"]})
        if request.url.path == "/api/agent/book":
            return httpx.Response(200, json={"ok": True, "confirmation": "BK-1001"})
        return httpx.Response(404, json={"ok": False, "error": "Not found"})

    return make_booking_client(handler)


@pytest.fixture
def tool_executor(stub_booking_client):
    """Tool executor against the stub booking API."""
    return ToolExecutor(stub_booking_client, timeout_seconds=1.0)


@pytest.fixture
def make_agent(tool_executor):
    """Factory for agent services with a scripted model."""

    def _make_agent(*responses, max_tool_rounds=3):
        client = make_openai_client(*responses)
        agent = AgentService(
            tool_executor,
            client=client,
            model="test-model",
            max_tool_rounds=max_tool_rounds,
            history_max_messages=24,
            temperature=0.0,
        )
        return agent, client

    return _make_agent
