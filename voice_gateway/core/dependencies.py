"""FastAPI dependencies."""
from functools import lru_cache

from voice_gateway.core.config import settings
from voice_gateway.services.agent.agent import AgentService
from voice_gateway.services.agent.tool_executor import ToolExecutor
from voice_gateway.services.booking.client import BookingClient
from voice_gateway.services.business.in_memory_profiles import InMemoryBusinessProvider
from voice_gateway.services.business.repository import BusinessRepository
from voice_gateway.services.business.resolver import BusinessResolver
from voice_gateway.services.call_session.manager import CallSessionManager
from voice_gateway.services.call_session.store import SessionStore
from voice_gateway.services.notifications.calls import CallLifecycleNotifier
from voice_gateway.services.speech.tts import TwiMLRenderer


@lru_cache
def get_business_repository() -> BusinessRepository:
    """Get business repository instance."""
    return BusinessRepository(
        provider=InMemoryBusinessProvider(settings.business_profiles_file),
        default_agent_api_key=settings.booking_agent_api_key,
    )


@lru_cache
def get_session_store() -> SessionStore:
    """Get the process-wide session store."""
    return SessionStore(
        ttl_seconds=settings.session_ttl_seconds,
        sweep_interval_seconds=settings.session_sweep_interval_seconds,
    )


@lru_cache
def get_business_resolver() -> BusinessResolver:
    """Get business resolver instance."""
    return BusinessResolver(
        get_business_repository(),
        resolver_url=settings.resolver_url,
        default_business_id=settings.default_business_id,
        timeout=settings.resolver_timeout_seconds,
    )


@lru_cache
def get_booking_client() -> BookingClient:
    """Get booking API client instance."""
    return BookingClient(
        settings.booking_api_base_url,
        api_key_header=settings.booking_api_key_header,
        timeout=settings.tool_call_timeout_seconds,
    )


@lru_cache
def get_call_notifier() -> CallLifecycleNotifier:
    """Get call lifecycle notifier instance."""
    return CallLifecycleNotifier(
        settings.core_api_base_url,
        internal_secret=settings.core_api_internal_secret,
        timeout=settings.notification_timeout_seconds,
    )


@lru_cache
def get_agent_service() -> AgentService:
    """Get agent service instance."""
    tool_executor = ToolExecutor(
        get_booking_client(),
        timeout_seconds=settings.tool_call_timeout_seconds,
    )
    return AgentService(tool_executor)


def get_twiml_renderer() -> TwiMLRenderer:
    """Get TwiML renderer."""
    return TwiMLRenderer(voice=settings.tts_voice, language=settings.tts_language)


def get_session_manager() -> CallSessionManager:
    """Get call session manager."""
    return CallSessionManager(
        store=get_session_store(),
        resolver=get_business_resolver(),
        repository=get_business_repository(),
        agent_service=get_agent_service(),
        notifier=get_call_notifier(),
        reply_max_sentences=settings.reply_max_sentences,
        reply_max_chars=settings.reply_max_chars,
    )


async def close_clients() -> None:
    """Close HTTP clients created by the dependency getters."""
    if get_call_notifier.cache_info().currsize:
        await get_call_notifier().aclose()
    if get_business_resolver.cache_info().currsize:
        await get_business_resolver().aclose()
    if get_booking_client.cache_info().currsize:
        await get_booking_client().aclose()
