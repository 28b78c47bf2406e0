"""Health check endpoint."""
import logging

from fastapi import APIRouter, Depends

from voice_gateway.core.dependencies import get_session_store
from voice_gateway.services.call_session.store import SessionStore

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
async def health_check(store: SessionStore = Depends(get_session_store)):
    """Health check endpoint."""
    logger.debug(f"[HEALTH] Health check requested - active sessions: {len(store)}")
    return {"status": "healthy", "service": "voice-booking-gateway", "activeSessions": len(store)}
