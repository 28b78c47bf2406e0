"""Twilio voice webhook endpoints."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Form, Query, Request
from fastapi.responses import Response

from voice_gateway.core.config import settings
from voice_gateway.core.dependencies import get_session_manager, get_twiml_renderer
from voice_gateway.services.call_session.manager import (
    TECHNICAL_ISSUE_MESSAGE,
    CallSessionManager,
)
from voice_gateway.services.call_session.states import CallEvent, CallResponse, CallState
from voice_gateway.services.speech.tts import TwiMLRenderer

router = APIRouter()
logger = logging.getLogger(__name__)

# Pre-rendered so this path cannot fail
FALLBACK_TWIML = (
    '<?xml version="1.0" encoding="UTF-8"?>'
    "<Response><Say>I'm sorry, I'm experiencing a technical issue. "
    "Please try calling again in a moment.</Say><Hangup/></Response>"
)
EMPTY_TWIML = '<?xml version="1.0" encoding="UTF-8"?><Response/>'


def get_base_url(request: Request) -> str:
    """
    Get the base URL for constructing absolute URLs.

    Uses BASE_URL environment variable if set (e.g., behind a proxy),
    otherwise constructs from request.
    """
    if settings.base_url:
        return settings.base_url.rstrip("/")
    return str(request.base_url).rstrip("/")


def _client(request: Request) -> str:
    return request.client.host if request.client else "unknown"


async def _respond(
    tag: str,
    event: CallEvent,
    request: Request,
    session_manager: CallSessionManager,
    renderer: TwiMLRenderer,
) -> Response:
    try:
        call_response = await session_manager.handle_event(event)
        twiml = renderer.render(call_response, get_base_url(request))
    except Exception as e:
        logger.error(
            f"[{tag}] Error rendering response - CallSid: {event.call_sid}, "
            f"Error: {type(e).__name__}: {str(e)}",
            exc_info=True,
        )
        try:
            twiml = renderer.render(CallResponse.hangup(TECHNICAL_ISSUE_MESSAGE))
        except Exception:
            logger.error(f"[{tag}] Fallback rendering failed - CallSid: {event.call_sid}", exc_info=True)
            twiml = FALLBACK_TWIML

    logger.info(f"[{tag}] Responding - CallSid: {event.call_sid}, TwiML length: {len(twiml)} bytes")
    return Response(content=twiml, media_type="application/xml")


@router.post("/voice/incoming")
async def handle_incoming_call(
    request: Request,
    CallSid: str = Form(...),
    To: Optional[str] = Form(None),
    From: Optional[str] = Form(None),
    CallStatus: Optional[str] = Form(None),
    businessId: Optional[str] = Query(None),
    session_manager: CallSessionManager = Depends(get_session_manager),
    renderer: TwiMLRenderer = Depends(get_twiml_renderer),
):
    """
    Handle incoming call from Twilio.

    Also the redirect target after a gather timed out, in which case the
    business id comes back in the query string.
    """
    logger.info(
        f"[INCOMING CALL] Received - CallSid: {CallSid}, From: {From}, To: {To}, "
        f"businessId: {businessId or '-'}, Client: {_client(request)}"
    )
    event = CallEvent(
        call_sid=CallSid,
        dialed_number=To,
        caller_number=From,
        call_status=CallStatus,
        business_id=businessId,
    )
    return await _respond("INCOMING CALL", event, request, session_manager, renderer)


@router.post("/voice/gather")
async def handle_gather(
    request: Request,
    CallSid: str = Form(...),
    To: Optional[str] = Form(None),
    From: Optional[str] = Form(None),
    SpeechResult: Optional[str] = Form(None),
    businessId: Optional[str] = Query(None),
    session_manager: CallSessionManager = Depends(get_session_manager),
    renderer: TwiMLRenderer = Depends(get_twiml_renderer),
):
    """
    Handle gathered speech from Twilio.

    This endpoint is called after Twilio collects user speech.
    """
    logger.info(
        f"[GATHER] Received speech input - CallSid: {CallSid}, "
        f"SpeechResult length: {len(SpeechResult) if SpeechResult else 0}, "
        f"businessId: {businessId or '-'}, Client: {_client(request)}"
    )
    if not SpeechResult:
        logger.warning(f"[GATHER] No speech result provided - CallSid: {CallSid}")

    event = CallEvent(
        call_sid=CallSid,
        dialed_number=To,
        caller_number=From,
        speech_result=SpeechResult,
        business_id=businessId,
    )
    return await _respond("GATHER", event, request, session_manager, renderer)


@router.post("/voice/status")
async def handle_call_status(
    request: Request,
    CallSid: str = Form(...),
    CallStatus: str = Form(...),
    To: Optional[str] = Form(None),
    From: Optional[str] = Form(None),
    CallDuration: Optional[str] = Form(None),
    Direction: Optional[str] = Form(None),
    Timestamp: Optional[str] = Form(None),
    businessId: Optional[str] = Query(None),
    session_manager: CallSessionManager = Depends(get_session_manager),
):
    """
    Handle call status updates from Twilio.

    This endpoint is called when call status changes (completed, failed, etc.).
    """
    logger.info(
        f"[CALL STATUS] Received status update - CallSid: {CallSid}, "
        f"CallStatus: {CallStatus}, CallDuration: {CallDuration}, Client: {_client(request)}"
    )
    event = CallEvent(
        call_sid=CallSid,
        dialed_number=To,
        caller_number=From,
        call_status=CallStatus,
        business_id=businessId,
        call_duration=CallDuration,
        direction=Direction,
        timestamp=Timestamp,
    )

    if event.classify() != CallState.ENDED:
        logger.debug(f"[CALL STATUS] No action needed - CallSid: {CallSid}, CallStatus: {CallStatus}")
        return Response(content=EMPTY_TWIML, media_type="application/xml")

    try:
        await session_manager.handle_event(event)
    except Exception as e:
        logger.error(
            f"[CALL STATUS] Error handling call status update - CallSid: {CallSid}, "
            f"CallStatus: {CallStatus}, Error: {type(e).__name__}: {str(e)}",
            exc_info=True,
        )
    # Always acknowledge so Twilio does not retry
    return Response(content=EMPTY_TWIML, media_type="application/xml")
