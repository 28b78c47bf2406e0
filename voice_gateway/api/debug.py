"""Text-only agent endpoint for trying conversations without a phone."""
import logging
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from voice_gateway.core.config import settings
from voice_gateway.core.dependencies import get_agent_service, get_business_repository
from voice_gateway.services.agent.agent import AgentService
from voice_gateway.services.agent.prompt import BASE_SYSTEM_PROMPT
from voice_gateway.services.business.repository import BusinessRepository
from voice_gateway.services.call_session.models import CallSession, utcnow

router = APIRouter()
logger = logging.getLogger(__name__)


class ChatTurn(BaseModel):
    """Prior turn supplied by the client."""
    role: Literal["user", "assistant"]
    content: str


class AgentChatRequest(BaseModel):
    """Agent chat request model."""
    businessId: Optional[str] = None
    handle: Optional[str] = None
    message: Optional[str] = None
    messages: List[ChatTurn] = []


class AgentChatResponse(BaseModel):
    """Agent chat response model."""
    ok: bool
    reply: str
    businessId: str
    toolCalls: List[str] = []


@router.post("/debug/agent-chat", response_model=AgentChatResponse)
async def agent_chat(
    request: Request,
    body: AgentChatRequest,
    agent_service: AgentService = Depends(get_agent_service),
    repository: BusinessRepository = Depends(get_business_repository),
):
    """Run one agent turn over an ephemeral, unstored session."""
    if not settings.enable_debug_endpoints:
        raise HTTPException(status_code=404, detail="Not found")

    business_id = body.handle or body.businessId
    logger.info(
        f"[DEBUG CHAT] Request received - businessId: {business_id or '-'}, "
        f"Client: {request.client.host if request.client else 'unknown'}"
    )

    if not body.messages and not body.message:
        raise HTTPException(status_code=400, detail="Missing 'message' or 'messages' in request body")
    if not business_id:
        raise HTTPException(status_code=400, detail="Missing 'handle' or 'businessId' in request body")

    session = CallSession.start("debug", BASE_SYSTEM_PROMPT, utcnow())
    for turn in body.messages:
        if turn.role == "user":
            session.add_user_message(turn.content)
        else:
            session.add_assistant_message(turn.content)
    if body.message:
        session.add_user_message(body.message)

    profile = await repository.resolve_profile(business_id)
    reply = await agent_service.run_turn(
        session, profile, credential=repository.get_credential(profile)
    )

    tool_calls = [
        call.name
        for message in session.messages
        if message.role == "assistant"
        for call in message.tool_calls
    ]
    return AgentChatResponse(ok=True, reply=reply, businessId=profile.id, toolCalls=tool_calls)
