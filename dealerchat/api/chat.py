"""
Chat widget endpoints.

- POST /api/chatbot                    - one message through the conductor
- GET  /api/chatbot/stats              - layer statistics
- GET  /api/chatbot/conversation/{id}  - last 50 messages
- POST /api/chatbot/handoff            - human handoff request
"""
import logging
from typing import Iterable, Optional

from fastapi import APIRouter, Depends, HTTPException, Request

from dealerchat.agents.conductor import Conductor
from dealerchat.schemas.api_responses import (
    ChatRequest,
    ChatResponse,
    ConversationHistoryResponse,
    HandoffRequest,
    HandoffResponse,
    HistoryMessage,
    StatsResponse,
)
from dealerchat.schemas.pipeline import SenderMeta
from dealerchat.services.lead_store import LeadStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/chatbot", tags=["chatbot"])

HISTORY_PAGE_SIZE = 50


def get_conductor(request: Request) -> Conductor:
    conductor = getattr(request.app.state, "conductor", None)
    if conductor is None:
        raise HTTPException(status_code=503, detail="El servicio de chat no está disponible en este momento.")
    return conductor


def get_store(request: Request) -> LeadStore:
    return get_conductor(request).store


def client_address(request: Request, trusted_proxies: Iterable[str] = ()) -> Optional[str]:
    """
    The socket peer, unless the peer is a trusted proxy. Then X-Forwarded-For
    is walked right to left and the first hop we do not trust wins.
    """
    peer = request.client.host if request.client else None
    trusted = set(trusted_proxies)
    if not peer or peer not in trusted:
        return peer

    forwarded = request.headers.get("x-forwarded-for", "")
    hops = [hop.strip() for hop in forwarded.split(",") if hop.strip()]
    for hop in reversed(hops):
        if hop not in trusted:
            return hop
    return hops[0] if hops else peer


def sender_from_request(
    request: Request,
    session_id: Optional[str] = None,
    trusted_proxies: Iterable[str] = (),
) -> SenderMeta:
    return SenderMeta(
        address=client_address(request, trusted_proxies) or "unknown",
        user_agent=request.headers.get("user-agent", "unknown"),
        session_id=session_id,
    )


@router.post("", response_model=ChatResponse)
async def chat(
    payload: ChatRequest,
    request: Request,
    conductor: Conductor = Depends(get_conductor),
):
    if not payload.message or not payload.message.strip():
        raise HTTPException(status_code=400, detail="Por favor escribe un mensaje.")

    sender = sender_from_request(request, payload.session_id, conductor.settings.trusted_proxies)

    conversation_id = payload.conversation_id
    try:
        conversation_id = await _resolve_conversation(conductor.store, conversation_id, sender)
    except Exception as e:
        logger.error("Conversation lookup failed: %s", str(e), exc_info=True)
        result = conductor.error_fallback()
        conductor.metrics.record(result.source, 0, 0)
        return ChatResponse(
            success=False,
            conversation_id=conversation_id or "",
            message=result.message,
            source=result.source,
        )

    result = await conductor.handle_message(conversation_id, payload.message, sender)

    return ChatResponse(
        success=result.success,
        conversation_id=conversation_id,
        message=result.message,
        source=result.source,
        tokens_used=result.tokens_used,
        can_handoff=result.can_handoff,
        processing_time_ms=result.processing_time_ms,
        lead_captured=result.lead_captured,
        lead_score=result.lead_score,
    )


async def _resolve_conversation(store: LeadStore, conversation_id: Optional[str], sender: SenderMeta) -> str:
    """Reuse a known conversation, otherwise start a new one."""
    if conversation_id and await store.conversation_exists(conversation_id):
        return conversation_id
    if conversation_id:
        logger.info("Unknown conversation %s - starting a new one", conversation_id[:8])
    return await store.create_conversation(sender)


@router.get("/stats", response_model=StatsResponse)
async def chat_stats(conductor: Conductor = Depends(get_conductor)):
    return StatsResponse(
        abuse_guard=conductor.abuse_guard.get_stats(),
        templates=conductor.template_matcher.get_stats(),
        sales_playbook=conductor.playbook.get_stats(),
        ai=conductor.ai.get_stats(),
        pipeline=conductor.get_stats(),
    )


@router.get("/conversation/{conversation_id}", response_model=ConversationHistoryResponse)
async def conversation_history(
    conversation_id: str,
    store: LeadStore = Depends(get_store),
):
    if not await store.conversation_exists(conversation_id):
        raise HTTPException(status_code=404, detail="Conversation not found")

    history = await store.fetch_recent_history(conversation_id, limit=HISTORY_PAGE_SIZE)
    return ConversationHistoryResponse(
        conversation_id=conversation_id,
        messages=[HistoryMessage(**message) for message in history],
    )


@router.post("/handoff", response_model=HandoffResponse)
async def request_handoff(payload: HandoffRequest):
    logger.info(
        "Handoff requested for %s (prefers %s)",
        (payload.conversation_id or "unknown")[:8], payload.preferred_contact or "any",
        extra={"conversation_id": payload.conversation_id},
    )
    return HandoffResponse()
