"""
API request and response schemas for the chat widget endpoints.
"""
from typing import Any, Optional
from pydantic import BaseModel, Field

from dealerchat.schemas.pipeline import LeadScore


class ChatRequest(BaseModel):
    message: str = ""
    conversation_id: Optional[str] = None
    session_id: Optional[str] = None


class ChatResponse(BaseModel):
    success: bool = True
    conversation_id: str
    message: str
    source: str
    tokens_used: int = 0
    can_handoff: bool = False
    processing_time_ms: int = 0
    lead_captured: bool = False
    lead_score: Optional[LeadScore] = None


class HistoryMessage(BaseModel):
    role: str
    content: str


class ConversationHistoryResponse(BaseModel):
    success: bool = True
    conversation_id: str
    messages: list[HistoryMessage] = Field(default_factory=list)


class HandoffRequest(BaseModel):
    conversation_id: Optional[str] = None
    preferred_contact: Optional[str] = None  # phone, whatsapp


class HandoffResponse(BaseModel):
    success: bool = True
    message: str = "Un asesor te contactará pronto."
    estimated_wait_time: str = "5-10 minutos"


class StatsResponse(BaseModel):
    abuse_guard: dict[str, Any]
    templates: dict[str, Any]
    sales_playbook: dict[str, Any]
    ai: dict[str, Any]
    pipeline: dict[str, Any] = Field(default_factory=dict)
