"""
Pipeline schemas - values passed between the chat pipeline stages.
Every stage reads a MessageContext and hands back an updated copy; nothing
mutates a context in place.
"""
import re
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

PLACEHOLDER_EMAIL_PATTERN = re.compile(r"^lead_[0-9a-f]{8}@noemail\.", re.IGNORECASE)


def is_placeholder_email(email: Optional[str]) -> bool:
    """True for the generated lead_xxxxxxxx@noemail.<domain> addresses."""
    return bool(email and PLACEHOLDER_EMAIL_PATTERN.match(email))


class SenderMeta(BaseModel):
    """Who sent the message. address is the client IP as seen by the API."""
    address: str = "unknown"
    user_agent: str = "unknown"
    session_id: Optional[str] = None


class AbuseCheck(BaseModel):
    is_abuse: bool = False
    reason: Optional[str] = None
    action: Optional[str] = None  # block, warn
    source: str = "valid_message"
    block_minutes_remaining: int = 0


class TemplateMatch(BaseModel):
    category: str
    response: str
    confidence: float
    pattern: str


class ExtractedEntities(BaseModel):
    """Per-message entities. All fields optional, never persisted directly."""
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    budget: Optional[int] = None
    daily_km: Optional[int] = None
    model_interest: Optional[str] = None

    def has_contact(self) -> bool:
        return bool(self.name or self.phone or self.email)

    def merged(self, other: "ExtractedEntities") -> "ExtractedEntities":
        """Overlay other on top of self. Values present in other win."""
        updates = other.model_dump(exclude_none=True)
        return self.model_copy(update=updates)

    def as_json(self) -> dict:
        return self.model_dump(exclude_none=True)


class ObjectionResult(BaseModel):
    detected: bool = True
    objection_type: str
    response_type: str
    response: str
    follow_up: Optional[str] = None


class IntentResult(BaseModel):
    intent: Optional[str] = None
    confidence: float = 0.5
    model_interest: Optional[str] = None
    requires_premium_info: bool = False


class LeadScore(BaseModel):
    score: int = Field(ge=0, le=100)
    category: str  # cold, cool, warm, hot
    factors: list[str] = Field(default_factory=list)
    ready_to_buy: bool = False
    needs_nurturing: bool = True


class LeadSnapshot(BaseModel):
    """Read-only view of a stored lead."""
    id: str
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None

    @property
    def real_email(self) -> Optional[str]:
        return None if is_placeholder_email(self.email) else self.email

    @property
    def is_complete(self) -> bool:
        return bool(self.name and (self.phone or self.real_email))


class MessageContext(BaseModel):
    """Immutable state threaded through the conductor for one inbound message."""
    model_config = ConfigDict(frozen=True)

    conversation_id: str
    text: str
    sender: SenderMeta = Field(default_factory=SenderMeta)
    abuse: Optional[AbuseCheck] = None
    template: Optional[TemplateMatch] = None
    entities: ExtractedEntities = Field(default_factory=ExtractedEntities)
    lead: Optional[LeadSnapshot] = None
    assistant_count: int = 0
    objection: Optional[ObjectionResult] = None
    intent: Optional[IntentResult] = None
    score: Optional[LeadScore] = None

    @property
    def lead_complete(self) -> bool:
        return bool(self.lead and self.lead.is_complete)

    @property
    def model_interest(self) -> Optional[str]:
        if self.entities.model_interest:
            return self.entities.model_interest
        return self.intent.model_interest if self.intent else None


class ChatResult(BaseModel):
    """Outcome of one inbound message."""
    success: bool = True
    message: str
    tokens_used: int = 0
    source: str
    can_handoff: bool = False
    processing_time_ms: int = 0
    lead_captured: bool = False
    lead_score: Optional[LeadScore] = None
    category: Optional[str] = None
    objection_type: Optional[str] = None
    block_minutes_remaining: int = 0
