"""
Lead store - leads, conversations and chat messages.

SqlLeadStore persists through async SQLAlchemy (asyncpg in production).
NullLeadStore stands in when no DATABASE_URL is configured: writes are no-ops,
lookups return nothing, and conversation ids are still handed out.

Store errors are not swallowed here; the conductor's fallback handles them.
"""
import logging
import uuid
from typing import Optional

from sqlalchemy import func, or_, select, update

from dealerchat.models.chat_message import ChatMessage
from dealerchat.models.conversation import Conversation
from dealerchat.models.lead import Lead
from dealerchat.schemas.pipeline import ExtractedEntities, LeadSnapshot, SenderMeta
from dealerchat.utils.phone import mask_phone

logger = logging.getLogger(__name__)


def placeholder_email(lead_id: uuid.UUID, domain: str) -> str:
    return f"lead_{lead_id.hex[:8]}@{domain}"


def _snapshot(lead: Optional[Lead]) -> Optional[LeadSnapshot]:
    if lead is None:
        return None
    return LeadSnapshot(id=str(lead.id), name=lead.name, phone=lead.phone, email=lead.email)


def _as_uuid(value) -> uuid.UUID:
    return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))


class LeadStore:
    """Interface shared by the SQL and null stores."""

    placeholder_domain = "noemail.salmabydriver.com"

    async def find_lead_by_conversation(self, conversation_id: str) -> Optional[LeadSnapshot]:
        raise NotImplementedError

    async def find_lead_by_contact(
        self, email: Optional[str] = None, phone: Optional[str] = None,
    ) -> Optional[LeadSnapshot]:
        raise NotImplementedError

    async def upsert_lead(
        self,
        name: Optional[str] = None,
        phone: Optional[str] = None,
        email: Optional[str] = None,
        lead_id: Optional[str] = None,
    ) -> Optional[LeadSnapshot]:
        raise NotImplementedError

    async def link_lead_to_conversation(self, conversation_id: str, lead_id: str) -> None:
        raise NotImplementedError

    async def count_assistant_messages(self, conversation_id: str) -> int:
        raise NotImplementedError

    async def append_message(
        self,
        conversation_id: str,
        role: str,
        content: str,
        tokens_used: int = 0,
        intent: Optional[str] = None,
        confidence: float = 0.0,
        entities: Optional[dict] = None,
        source: str = "unknown",
    ) -> Optional[str]:
        raise NotImplementedError

    async def fetch_recent_history(self, conversation_id: str, limit: int = 10) -> list[dict]:
        raise NotImplementedError

    async def create_conversation(self, sender: SenderMeta) -> str:
        raise NotImplementedError

    async def conversation_exists(self, conversation_id: str) -> bool:
        raise NotImplementedError

    async def save_or_update_lead(
        self,
        conversation_id: str,
        entities: ExtractedEntities,
    ) -> tuple[Optional[LeadSnapshot], bool]:
        """
        Merge contact entities into the conversation's lead.
        Match order: lead linked to this conversation, then phone/email
        collision, else a new lead. Stored values are never cleared.

        Returns (lead, became_complete). became_complete is True only when the
        lead went from incomplete (or nonexistent) to complete on this call.
        """
        if not entities.has_contact():
            return None, False

        existing = await self.find_lead_by_conversation(conversation_id)
        if existing is None and (entities.email or entities.phone):
            existing = await self.find_lead_by_contact(email=entities.email, phone=entities.phone)

        was_complete = bool(existing and existing.is_complete)
        lead = await self.upsert_lead(
            name=entities.name,
            phone=entities.phone,
            email=entities.email,
            lead_id=existing.id if existing else None,
        )
        if lead is None:
            return None, False

        await self.link_lead_to_conversation(conversation_id, lead.id)
        became_complete = lead.is_complete and not was_complete
        logger.info(
            "Lead %s %s: phone=%s complete=%s",
            lead.id[:8], "updated" if existing else "created",
            mask_phone(lead.phone), lead.is_complete,
        )
        return lead, became_complete


class SqlLeadStore(LeadStore):
    def __init__(self, session_factory, placeholder_domain: Optional[str] = None):
        self._session_factory = session_factory
        if placeholder_domain:
            self.placeholder_domain = placeholder_domain

    async def find_lead_by_conversation(self, conversation_id: str) -> Optional[LeadSnapshot]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(Lead)
                .join(Conversation, Conversation.lead_id == Lead.id)
                .where(Conversation.id == _as_uuid(conversation_id))
                .limit(1)
            )
            return _snapshot(result.scalar_one_or_none())

    async def find_lead_by_contact(
        self, email: Optional[str] = None, phone: Optional[str] = None,
    ) -> Optional[LeadSnapshot]:
        conditions = []
        if email:
            conditions.append(Lead.email == email)
        if phone:
            conditions.append(Lead.phone == phone)
        if not conditions:
            return None

        async with self._session_factory() as db:
            result = await db.execute(
                select(Lead).where(or_(*conditions)).order_by(Lead.created_at).limit(1)
            )
            return _snapshot(result.scalar_one_or_none())

    async def upsert_lead(
        self,
        name: Optional[str] = None,
        phone: Optional[str] = None,
        email: Optional[str] = None,
        lead_id: Optional[str] = None,
    ) -> Optional[LeadSnapshot]:
        async with self._session_factory() as db:
            lead = await db.get(Lead, _as_uuid(lead_id)) if lead_id else None

            if lead is None:
                new_id = uuid.uuid4()
                lead = Lead(
                    id=new_id,
                    name=name,
                    phone=phone,
                    email=email or placeholder_email(new_id, self.placeholder_domain),
                    source="chatbot",
                )
                db.add(lead)
            else:
                # COALESCE semantics: absent values never clear stored ones
                if name:
                    lead.name = name
                if phone:
                    lead.phone = phone
                if email:
                    lead.email = email

            await db.commit()
            return _snapshot(lead)

    async def link_lead_to_conversation(self, conversation_id: str, lead_id: str) -> None:
        async with self._session_factory() as db:
            await db.execute(
                update(Conversation)
                .where(Conversation.id == _as_uuid(conversation_id))
                .values(lead_id=_as_uuid(lead_id))
            )
            await db.commit()

    async def count_assistant_messages(self, conversation_id: str) -> int:
        async with self._session_factory() as db:
            result = await db.execute(
                select(func.count(ChatMessage.id)).where(
                    ChatMessage.conversation_id == _as_uuid(conversation_id),
                    ChatMessage.role == "assistant",
                )
            )
            return result.scalar() or 0

    async def append_message(
        self,
        conversation_id: str,
        role: str,
        content: str,
        tokens_used: int = 0,
        intent: Optional[str] = None,
        confidence: float = 0.0,
        entities: Optional[dict] = None,
        source: str = "unknown",
    ) -> Optional[str]:
        conv_id = _as_uuid(conversation_id)
        async with self._session_factory() as db:
            message = ChatMessage(
                conversation_id=conv_id,
                role=role,
                content=content,
                tokens_used=tokens_used,
                intent_detected=intent,
                confidence_score=confidence,
                entities_extracted=entities or {},
                source=source,
            )
            db.add(message)
            await db.execute(
                update(Conversation)
                .where(Conversation.id == conv_id)
                .values(
                    total_messages=Conversation.total_messages + 1,
                    total_tokens_used=Conversation.total_tokens_used + tokens_used,
                )
            )
            await db.commit()
            return str(message.id)

    async def fetch_recent_history(self, conversation_id: str, limit: int = 10) -> list[dict]:
        """Last `limit` messages, oldest first."""
        async with self._session_factory() as db:
            result = await db.execute(
                select(ChatMessage.role, ChatMessage.content)
                .where(ChatMessage.conversation_id == _as_uuid(conversation_id))
                .order_by(ChatMessage.created_at.desc())
                .limit(limit)
            )
            rows = result.all()
        return [{"role": role, "content": content} for role, content in reversed(rows)]

    async def create_conversation(self, sender: SenderMeta) -> str:
        async with self._session_factory() as db:
            conversation = Conversation(
                id=uuid.uuid4(),
                session_id=sender.session_id or str(uuid.uuid4()),
                ip_address=sender.address or "unknown",
                user_agent=(sender.user_agent or "unknown")[:500],
                total_messages=0,
                total_tokens_used=0,
            )
            db.add(conversation)
            await db.commit()
            logger.info("Conversation created: %s", str(conversation.id)[:8])
            return str(conversation.id)

    async def conversation_exists(self, conversation_id: str) -> bool:
        try:
            conv_id = _as_uuid(conversation_id)
        except ValueError:
            return False
        async with self._session_factory() as db:
            return await db.get(Conversation, conv_id) is not None


class NullLeadStore(LeadStore):
    """No database configured: nothing is stored, nothing is found."""

    async def find_lead_by_conversation(self, conversation_id: str) -> Optional[LeadSnapshot]:
        return None

    async def find_lead_by_contact(
        self, email: Optional[str] = None, phone: Optional[str] = None,
    ) -> Optional[LeadSnapshot]:
        return None

    async def upsert_lead(
        self,
        name: Optional[str] = None,
        phone: Optional[str] = None,
        email: Optional[str] = None,
        lead_id: Optional[str] = None,
    ) -> Optional[LeadSnapshot]:
        logger.debug("Lead store disabled - lead not saved")
        return None

    async def link_lead_to_conversation(self, conversation_id: str, lead_id: str) -> None:
        return None

    async def count_assistant_messages(self, conversation_id: str) -> int:
        return 0

    async def append_message(
        self,
        conversation_id: str,
        role: str,
        content: str,
        tokens_used: int = 0,
        intent: Optional[str] = None,
        confidence: float = 0.0,
        entities: Optional[dict] = None,
        source: str = "unknown",
    ) -> Optional[str]:
        return None

    async def fetch_recent_history(self, conversation_id: str, limit: int = 10) -> list[dict]:
        return []

    async def create_conversation(self, sender: SenderMeta) -> str:
        return str(uuid.uuid4())

    async def conversation_exists(self, conversation_id: str) -> bool:
        return True
