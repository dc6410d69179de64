"""
Lead model - a prospective buyer captured by the chat widget.
A lead is complete once it has a name plus a phone or a real email.
Emails generated as placeholders at creation time never count toward completeness.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, DateTime, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from dealerchat.database import Base


class Lead(Base):
    __tablename__ = "leads"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )

    # Contact info
    name: Mapped[Optional[str]] = mapped_column(String(150))
    phone: Mapped[Optional[str]] = mapped_column(String(10))  # exactly 10 digits
    email: Mapped[Optional[str]] = mapped_column(String(255))

    source: Mapped[str] = mapped_column(String(50), default="chatbot", nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc)
    )

    # Relationships
    conversations: Mapped[list["Conversation"]] = relationship(
        back_populates="lead", lazy="select"
    )

    __table_args__ = (
        Index("ix_leads_phone", "phone"),
        Index("ix_leads_email", "email"),
    )

    def __repr__(self) -> str:
        masked = self.phone[:6] + "***" if self.phone else "unknown"
        return f"<Lead {masked} source={self.source}>"
