"""
Analysis Infrastructure Models
==============================

SQLAlchemy ORM models for analysis sessions and the ticket, messaging and
roster tables the pipeline collaborates with.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from src.config import Priority, SessionStatus, TicketStatus
from src.infrastructure.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CustomerModel(Base):
    """Customer, unique per (organization, email)."""
    __tablename__ = "customers"
    __table_args__ = (UniqueConstraint("organization_id", "email", name="uq_customers_org_email"),)

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    organization_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class EmployeeModel(Base):
    """Support agent. Only active employees make up the assignment roster."""
    __tablename__ = "employees"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    organization_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    role: Mapped[str] = mapped_column(String(50), nullable=False, default="agent")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class TicketModel(Base):
    """
    Database model for support tickets.

    Priority, tags, assignment and status are written back by the pipeline.
    """
    __tablename__ = "tickets"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    organization_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    customer_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=TicketStatus.OPEN.value)
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default=Priority.LOW.value)

    # AI handling
    ai_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by_ai: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    ai_metadata: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    assigned_to: Mapped[Optional[UUID]] = mapped_column(
        Uuid,
        ForeignKey("employees.id", ondelete="SET NULL"),
        nullable=True
    )
    satisfaction_rating: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class TagModel(Base):
    """Ticket tag, unique per organization."""
    __tablename__ = "tags"
    __table_args__ = (UniqueConstraint("organization_id", "name", name="uq_tags_org_name"),)

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    organization_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(30), nullable=False)


class TicketTagModel(Base):
    __tablename__ = "ticket_tags"

    ticket_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("tickets.id", ondelete="CASCADE"), primary_key=True
    )
    tag_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True
    )


class TicketMessageModel(Base):
    """Conversation message on a ticket."""
    __tablename__ = "ticket_messages"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    ticket_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("tickets.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    organization_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    sender_type: Mapped[str] = mapped_column(String(20), nullable=False)
    # "metadata" is reserved on declarative classes
    message_metadata: Mapped[Optional[dict]] = mapped_column("metadata", JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class AnalysisSessionModel(Base):
    """
    Database model for AnalysisSession.

    Stage results are stored as JSON documents; each stage overwrites the
    whole row (last write wins).
    """
    __tablename__ = "analysis_sessions"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    organization_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    ticket_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=SessionStatus.PENDING.value)

    inquiry: Mapped[str] = mapped_column(Text, nullable=False)
    customer_email: Mapped[str] = mapped_column(String(320), nullable=False)
    customer_name: Mapped[str] = mapped_column(String(200), nullable=False)

    language: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    validity: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    search_phrases: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    vector_results: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    retrieval_note: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    processing_results: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    response_result: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    error: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
