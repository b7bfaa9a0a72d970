"""
Analysis Infrastructure Repositories
====================================

SQLAlchemy implementations of the analysis ports.

Every method opens its own session from the session maker and commits
before returning, so a checkpoint is durable even if a later stage fails.
"""

from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config import ErrorType, Priority, SenderType, SessionStatus, TicketStatus, ValidityCategory
from src.core import RepositoryException, ResourceNotFoundException
from src.analysis.application.ports import (
    IAnalysisSessionRepository,
    IContextProvider,
    IMessageGateway,
    ITicketGateway,
)
from src.analysis.domain import (
    AnalysisSession,
    ContextSnippet,
    ConversationContext,
    Employee,
    LanguageAnalysis,
    MessageRecord,
    ProcessingResults,
    ResponseResult,
    SessionError,
    TicketDraft,
    TicketRecord,
    Translation,
    ValidityAnalysis,
)
from src.analysis.infrastructure.models import (
    AnalysisSessionModel,
    CustomerModel,
    EmployeeModel,
    TagModel,
    TicketMessageModel,
    TicketModel,
    TicketTagModel,
)
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

TICKET_FIELDS = {"status", "priority", "assigned_to", "ai_enabled", "satisfaction_rating"}


def _uuid(value: str, what: str) -> UUID:
    try:
        return UUID(str(value))
    except ValueError:
        raise RepositoryException(f"Invalid {what}: {value}")


def _optional_uuid(value: Optional[str]) -> Optional[UUID]:
    try:
        return UUID(str(value)) if value else None
    except ValueError:
        return None


# ========== Session mapping ==========

def _session_to_row(session: AnalysisSession) -> dict:
    language = session.language
    validity = session.validity
    results = session.processing_results
    return {
        "id": _uuid(session.id, "session id"),
        "organization_id": _uuid(session.organization_id, "organization id"),
        "ticket_id": _uuid(session.ticket_id, "ticket id") if session.ticket_id else None,
        "status": session.status.value,
        "inquiry": session.inquiry,
        "customer_email": session.customer_email,
        "customer_name": session.customer_name,
        "language": {
            "code": language.code,
            "confidence": language.confidence,
            "translation": {"needed": language.translation.needed, "text": language.translation.text},
            "common_words": list(language.common_words),
            "script_analysis": language.script_analysis,
        } if language else None,
        "validity": {
            "is_valid": validity.is_valid,
            "reason": validity.reason,
            "category": validity.category.value,
            "confidence": validity.confidence,
            "suggested_response": validity.suggested_response,
        } if validity else None,
        "search_phrases": list(session.search_phrases),
        "vector_results": [
            {
                "content": s.content,
                "document_id": s.document_id,
                "similarity": s.similarity,
                "is_relevant": s.is_relevant,
                "relevance_reason": s.relevance_reason,
            }
            for s in session.vector_results
        ],
        "retrieval_note": session.retrieval_note,
        "processing_results": {
            "priority": results.priority.value if results.priority else None,
            "priority_reasoning": results.priority_reasoning,
            "tags": list(results.tags) if results.tags is not None else None,
            "tag_reasoning": results.tag_reasoning,
            "needs_assignment": results.needs_assignment,
            "assignment_reasoning": results.assignment_reasoning,
        },
        "response_result": {
            "response": session.response_result.response,
            "reasoning": session.response_result.reasoning,
            "next_steps": list(session.response_result.next_steps),
        } if session.response_result else None,
        "error": {
            "type": session.error.type.value,
            "message": session.error.message,
            "response": session.error.response,
        } if session.error else None,
        "created_at": session.created_at,
        "updated_at": session.updated_at,
    }


def _session_from_row(model: AnalysisSessionModel) -> AnalysisSession:
    language = None
    if model.language:
        data = model.language
        language = LanguageAnalysis(
            code=data["code"],
            confidence=data["confidence"],
            translation=Translation(**data["translation"]),
            common_words=tuple(data.get("common_words", ())),
            script_analysis=data.get("script_analysis", ""),
        )
    validity = None
    if model.validity:
        data = model.validity
        validity = ValidityAnalysis(
            is_valid=data["is_valid"],
            reason=data["reason"],
            category=ValidityCategory(data["category"]),
            confidence=data["confidence"],
            suggested_response=data.get("suggested_response"),
        )
    results = model.processing_results or {}
    response = model.response_result
    error = model.error
    return AnalysisSession(
        id=str(model.id),
        organization_id=str(model.organization_id),
        inquiry=model.inquiry,
        customer_email=model.customer_email,
        customer_name=model.customer_name,
        status=SessionStatus(model.status),
        ticket_id=str(model.ticket_id) if model.ticket_id else None,
        language=language,
        validity=validity,
        search_phrases=tuple(model.search_phrases or ()),
        vector_results=tuple(ContextSnippet(**s) for s in model.vector_results or ()),
        retrieval_note=model.retrieval_note,
        processing_results=ProcessingResults(
            priority=Priority(results["priority"]) if results.get("priority") else None,
            priority_reasoning=results.get("priority_reasoning"),
            tags=tuple(results["tags"]) if results.get("tags") is not None else None,
            tag_reasoning=results.get("tag_reasoning"),
            needs_assignment=results.get("needs_assignment"),
            assignment_reasoning=results.get("assignment_reasoning"),
        ),
        response_result=ResponseResult(
            response=response["response"],
            reasoning=response["reasoning"],
            next_steps=tuple(response.get("next_steps", ())),
        ) if response else None,
        error=SessionError(
            type=ErrorType(error["type"]),
            message=error["message"],
            response=error.get("response"),
        ) if error else None,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def _ticket_from_row(model: TicketModel) -> TicketRecord:
    return TicketRecord(
        id=str(model.id),
        organization_id=str(model.organization_id),
        title=model.title,
        status=TicketStatus(model.status),
        priority=Priority(model.priority),
        ai_enabled=model.ai_enabled,
        assigned_to=str(model.assigned_to) if model.assigned_to else None,
        satisfaction_rating=model.satisfaction_rating,
        customer_id=str(model.customer_id),
    )


def _message_from_row(model: TicketMessageModel) -> MessageRecord:
    return MessageRecord(
        id=str(model.id),
        ticket_id=str(model.ticket_id),
        content=model.content,
        sender_type=SenderType(model.sender_type),
        created_at=model.created_at,
        metadata=model.message_metadata or {},
    )


class SQLAlchemyAnalysisSessionRepository(IAnalysisSessionRepository):
    """SQLAlchemy implementation for analysis sessions."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def add(self, session: AnalysisSession) -> None:
        try:
            async with self._session_maker() as db:
                db.add(AnalysisSessionModel(**_session_to_row(session)))
                await db.commit()
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to create analysis session: {e}")

    async def save(self, session: AnalysisSession) -> None:
        try:
            async with self._session_maker() as db:
                await db.merge(AnalysisSessionModel(**_session_to_row(session)))
                await db.commit()
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to save analysis session: {e}")

    async def get(self, session_id: str) -> Optional[AnalysisSession]:
        key = _optional_uuid(session_id)
        if key is None:
            return None
        try:
            async with self._session_maker() as db:
                model = await db.get(AnalysisSessionModel, key)
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to load analysis session: {e}")
        return _session_from_row(model) if model else None

    async def get_latest_for_ticket(self, ticket_id: str) -> Optional[AnalysisSession]:
        key = _optional_uuid(ticket_id)
        if key is None:
            return None
        stmt = (
            select(AnalysisSessionModel)
            .where(AnalysisSessionModel.ticket_id == key)
            .order_by(AnalysisSessionModel.created_at.desc())
            .limit(1)
        )
        try:
            async with self._session_maker() as db:
                model = (await db.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to load analysis session for ticket: {e}")
        return _session_from_row(model) if model else None


class SQLAlchemyTicketGateway(ITicketGateway):
    """Ticket Management backed by the shared database."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def create(self, draft: TicketDraft) -> TicketRecord:
        org_id = _uuid(draft.organization_id, "organization id")
        try:
            async with self._session_maker() as db:
                customer = (await db.execute(
                    select(CustomerModel).where(
                        CustomerModel.organization_id == org_id,
                        CustomerModel.email == draft.customer_email.lower(),
                    )
                )).scalar_one_or_none()
                if customer is None:
                    customer = CustomerModel(
                        organization_id=org_id,
                        email=draft.customer_email.lower(),
                        name=draft.customer_name,
                    )
                    db.add(customer)
                    await db.flush()

                ticket = TicketModel(
                    organization_id=org_id,
                    customer_id=customer.id,
                    title=draft.title,
                    description=draft.description,
                    status=TicketStatus.OPEN.value,
                    priority=draft.priority.value,
                    ai_enabled=True,
                    created_by_ai=True,
                    ai_metadata=draft.ai_metadata,
                )
                db.add(ticket)
                await db.commit()
                return _ticket_from_row(ticket)
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to create ticket: {e}")

    async def get(self, ticket_id: str) -> Optional[TicketRecord]:
        key = _optional_uuid(ticket_id)
        if key is None:
            return None
        try:
            async with self._session_maker() as db:
                model = await db.get(TicketModel, key)
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to load ticket: {e}")
        return _ticket_from_row(model) if model else None

    async def update(self, ticket_id: str, **fields) -> TicketRecord:
        unknown = set(fields) - TICKET_FIELDS
        if unknown:
            raise RepositoryException(f"Unsupported ticket fields: {sorted(unknown)}")

        key = _uuid(ticket_id, "ticket id")
        try:
            async with self._session_maker() as db:
                model = await db.get(TicketModel, key)
                if model is None:
                    raise ResourceNotFoundException("Ticket", ticket_id)
                for name, value in fields.items():
                    if name in ("status", "priority") and value is not None:
                        value = value.value if hasattr(value, "value") else str(value)
                    elif name == "assigned_to":
                        value = _uuid(value, "employee id") if value else None
                    setattr(model, name, value)
                model.updated_at = datetime.now(timezone.utc)
                await db.commit()
                return _ticket_from_row(model)
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to update ticket: {e}")

    async def replace_tags(self, ticket_id: str, organization_id: str, tag_names: List[str]) -> None:
        ticket_key = _uuid(ticket_id, "ticket id")
        org_id = _uuid(organization_id, "organization id")
        try:
            async with self._session_maker() as db:
                await db.execute(delete(TicketTagModel).where(TicketTagModel.ticket_id == ticket_key))
                for name in dict.fromkeys(tag_names):
                    tag = (await db.execute(
                        select(TagModel).where(TagModel.organization_id == org_id, TagModel.name == name)
                    )).scalar_one_or_none()
                    if tag is None:
                        tag = TagModel(organization_id=org_id, name=name)
                        db.add(tag)
                        await db.flush()
                    db.add(TicketTagModel(ticket_id=ticket_key, tag_id=tag.id))
                await db.commit()
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to replace ticket tags: {e}")


class SQLAlchemyMessageGateway(IMessageGateway):
    """Messaging backed by the shared database."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def create(
        self,
        ticket_id: str,
        organization_id: str,
        content: str,
        sender_type: SenderType,
        metadata: dict
    ) -> MessageRecord:
        model = TicketMessageModel(
            ticket_id=_uuid(ticket_id, "ticket id"),
            organization_id=_uuid(organization_id, "organization id"),
            content=content,
            sender_type=sender_type.value,
            message_metadata=metadata,
        )
        try:
            async with self._session_maker() as db:
                db.add(model)
                await db.commit()
                return _message_from_row(model)
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to post message: {e}")

    async def list_for_ticket(self, ticket_id: str) -> List[MessageRecord]:
        stmt = (
            select(TicketMessageModel)
            .where(TicketMessageModel.ticket_id == _uuid(ticket_id, "ticket id"))
            .order_by(TicketMessageModel.created_at, TicketMessageModel.id)
        )
        try:
            async with self._session_maker() as db:
                return [_message_from_row(m) for m in (await db.execute(stmt)).scalars().all()]
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to load messages: {e}")


class SQLAlchemyContextProvider(IContextProvider):
    """Builds the conversation context from tickets, messages, sessions and employees."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        sessions: IAnalysisSessionRepository,
        messages: SQLAlchemyMessageGateway
    ):
        self._session_maker = session_maker
        self._sessions = sessions
        self._messages = messages

    async def get_context(self, ticket_id: str, organization_id: str) -> ConversationContext:
        key = _optional_uuid(ticket_id)
        if key is None:
            raise ResourceNotFoundException("Ticket", ticket_id)

        try:
            async with self._session_maker() as db:
                ticket = await db.get(TicketModel, key)
                if ticket is None:
                    raise ResourceNotFoundException("Ticket", ticket_id)
                employees = (await db.execute(
                    select(EmployeeModel)
                    .where(EmployeeModel.organization_id == ticket.organization_id, EmployeeModel.is_active.is_(True))
                    .order_by(EmployeeModel.id)
                )).scalars().all()
        except SQLAlchemyError as e:
            raise RepositoryException(f"Failed to load conversation context: {e}")

        messages = await self._messages.list_for_ticket(ticket_id)
        session = await self._sessions.get_latest_for_ticket(ticket_id)
        logger.debug(
            "Conversation context loaded",
            extra={"ticket_id": ticket_id, "messages": len(messages), "employees": len(employees)}
        )
        return ConversationContext(
            ticket=_ticket_from_row(ticket),
            messages=tuple(messages),
            session=session,
            employees=tuple(
                Employee(id=str(e.id), name=f"{e.first_name} {e.last_name}".strip(), role=e.role)
                for e in employees
            ),
        )
