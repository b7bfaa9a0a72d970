"""Tests for the SQLAlchemy repositories over an in-memory SQLite database."""

from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from src.config import ErrorType, Priority, SenderType, SessionStatus, TicketStatus, ValidityCategory
from src.core import RepositoryException, ResourceNotFoundException
from src.analysis.domain import (
    AnalysisSession,
    AssignmentDecision,
    ContextSnippet,
    LanguageAnalysis,
    ResponseResult,
    TicketDraft,
    Translation,
    ValidityAnalysis,
)
from src.analysis.infrastructure import (
    EmployeeModel,
    SQLAlchemyAnalysisSessionRepository,
    SQLAlchemyContextProvider,
    SQLAlchemyMessageGateway,
    SQLAlchemyTicketGateway,
    TagModel,
    TicketTagModel,
)
from src.infrastructure.database import build_session_maker, create_tables
from tests.fakes import ORG_ID


@pytest_asyncio.fixture
async def session_maker():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    await create_tables(engine)
    yield build_session_maker(engine)
    await engine.dispose()


def _make_draft(email: str = "Jane@Example.com") -> TicketDraft:
    return TicketDraft(
        organization_id=ORG_ID,
        customer_email=email,
        customer_name="Jane Doe",
        title="Password reset link broken",
        description="My password reset link is not working",
        ai_metadata={"analysis_id": "a-1"},
    )


async def _tag_names(session_maker, ticket_id: str) -> list:
    stmt = (
        select(TagModel.name)
        .join(TicketTagModel, TicketTagModel.tag_id == TagModel.id)
        .where(TicketTagModel.ticket_id == UUID(ticket_id))
        .order_by(TagModel.name)
    )
    async with session_maker() as db:
        return list((await db.execute(stmt)).scalars().all())


def _make_completed(ticket_id: str) -> AnalysisSession:
    session = AnalysisSession.start(ORG_ID, "Reset link broken", "jane@example.com", "Jane")
    session = session.with_language(LanguageAnalysis(
        code="es", confidence=0.9, translation=Translation(needed=True, text="Reset link broken"),
        common_words=("el", "la"),
    ))
    session = session.with_validity(ValidityAnalysis(
        is_valid=True, reason="Login problem", category=ValidityCategory.VALID_INQUIRY, confidence=0.8,
    ))
    session = session.attach_ticket(ticket_id).with_retrieval(
        ("reset link",),
        (ContextSnippet("Links expire.", "doc-reset", 0.91, is_relevant=True, relevance_reason="direct"),),
    )
    session = session.with_priority(Priority.HIGH, "Locked out").with_tags(("password-reset",), "auth")
    session = session.with_assignment(AssignmentDecision(False, "AI can handle it"))
    return session.complete(ResponseResult("Request a new link [1].", "docs", ("Request link",)))


# ─── Analysis sessions ──────────────────────────────────────────────


@pytest.mark.asyncio
async def test_session_round_trip(session_maker):
    repo = SQLAlchemyAnalysisSessionRepository(session_maker)
    ticket_id = str(uuid4())
    session = _make_completed(ticket_id)

    await repo.add(session)
    loaded = await repo.get(session.id)

    assert loaded.status == SessionStatus.COMPLETED
    assert loaded.ticket_id == ticket_id
    assert loaded.language == session.language
    assert loaded.validity == session.validity
    assert loaded.vector_results == session.vector_results
    assert loaded.processing_results == session.processing_results
    assert loaded.response_result == session.response_result


@pytest.mark.asyncio
async def test_session_save_overwrites_previous_checkpoint(session_maker):
    repo = SQLAlchemyAnalysisSessionRepository(session_maker)
    session = AnalysisSession.start(ORG_ID, "Help", "jane@example.com", "Jane")
    await repo.add(session)

    failed = session.fail(ErrorType.LANGUAGE_DETECTION_FAILED, "timeout")
    await repo.save(failed)
    loaded = await repo.get(session.id)

    assert loaded.status == SessionStatus.ERROR
    assert loaded.error.type == ErrorType.LANGUAGE_DETECTION_FAILED
    assert loaded.error.message == "timeout"


@pytest.mark.asyncio
async def test_unknown_or_malformed_session_id_returns_none(session_maker):
    repo = SQLAlchemyAnalysisSessionRepository(session_maker)
    assert await repo.get(str(uuid4())) is None
    assert await repo.get("not-a-uuid") is None


@pytest.mark.asyncio
async def test_session_with_malformed_organization_rejected(session_maker):
    repo = SQLAlchemyAnalysisSessionRepository(session_maker)
    with pytest.raises(RepositoryException):
        await repo.add(AnalysisSession.start("not-a-uuid", "Help", "jane@example.com", "Jane"))


@pytest.mark.asyncio
async def test_latest_session_for_ticket(session_maker):
    repo = SQLAlchemyAnalysisSessionRepository(session_maker)
    ticket_id = str(uuid4())
    session = _make_completed(ticket_id)
    await repo.add(session)

    latest = await repo.get_latest_for_ticket(ticket_id)

    assert latest.id == session.id
    assert await repo.get_latest_for_ticket(str(uuid4())) is None


# ─── Tickets ────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_ticket_created_open_and_ai_enabled(session_maker):
    gateway = SQLAlchemyTicketGateway(session_maker)

    ticket = await gateway.create(_make_draft())

    assert ticket.status == TicketStatus.OPEN
    assert ticket.priority == Priority.LOW
    assert ticket.ai_enabled
    assert ticket.organization_id == ORG_ID
    assert (await gateway.get(ticket.id)).title == "Password reset link broken"


@pytest.mark.asyncio
async def test_customer_reused_by_email(session_maker):
    gateway = SQLAlchemyTicketGateway(session_maker)

    first = await gateway.create(_make_draft("Jane@Example.com"))
    second = await gateway.create(_make_draft("jane@example.com"))

    assert first.customer_id == second.customer_id
    assert first.id != second.id


@pytest.mark.asyncio
async def test_ticket_update_converts_enums(session_maker):
    gateway = SQLAlchemyTicketGateway(session_maker)
    ticket = await gateway.create(_make_draft())
    employee_id = str(uuid4())

    await gateway.update(ticket.id, priority=Priority.URGENT)
    updated = await gateway.update(
        ticket.id, status=TicketStatus.CLOSED, satisfaction_rating=5,
        assigned_to=employee_id, ai_enabled=False,
    )

    assert updated.priority == Priority.URGENT
    assert updated.status == TicketStatus.CLOSED
    assert updated.satisfaction_rating == 5
    assert updated.assigned_to == employee_id
    assert not updated.ai_enabled


@pytest.mark.asyncio
async def test_update_unknown_ticket_not_found(session_maker):
    with pytest.raises(ResourceNotFoundException):
        await SQLAlchemyTicketGateway(session_maker).update(str(uuid4()), priority=Priority.LOW)


@pytest.mark.asyncio
async def test_update_unsupported_field_rejected(session_maker):
    gateway = SQLAlchemyTicketGateway(session_maker)
    ticket = await gateway.create(_make_draft())

    with pytest.raises(RepositoryException):
        await gateway.update(ticket.id, title="Renamed")


@pytest.mark.asyncio
async def test_replace_tags_has_replace_all_semantics(session_maker):
    gateway = SQLAlchemyTicketGateway(session_maker)
    ticket = await gateway.create(_make_draft())

    await gateway.replace_tags(ticket.id, ORG_ID, ["password-reset", "login"])
    await gateway.replace_tags(ticket.id, ORG_ID, ["billing", "login", "login"])

    assert await _tag_names(session_maker, ticket.id) == ["billing", "login"]


# ─── Messages and context ───────────────────────────────────────────


@pytest.mark.asyncio
async def test_messages_listed_in_creation_order(session_maker):
    tickets = SQLAlchemyTicketGateway(session_maker)
    messages = SQLAlchemyMessageGateway(session_maker)
    ticket = await tickets.create(_make_draft())

    await messages.create(ticket.id, ORG_ID, "It is broken", SenderType.CUSTOMER, {})
    posted = await messages.create(ticket.id, ORG_ID, "Try again", SenderType.AI, {"analysis_id": "a-1"})

    history = await messages.list_for_ticket(ticket.id)
    assert [m.content for m in history] == ["It is broken", "Try again"]
    assert history[1].metadata == {"analysis_id": "a-1"}
    assert history[1].id == posted.id


@pytest.mark.asyncio
async def test_context_includes_active_roster_only(session_maker):
    sessions = SQLAlchemyAnalysisSessionRepository(session_maker)
    tickets = SQLAlchemyTicketGateway(session_maker)
    messages = SQLAlchemyMessageGateway(session_maker)
    ticket = await tickets.create(_make_draft())
    session = _make_completed(ticket.id)
    await sessions.add(session)
    await messages.create(ticket.id, ORG_ID, "Still broken", SenderType.CUSTOMER, {})

    async with session_maker() as db:
        db.add(EmployeeModel(organization_id=UUID(ORG_ID), first_name="Ana", last_name="Lima"))
        db.add(EmployeeModel(organization_id=UUID(ORG_ID), first_name="Old", last_name="Timer", is_active=False))
        db.add(EmployeeModel(organization_id=uuid4(), first_name="Other", last_name="Org"))
        await db.commit()

    context = await SQLAlchemyContextProvider(session_maker, sessions, messages).get_context(ticket.id, ORG_ID)

    assert context.ticket.id == ticket.id
    assert [m.content for m in context.messages] == ["Still broken"]
    assert context.session.id == session.id
    assert [e.name for e in context.employees] == ["Ana Lima"]


@pytest.mark.asyncio
async def test_context_for_unknown_ticket_not_found(session_maker):
    sessions = SQLAlchemyAnalysisSessionRepository(session_maker)
    provider = SQLAlchemyContextProvider(session_maker, sessions, SQLAlchemyMessageGateway(session_maker))

    with pytest.raises(ResourceNotFoundException):
        await provider.get_context(str(uuid4()), ORG_ID)
