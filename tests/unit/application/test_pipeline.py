"""End-to-end tests for the analysis pipeline over in-memory collaborators."""

import pytest

from src.config import ErrorType, OracleSchema, Priority, SenderType, SessionStatus
from src.core import ConsistencyException, LLMException, ResourceNotFoundException
from src.analysis.application.services import (
    ACKNOWLEDGEMENT,
    AnalysisPipeline,
    FixedAssignmentPolicy,
    IntakeGate,
    ResponseSynthesisCoordinator,
    TriageCoordinator,
    VectorRetrievalCoordinator,
)
from tests.fakes import ORG_ID, PASSWORD_RESET_INQUIRY, FakeOracle, password_reset_script


class RecordingMetrics:
    def __init__(self):
        self.stages = []

    async def export_stage(self, stage: str, outcome: str, latency_ms: int) -> bool:
        self.stages.append((stage, outcome))
        return True


def _make_pipeline(oracle, search, sessions, tickets, messages, **kwargs) -> AnalysisPipeline:
    return AnalysisPipeline(
        intake=IntakeGate(oracle, sessions, tickets),
        retrieval=VectorRetrievalCoordinator(oracle, search, sessions, top_k=5, similarity_threshold=0.6),
        triage=TriageCoordinator(oracle, sessions, tickets, FixedAssignmentPolicy()),
        synthesis=ResponseSynthesisCoordinator(oracle, sessions, messages),
        sessions=sessions,
        **kwargs,
    )


async def _analyze(pipeline: AnalysisPipeline, inquiry: str = PASSWORD_RESET_INQUIRY):
    return await pipeline.analyze(inquiry, "jane@example.com", "Jane Doe", ORG_ID)


# ─── Full run ───────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_password_reset_inquiry_end_to_end(pipeline, sessions, tickets, messages):
    outcome = await _analyze(pipeline)

    assert outcome.accepted
    assert outcome.message == ACKNOWLEDGEMENT
    session = outcome.session
    assert session.status == SessionStatus.COMPLETED
    assert session.language.code == "en"
    assert session.validity.is_valid
    assert session.search_phrases == ("password reset link", "reset email expired")
    assert [s.document_id for s in session.vector_results] == ["doc-reset", "doc-login", "doc-email"]
    assert session.processing_results.priority == Priority.HIGH
    assert session.processing_results.tags == ("password-reset", "account-access")
    assert session.processing_results.needs_assignment is False
    assert "[1]" in outcome.response.response

    ticket = tickets.tickets[session.ticket_id]
    assert ticket.priority == Priority.HIGH
    assert tickets.tags[ticket.id] == ["password-reset", "account-access"]
    ai_messages = messages.for_ticket(ticket.id, SenderType.AI)
    assert len(ai_messages) == 1
    assert ai_messages[0].content == outcome.response.response


@pytest.mark.asyncio
async def test_stage_metrics_exported(oracle, search, sessions, tickets, messages):
    metrics = RecordingMetrics()
    pipeline = _make_pipeline(oracle, search, sessions, tickets, messages, metrics=metrics)

    await _analyze(pipeline)

    assert metrics.stages == [
        ("intake", "accepted"),
        ("retrieval", "ok"),
        ("triage", "ok"),
        ("response", "ok"),
    ]


@pytest.mark.asyncio
async def test_manual_stages_when_auto_continue_off(oracle, search, sessions, tickets, messages):
    pipeline = _make_pipeline(oracle, search, sessions, tickets, messages, auto_continue=False)

    outcome = await _analyze(pipeline)
    assert outcome.session.status == SessionStatus.PROCESSING
    assert outcome.response is None

    session_id = outcome.session.id
    retrieved = await pipeline.run_retrieval(session_id, ORG_ID)
    assert len(retrieved.vector_results) == 3
    _, decision = await pipeline.run_triage(session_id, ORG_ID)
    assert decision.priority == Priority.HIGH
    completed, result = await pipeline.run_synthesis(session_id, ORG_ID)
    assert completed.status == SessionStatus.COMPLETED
    assert (await pipeline.get_session(session_id, ORG_ID)).response_result == result


# ─── Failures ───────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_downstream_failure_still_acknowledges(search, sessions, tickets, messages):
    script = password_reset_script()
    script[OracleSchema.TAGS] = LLMException("provider timeout")
    metrics = RecordingMetrics()
    pipeline = _make_pipeline(FakeOracle(script), search, sessions, tickets, messages, metrics=metrics)

    outcome = await _analyze(pipeline)

    assert outcome.accepted
    assert outcome.message == ACKNOWLEDGEMENT
    assert outcome.response is None
    assert outcome.session.status == SessionStatus.ERROR
    assert outcome.session.error.type == ErrorType.TAG_GENERATION_FAILED
    assert outcome.session.processing_results.priority == Priority.HIGH
    assert outcome.session.ticket_id in tickets.tickets
    assert messages.messages == []
    assert ("triage", "error") in metrics.stages


@pytest.mark.asyncio
async def test_intake_failure_propagates(search, sessions, tickets, messages):
    script = password_reset_script()
    script[OracleSchema.LANGUAGE_DETECTION] = LLMException("provider timeout")
    metrics = RecordingMetrics()
    pipeline = _make_pipeline(FakeOracle(script), search, sessions, tickets, messages, metrics=metrics)

    with pytest.raises(LLMException):
        await _analyze(pipeline)

    assert metrics.stages == [("intake", "error")]


@pytest.mark.asyncio
async def test_rejected_inquiry_skips_downstream(search, sessions, tickets, messages):
    script = password_reset_script()
    script[OracleSchema.VALIDITY_CHECK] = {
        "isValid": False, "reason": "Advert", "category": "spam", "confidence": 0.99,
    }
    script[OracleSchema.ERROR_RESPONSE] = {
        "responseMessage": "This chat is for product support.", "severity": "low",
    }
    pipeline = _make_pipeline(FakeOracle(script), search, sessions, tickets, messages)

    outcome = await _analyze(pipeline, "Cheap watches here")

    assert not outcome.accepted
    assert outcome.message == "This chat is for product support."
    assert search.queries == []
    assert tickets.tickets == {}


# ─── Identifier checks ──────────────────────────────────────────────


@pytest.mark.asyncio
async def test_stage_with_other_organization_refused(oracle, search, sessions, tickets, messages):
    pipeline = _make_pipeline(oracle, search, sessions, tickets, messages, auto_continue=False)
    outcome = await _analyze(pipeline)

    with pytest.raises(ConsistencyException):
        await pipeline.run_retrieval(outcome.session.id, "another-org")

    assert search.queries == []


@pytest.mark.asyncio
async def test_unknown_session_not_found(pipeline):
    with pytest.raises(ResourceNotFoundException):
        await pipeline.get_session("missing", ORG_ID)
