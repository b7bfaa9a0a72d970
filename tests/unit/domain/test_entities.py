"""Tests for the AnalysisSession state machine and domain records."""

import pytest

from src.config import ConversationAction, ErrorType, Priority, SessionStatus, ValidityCategory
from src.core import SessionStateException
from src.analysis.domain import (
    AnalysisSession,
    AssignmentDecision,
    ContextSnippet,
    ConversationDecision,
    LanguageAnalysis,
    ResponseResult,
    Translation,
    ValidityAnalysis,
)


def _make_session() -> AnalysisSession:
    return AnalysisSession.start("org-1", "Cannot log in", "jane@example.com", "Jane")


def _make_language() -> LanguageAnalysis:
    return LanguageAnalysis(code="en", confidence=0.97, translation=Translation(needed=False))


def _make_validity(is_valid: bool = True) -> ValidityAnalysis:
    return ValidityAnalysis(
        is_valid=is_valid,
        reason="Reports a login problem" if is_valid else "Advertising",
        category=ValidityCategory.VALID_INQUIRY if is_valid else ValidityCategory.SPAM,
        confidence=0.9,
    )


def _make_triaged() -> AnalysisSession:
    session = _make_session().with_language(_make_language()).with_validity(_make_validity())
    session = session.attach_ticket("ticket-1")
    session = session.with_priority(Priority.MEDIUM, "Standard request")
    session = session.with_tags(("login",), "Authentication")
    return session.with_assignment(AssignmentDecision(False, "AI can handle it"))


# ─── Value checks ───────────────────────────────────────────────────


def test_translation_text_must_be_absent_when_not_needed():
    with pytest.raises(ValueError):
        Translation(needed=False, text="hello")


def test_translation_text_allowed_when_needed():
    assert Translation(needed=True, text="Hello").text == "Hello"


def test_similarity_must_be_in_unit_interval():
    with pytest.raises(ValueError):
        ContextSnippet(content="x", document_id="d", similarity=1.2)


def test_satisfaction_rating_bounds():
    with pytest.raises(ValueError):
        ConversationDecision(
            is_solved=True, needs_human=False,
            action=ConversationAction.CLOSE_TICKET, reasoning="done", satisfaction_rating=6,
        )


# ─── Transitions ────────────────────────────────────────────────────


def test_new_session_is_pending():
    session = _make_session()
    assert session.status == SessionStatus.PENDING
    assert session.ticket_id is None
    assert not session.processing_results.is_complete


def test_transitions_return_new_sessions():
    session = _make_session()
    updated = session.with_language(_make_language())
    assert session.language is None
    assert updated.language.code == "en"
    assert updated.id == session.id


def test_attach_ticket_moves_to_processing():
    session = _make_session().with_language(_make_language()).attach_ticket("ticket-1")
    assert session.status == SessionStatus.PROCESSING
    assert session.ticket_id == "ticket-1"


def test_reject_ends_in_error_with_customer_reply():
    session = _make_session().with_validity(_make_validity(False))
    rejected = session.reject("Advertising", "This channel is for product support.")
    assert rejected.status == SessionStatus.ERROR
    assert rejected.error.type == ErrorType.INQUIRY_REJECTED
    assert rejected.error.response == "This channel is for product support."
    assert rejected.ticket_id is None


def test_triage_decision_requires_all_sub_decisions():
    session = _make_session().attach_ticket("t").with_priority(Priority.LOW, "minor")
    with pytest.raises(SessionStateException):
        session.triage_decision()


def test_complete_requires_finished_triage():
    session = _make_session().attach_ticket("t").with_priority(Priority.LOW, "minor")
    with pytest.raises(SessionStateException):
        session.complete(ResponseResult(response="hi", reasoning="r"))


def test_complete_sets_result_and_status():
    session = _make_triaged().complete(ResponseResult(response="hi", reasoning="r", next_steps=("a",)))
    assert session.status == SessionStatus.COMPLETED
    assert session.response_result.next_steps == ("a",)


def test_terminal_session_refuses_changes():
    completed = _make_triaged().complete(ResponseResult(response="hi", reasoning="r"))
    with pytest.raises(SessionStateException):
        completed.fail(ErrorType.RESPONSE_GENERATION_FAILED, "late failure")
    with pytest.raises(SessionStateException):
        completed.with_tags(("other",), "again")


def test_failed_session_keeps_partial_results():
    session = _make_session().attach_ticket("t")
    session = session.with_priority(Priority.HIGH, "blocking").with_tags(("billing",), "invoices")
    failed = session.fail(ErrorType.ASSIGNMENT_FAILED, "oracle timeout")
    assert failed.status == SessionStatus.ERROR
    assert failed.processing_results.priority == Priority.HIGH
    assert failed.processing_results.tags == ("billing",)
    assert failed.processing_results.needs_assignment is None


def test_retrieval_requires_processing():
    with pytest.raises(SessionStateException):
        _make_session().with_retrieval(("phrase",), ())


def test_relevant_snippets_filters_irrelevant():
    session = _make_session().attach_ticket("t").with_retrieval(
        ("login",),
        (
            ContextSnippet("a", "doc-a", 0.9),
            ContextSnippet("b", "doc-b", 0.8, is_relevant=False),
        ),
    )
    assert [s.document_id for s in session.relevant_snippets] == ["doc-a"]
