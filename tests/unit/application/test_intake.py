"""Tests for the intake gate."""

import pytest

from src.config import ErrorType, OracleSchema, SessionStatus
from src.core import LLMException, RepositoryException
from src.analysis.application.services import ACKNOWLEDGEMENT, IntakeGate
from tests.fakes import ORG_ID, PASSWORD_RESET_INQUIRY, FakeOracle, password_reset_script

SPAM = {
    "isValid": False,
    "reason": "Promotional content",
    "category": "spam",
    "confidence": 0.97,
}

REJECTION = {
    "responseMessage": "Hi! This chat is for product support. Is there anything we can help you with?",
    "internalNote": "Crypto promotion",
    "severity": "low",
    "suggestedActions": ["Ignore"],
}


def _make_gate(oracle, sessions, tickets) -> IntakeGate:
    return IntakeGate(oracle, sessions, tickets)


async def _analyze(gate: IntakeGate, inquiry: str = PASSWORD_RESET_INQUIRY):
    return await gate.analyze(inquiry, "jane@example.com", "Jane Doe", ORG_ID)


# ─── Accepted inquiries ─────────────────────────────────────────────


@pytest.mark.asyncio
async def test_accepted_inquiry_creates_ticket(oracle, sessions, tickets):
    outcome = await _analyze(_make_gate(oracle, sessions, tickets))

    assert outcome.accepted
    assert outcome.message == ACKNOWLEDGEMENT
    assert outcome.session.status == SessionStatus.PROCESSING
    assert outcome.ticket_id in tickets.tickets
    assert sessions.sessions[outcome.session.id].ticket_id == outcome.ticket_id


@pytest.mark.asyncio
async def test_ticket_draft_carries_analysis_metadata(oracle, sessions, tickets):
    outcome = await _analyze(_make_gate(oracle, sessions, tickets))

    draft = tickets.drafts[0]
    assert draft.customer_email == "jane@example.com"
    assert draft.title == PASSWORD_RESET_INQUIRY
    assert draft.ai_metadata["analysis_id"] == outcome.session.id
    assert draft.ai_metadata["language"] == "en"
    assert draft.ai_metadata["validity_category"] == "valid_inquiry"


@pytest.mark.asyncio
async def test_language_and_validity_checkpointed(oracle, sessions, tickets):
    await _analyze(_make_gate(oracle, sessions, tickets))

    statuses = [s.status for s in sessions.history]
    assert statuses[0] == SessionStatus.PENDING
    assert sessions.history[1].language.code == "en"
    assert sessions.history[1].validity is None
    assert sessions.history[2].validity.is_valid
    assert statuses[-1] == SessionStatus.PROCESSING


@pytest.mark.asyncio
async def test_language_detection_result(oracle, sessions, tickets):
    outcome = await _analyze(_make_gate(oracle, sessions, tickets))

    language = outcome.session.language
    assert language.code == "en"
    assert language.translation.needed is False
    assert language.translation.text is None


# ─── Rejected inquiries ─────────────────────────────────────────────


@pytest.mark.asyncio
async def test_invalid_inquiry_is_rejected_without_ticket(sessions, tickets):
    script = password_reset_script()
    script[OracleSchema.VALIDITY_CHECK] = SPAM
    script[OracleSchema.ERROR_RESPONSE] = REJECTION
    oracle = FakeOracle(script)

    outcome = await _analyze(_make_gate(oracle, sessions, tickets), "Buy cheap crypto now!!!")

    assert not outcome.accepted
    assert outcome.message == REJECTION["responseMessage"]
    assert outcome.ticket_id is None
    assert tickets.tickets == {}
    stored = sessions.sessions[outcome.session.id]
    assert stored.status == SessionStatus.ERROR
    assert stored.error.type == ErrorType.INQUIRY_REJECTED
    assert stored.error.response == REJECTION["responseMessage"]


@pytest.mark.asyncio
async def test_rejection_localized_when_translation_needed(sessions, tickets):
    script = password_reset_script()
    script[OracleSchema.LANGUAGE_DETECTION] = {
        "languageCode": "es",
        "confidence": 0.96,
        "translation": {"needed": True, "text": "Buy cheap crypto now"},
    }
    script[OracleSchema.VALIDITY_CHECK] = SPAM
    script[OracleSchema.ERROR_RESPONSE] = {**REJECTION, "translatedResponse": "¡Hola! Este chat es para soporte."}
    oracle = FakeOracle(script)

    outcome = await _analyze(_make_gate(oracle, sessions, tickets), "Compra cripto barata")

    assert outcome.message == "¡Hola! Este chat es para soporte."
    validity_call = oracle.calls_for(OracleSchema.VALIDITY_CHECK)[0]
    assert "Buy cheap crypto now" in validity_call["user"]


@pytest.mark.asyncio
async def test_missing_translation_falls_back_to_original_text(sessions, tickets):
    script = password_reset_script()
    script[OracleSchema.LANGUAGE_DETECTION] = {
        "languageCode": "es",
        "confidence": 0.93,
        "translation": {"needed": True},
    }
    oracle = FakeOracle(script)

    outcome = await _analyze(_make_gate(oracle, sessions, tickets), "No puedo restablecer mi contraseña")

    assert outcome.accepted
    assert outcome.session.language.code == "es"
    assert outcome.session.language.translation.text is None
    validity_call = oracle.calls_for(OracleSchema.VALIDITY_CHECK)[0]
    assert "No puedo restablecer mi contraseña" in validity_call["user"]
    assert "translated to English" not in validity_call["user"]


# ─── Failures ───────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_language_detection_failure_marks_session(sessions, tickets):
    script = password_reset_script()
    script[OracleSchema.LANGUAGE_DETECTION] = LLMException("provider timeout")
    gate = _make_gate(FakeOracle(script), sessions, tickets)

    with pytest.raises(LLMException):
        await _analyze(gate)

    stored = sessions.history[-1]
    assert stored.status == SessionStatus.ERROR
    assert stored.error.type == ErrorType.LANGUAGE_DETECTION_FAILED
    assert tickets.tickets == {}


@pytest.mark.asyncio
async def test_non_conformant_validity_output_marks_session(sessions, tickets):
    script = password_reset_script()
    script[OracleSchema.VALIDITY_CHECK] = {"isValid": "maybe"}
    gate = _make_gate(FakeOracle(script), sessions, tickets)

    with pytest.raises(LLMException):
        await _analyze(gate)

    stored = sessions.history[-1]
    assert stored.error.type == ErrorType.VALIDITY_CHECK_FAILED
    assert stored.language.code == "en"


@pytest.mark.asyncio
async def test_ticket_creation_failure_marks_session(oracle, sessions, tickets):
    tickets.fail_create = True

    with pytest.raises(RepositoryException):
        await _analyze(_make_gate(oracle, sessions, tickets))

    assert sessions.history[-1].error.type == ErrorType.TICKET_CREATION_FAILED


@pytest.mark.asyncio
async def test_rejection_reply_failure_marks_session(sessions, tickets):
    script = password_reset_script()
    script[OracleSchema.VALIDITY_CHECK] = SPAM
    script[OracleSchema.ERROR_RESPONSE] = {"severity": "catastrophic"}
    gate = _make_gate(FakeOracle(script), sessions, tickets)

    with pytest.raises(LLMException):
        await _analyze(gate, "spam spam")

    assert sessions.history[-1].error.type == ErrorType.REJECTION_RESPONSE_FAILED
