"""Pytest configuration and shared fixtures."""

import random

import pytest

from src.core import VectorStoreException
from src.analysis.application.services import (
    AnalysisPipeline,
    ConversationReevaluationCoordinator,
    FixedAssignmentPolicy,
    IntakeGate,
    ResponseSynthesisCoordinator,
    TriageCoordinator,
    VectorRetrievalCoordinator,
)
from src.analysis.domain import Employee
from tests.fakes import (
    FakeContextProvider,
    FakeMessageGateway,
    FakeOracle,
    FakeTicketGateway,
    InMemorySessionRepository,
    password_reset_script,
    password_reset_search,
)


# ─── Fixtures ───────────────────────────────────────────────────────


@pytest.fixture
def sessions():
    return InMemorySessionRepository()


@pytest.fixture
def tickets():
    return FakeTicketGateway()


@pytest.fixture
def messages():
    return FakeMessageGateway()


@pytest.fixture
def oracle():
    return FakeOracle(password_reset_script())


@pytest.fixture
def search():
    return password_reset_search()


@pytest.fixture
def pipeline(oracle, search, sessions, tickets, messages):
    return AnalysisPipeline(
        intake=IntakeGate(oracle, sessions, tickets),
        retrieval=VectorRetrievalCoordinator(oracle, search, sessions, top_k=5, similarity_threshold=0.6),
        triage=TriageCoordinator(oracle, sessions, tickets, FixedAssignmentPolicy()),
        synthesis=ResponseSynthesisCoordinator(oracle, sessions, messages),
        sessions=sessions,
    )


@pytest.fixture
def employees():
    return [
        Employee(id="emp-1", name="Ana Lima", role="agent"),
        Employee(id="emp-2", name="Tom Berg", role="agent"),
    ]


@pytest.fixture
def context_provider(tickets, messages, sessions, employees):
    return FakeContextProvider(tickets, messages, sessions, employees)


@pytest.fixture
def reevaluation(oracle, context_provider, tickets, messages):
    return ConversationReevaluationCoordinator(
        oracle, context_provider, tickets, messages, rng=random.Random(7)
    )


@pytest.fixture
def vector_store_error():
    return VectorStoreException("milvus unreachable")
