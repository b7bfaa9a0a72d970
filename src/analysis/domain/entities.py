"""
Analysis Domain Entities
========================

Immutable business objects for the inquiry analysis pipeline.

The AnalysisSession is the per-inquiry coordination record. Every transition
returns a new session; status only moves pending -> processing ->
completed | error, and a terminal session refuses further changes.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Optional, Tuple
from uuid import uuid4

from src.config import (
    ConversationAction,
    ErrorType,
    Priority,
    SenderType,
    SessionStatus,
    TERMINAL_STATUSES,
    TicketStatus,
    ValidityCategory,
)
from src.core import SessionStateException


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _check_unit_interval(name: str, value: float) -> None:
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{name} must be between 0 and 1")


@dataclass(frozen=True)
class Translation:
    """Whether the inquiry needs translating, and the translation if so."""
    needed: bool
    text: Optional[str] = None

    def __post_init__(self):
        if not self.needed and self.text is not None:
            raise ValueError("Translation text must be absent when no translation is needed")


@dataclass(frozen=True)
class LanguageAnalysis:
    """Detected language of an inquiry."""
    code: str
    confidence: float
    translation: Translation
    common_words: Tuple[str, ...] = ()
    script_analysis: str = ""

    def __post_init__(self):
        _check_unit_interval("Language confidence", self.confidence)


@dataclass(frozen=True)
class ValidityAnalysis:
    """Screening verdict for an inquiry."""
    is_valid: bool
    reason: str
    category: ValidityCategory
    confidence: float
    suggested_response: Optional[str] = None

    def __post_init__(self):
        _check_unit_interval("Validity confidence", self.confidence)


@dataclass(frozen=True)
class ContextSnippet:
    """A retrieved document chunk, unique per document within a session."""
    content: str
    document_id: str
    similarity: float
    is_relevant: bool = True
    relevance_reason: Optional[str] = None

    def __post_init__(self):
        _check_unit_interval("Similarity", self.similarity)


@dataclass(frozen=True)
class ProcessingResults:
    """Triage sub-decisions, filled in one checkpoint at a time."""
    priority: Optional[Priority] = None
    priority_reasoning: Optional[str] = None
    tags: Optional[Tuple[str, ...]] = None
    tag_reasoning: Optional[str] = None
    needs_assignment: Optional[bool] = None
    assignment_reasoning: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return (
            self.priority is not None
            and self.tags is not None
            and self.needs_assignment is not None
        )


@dataclass(frozen=True)
class TriageDecision:
    """Final triage outcome mirrored onto the ticket."""
    priority: Priority
    tags: Tuple[str, ...]
    needs_assignment: bool


@dataclass(frozen=True)
class AssignmentDecision:
    needs_assignment: bool
    reasoning: str


@dataclass(frozen=True)
class ResponseResult:
    """The AI response posted to the ticket."""
    response: str
    reasoning: str
    next_steps: Tuple[str, ...] = ()


@dataclass(frozen=True)
class SessionError:
    """
    Typed cause of a failed or rejected session.

    ``response`` holds the customer-facing text of a rejection.
    """
    type: ErrorType
    message: str
    response: Optional[str] = None


@dataclass(frozen=True)
class AnalysisSession:
    """
    Persisted coordination record for one inquiry.

    Created by the intake gate and advanced by each downstream stage.
    Never deleted.
    """
    id: str
    organization_id: str
    inquiry: str
    customer_email: str
    customer_name: str
    status: SessionStatus = SessionStatus.PENDING
    ticket_id: Optional[str] = None
    language: Optional[LanguageAnalysis] = None
    validity: Optional[ValidityAnalysis] = None
    search_phrases: Tuple[str, ...] = ()
    vector_results: Tuple[ContextSnippet, ...] = ()
    retrieval_note: Optional[str] = None
    processing_results: ProcessingResults = field(default_factory=ProcessingResults)
    response_result: Optional[ResponseResult] = None
    error: Optional[SessionError] = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def start(
        cls,
        organization_id: str,
        inquiry: str,
        customer_email: str,
        customer_name: str
    ) -> "AnalysisSession":
        """Open a new pending session."""
        return cls(
            id=str(uuid4()),
            organization_id=organization_id,
            inquiry=inquiry,
            customer_email=customer_email,
            customer_name=customer_name,
        )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def relevant_snippets(self) -> Tuple[ContextSnippet, ...]:
        return tuple(s for s in self.vector_results if s.is_relevant)

    def _evolve(self, allowed: Tuple[SessionStatus, ...], action: str, **changes) -> "AnalysisSession":
        if self.status not in allowed:
            raise SessionStateException(self.id, self.status.value, f"cannot {action}")
        return replace(self, updated_at=_utcnow(), **changes)

    # ========== Intake ==========

    def with_language(self, language: LanguageAnalysis) -> "AnalysisSession":
        return self._evolve((SessionStatus.PENDING,), "record language", language=language)

    def with_validity(self, validity: ValidityAnalysis) -> "AnalysisSession":
        return self._evolve((SessionStatus.PENDING,), "record validity", validity=validity)

    def attach_ticket(self, ticket_id: str) -> "AnalysisSession":
        """Accepted inquiry: link the new ticket and start processing."""
        return self._evolve(
            (SessionStatus.PENDING,), "attach a ticket",
            ticket_id=ticket_id, status=SessionStatus.PROCESSING
        )

    def reject(self, reason: str, customer_message: str) -> "AnalysisSession":
        return self.fail(ErrorType.INQUIRY_REJECTED, reason, response=customer_message)

    # ========== Retrieval ==========

    def with_retrieval(
        self,
        search_phrases: Tuple[str, ...],
        snippets: Tuple[ContextSnippet, ...],
        note: Optional[str] = None
    ) -> "AnalysisSession":
        return self._evolve(
            (SessionStatus.PROCESSING,), "record retrieval results",
            search_phrases=tuple(search_phrases),
            vector_results=tuple(snippets),
            retrieval_note=note,
        )

    # ========== Triage ==========

    def with_priority(self, priority: Priority, reasoning: str) -> "AnalysisSession":
        results = replace(self.processing_results, priority=priority, priority_reasoning=reasoning)
        return self._evolve((SessionStatus.PROCESSING,), "record priority", processing_results=results)

    def with_tags(self, tags: Tuple[str, ...], reasoning: str) -> "AnalysisSession":
        results = replace(self.processing_results, tags=tuple(tags), tag_reasoning=reasoning)
        return self._evolve((SessionStatus.PROCESSING,), "record tags", processing_results=results)

    def with_assignment(self, decision: AssignmentDecision) -> "AnalysisSession":
        results = replace(
            self.processing_results,
            needs_assignment=decision.needs_assignment,
            assignment_reasoning=decision.reasoning,
        )
        return self._evolve((SessionStatus.PROCESSING,), "record assignment", processing_results=results)

    def triage_decision(self) -> TriageDecision:
        results = self.processing_results
        if not results.is_complete:
            raise SessionStateException(self.id, self.status.value, "triage results are incomplete")
        return TriageDecision(
            priority=results.priority,
            tags=results.tags,
            needs_assignment=results.needs_assignment,
        )

    # ========== Terminal transitions ==========

    def complete(self, result: ResponseResult) -> "AnalysisSession":
        if not self.processing_results.is_complete:
            raise SessionStateException(self.id, self.status.value, "complete before triage finished")
        return self._evolve(
            (SessionStatus.PROCESSING,), "complete",
            response_result=result, status=SessionStatus.COMPLETED
        )

    def fail(
        self,
        error_type: ErrorType,
        message: str,
        response: Optional[str] = None
    ) -> "AnalysisSession":
        return self._evolve(
            (SessionStatus.PENDING, SessionStatus.PROCESSING), "record an error",
            error=SessionError(type=error_type, message=message, response=response),
            status=SessionStatus.ERROR,
        )


# ========== Collaborator records ==========

@dataclass(frozen=True)
class TicketDraft:
    """Fields for a ticket opened by the intake gate."""
    organization_id: str
    customer_email: str
    customer_name: str
    title: str
    description: str
    priority: Priority = Priority.LOW
    ai_metadata: dict = field(default_factory=dict)


@dataclass(frozen=True)
class TicketRecord:
    id: str
    organization_id: str
    title: str
    status: TicketStatus
    priority: Priority
    ai_enabled: bool = True
    assigned_to: Optional[str] = None
    satisfaction_rating: Optional[int] = None
    customer_id: Optional[str] = None


@dataclass(frozen=True)
class MessageRecord:
    id: str
    ticket_id: str
    content: str
    sender_type: SenderType
    created_at: datetime
    metadata: dict = field(default_factory=dict)


@dataclass(frozen=True)
class Employee:
    id: str
    name: str
    role: str = ""


@dataclass(frozen=True)
class ConversationContext:
    """Everything re-evaluation needs to know about a ticket."""
    ticket: TicketRecord
    messages: Tuple[MessageRecord, ...]
    session: Optional[AnalysisSession]
    employees: Tuple[Employee, ...]


@dataclass(frozen=True)
class ConversationDecision:
    is_solved: bool
    needs_human: bool
    action: ConversationAction
    reasoning: str
    satisfaction_rating: Optional[int] = None

    def __post_init__(self):
        if self.satisfaction_rating is not None and not 1 <= self.satisfaction_rating <= 5:
            raise ValueError("Satisfaction rating must be between 1 and 5")


@dataclass(frozen=True)
class ReevaluationResult:
    """Outcome of one conversation re-evaluation."""
    is_solved: bool
    needs_human: bool
    action: Optional[ConversationAction]
    reasoning: str
    satisfaction_rating: Optional[int] = None
    assigned_to: Optional[str] = None
    reply: Optional[str] = None
    tone: Optional[str] = None
    message_id: Optional[str] = None
    ai_disabled: bool = False
