"""
Analysis Application DTOs
=========================

Data Transfer Objects for the analysis API layer.

Pydantic models for request/response validation. Bodies use camelCase keys
on the wire.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from src.analysis.domain import AnalysisSession, ContextSnippet, ReevaluationResult, ResponseResult, TriageDecision


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ========== Request DTOs ==========

class AnalyzeInquiryRequest(CamelModel):
    """Request model for a new customer inquiry."""
    inquiry_text: str = Field(..., min_length=1, description="Raw customer message")
    customer_email: EmailStr = Field(..., description="Customer email")
    customer_name: str = Field(..., min_length=1, max_length=200, description="Customer display name")
    organization_id: UUID = Field(..., description="Receiving organization")

    @field_validator("inquiry_text")
    @classmethod
    def validate_inquiry_length(cls, v: str) -> str:
        """Ensure the inquiry is not blank or too long for the oracle."""
        if not v.strip():
            raise ValueError("Inquiry must not be blank")
        if len(v) > 10000:
            raise ValueError("Inquiry too long (max 10000 characters)")
        return v


class SessionStageRequest(CamelModel):
    """Request model for running a single stage on an existing session."""
    session_id: UUID
    organization_id: UUID


class ReevaluateRequest(CamelModel):
    """Request model for conversation re-evaluation."""
    ticket_id: UUID
    organization_id: UUID
    new_message_id: Optional[UUID] = None


# ========== Response DTOs ==========

class LanguageInfo(CamelModel):
    code: str
    confidence: float
    translation_needed: bool
    translation: Optional[str] = None


class ValidityInfo(CamelModel):
    is_valid: bool
    reason: str
    category: str
    confidence: float


class SnippetInfo(CamelModel):
    content: str
    document_id: str
    similarity: float
    is_relevant: bool

    @classmethod
    def from_domain(cls, snippet: ContextSnippet) -> "SnippetInfo":
        return cls(
            content=snippet.content,
            document_id=snippet.document_id,
            similarity=snippet.similarity,
            is_relevant=snippet.is_relevant,
        )


class ProcessingInfo(CamelModel):
    priority: Optional[str] = None
    priority_reasoning: Optional[str] = None
    tags: Optional[List[str]] = None
    tag_reasoning: Optional[str] = None
    needs_assignment: Optional[bool] = None
    assignment_reasoning: Optional[str] = None


class ResponseInfo(CamelModel):
    response: str
    reasoning: str
    next_steps: List[str]

    @classmethod
    def from_domain(cls, result: ResponseResult) -> "ResponseInfo":
        return cls(response=result.response, reasoning=result.reasoning, next_steps=list(result.next_steps))


class ErrorInfo(CamelModel):
    type: str
    message: str
    response: Optional[str] = None


class SessionResponse(CamelModel):
    """Full view of an analysis session."""
    id: str
    organization_id: str
    ticket_id: Optional[str] = None
    status: str
    language: Optional[LanguageInfo] = None
    validity: Optional[ValidityInfo] = None
    search_phrases: List[str] = Field(default_factory=list)
    vector_results: List[SnippetInfo] = Field(default_factory=list)
    retrieval_note: Optional[str] = None
    processing_results: ProcessingInfo
    response_result: Optional[ResponseInfo] = None
    error: Optional[ErrorInfo] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, session: AnalysisSession) -> "SessionResponse":
        results = session.processing_results
        language = None
        if session.language is not None:
            language = LanguageInfo(
                code=session.language.code,
                confidence=session.language.confidence,
                translation_needed=session.language.translation.needed,
                translation=session.language.translation.text,
            )
        validity = None
        if session.validity is not None:
            validity = ValidityInfo(
                is_valid=session.validity.is_valid,
                reason=session.validity.reason,
                category=session.validity.category.value,
                confidence=session.validity.confidence,
            )
        return cls(
            id=session.id,
            organization_id=session.organization_id,
            ticket_id=session.ticket_id,
            status=session.status.value,
            language=language,
            validity=validity,
            search_phrases=list(session.search_phrases),
            vector_results=[SnippetInfo.from_domain(s) for s in session.vector_results],
            retrieval_note=session.retrieval_note,
            processing_results=ProcessingInfo(
                priority=results.priority.value if results.priority else None,
                priority_reasoning=results.priority_reasoning,
                tags=list(results.tags) if results.tags is not None else None,
                tag_reasoning=results.tag_reasoning,
                needs_assignment=results.needs_assignment,
                assignment_reasoning=results.assignment_reasoning,
            ),
            response_result=ResponseInfo.from_domain(session.response_result) if session.response_result else None,
            error=ErrorInfo(
                type=session.error.type.value,
                message=session.error.message,
                response=session.error.response,
            ) if session.error else None,
            created_at=session.created_at,
            updated_at=session.updated_at,
        )


class AnalyzeInquiryResponse(CamelModel):
    """Response model for a submitted inquiry."""
    session_id: str
    ticket_id: Optional[str] = None
    accepted: bool
    message: str
    status: str
    response: Optional[ResponseInfo] = None
    processing_time_ms: int


class RetrievalResponse(CamelModel):
    session_id: str
    search_phrases: List[str]
    snippets: List[SnippetInfo]
    note: Optional[str] = None


class TriageResponse(CamelModel):
    session_id: str
    ticket_id: Optional[str] = None
    priority: str
    tags: List[str]
    needs_assignment: bool

    @classmethod
    def from_domain(cls, session: AnalysisSession, decision: TriageDecision) -> "TriageResponse":
        return cls(
            session_id=session.id,
            ticket_id=session.ticket_id,
            priority=decision.priority.value,
            tags=list(decision.tags),
            needs_assignment=decision.needs_assignment,
        )


class SynthesisResponse(CamelModel):
    session_id: str
    status: str
    response: str
    reasoning: str
    next_steps: List[str]


class ReevaluationResponse(CamelModel):
    """Response model for a conversation re-evaluation."""
    is_solved: bool
    needs_human: bool
    action: Optional[str] = None
    satisfaction_rating: Optional[int] = None
    reasoning: str
    assigned_to: Optional[str] = None
    reply: Optional[str] = None
    message_id: Optional[str] = None
    ai_disabled: bool = False

    @classmethod
    def from_domain(cls, result: ReevaluationResult) -> "ReevaluationResponse":
        return cls(
            is_solved=result.is_solved,
            needs_human=result.needs_human,
            action=result.action.value if result.action else None,
            satisfaction_rating=result.satisfaction_rating,
            reasoning=result.reasoning,
            assigned_to=result.assigned_to,
            reply=result.reply,
            message_id=result.message_id,
            ai_disabled=result.ai_disabled,
        )
