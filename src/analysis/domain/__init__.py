"""
Analysis Domain Layer
=====================

Domain layer for the inquiry analysis module.

Contains:
- Entities: AnalysisSession and the immutable stage results it carries
- Policies: pure ranking, normalization and selection rules
- Prompts: instructions for each oracle contract

This layer is framework-agnostic and contains pure business logic.
"""

from src.analysis.domain.entities import (
    AnalysisSession,
    AssignmentDecision,
    ContextSnippet,
    ConversationContext,
    ConversationDecision,
    Employee,
    LanguageAnalysis,
    MessageRecord,
    ProcessingResults,
    ReevaluationResult,
    ResponseResult,
    SessionError,
    TicketDraft,
    TicketRecord,
    Translation,
    TriageDecision,
    ValidityAnalysis,
)

__all__ = [
    "AnalysisSession",
    "AssignmentDecision",
    "ContextSnippet",
    "ConversationContext",
    "ConversationDecision",
    "Employee",
    "LanguageAnalysis",
    "MessageRecord",
    "ProcessingResults",
    "ReevaluationResult",
    "ResponseResult",
    "SessionError",
    "TicketDraft",
    "TicketRecord",
    "Translation",
    "TriageDecision",
    "ValidityAnalysis",
]
