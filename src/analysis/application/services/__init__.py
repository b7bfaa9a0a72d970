"""
Analysis Stage Services
=======================

One coordinator per pipeline stage, plus the orchestrator composing them.
"""

from src.analysis.application.services.conversation import ConversationReevaluationCoordinator
from src.analysis.application.services.intake import ACKNOWLEDGEMENT, IntakeGate, IntakeOutcome
from src.analysis.application.services.pipeline import AnalysisOutcome, AnalysisPipeline
from src.analysis.application.services.response import ResponseSynthesisCoordinator
from src.analysis.application.services.retrieval import RetrievalResult, VectorRetrievalCoordinator
from src.analysis.application.services.triage import (
    FixedAssignmentPolicy,
    OracleAssignmentPolicy,
    TriageCoordinator,
)

__all__ = [
    "ACKNOWLEDGEMENT",
    "IntakeGate",
    "IntakeOutcome",
    "VectorRetrievalCoordinator",
    "RetrievalResult",
    "TriageCoordinator",
    "FixedAssignmentPolicy",
    "OracleAssignmentPolicy",
    "ResponseSynthesisCoordinator",
    "ConversationReevaluationCoordinator",
    "AnalysisPipeline",
    "AnalysisOutcome",
]
