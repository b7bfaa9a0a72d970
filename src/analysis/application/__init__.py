"""
Analysis Application Layer
==========================

Application layer for the inquiry analysis module.

Contains:
- Contracts: Typed oracle outputs
- Ports: Interfaces implemented by infrastructure adapters
- Services: Stage coordinators and the pipeline orchestrator
- DTOs: Data transfer objects for API serialization
"""

from src.analysis.application.contracts import (
    ORACLE_CONTRACTS,
    OracleContract,
    decode_oracle_output,
    function_definition,
)
from src.analysis.application.dto import (
    AnalyzeInquiryRequest,
    AnalyzeInquiryResponse,
    ReevaluateRequest,
    ReevaluationResponse,
    RetrievalResponse,
    SessionResponse,
    SessionStageRequest,
    SnippetInfo,
    SynthesisResponse,
    TriageResponse,
)
from src.analysis.application.ports import (
    IAnalysisSessionRepository,
    IAssignmentPolicy,
    IContextProvider,
    IMessageGateway,
    IOracle,
    ISemanticSearch,
    ITicketGateway,
)
from src.analysis.application.services import (
    AnalysisOutcome,
    AnalysisPipeline,
    ConversationReevaluationCoordinator,
    FixedAssignmentPolicy,
    IntakeGate,
    OracleAssignmentPolicy,
    ResponseSynthesisCoordinator,
    TriageCoordinator,
    VectorRetrievalCoordinator,
)

__all__ = [
    # Contracts
    "ORACLE_CONTRACTS",
    "OracleContract",
    "decode_oracle_output",
    "function_definition",
    # DTOs
    "AnalyzeInquiryRequest",
    "AnalyzeInquiryResponse",
    "SessionStageRequest",
    "ReevaluateRequest",
    "ReevaluationResponse",
    "RetrievalResponse",
    "SessionResponse",
    "SnippetInfo",
    "SynthesisResponse",
    "TriageResponse",
    # Ports
    "IOracle",
    "ISemanticSearch",
    "IAnalysisSessionRepository",
    "ITicketGateway",
    "IMessageGateway",
    "IContextProvider",
    "IAssignmentPolicy",
    # Services
    "IntakeGate",
    "VectorRetrievalCoordinator",
    "TriageCoordinator",
    "FixedAssignmentPolicy",
    "OracleAssignmentPolicy",
    "ResponseSynthesisCoordinator",
    "ConversationReevaluationCoordinator",
    "AnalysisPipeline",
    "AnalysisOutcome",
]
