"""
Analysis Controllers (API Routes)
=================================

FastAPI routes for the inquiry analysis pipeline.

One endpoint per stage. Controllers validate the body, check the service
key and delegate to the pipeline; errors are rendered by the shared
exception handlers.
"""

import hmac
import time
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request

from src.core import AuthenticationException, AuthorizationException
from src.analysis.application import (
    AnalysisPipeline,
    AnalyzeInquiryRequest,
    AnalyzeInquiryResponse,
    ConversationReevaluationCoordinator,
    ReevaluateRequest,
    ReevaluationResponse,
    RetrievalResponse,
    SessionResponse,
    SessionStageRequest,
    SnippetInfo,
    SynthesisResponse,
    TriageResponse,
)
from src.analysis.application.dto import ResponseInfo
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/analysis", tags=["Inquiry Analysis"])


# ========== Example payloads for Swagger ==========

ANALYZE_REQUEST_EXAMPLE = {
    "inquiryText": "My password reset link is not working, urgent!",
    "customerEmail": "jane@example.com",
    "customerName": "Jane Doe",
    "organizationId": "5f0c6a8e-2b7d-4f0e-9f51-0d8f7a1c2e33"
}

ANALYZE_RESPONSE_EXAMPLE = {
    "sessionId": "0b6f3f4e-9d0a-4c44-8f0e-5c3e1b7e2a10",
    "ticketId": "a3c1d2e4-7b6f-4e1a-9c0d-2f5e8b7a6c41",
    "accepted": True,
    "message": "Thanks for reaching out! We've opened a ticket and are looking into it now.",
    "status": "completed",
    "response": {
        "response": "On it! Password reset links expire after 30 minutes [1]. Request a new one from the sign-in page.",
        "reasoning": "Documentation explains the link expiry.",
        "nextSteps": ["Request a new reset link", "Use it within 30 minutes"]
    },
    "processingTimeMs": 4200
}


# ========== Dependencies ==========

async def require_service_key(
    request: Request,
    authorization: Optional[str] = Header(None)
) -> None:
    """
    Check the bearer service key.

    Disabled when no key is configured.
    """
    expected = request.app.state.settings.service_api_key
    if not expected:
        return
    if not authorization or not authorization.lower().startswith("bearer "):
        raise AuthenticationException("Missing bearer token")
    token = authorization[len("bearer "):].strip()
    if not hmac.compare_digest(token.encode(), expected.encode()):
        raise AuthorizationException("Invalid service key")


def get_pipeline(request: Request) -> AnalysisPipeline:
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise HTTPException(status_code=503, detail="Analysis pipeline not available")
    return pipeline


def get_reevaluation(request: Request) -> ConversationReevaluationCoordinator:
    coordinator = getattr(request.app.state, "reevaluation", None)
    if coordinator is None:
        raise HTTPException(status_code=503, detail="Conversation re-evaluation not available")
    return coordinator


# ========== Route Handlers ==========

@router.post(
    "/inquiries",
    response_model=AnalyzeInquiryResponse,
    response_model_by_alias=True,
    dependencies=[Depends(require_service_key)],
    summary="Submit a customer inquiry",
    description="""
    Screen an inquiry and, when accepted, open a ticket and run the rest of
    the pipeline (retrieval, triage, response).

    Rejected inquiries get a friendly reply and no ticket. Failures after
    intake are recorded on the session; the customer still gets the
    acknowledgement.
    """,
    responses={
        200: {
            "description": "Inquiry screened",
            "content": {"application/json": {"example": ANALYZE_RESPONSE_EXAMPLE}}
        },
        400: {"description": "Malformed request"},
        401: {"description": "Missing service key"},
        403: {"description": "Invalid service key"},
        500: {"description": "Oracle or persistence failure during intake"}
    },
    openapi_extra={"requestBody": {"content": {"application/json": {"example": ANALYZE_REQUEST_EXAMPLE}}}}
)
async def analyze_inquiry(
    request: Request,
    payload: AnalyzeInquiryRequest,
    pipeline: AnalysisPipeline = Depends(get_pipeline)
):
    start_time = time.perf_counter()
    correlation_id = getattr(request.state, "correlation_id", "unknown")

    logger.info(
        "Analyzing inquiry",
        extra={
            "correlation_id": correlation_id,
            "organization_id": str(payload.organization_id),
            "inquiry_length": len(payload.inquiry_text)
        }
    )

    outcome = await pipeline.analyze(
        inquiry=payload.inquiry_text,
        customer_email=str(payload.customer_email),
        customer_name=payload.customer_name,
        organization_id=str(payload.organization_id),
    )

    return AnalyzeInquiryResponse(
        session_id=outcome.session.id,
        ticket_id=outcome.session.ticket_id,
        accepted=outcome.accepted,
        message=outcome.message,
        status=outcome.session.status.value,
        response=ResponseInfo.from_domain(outcome.response) if outcome.response else None,
        processing_time_ms=int((time.perf_counter() - start_time) * 1000),
    )


@router.post(
    "/retrieval",
    response_model=RetrievalResponse,
    response_model_by_alias=True,
    dependencies=[Depends(require_service_key)],
    summary="Retrieve documentation context for a session"
)
async def run_retrieval(
    payload: SessionStageRequest,
    pipeline: AnalysisPipeline = Depends(get_pipeline)
):
    session = await pipeline.run_retrieval(str(payload.session_id), str(payload.organization_id))
    return RetrievalResponse(
        session_id=session.id,
        search_phrases=list(session.search_phrases),
        snippets=[SnippetInfo.from_domain(s) for s in session.vector_results],
        note=session.retrieval_note,
    )


@router.post(
    "/triage",
    response_model=TriageResponse,
    response_model_by_alias=True,
    dependencies=[Depends(require_service_key)],
    summary="Classify priority, tags and assignment need"
)
async def run_triage(
    payload: SessionStageRequest,
    pipeline: AnalysisPipeline = Depends(get_pipeline)
):
    session, decision = await pipeline.run_triage(str(payload.session_id), str(payload.organization_id))
    return TriageResponse.from_domain(session, decision)


@router.post(
    "/response",
    response_model=SynthesisResponse,
    response_model_by_alias=True,
    dependencies=[Depends(require_service_key)],
    summary="Generate and post the AI response",
    description="Idempotent: a completed session returns its stored response without posting again."
)
async def run_synthesis(
    payload: SessionStageRequest,
    pipeline: AnalysisPipeline = Depends(get_pipeline)
):
    session, result = await pipeline.run_synthesis(str(payload.session_id), str(payload.organization_id))
    return SynthesisResponse(
        session_id=session.id,
        status=session.status.value,
        response=result.response,
        reasoning=result.reasoning,
        next_steps=list(result.next_steps),
    )


@router.post(
    "/conversations/reevaluate",
    response_model=ReevaluationResponse,
    response_model_by_alias=True,
    dependencies=[Depends(require_service_key)],
    summary="Re-evaluate a conversation after a new customer message",
    description="""
    Decide whether to close the ticket, hand it to a human or keep the
    conversation going, then post one explanatory AI message.

    Tickets with AI handling disabled are left untouched (`aiDisabled: true`).
    """
)
async def reevaluate_conversation(
    request: Request,
    payload: ReevaluateRequest,
    coordinator: ConversationReevaluationCoordinator = Depends(get_reevaluation)
):
    correlation_id = getattr(request.state, "correlation_id", "unknown")
    logger.info(
        "Re-evaluating conversation",
        extra={"correlation_id": correlation_id, "ticket_id": str(payload.ticket_id)}
    )

    result = await coordinator.reevaluate(
        ticket_id=str(payload.ticket_id),
        organization_id=str(payload.organization_id),
        new_message_id=str(payload.new_message_id) if payload.new_message_id else None,
    )
    return ReevaluationResponse.from_domain(result)


@router.get(
    "/sessions/{session_id}",
    response_model=SessionResponse,
    response_model_by_alias=True,
    dependencies=[Depends(require_service_key)],
    summary="Get an analysis session"
)
async def get_session(
    session_id: UUID,
    organization_id: UUID = Query(..., alias="organizationId"),
    pipeline: AnalysisPipeline = Depends(get_pipeline)
):
    session = await pipeline.get_session(str(session_id), str(organization_id))
    return SessionResponse.from_domain(session)


# Export router for inclusion in main app
analysis_router = router
