"""
Inquiry Analysis Service - Main Application
===========================================

AI-assisted triage pipeline for customer support inquiries.

Modules:
- Analysis: Intake screening, context retrieval, triage, response
  synthesis and conversation re-evaluation

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Stage coordinators, contracts and DTOs
- Domain: Immutable session, decisions and prompt builders
- Infrastructure: Database, LLM, vector store
"""

import random
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

# Configuration and Core
from src.config import Settings, settings
from src.core import ApplicationException, ConfigurationException, VectorStoreException

# Infrastructure
from src.infrastructure.database import (
    close_database,
    create_tables,
    get_engine,
    get_session_maker,
    init_database,
)
from src.infrastructure.llm import create_llm_client
from src.infrastructure.vectorstore import MilvusVectorStore

# Analysis Module
from src.analysis.application import (
    AnalysisPipeline,
    ConversationReevaluationCoordinator,
    FixedAssignmentPolicy,
    IntakeGate,
    OracleAssignmentPolicy,
    ResponseSynthesisCoordinator,
    TriageCoordinator,
    VectorRetrievalCoordinator,
)
from src.analysis.infrastructure import (
    MilvusSemanticSearch,
    SQLAlchemyAnalysisSessionRepository,
    SQLAlchemyContextProvider,
    SQLAlchemyMessageGateway,
    SQLAlchemyTicketGateway,
    StructuredOracle,
)
from src.analysis.interfaces import analysis_router

# Shared
from src.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    MetricsMiddleware,
    application_exception_handler,
    global_exception_handler,
    request_validation_exception_handler,
)
from src.shared.infrastructure.grafana import init_grafana_exporter
from src.shared.infrastructure.logging import get_logger, setup_logging

logger = get_logger(__name__)


def build_services(app: FastAPI, config: Settings, session_maker) -> None:
    """
    Wire the pipeline and store it on ``app.state``.

    Raises:
        ConfigurationException: If the oracle provider is not configured
    """
    metrics = init_grafana_exporter(
        host=config.grafana_host,
        api_key=config.grafana_api_key,
        instance_id=config.grafana_instance_id,
        service_name=config.app_name,
        service_version=config.app_version,
        environment=config.environment,
    )
    llm_client = create_llm_client(config, metrics)
    oracle = StructuredOracle(llm_client, temperature=config.llm_temperature, max_tokens=config.llm_max_tokens)

    vector_store = MilvusVectorStore(
        uri=config.zilliz_uri,
        api_key=config.zilliz_api_key,
        collection_name=config.milvus_collection_name,
        dimension=config.embedding_dimension,
    )

    sessions = SQLAlchemyAnalysisSessionRepository(session_maker)
    tickets = SQLAlchemyTicketGateway(session_maker)
    messages = SQLAlchemyMessageGateway(session_maker)
    context_provider = SQLAlchemyContextProvider(session_maker, sessions, messages)

    if config.assignment_policy == "oracle":
        assignment_policy = OracleAssignmentPolicy(oracle)
    else:
        assignment_policy = FixedAssignmentPolicy()

    app.state.llm_client = llm_client
    app.state.vector_store = vector_store
    app.state.pipeline = AnalysisPipeline(
        intake=IntakeGate(oracle, sessions, tickets),
        retrieval=VectorRetrievalCoordinator(
            oracle,
            MilvusSemanticSearch(vector_store, llm_client),
            sessions,
            top_k=config.top_k_results,
            similarity_threshold=config.similarity_threshold,
            max_phrases=config.max_search_phrases,
            score_relevance=config.relevance_scoring_enabled,
        ),
        triage=TriageCoordinator(oracle, sessions, tickets, assignment_policy),
        synthesis=ResponseSynthesisCoordinator(
            oracle, sessions, messages, temperature=config.response_temperature
        ),
        sessions=sessions,
        auto_continue=config.pipeline_auto_continue,
        metrics=metrics,
    )
    app.state.reevaluation = ConversationReevaluationCoordinator(
        oracle,
        context_provider,
        tickets,
        messages,
        rng=random.SystemRandom(),
        temperature=config.response_temperature,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database and create tables
    3. Wire oracle, vector store and pipeline
    4. Connect to Milvus

    SHUTDOWN:
    1. Close database connections

    Services already present on ``app.state`` are left alone.
    """
    config: Settings = app.state.settings

    if getattr(app.state, "pipeline", None) is not None:
        yield
        return

    # === STARTUP ===
    setup_logging(config.log_level, config.environment)
    logger.info("Starting Inquiry Analysis Service", extra={
        "version": config.app_version,
        "environment": config.environment
    })

    logger.info("Initializing database")
    init_database(config.database_url)

    # Create tables (for development - use migrations in production)
    logger.info("Creating database tables")
    try:
        await create_tables()
    except (SQLAlchemyError, OSError) as e:
        logger.warning(f"Database not available - running in degraded mode: {e}")

    try:
        build_services(app, config, get_session_maker())
    except ConfigurationException as e:
        logger.warning(f"Analysis pipeline not available: {e.message}")
        app.state.pipeline = None
        app.state.reevaluation = None

    vector_store: Optional[MilvusVectorStore] = getattr(app.state, "vector_store", None)
    if vector_store is not None:
        logger.info("Initializing Milvus vector store")
        try:
            await vector_store.initialize()
        except VectorStoreException as e:
            logger.warning(f"Vector store not available: {e.message}")

    logger.info("Inquiry Analysis Service started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down Inquiry Analysis Service")
    await close_database()
    logger.info("Inquiry Analysis Service shutdown complete")


def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    """Build the FastAPI application."""
    config = app_settings or settings

    app = FastAPI(
        title="Inquiry Analysis API",
        description="""
    ## AI-Assisted Support Inquiry Triage

    Each inquiry moves through four stages, checkpointed on an analysis session:

    1. **Intake** - language detection and validity screening; opens a ticket or replies with a rejection
    2. **Retrieval** - search phrases, organization-scoped semantic search, de-duplicated context
    3. **Triage** - priority, tags and assignment need, mirrored onto the ticket
    4. **Response** - first AI reply posted to the ticket

    Follow-up customer messages go through **conversation re-evaluation**, which
    closes the ticket, hands it to a human, or keeps the conversation going.

    ### Authentication

    When `SERVICE_API_KEY` is set, every `/analysis` endpoint requires
    `Authorization: Bearer <key>`.
    """,
        version=config.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )
    app.state.settings = config

    # === CORS Middleware ===
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # === Custom Middleware (from shared) ===
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(CorrelationIDMiddleware)

    app.add_exception_handler(ApplicationException, application_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    # === Include Module Routers ===
    app.include_router(analysis_router)

    @app.get("/health", tags=["Health"], responses={
        200: {
            "description": "Service is healthy",
            "content": {
                "application/json": {
                    "example": {
                        "status": "healthy",
                        "version": "1.0.0",
                        "environment": "development",
                        "checks": {
                            "database": "connected",
                            "pipeline": "available",
                            "vector_store": "available (1200 chunks)"
                        }
                    }
                }
            }
        }
    })
    async def health_check(request: Request):
        """
        Health check endpoint for load balancers and orchestrators.

        Reports database connectivity, pipeline wiring and vector store status.
        """
        checks = {
            "database": "not_initialized",
            "pipeline": "available" if getattr(request.app.state, "pipeline", None) else "not_configured",
            "vector_store": "not_configured",
        }

        try:
            engine = get_engine()
        except RuntimeError:
            engine = None
        if engine is not None:
            try:
                async with engine.connect() as conn:
                    await conn.execute(text("SELECT 1"))
                checks["database"] = "connected"
            except SQLAlchemyError as e:
                checks["database"] = f"error: {e.__class__.__name__}"

        vector_store = getattr(request.app.state, "vector_store", None)
        if vector_store is not None:
            try:
                count = await vector_store.get_document_count()
                checks["vector_store"] = f"available ({count} chunks)"
            except VectorStoreException as e:
                checks["vector_store"] = f"error: {e.message}"

        return {
            "status": "healthy",
            "version": config.app_version,
            "environment": config.environment,
            "checks": checks
        }

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint with API information."""
        return {
            "service": "Inquiry Analysis Service",
            "version": config.app_version,
            "architecture": "Clean Architecture / Modular Monolith",
            "docs": "/docs",
            "health": "/health",
            "modules": {
                "analysis": {
                    "prefix": "/analysis",
                    "endpoints": [
                        "POST /analysis/inquiries - Screen an inquiry and run the pipeline",
                        "POST /analysis/retrieval - Retrieve context for a session",
                        "POST /analysis/triage - Priority, tags and assignment",
                        "POST /analysis/response - Post the AI response",
                        "POST /analysis/conversations/reevaluate - Re-evaluate a conversation",
                        "GET /analysis/sessions/{id} - Get an analysis session"
                    ]
                }
            }
        }

    return app


app = create_app()


# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )
