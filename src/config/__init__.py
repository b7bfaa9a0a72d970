"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from enum import Enum
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="inquiry-analysis", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/support",
        description="PostgreSQL connection URL (async)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== Oracle (LLM) ==========
    llm_provider: str = Field(
        default="openai",
        description="Structured-output provider: openai, zai or mock"
    )
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key")
    openai_base_url: Optional[str] = Field(
        default=None,
        description="Override for OpenAI-compatible endpoints"
    )
    zai_api_key: Optional[str] = Field(default=None, description="Z.AI API key")
    llm_model: str = Field(
        default="gpt-4o-mini",
        description="Model used for every structured-output call"
    )
    embedding_model: str = Field(
        default="text-embedding-3-small",
        description="Embedding model for semantic retrieval queries"
    )
    llm_temperature: float = Field(
        default=0.0,
        description="Temperature for screening, triage and conversation analysis",
        ge=0.0,
        le=2.0
    )
    response_temperature: float = Field(
        default=0.7,
        description="Temperature for customer-facing response synthesis",
        ge=0.0,
        le=2.0
    )
    llm_max_tokens: int = Field(
        default=1000,
        description="Max tokens for a single oracle call",
        ge=1,
        le=8000
    )

    # ========== Zilliz Cloud (Managed Milvus) ==========
    zilliz_uri: str = Field(default="", description="Zilliz Cloud cluster URI")
    zilliz_api_key: str = Field(default="", description="Zilliz Cloud API key")
    milvus_collection_name: str = Field(
        default="document_chunks",
        description="Milvus collection holding embedded document chunks"
    )
    embedding_dimension: int = Field(
        default=1536,
        description="Embedding vector dimension",
        ge=128
    )

    # ========== Retrieval ==========
    top_k_results: int = Field(
        default=5,
        description="Chunks requested per search phrase",
        ge=1,
        le=20
    )
    similarity_threshold: float = Field(
        default=0.6,
        description="Minimum cosine similarity for a chunk to be kept",
        ge=0.0,
        le=1.0
    )
    max_search_phrases: int = Field(
        default=3,
        description="Upper bound on phrases searched per inquiry",
        ge=1,
        le=5
    )
    relevance_scoring_enabled: bool = Field(
        default=False,
        description="Score each merged chunk with the chunk-relevance contract"
    )

    # ========== Pipeline ==========
    assignment_policy: str = Field(
        default="fixed",
        description="Assignment determination: fixed or oracle"
    )
    pipeline_auto_continue: bool = Field(
        default=True,
        description="Run retrieval, triage and response right after an accepted intake"
    )

    # ========== HTTP ==========
    service_api_key: Optional[str] = Field(
        default=None,
        description="Bearer key required on pipeline endpoints (disabled when unset)"
    )
    cors_origins: List[str] = Field(
        default=["*"],
        description="Allowed CORS origins"
    )

    # ========== Grafana OTLP Metrics ==========
    grafana_host: Optional[str] = Field(
        default=None,
        description="Grafana OTLP gateway URL (e.g., https://otlp-gateway-prod-ap-south-1.grafana.net)"
    )
    grafana_api_key: Optional[str] = Field(
        default=None,
        description="Grafana API key for OTLP authentication"
    )
    grafana_instance_id: Optional[str] = Field(
        default=None,
        description="Grafana instance ID for OTLP authentication"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production", "test"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("llm_provider")
    @classmethod
    def validate_llm_provider(cls, v: str) -> str:
        allowed = {"openai", "zai", "mock"}
        v = v.lower()
        if v not in allowed:
            raise ValueError(f"llm_provider must be one of {allowed}")
        return v

    @field_validator("assignment_policy")
    @classmethod
    def validate_assignment_policy(cls, v: str) -> str:
        allowed = {"fixed", "oracle"}
        v = v.lower()
        if v not in allowed:
            raise ValueError(f"assignment_policy must be one of {allowed}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class SessionStatus(str, Enum):
    """Analysis session lifecycle. Transitions only move forward."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class Priority(str, Enum):
    """Ticket priority levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class ValidityCategory(str, Enum):
    """Inquiry screening outcomes."""
    VALID_INQUIRY = "valid_inquiry"
    SPAM = "spam"
    HARASSMENT = "harassment"
    OFF_TOPIC = "off_topic"
    UNCLEAR = "unclear"


class ConversationAction(str, Enum):
    """Actions the re-evaluation step may take on an open ticket."""
    CLOSE_TICKET = "close_ticket"
    ASSIGN_HUMAN = "assign_human"
    CONTINUE_CONVERSATION = "continue_conversation"


class SenderType(str, Enum):
    """Authors of ticket messages."""
    CUSTOMER = "customer"
    EMPLOYEE = "employee"
    SYSTEM = "system"
    AI = "ai"


class TicketStatus(str, Enum):
    """Ticket lifecycle statuses."""
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class ErrorType(str, Enum):
    """Typed causes recorded on a failed or rejected session."""
    LANGUAGE_DETECTION_FAILED = "language_detection_failed"
    VALIDITY_CHECK_FAILED = "validity_check_failed"
    REJECTION_RESPONSE_FAILED = "rejection_response_failed"
    INQUIRY_REJECTED = "inquiry_rejected"
    TICKET_CREATION_FAILED = "ticket_creation_failed"
    VECTOR_SEARCH_FAILED = "vector_search_failed"
    PRIORITY_CLASSIFICATION_FAILED = "priority_classification_failed"
    TAG_GENERATION_FAILED = "tag_generation_failed"
    ASSIGNMENT_FAILED = "assignment_failed"
    TRIAGE_FAILED = "triage_failed"
    RESPONSE_GENERATION_FAILED = "response_generation_failed"
    MESSAGE_POST_FAILED = "message_post_failed"


class OracleSchema(str, Enum):
    """Structured-output contracts understood by the oracle."""
    LANGUAGE_DETECTION = "language-detection"
    VALIDITY_CHECK = "validity-check"
    ERROR_RESPONSE = "error-response"
    SEARCH_PHRASES = "search-phrases"
    CHUNK_RELEVANCE = "chunk-relevance"
    PRIORITY = "priority"
    TAGS = "tags"
    ASSIGNMENT = "assignment"
    RESPONSE_SYNTHESIS = "response-synthesis"
    CONVERSATION_ANALYSIS = "conversation-analysis"
    CONVERSATION_REPLY = "conversation-reply"


NO_RELEVANT_RESULTS = "no_relevant_results"

# ========== Status groups ==========

TERMINAL_STATUSES = [SessionStatus.COMPLETED, SessionStatus.ERROR]
