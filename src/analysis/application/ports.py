"""
Analysis Application Ports
==========================

Interfaces the stages depend on. Concrete adapters live in the
infrastructure layer; tests substitute in-memory fakes.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from src.config import OracleSchema, SenderType
from src.analysis.application.contracts import OracleContract
from src.analysis.domain import (
    AnalysisSession,
    AssignmentDecision,
    ContextSnippet,
    ConversationContext,
    MessageRecord,
    TicketDraft,
    TicketRecord,
)


class IOracle(ABC):
    """Structured-output inference."""

    @abstractmethod
    async def invoke(
        self,
        schema: OracleSchema,
        system_instructions: str,
        user_content: str,
        temperature: Optional[float] = None
    ) -> OracleContract:
        """
        Run one call and decode the answer against ``schema``.

        Raises:
            LLMException: On provider failure or non-conformant output
        """


class ISemanticSearch(ABC):
    """Organization-scoped similarity search over documentation chunks."""

    @abstractmethod
    async def search(
        self,
        query: str,
        organization_id: str,
        limit: int,
        similarity_threshold: float
    ) -> List[ContextSnippet]:
        """
        Return at most ``limit`` chunks at or above the threshold.

        Raises:
            VectorStoreException: If the backend fails
        """


class IAnalysisSessionRepository(ABC):
    """Persistence for analysis sessions. Each call is one atomic write or read."""

    @abstractmethod
    async def add(self, session: AnalysisSession) -> None:
        """Insert a new session."""

    @abstractmethod
    async def save(self, session: AnalysisSession) -> None:
        """Overwrite the stored session (last write wins)."""

    @abstractmethod
    async def get(self, session_id: str) -> Optional[AnalysisSession]:
        """Get session by id."""

    @abstractmethod
    async def get_latest_for_ticket(self, ticket_id: str) -> Optional[AnalysisSession]:
        """Most recent session linked to a ticket."""


class ITicketGateway(ABC):
    """Ticket Management collaborator."""

    @abstractmethod
    async def create(self, draft: TicketDraft) -> TicketRecord:
        """Open a ticket for the draft's customer."""

    @abstractmethod
    async def get(self, ticket_id: str) -> Optional[TicketRecord]:
        """Get ticket by id."""

    @abstractmethod
    async def update(self, ticket_id: str, **fields) -> TicketRecord:
        """
        Apply a partial update.

        Accepted fields: status, priority, assigned_to, ai_enabled,
        satisfaction_rating.
        """

    @abstractmethod
    async def replace_tags(self, ticket_id: str, organization_id: str, tag_names: List[str]) -> None:
        """Clear the ticket's tag links and link exactly ``tag_names``."""


class IMessageGateway(ABC):
    """Messaging collaborator."""

    @abstractmethod
    async def create(
        self,
        ticket_id: str,
        organization_id: str,
        content: str,
        sender_type: SenderType,
        metadata: dict
    ) -> MessageRecord:
        """Append a message to a ticket."""


class IContextProvider(ABC):
    """Conversation context for re-evaluation."""

    @abstractmethod
    async def get_context(self, ticket_id: str, organization_id: str) -> ConversationContext:
        """
        Ticket, ordered message history, latest session and active roster.

        Raises:
            ResourceNotFoundException: If the ticket does not exist
        """


class IAssignmentPolicy(ABC):
    """Decides whether a triaged ticket needs a human right away."""

    @abstractmethod
    async def decide(self, session: AnalysisSession) -> AssignmentDecision:
        """Return the assignment decision for a session."""
