"""In-memory fakes and factories shared by the test suite."""

import json
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional
from uuid import uuid4

from src.config import OracleSchema, Priority, SenderType, TicketStatus
from src.core import LLMException, RepositoryException, ResourceNotFoundException
from src.analysis.application.contracts import OracleContract, decode_oracle_output
from src.analysis.application.ports import (
    IAnalysisSessionRepository,
    IContextProvider,
    IMessageGateway,
    IOracle,
    ISemanticSearch,
    ITicketGateway,
)
from src.analysis.domain import (
    AnalysisSession,
    ContextSnippet,
    ConversationContext,
    Employee,
    MessageRecord,
    TicketDraft,
    TicketRecord,
)

ORG_ID = "5f0c6a8e-2b7d-4f0e-9f51-0d8f7a1c2e33"
PASSWORD_RESET_INQUIRY = "My password reset link is not working, urgent!"


# ─── In-memory fakes ────────────────────────────────────────────────


class FakeOracle(IOracle):
    """
    Scripted oracle.

    Each schema maps to a payload dict, a list of payloads consumed in order,
    or an exception instance to raise. Payloads go through the real decode
    step, so a malformed payload fails exactly like a provider answer would.
    """

    def __init__(self, script: Optional[Dict[OracleSchema, object]] = None):
        self.script: Dict[OracleSchema, object] = dict(script or {})
        self.calls: List[dict] = []

    def calls_for(self, schema: OracleSchema) -> List[dict]:
        return [c for c in self.calls if c["schema"] == schema]

    async def invoke(
        self,
        schema: OracleSchema,
        system_instructions: str,
        user_content: str,
        temperature: Optional[float] = None
    ) -> OracleContract:
        self.calls.append({
            "schema": schema,
            "system": system_instructions,
            "user": user_content,
            "temperature": temperature,
        })
        if schema not in self.script:
            raise LLMException(f"No scripted answer for {schema.value}")
        entry = self.script[schema]
        if isinstance(entry, list):
            entry = entry.pop(0)
        if isinstance(entry, Exception):
            raise entry
        raw = entry if isinstance(entry, str) else json.dumps(entry)
        return decode_oracle_output(schema, raw)


class FakeSearch(ISemanticSearch):
    """Returns canned snippets per phrase and records every query."""

    def __init__(self, results: Optional[Dict[str, List[ContextSnippet]]] = None, error: Exception = None):
        self.results = results or {}
        self.error = error
        self.queries: List[dict] = []

    async def search(
        self,
        query: str,
        organization_id: str,
        limit: int,
        similarity_threshold: float
    ) -> List[ContextSnippet]:
        self.queries.append({
            "query": query,
            "organization_id": organization_id,
            "limit": limit,
            "threshold": similarity_threshold,
        })
        if self.error is not None:
            raise self.error
        hits = [s for s in self.results.get(query, []) if s.similarity >= similarity_threshold]
        return hits[:limit]


class InMemorySessionRepository(IAnalysisSessionRepository):
    """Session store that keeps every written version."""

    def __init__(self):
        self.sessions: Dict[str, AnalysisSession] = {}
        self.history: List[AnalysisSession] = []
        self.fail_saves = False

    async def add(self, session: AnalysisSession) -> None:
        self.sessions[session.id] = session
        self.history.append(session)

    async def save(self, session: AnalysisSession) -> None:
        if self.fail_saves:
            raise RepositoryException("database unavailable")
        self.sessions[session.id] = session
        self.history.append(session)

    async def get(self, session_id: str) -> Optional[AnalysisSession]:
        return self.sessions.get(session_id)

    async def get_latest_for_ticket(self, ticket_id: str) -> Optional[AnalysisSession]:
        linked = [s for s in self.sessions.values() if s.ticket_id == ticket_id]
        return max(linked, key=lambda s: s.created_at) if linked else None


class FakeTicketGateway(ITicketGateway):
    def __init__(self):
        self.tickets: Dict[str, TicketRecord] = {}
        self.tags: Dict[str, List[str]] = {}
        self.drafts: List[TicketDraft] = []
        self.updates: List[dict] = []
        self.fail_create = False
        self.fail_update = False

    async def create(self, draft: TicketDraft) -> TicketRecord:
        if self.fail_create:
            raise RepositoryException("ticket table unavailable")
        self.drafts.append(draft)
        ticket = TicketRecord(
            id=str(uuid4()),
            organization_id=draft.organization_id,
            title=draft.title,
            status=TicketStatus.OPEN,
            priority=draft.priority,
        )
        self.tickets[ticket.id] = ticket
        return ticket

    async def get(self, ticket_id: str) -> Optional[TicketRecord]:
        return self.tickets.get(ticket_id)

    async def update(self, ticket_id: str, **fields) -> TicketRecord:
        if self.fail_update:
            raise RepositoryException("ticket table unavailable")
        if ticket_id not in self.tickets:
            raise ResourceNotFoundException("Ticket", ticket_id)
        self.updates.append({"ticket_id": ticket_id, **fields})
        self.tickets[ticket_id] = replace(self.tickets[ticket_id], **fields)
        return self.tickets[ticket_id]

    async def replace_tags(self, ticket_id: str, organization_id: str, tag_names: List[str]) -> None:
        self.tags[ticket_id] = list(tag_names)


class FakeMessageGateway(IMessageGateway):
    def __init__(self):
        self.messages: List[MessageRecord] = []
        self.fail = False

    async def create(
        self,
        ticket_id: str,
        organization_id: str,
        content: str,
        sender_type: SenderType,
        metadata: dict
    ) -> MessageRecord:
        if self.fail:
            raise RepositoryException("message table unavailable")
        message = MessageRecord(
            id=str(uuid4()),
            ticket_id=ticket_id,
            content=content,
            sender_type=sender_type,
            created_at=datetime.now(timezone.utc),
            metadata=metadata,
        )
        self.messages.append(message)
        return message

    def for_ticket(self, ticket_id: str, sender_type: SenderType = None) -> List[MessageRecord]:
        return [
            m for m in self.messages
            if m.ticket_id == ticket_id and (sender_type is None or m.sender_type == sender_type)
        ]


class FakeContextProvider(IContextProvider):
    """Assembles context from the other fakes."""

    def __init__(
        self,
        tickets: FakeTicketGateway,
        messages: FakeMessageGateway,
        sessions: InMemorySessionRepository,
        employees: Optional[List[Employee]] = None
    ):
        self._tickets = tickets
        self._messages = messages
        self._sessions = sessions
        self.employees = list(employees or [])

    async def get_context(self, ticket_id: str, organization_id: str) -> ConversationContext:
        ticket = await self._tickets.get(ticket_id)
        if ticket is None:
            raise ResourceNotFoundException("Ticket", ticket_id)
        return ConversationContext(
            ticket=ticket,
            messages=tuple(self._messages.for_ticket(ticket_id)),
            session=await self._sessions.get_latest_for_ticket(ticket_id),
            employees=tuple(self.employees),
        )


# ─── Factories ──────────────────────────────────────────────────────


def make_snippet(document_id: str, similarity: float, content: str = None) -> ContextSnippet:
    return ContextSnippet(
        content=content or f"Documentation for {document_id}",
        document_id=document_id,
        similarity=similarity,
    )


def make_ticket(
    tickets: FakeTicketGateway,
    organization_id: str = ORG_ID,
    ai_enabled: bool = True
) -> TicketRecord:
    ticket = TicketRecord(
        id=str(uuid4()),
        organization_id=organization_id,
        title="Password reset link broken",
        status=TicketStatus.OPEN,
        priority=Priority.HIGH,
        ai_enabled=ai_enabled,
    )
    tickets.tickets[ticket.id] = ticket
    return ticket


def add_message(messages: FakeMessageGateway, ticket_id: str, content: str, sender: SenderType, minutes: int = 0):
    message = MessageRecord(
        id=str(uuid4()),
        ticket_id=ticket_id,
        content=content,
        sender_type=sender,
        created_at=datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc) + timedelta(minutes=minutes),
    )
    messages.messages.append(message)
    return message


def password_reset_script() -> Dict[OracleSchema, object]:
    """Oracle answers for the happy-path password reset inquiry."""
    return {
        OracleSchema.LANGUAGE_DETECTION: {
            "languageCode": "en",
            "confidence": 0.99,
            "commonWords": ["my", "is", "not"],
            "scriptAnalysis": "Latin script",
            "translation": {"needed": False},
        },
        OracleSchema.VALIDITY_CHECK: {
            "isValid": True,
            "reason": "Customer reports a broken password reset link",
            "category": "valid_inquiry",
            "confidence": 0.95,
        },
        OracleSchema.SEARCH_PHRASES: {
            "searchPhrases": ["password reset link", "reset email expired"],
            "reasoning": "Core feature and likely cause",
        },
        OracleSchema.PRIORITY: {
            "priority": "high",
            "reasoning": "Customer is locked out of the account",
        },
        OracleSchema.TAGS: {
            "tags": ["password-reset", "Account Access"],
            "reasoning": "Authentication problem",
        },
        OracleSchema.RESPONSE_SYNTHESIS: {
            "response": "On it! Reset links expire after 30 minutes [1]. Please request a new link.",
            "reasoning": "Documentation covers link expiry",
            "nextSteps": ["Request a new reset link", "Check the spam folder"],
        },
    }


def password_reset_search() -> FakeSearch:
    return FakeSearch({
        "password reset link": [
            make_snippet("doc-reset", 0.91, "Password reset links expire after 30 minutes."),
            make_snippet("doc-login", 0.72, "Signing in with SSO."),
        ],
        "reset email expired": [
            make_snippet("doc-reset", 0.88, "Password reset links expire after 30 minutes."),
            make_snippet("doc-email", 0.65, "Troubleshooting email delivery."),
        ],
    })


