"""
Triage Coordinator
==================

Derives priority, tags and assignment need for an accepted inquiry.

The session is checkpointed after every sub-decision, so a failure part way
through leaves the earlier decisions visible on the errored session.
"""

from typing import Tuple

from src.config import ErrorType, OracleSchema, Priority, SessionStatus
from src.core import ApplicationException, LLMException, SessionStateException
from src.analysis.application.contracts import AssignmentOutput, PriorityOutput, TagsOutput
from src.analysis.application.ports import (
    IAnalysisSessionRepository,
    IAssignmentPolicy,
    IOracle,
    ITicketGateway,
)
from src.analysis.application.services.checkpoints import record_failure
from src.analysis.domain import AnalysisSession, AssignmentDecision, TriageDecision
from src.analysis.domain.policies import normalize_tags
from src.analysis.domain.prompts import AssignmentPrompt, PriorityPrompt, TagPrompt
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

PLACEHOLDER_ASSIGNMENT_REASONING = (
    "Automatic assignment is not enabled; the AI assistant keeps handling this ticket."
)


class FixedAssignmentPolicy(IAssignmentPolicy):
    """Never asks for a human. Placeholder until routing rules exist."""

    async def decide(self, session: AnalysisSession) -> AssignmentDecision:
        return AssignmentDecision(needs_assignment=False, reasoning=PLACEHOLDER_ASSIGNMENT_REASONING)


class OracleAssignmentPolicy(IAssignmentPolicy):
    """Asks the oracle through the ``assignment`` contract."""

    def __init__(self, oracle: IOracle):
        self._oracle = oracle

    async def decide(self, session: AnalysisSession) -> AssignmentDecision:
        results = session.processing_results
        output: AssignmentOutput = await self._oracle.invoke(
            OracleSchema.ASSIGNMENT,
            AssignmentPrompt.SYSTEM_PROMPT,
            AssignmentPrompt.build_prompt(session.inquiry, results.priority, results.tags or ()),
        )
        return AssignmentDecision(needs_assignment=output.needs_assignment, reasoning=output.reasoning)


class TriageCoordinator:
    """
    Third pipeline stage.

    When the session has a ticket, priority and tags are mirrored onto it
    (tags with replace-all semantics).
    """

    def __init__(
        self,
        oracle: IOracle,
        sessions: IAnalysisSessionRepository,
        tickets: ITicketGateway,
        assignment_policy: IAssignmentPolicy
    ):
        self._oracle = oracle
        self._sessions = sessions
        self._tickets = tickets
        self._assignment = assignment_policy

    async def triage(self, session: AnalysisSession) -> Tuple[AnalysisSession, TriageDecision]:
        """
        Run priority, tag and assignment decisions in order.

        Args:
            session: A processing session, normally with retrieval results

        Returns:
            The checkpointed session and the final TriageDecision

        Raises:
            SessionStateException: If the session is not processing
            ApplicationException: Any sub-decision failure, after the
                session is marked error
        """
        if session.status != SessionStatus.PROCESSING:
            raise SessionStateException(session.id, session.status.value, "triage needs a processing session")

        # Priority
        try:
            priority, reasoning = await self.classify_priority(session)
        except ApplicationException as e:
            await record_failure(self._sessions, session, ErrorType.PRIORITY_CLASSIFICATION_FAILED, e)
            raise
        session = session.with_priority(priority, reasoning)
        await self._sessions.save(session)
        await self._mirror(session, priority=priority)

        # Tags
        try:
            tags, reasoning = await self.generate_tags(session)
        except ApplicationException as e:
            await record_failure(self._sessions, session, ErrorType.TAG_GENERATION_FAILED, e)
            raise
        session = session.with_tags(tags, reasoning)
        await self._sessions.save(session)
        await self._mirror(session, tags=tags)

        # Assignment
        try:
            assignment = await self._assignment.decide(session)
        except ApplicationException as e:
            await record_failure(self._sessions, session, ErrorType.ASSIGNMENT_FAILED, e)
            raise
        session = session.with_assignment(assignment)
        await self._sessions.save(session)

        decision = session.triage_decision()
        logger.info(
            "Ticket triaged",
            extra={
                "session_id": session.id,
                "ticket_id": session.ticket_id,
                "priority": decision.priority.value,
                "tags": list(decision.tags),
                "needs_assignment": decision.needs_assignment,
            }
        )
        return session, decision

    async def classify_priority(self, session: AnalysisSession) -> Tuple[Priority, str]:
        output: PriorityOutput = await self._oracle.invoke(
            OracleSchema.PRIORITY,
            PriorityPrompt.SYSTEM_PROMPT,
            PriorityPrompt.build_prompt(session.inquiry, session.relevant_snippets),
        )
        return output.priority, output.reasoning

    async def generate_tags(self, session: AnalysisSession) -> Tuple[Tuple[str, ...], str]:
        output: TagsOutput = await self._oracle.invoke(
            OracleSchema.TAGS,
            TagPrompt.SYSTEM_PROMPT,
            TagPrompt.build_prompt(
                session.inquiry,
                session.processing_results.priority,
                session.relevant_snippets,
            ),
        )
        tags = normalize_tags(output.tags)
        if not tags:
            raise LLMException("Tag generation returned no usable tags", {"tags": output.tags})
        return tags, output.reasoning

    async def _mirror(self, session: AnalysisSession, priority: Priority = None, tags: Tuple[str, ...] = None) -> None:
        if not session.ticket_id:
            return
        try:
            if priority is not None:
                await self._tickets.update(session.ticket_id, priority=priority)
            if tags is not None:
                await self._tickets.replace_tags(session.ticket_id, session.organization_id, list(tags))
        except ApplicationException as e:
            await record_failure(self._sessions, session, ErrorType.TRIAGE_FAILED, e)
            raise
