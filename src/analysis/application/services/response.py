"""
Response Synthesis Coordinator
==============================

Writes the first AI reply for a triaged inquiry, posts it to the ticket and
completes the session. This is the only place a session becomes
``completed``.
"""

from typing import Optional, Tuple

from src.config import ErrorType, OracleSchema, SenderType, SessionStatus
from src.core import ApplicationException, SessionStateException
from src.analysis.application.contracts import ResponseSynthesisOutput
from src.analysis.application.ports import IAnalysisSessionRepository, IMessageGateway, IOracle
from src.analysis.application.services.checkpoints import record_failure
from src.analysis.domain import AnalysisSession, ResponseResult
from src.analysis.domain.prompts import ResponsePrompt
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class ResponseSynthesisCoordinator:
    """
    Fourth pipeline stage.

    Args:
        oracle: Response generation
        sessions: Session checkpoints
        messages: Messaging collaborator
        temperature: Sampling temperature for the customer-facing reply
    """

    def __init__(
        self,
        oracle: IOracle,
        sessions: IAnalysisSessionRepository,
        messages: IMessageGateway,
        temperature: float = 0.7
    ):
        self._oracle = oracle
        self._sessions = sessions
        self._messages = messages
        self._temperature = temperature

    async def synthesize(self, session: AnalysisSession) -> Tuple[AnalysisSession, ResponseResult]:
        """
        Generate, post and record the AI response.

        Calling this again for a completed session returns the stored result
        and posts nothing.

        Raises:
            SessionStateException: If the session is errored or triage is incomplete
            LLMException: If generation fails (session marked error)
            RepositoryException: If the message cannot be posted or the completed
                session cannot be saved (session marked error)

        When even the error cannot be saved the session stays ``processing``
        and a retry posts a second message.
        """
        session = await self._current(session)
        if session.status == SessionStatus.COMPLETED and session.response_result is not None:
            logger.info(
                "Response already synthesized",
                extra={"session_id": session.id, "ticket_id": session.ticket_id}
            )
            return session, session.response_result

        if session.status != SessionStatus.PROCESSING:
            raise SessionStateException(session.id, session.status.value, "response needs a processing session")
        decision = session.triage_decision()

        try:
            result = await self.generate(session)
        except ApplicationException as e:
            await record_failure(self._sessions, session, ErrorType.RESPONSE_GENERATION_FAILED, e)
            raise

        if session.ticket_id:
            try:
                await self._messages.create(
                    ticket_id=session.ticket_id,
                    organization_id=session.organization_id,
                    content=result.response,
                    sender_type=SenderType.AI,
                    metadata={
                        "analysis_id": session.id,
                        "reasoning": result.reasoning,
                        "next_steps": list(result.next_steps),
                        "priority": decision.priority.value,
                        "tags": list(decision.tags),
                    },
                )
            except ApplicationException as e:
                await record_failure(self._sessions, session, ErrorType.MESSAGE_POST_FAILED, e)
                raise

        completed = session.complete(result)
        try:
            await self._sessions.save(completed)
        except ApplicationException as e:
            await record_failure(self._sessions, session, ErrorType.RESPONSE_GENERATION_FAILED, e)
            raise
        session = completed
        logger.info(
            "Response posted",
            extra={
                "session_id": session.id,
                "ticket_id": session.ticket_id,
                "priority": decision.priority.value,
                "next_steps": len(result.next_steps),
            }
        )
        return session, result

    async def generate(self, session: AnalysisSession) -> ResponseResult:
        results = session.processing_results
        output: ResponseSynthesisOutput = await self._oracle.invoke(
            OracleSchema.RESPONSE_SYNTHESIS,
            ResponsePrompt.SYSTEM_PROMPT,
            ResponsePrompt.build_prompt(
                session.inquiry,
                session.customer_name,
                results.priority,
                results.tags,
                session.relevant_snippets,
            ),
            temperature=self._temperature,
        )
        steps = tuple(step.strip() for step in output.next_steps if step.strip())
        return ResponseResult(response=output.response.strip(), reasoning=output.reasoning, next_steps=steps)

    async def _current(self, session: AnalysisSession) -> AnalysisSession:
        stored: Optional[AnalysisSession] = await self._sessions.get(session.id)
        return stored or session
