"""
Conversation Re-evaluation Coordinator
======================================

Runs after each new customer message on an AI-handled ticket and decides
whether to close it, hand it to a human, or keep the conversation going.
"""

import random
from typing import Optional

from src.config import ConversationAction, OracleSchema, SenderType, TicketStatus
from src.core import AuthorizationException, RepositoryException
from src.analysis.application.contracts import ConversationAnalysisOutput, ConversationReplyOutput
from src.analysis.application.ports import IContextProvider, IMessageGateway, IOracle, ITicketGateway
from src.analysis.domain import ConversationContext, ConversationDecision, Employee, ReevaluationResult
from src.analysis.domain.policies import usable_employees
from src.analysis.domain.prompts import ConversationAnalysisPrompt, ConversationReplyPrompt
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

NO_ROSTER_NOTE = "No employee is available for assignment, so the AI keeps handling the conversation."
CLOSE_FAILED_NOTE = "The ticket could not be closed, so the conversation stays open."
ASSIGN_FAILED_NOTE = "The ticket could not be handed to an employee, so the AI keeps handling the conversation."


class ConversationReevaluationCoordinator:
    """
    Follow-up flow keyed by ticket id.

    Exactly one AI message is appended per re-evaluation. Tickets whose AI
    handling is switched off are left untouched.

    Args:
        oracle: Conversation analysis and reply generation
        context_provider: Ticket, history, latest session and roster
        tickets: Ticket Management collaborator
        messages: Messaging collaborator
        rng: Random source for employee selection
        temperature: Sampling temperature for the reply
    """

    def __init__(
        self,
        oracle: IOracle,
        context_provider: IContextProvider,
        tickets: ITicketGateway,
        messages: IMessageGateway,
        rng: Optional[random.Random] = None,
        temperature: Optional[float] = None
    ):
        self._oracle = oracle
        self._context = context_provider
        self._tickets = tickets
        self._messages = messages
        self._rng = rng or random.Random()
        self._temperature = temperature

    async def reevaluate(
        self,
        ticket_id: str,
        organization_id: str,
        new_message_id: Optional[str] = None
    ) -> ReevaluationResult:
        """
        Re-evaluate a ticket after a new customer message.

        Args:
            ticket_id: Ticket to re-evaluate
            organization_id: Caller's organization
            new_message_id: The message that triggered re-evaluation

        Returns:
            ReevaluationResult describing the action taken

        Raises:
            ResourceNotFoundException: If the ticket does not exist
            AuthorizationException: If the ticket belongs to another organization
            LLMException: If conversation analysis or the reply fails
        """
        context = await self._context.get_context(ticket_id, organization_id)
        if context.ticket.organization_id != organization_id:
            raise AuthorizationException("Ticket belongs to another organization")

        if not context.ticket.ai_enabled:
            logger.info("AI disabled for ticket, skipping re-evaluation", extra={"ticket_id": ticket_id})
            return ReevaluationResult(
                is_solved=False,
                needs_human=False,
                action=None,
                reasoning="AI handling is disabled for this ticket",
                ai_disabled=True,
            )

        if new_message_id and not any(m.id == new_message_id for m in context.messages):
            logger.warning(
                "Triggering message not found in history",
                extra={"ticket_id": ticket_id, "message_id": new_message_id}
            )

        decision = await self.analyze(context)
        action = decision.action
        reasoning = decision.reasoning
        assignee: Optional[Employee] = None

        if action == ConversationAction.CLOSE_TICKET:
            try:
                await self._tickets.update(
                    ticket_id,
                    status=TicketStatus.CLOSED,
                    satisfaction_rating=decision.satisfaction_rating,
                )
            except RepositoryException as e:
                logger.error("Failed to close ticket", extra={"ticket_id": ticket_id, "error": e.message})
                action = ConversationAction.CONTINUE_CONVERSATION
                reasoning = f"{reasoning} {CLOSE_FAILED_NOTE}"

        elif action == ConversationAction.ASSIGN_HUMAN:
            roster = usable_employees(context.employees)
            if roster:
                assignee = self._rng.choice(roster)
                try:
                    await self._tickets.update(ticket_id, assigned_to=assignee.id, ai_enabled=False)
                except RepositoryException as e:
                    logger.error(
                        "Failed to assign ticket",
                        extra={"ticket_id": ticket_id, "employee_id": assignee.id, "error": e.message}
                    )
                    assignee = None
                    action = ConversationAction.CONTINUE_CONVERSATION
                    reasoning = f"{reasoning} {ASSIGN_FAILED_NOTE}"
            else:
                logger.warning("Empty employee roster, continuing conversation", extra={"ticket_id": ticket_id})
                action = ConversationAction.CONTINUE_CONVERSATION
                reasoning = f"{reasoning} {NO_ROSTER_NOTE}"

        reply = await self.compose_reply(context, action, reasoning, assignee)
        message = await self._messages.create(
            ticket_id=ticket_id,
            organization_id=organization_id,
            content=reply.response,
            sender_type=SenderType.AI,
            metadata={
                "analysis_id": context.session.id if context.session else None,
                "action_taken": action.value,
                "reasoning": reasoning,
                "tone": reply.tone,
                "is_closing_message": action == ConversationAction.CLOSE_TICKET,
                "assigned_employee": (
                    {"id": assignee.id, "name": assignee.name} if assignee else None
                ),
            },
        )

        closed = action == ConversationAction.CLOSE_TICKET
        logger.info(
            "Conversation re-evaluated",
            extra={
                "ticket_id": ticket_id,
                "action": action.value,
                "assigned_to": assignee.id if assignee else None,
            }
        )
        return ReevaluationResult(
            is_solved=decision.is_solved and closed,
            needs_human=assignee is not None,
            action=action,
            reasoning=reasoning,
            satisfaction_rating=decision.satisfaction_rating if closed else None,
            assigned_to=assignee.id if assignee else None,
            reply=reply.response,
            tone=reply.tone,
            message_id=message.id,
        )

    async def analyze(self, context: ConversationContext) -> ConversationDecision:
        output: ConversationAnalysisOutput = await self._oracle.invoke(
            OracleSchema.CONVERSATION_ANALYSIS,
            ConversationAnalysisPrompt.SYSTEM_PROMPT,
            ConversationAnalysisPrompt.build_prompt(context),
        )
        return ConversationDecision(
            is_solved=output.is_solved,
            needs_human=output.needs_human,
            action=output.action,
            reasoning=output.reasoning,
            satisfaction_rating=output.satisfaction_rating,
        )

    async def compose_reply(
        self,
        context: ConversationContext,
        action: ConversationAction,
        reasoning: str,
        assignee: Optional[Employee] = None
    ) -> ConversationReplyOutput:
        return await self._oracle.invoke(
            OracleSchema.CONVERSATION_REPLY,
            ConversationReplyPrompt.SYSTEM_PROMPT,
            ConversationReplyPrompt.build_prompt(
                context,
                action.value,
                reasoning,
                assignee.name if assignee else None,
            ),
            temperature=self._temperature,
        )
