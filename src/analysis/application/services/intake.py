"""
Intake Gate
===========

Screens a raw inquiry (language, validity) and either opens a ticket or
answers with a rejection. Every step is checkpointed on the session.
"""

from dataclasses import dataclass
from typing import Optional

from src.config import ErrorType, OracleSchema
from src.core import ApplicationException
from src.analysis.application.contracts import (
    ErrorResponseOutput,
    LanguageDetectionOutput,
    ValidityCheckOutput,
)
from src.analysis.application.ports import IAnalysisSessionRepository, IOracle, ITicketGateway
from src.analysis.application.services.checkpoints import record_failure
from src.analysis.domain import (
    AnalysisSession,
    LanguageAnalysis,
    TicketDraft,
    Translation,
    ValidityAnalysis,
)
from src.analysis.domain.policies import customer_facing_rejection, ticket_title
from src.analysis.domain.prompts import LanguageDetectionPrompt, RejectionPrompt, ValidityCheckPrompt
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

ACKNOWLEDGEMENT = "Thanks for reaching out! We've opened a ticket and are looking into it now."


@dataclass(frozen=True)
class IntakeOutcome:
    """What the customer is told, plus the session behind it."""
    session: AnalysisSession
    accepted: bool
    message: str

    @property
    def ticket_id(self) -> Optional[str]:
        return self.session.ticket_id


class IntakeGate:
    """
    First pipeline stage.

    Accepted inquiries leave here with a ticket and a ``processing`` session;
    rejected ones end in ``error`` with type ``inquiry_rejected`` and the
    customer-facing reply stored on the session.
    """

    def __init__(
        self,
        oracle: IOracle,
        sessions: IAnalysisSessionRepository,
        tickets: ITicketGateway
    ):
        self._oracle = oracle
        self._sessions = sessions
        self._tickets = tickets

    async def analyze(
        self,
        inquiry: str,
        customer_email: str,
        customer_name: str,
        organization_id: str
    ) -> IntakeOutcome:
        """
        Screen an inquiry and open a ticket if it is genuine.

        Args:
            inquiry: Raw customer text
            customer_email: Customer contact, used to find or create the customer
            customer_name: Customer display name
            organization_id: Tenant receiving the inquiry

        Returns:
            IntakeOutcome with the acknowledgement or rejection text

        Raises:
            LLMException: If language detection, validity check or the
                rejection reply fails (session moves to error first)
            RepositoryException: If the session or ticket cannot be written
        """
        session = AnalysisSession.start(organization_id, inquiry, customer_email, customer_name)
        await self._sessions.add(session)
        logger.info(
            "Intake started",
            extra={"session_id": session.id, "organization_id": organization_id}
        )

        try:
            language = await self.detect_language(inquiry)
        except ApplicationException as e:
            await record_failure(self._sessions, session, ErrorType.LANGUAGE_DETECTION_FAILED, e)
            raise
        session = session.with_language(language)
        await self._sessions.save(session)

        try:
            validity = await self.check_validity(inquiry, language)
        except ApplicationException as e:
            await record_failure(self._sessions, session, ErrorType.VALIDITY_CHECK_FAILED, e)
            raise
        session = session.with_validity(validity)
        await self._sessions.save(session)

        if not validity.is_valid:
            return await self._reject(session, language, validity)

        try:
            ticket = await self._tickets.create(TicketDraft(
                organization_id=organization_id,
                customer_email=customer_email,
                customer_name=customer_name,
                title=ticket_title(inquiry),
                description=inquiry,
                ai_metadata={
                    "analysis_id": session.id,
                    "language": language.code,
                    "validity_category": validity.category.value,
                    "validity_confidence": validity.confidence,
                },
            ))
        except ApplicationException as e:
            await record_failure(self._sessions, session, ErrorType.TICKET_CREATION_FAILED, e)
            raise

        session = session.attach_ticket(ticket.id)
        await self._sessions.save(session)
        logger.info(
            "Inquiry accepted",
            extra={"session_id": session.id, "ticket_id": ticket.id, "language": language.code}
        )
        return IntakeOutcome(session=session, accepted=True, message=ACKNOWLEDGEMENT)

    async def _reject(
        self,
        session: AnalysisSession,
        language: LanguageAnalysis,
        validity: ValidityAnalysis
    ) -> IntakeOutcome:
        try:
            reply = await self.compose_rejection(session.inquiry, language, validity)
        except ApplicationException as e:
            await record_failure(self._sessions, session, ErrorType.REJECTION_RESPONSE_FAILED, e)
            raise

        session = session.reject(validity.reason, reply)
        await self._sessions.save(session)
        logger.info(
            "Inquiry rejected",
            extra={"session_id": session.id, "category": validity.category.value}
        )
        return IntakeOutcome(session=session, accepted=False, message=reply)

    # ========== Oracle decisions ==========

    async def detect_language(self, inquiry: str) -> LanguageAnalysis:
        output: LanguageDetectionOutput = await self._oracle.invoke(
            OracleSchema.LANGUAGE_DETECTION,
            LanguageDetectionPrompt.SYSTEM_PROMPT,
            LanguageDetectionPrompt.build_prompt(inquiry),
        )
        return LanguageAnalysis(
            code=output.language_code,
            confidence=output.confidence,
            translation=Translation(needed=output.translation.needed, text=output.translation.text),
            common_words=tuple(output.common_words),
            script_analysis=output.script_analysis,
        )

    async def check_validity(self, inquiry: str, language: LanguageAnalysis) -> ValidityAnalysis:
        output: ValidityCheckOutput = await self._oracle.invoke(
            OracleSchema.VALIDITY_CHECK,
            ValidityCheckPrompt.SYSTEM_PROMPT,
            ValidityCheckPrompt.build_prompt(inquiry, language),
        )
        return ValidityAnalysis(
            is_valid=output.is_valid,
            reason=output.reason,
            category=output.category,
            confidence=output.confidence,
            suggested_response=output.suggested_response,
        )

    async def compose_rejection(
        self,
        inquiry: str,
        language: LanguageAnalysis,
        validity: ValidityAnalysis
    ) -> str:
        output: ErrorResponseOutput = await self._oracle.invoke(
            OracleSchema.ERROR_RESPONSE,
            RejectionPrompt.SYSTEM_PROMPT,
            RejectionPrompt.build_prompt(inquiry, language, validity),
        )
        return customer_facing_rejection(
            output.response_message,
            output.translated_response,
            language.translation.needed,
        )
