"""
Analysis Pipeline
=================

In-process composition of the four inquiry stages:

    intake -> retrieval -> triage -> response synthesis

Each stage checkpoints the session itself; the pipeline only loads sessions,
checks identifiers before a stage runs, and decides how far to go.
"""

import time
from dataclasses import dataclass
from typing import Optional, Tuple

from src.core import ApplicationException, ConsistencyException, ResourceNotFoundException
from src.analysis.application.ports import IAnalysisSessionRepository
from src.analysis.application.services.intake import IntakeGate
from src.analysis.application.services.response import ResponseSynthesisCoordinator
from src.analysis.application.services.retrieval import VectorRetrievalCoordinator
from src.analysis.application.services.triage import TriageCoordinator
from src.analysis.domain import AnalysisSession, ResponseResult, TriageDecision
from src.shared.infrastructure.grafana import GrafanaOTLPExporter
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class AnalysisOutcome:
    """
    What the customer is told after submitting an inquiry.

    ``session`` is the latest stored state, which may be further along
    (or errored) than the intake result.
    """
    session: AnalysisSession
    accepted: bool
    message: str
    response: Optional[ResponseResult] = None


class AnalysisPipeline:
    """
    Orchestrates the inquiry stages.

    Args:
        intake: Intake gate
        retrieval: Vector retrieval coordinator
        triage: Triage coordinator
        synthesis: Response synthesis coordinator
        sessions: Session repository, used to load sessions between stages
        auto_continue: Run the downstream stages right after an accepted intake
        metrics: Optional Grafana exporter for per-stage outcomes
    """

    def __init__(
        self,
        intake: IntakeGate,
        retrieval: VectorRetrievalCoordinator,
        triage: TriageCoordinator,
        synthesis: ResponseSynthesisCoordinator,
        sessions: IAnalysisSessionRepository,
        auto_continue: bool = True,
        metrics: Optional[GrafanaOTLPExporter] = None
    ):
        self._intake = intake
        self._retrieval = retrieval
        self._triage = triage
        self._synthesis = synthesis
        self._sessions = sessions
        self._auto_continue = auto_continue
        self._metrics = metrics

    async def analyze(
        self,
        inquiry: str,
        customer_email: str,
        customer_name: str,
        organization_id: str
    ) -> AnalysisOutcome:
        """
        Screen an inquiry and, if accepted, carry it through to a response.

        Failures after intake are recorded on the session and logged; the
        customer still gets the intake acknowledgement.

        Raises:
            ApplicationException: Only for intake failures
        """
        started = time.perf_counter()
        try:
            intake = await self._intake.analyze(inquiry, customer_email, customer_name, organization_id)
        except ApplicationException:
            await self._export("intake", "error", started)
            raise
        await self._export("intake", "accepted" if intake.accepted else "rejected", started)

        if not intake.accepted or not self._auto_continue:
            return AnalysisOutcome(session=intake.session, accepted=intake.accepted, message=intake.message)

        session = intake.session
        response = None
        try:
            session = await self._timed("retrieval", self._retrieval.run(session))
            session, _ = await self._timed("triage", self._triage.triage(session))
            session, response = await self._timed("response", self._synthesis.synthesize(session))
        except ApplicationException as e:
            logger.error(
                "Pipeline stopped after intake",
                extra={"session_id": session.id, "ticket_id": session.ticket_id, "error": e.message}
            )
            session = await self._sessions.get(session.id) or session

        return AnalysisOutcome(
            session=session,
            accepted=True,
            message=intake.message,
            response=response,
        )

    # ========== Individual stages ==========

    async def run_retrieval(self, session_id: str, organization_id: str) -> AnalysisSession:
        session = await self._load(session_id, organization_id)
        return await self._timed("retrieval", self._retrieval.run(session))

    async def run_triage(self, session_id: str, organization_id: str) -> Tuple[AnalysisSession, TriageDecision]:
        session = await self._load(session_id, organization_id)
        return await self._timed("triage", self._triage.triage(session))

    async def run_synthesis(self, session_id: str, organization_id: str) -> Tuple[AnalysisSession, ResponseResult]:
        session = await self._load(session_id, organization_id)
        return await self._timed("response", self._synthesis.synthesize(session))

    async def get_session(self, session_id: str, organization_id: str) -> AnalysisSession:
        return await self._load(session_id, organization_id)

    async def _load(self, session_id: str, organization_id: str) -> AnalysisSession:
        session = await self._sessions.get(session_id)
        if session is None:
            raise ResourceNotFoundException("AnalysisSession", session_id)
        if session.organization_id != organization_id:
            raise ConsistencyException(
                "Session does not belong to the given organization",
                {"session_id": session_id}
            )
        return session

    async def _timed(self, stage: str, call):
        started = time.perf_counter()
        try:
            result = await call
        except ApplicationException:
            await self._export(stage, "error", started)
            raise
        await self._export(stage, "ok", started)
        return result

    async def _export(self, stage: str, outcome: str, started: float) -> None:
        if self._metrics is None:
            return
        latency_ms = int((time.perf_counter() - started) * 1000)
        await self._metrics.export_stage(stage, outcome, latency_ms)
