"""
Session Checkpoints
===================

Failure recording shared by the stage coordinators.
"""

from src.config import ErrorType
from src.core import ApplicationException, RepositoryException
from src.analysis.application.ports import IAnalysisSessionRepository
from src.analysis.domain import AnalysisSession
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


async def record_failure(
    sessions: IAnalysisSessionRepository,
    session: AnalysisSession,
    error_type: ErrorType,
    exc: ApplicationException
) -> AnalysisSession:
    """
    Move ``session`` to error, keeping every checkpoint written so far.

    The caller re-raises ``exc`` afterwards. If the error itself cannot be
    persisted the write failure is logged and the original error still wins.
    """
    failed = session.fail(error_type, exc.message)
    logger.error(
        "Pipeline stage failed",
        extra={
            "session_id": session.id,
            "ticket_id": session.ticket_id,
            "error_type": error_type.value,
            "error_message": exc.message,
        }
    )
    try:
        await sessions.save(failed)
    except RepositoryException as save_error:
        logger.error(
            "Could not record stage failure on session",
            extra={"session_id": session.id, "error": save_error.message}
        )
    return failed
