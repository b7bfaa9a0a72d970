"""
Vector Retrieval Coordinator
============================

Turns an inquiry into a ranked, de-duplicated list of documentation snippets.

Search phrases are queried one at a time on purpose: it keeps the load on
the retrieval backend bounded to one request per inquiry at any moment.
"""

from dataclasses import dataclass, replace
from typing import List, Optional, Sequence, Tuple

from src.config import ErrorType, NO_RELEVANT_RESULTS, OracleSchema, SessionStatus
from src.core import ApplicationException, LLMException, SessionStateException
from src.analysis.application.contracts import ChunkRelevanceOutput, SearchPhrasesOutput
from src.analysis.application.ports import IAnalysisSessionRepository, IOracle, ISemanticSearch
from src.analysis.application.services.checkpoints import record_failure
from src.analysis.domain import AnalysisSession, ContextSnippet
from src.analysis.domain.policies import merge_snippets, normalize_search_phrases
from src.analysis.domain.prompts import ChunkRelevancePrompt, SearchPhrasePrompt
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RetrievalResult:
    search_phrases: Tuple[str, ...]
    snippets: Tuple[ContextSnippet, ...]
    note: Optional[str] = None


class VectorRetrievalCoordinator:
    """
    Second pipeline stage.

    Args:
        oracle: Phrase extraction and optional relevance scoring
        search: Organization-scoped semantic search
        sessions: Session checkpoints
        top_k: Chunks requested per phrase
        similarity_threshold: Minimum similarity kept
        max_phrases: Upper bound on phrases searched
        score_relevance: Run the chunk-relevance contract on merged snippets
    """

    def __init__(
        self,
        oracle: IOracle,
        search: ISemanticSearch,
        sessions: IAnalysisSessionRepository,
        top_k: int = 5,
        similarity_threshold: float = 0.6,
        max_phrases: int = 3,
        score_relevance: bool = False
    ):
        self._oracle = oracle
        self._search = search
        self._sessions = sessions
        self._top_k = top_k
        self._threshold = similarity_threshold
        self._max_phrases = max_phrases
        self._score_relevance = score_relevance

    async def run(self, session: AnalysisSession) -> AnalysisSession:
        """
        Retrieve context for a processing session and checkpoint it.

        Raises:
            SessionStateException: If the session is not processing
            LLMException, VectorStoreException: After the session is marked error
        """
        if session.status != SessionStatus.PROCESSING:
            raise SessionStateException(session.id, session.status.value, "retrieval needs a processing session")

        try:
            result = await self.retrieve(session.inquiry, session.organization_id, session.ticket_id)
        except ApplicationException as e:
            await record_failure(self._sessions, session, ErrorType.VECTOR_SEARCH_FAILED, e)
            raise

        session = session.with_retrieval(result.search_phrases, result.snippets, result.note)
        await self._sessions.save(session)
        return session

    async def retrieve(
        self,
        inquiry: str,
        organization_id: str,
        ticket_id: Optional[str] = None
    ) -> RetrievalResult:
        """
        Extract search phrases, search them one by one and merge the hits.

        Returns:
            RetrievalResult whose snippets have unique document ids and
            non-increasing similarity
        """
        phrases = await self.extract_phrases(inquiry)

        batches: List[Sequence[ContextSnippet]] = []
        for phrase in phrases:
            hits = await self._search.search(
                query=phrase,
                organization_id=organization_id,
                limit=self._top_k,
                similarity_threshold=self._threshold,
            )
            batches.append(hits[:self._top_k])

        snippets = merge_snippets(batches)
        if self._score_relevance and snippets:
            snippets = await self._score(inquiry, snippets)

        note = None if snippets else NO_RELEVANT_RESULTS
        logger.info(
            "Context retrieved",
            extra={
                "ticket_id": ticket_id,
                "phrases": len(phrases),
                "snippets": len(snippets),
                "note": note,
            }
        )
        return RetrievalResult(search_phrases=phrases, snippets=snippets, note=note)

    async def extract_phrases(self, inquiry: str) -> Tuple[str, ...]:
        output: SearchPhrasesOutput = await self._oracle.invoke(
            OracleSchema.SEARCH_PHRASES,
            SearchPhrasePrompt.SYSTEM_PROMPT,
            SearchPhrasePrompt.build_prompt(inquiry),
        )
        phrases = normalize_search_phrases(output.search_phrases, self._max_phrases)
        if not phrases:
            raise LLMException("Search phrase extraction returned only blank phrases")
        return phrases

    async def _score(
        self,
        inquiry: str,
        snippets: Sequence[ContextSnippet]
    ) -> Tuple[ContextSnippet, ...]:
        scored = []
        for snippet in snippets:
            output: ChunkRelevanceOutput = await self._oracle.invoke(
                OracleSchema.CHUNK_RELEVANCE,
                ChunkRelevancePrompt.SYSTEM_PROMPT,
                ChunkRelevancePrompt.build_prompt(inquiry, snippet),
            )
            scored.append(replace(snippet, is_relevant=output.is_relevant, relevance_reason=output.reason))
        return tuple(scored)
