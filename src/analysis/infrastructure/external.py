"""
Analysis External Service Adapters
==================================

Adapters for external services (LLM, Vector Store) used by the analysis
module.

Implements the application ports using the concrete infrastructure clients.
"""

from typing import List, Optional

from src.config import OracleSchema
from src.core import LLMException
from src.analysis.application.contracts import OracleContract, decode_oracle_output, function_definition
from src.analysis.application.ports import IOracle, ISemanticSearch
from src.analysis.domain import ContextSnippet
from src.infrastructure.llm import ILLMClient
from src.infrastructure.vectorstore import IVectorStore
from src.shared.infrastructure.logging import get_logger, log_latency

logger = get_logger(__name__)


class StructuredOracle(IOracle):
    """
    Oracle backed by an LLM client.

    Each contract is sent as a forced function call; the answer is decoded
    and validated before it reaches a stage.
    """

    def __init__(
        self,
        llm_client: ILLMClient,
        temperature: float = 0.0,
        max_tokens: int = 1000
    ):
        self._client = llm_client
        self._temperature = temperature
        self._max_tokens = max_tokens

    async def invoke(
        self,
        schema: OracleSchema,
        system_instructions: str,
        user_content: str,
        temperature: Optional[float] = None
    ) -> OracleContract:
        messages = [
            {"role": "system", "content": system_instructions},
            {"role": "user", "content": user_content},
        ]
        with log_latency(logger, "oracle_call", schema=schema.value):
            result = await self._client.chat_completion(
                messages,
                temperature=self._temperature if temperature is None else temperature,
                max_tokens=self._max_tokens,
                operation=schema.value,
                output_schema=function_definition(schema),
            )

        try:
            return decode_oracle_output(schema, result.content)
        except LLMException:
            logger.warning(
                "Oracle output rejected",
                extra={"schema": schema.value, "model": result.model, "content_length": len(result.content or "")}
            )
            raise


class MilvusSemanticSearch(ISemanticSearch):
    """
    Semantic retrieval over Milvus.

    The query is embedded with the LLM client's embedding model, then the
    organization's chunks are searched.
    """

    def __init__(self, vector_store: IVectorStore, embedder: ILLMClient):
        self._store = vector_store
        self._embedder = embedder

    async def search(
        self,
        query: str,
        organization_id: str,
        limit: int,
        similarity_threshold: float
    ) -> List[ContextSnippet]:
        embedding = await self._embedder.generate_embedding(query)
        results = await self._store.search(
            embedding.embedding,
            organization_id=organization_id,
            top_k=limit,
            similarity_threshold=similarity_threshold,
        )
        return [
            ContextSnippet(content=r.content, document_id=r.document_id, similarity=r.similarity)
            for r in results[:limit]
        ]
