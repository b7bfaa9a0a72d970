"""
Vector Store Infrastructure
============================

Milvus vector store implementation for organization-scoped chunk retrieval.

Chunks are embedded and inserted by the document ingestion service; this
module only reads them. Each row carries ``text``, ``document_id`` and
``organization_id`` next to its vector.
"""

import asyncio
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

from pymilvus import MilvusClient
from pymilvus.exceptions import MilvusException

from src.config import settings
from src.core import VectorStoreException
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


@dataclass
class SearchResult:
    """Result from vector search."""
    content: str
    document_id: str
    similarity: float
    metadata: dict = field(default_factory=dict)


class IVectorStore(ABC):
    """
    Interface for vector store operations.

    Following Interface Segregation and Dependency Inversion principles.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the vector store."""

    @abstractmethod
    async def get_document_count(self) -> int:
        """Get number of chunks in the collection."""

    @abstractmethod
    async def search(
        self,
        query_embedding: List[float],
        organization_id: str,
        top_k: int = 5,
        similarity_threshold: float = 0.0
    ) -> List[SearchResult]:
        """Search one organization's chunks, most similar first."""


class MilvusVectorStore(IVectorStore):
    """
    Zilliz Cloud (Managed Milvus) implementation of vector store.

    Uses the COSINE metric, so the reported distance is the similarity.
    """

    def __init__(
        self,
        uri: Optional[str] = None,
        api_key: Optional[str] = None,
        collection_name: Optional[str] = None,
        dimension: Optional[int] = None
    ):
        self._uri = uri or settings.zilliz_uri
        self._api_key = api_key or settings.zilliz_api_key
        self._collection_name = collection_name or settings.milvus_collection_name
        self._dimension = dimension or settings.embedding_dimension
        self._client: Optional[MilvusClient] = None

    async def initialize(self) -> None:
        """Connect to Zilliz Cloud and make sure the collection exists."""
        if self._client is not None:
            return

        if not self._uri or not self._api_key:
            raise VectorStoreException("ZILLIZ_URI and ZILLIZ_API_KEY must be configured")

        try:
            client = MilvusClient(uri=self._uri, token=self._api_key)
            if not await asyncio.to_thread(client.has_collection, self._collection_name):
                await asyncio.to_thread(
                    client.create_collection,
                    collection_name=self._collection_name,
                    dimension=self._dimension,
                    metric_type="COSINE"
                )
        except MilvusException as e:
            raise VectorStoreException(f"Failed to initialize Milvus: {e}")

        self._client = client
        logger.info("Milvus collection ready", extra={"collection": self._collection_name})

    async def get_document_count(self) -> int:
        """Get number of chunks in the collection."""
        await self.initialize()
        try:
            stats = await asyncio.to_thread(
                self._client.get_collection_stats, self._collection_name
            )
        except MilvusException as e:
            raise VectorStoreException(f"Failed to read collection stats: {e}")
        return int(stats.get("row_count", 0))

    async def search(
        self,
        query_embedding: List[float],
        organization_id: str,
        top_k: int = 5,
        similarity_threshold: float = 0.0
    ) -> List[SearchResult]:
        """
        Search for similar chunks belonging to one organization.

        Args:
            query_embedding: Query vector
            organization_id: Tenant whose chunks may be returned
            top_k: Number of results to return
            similarity_threshold: Minimum similarity kept

        Returns:
            List of SearchResult objects, most similar first

        Raises:
            VectorStoreException: If search fails
        """
        await self.initialize()

        try:
            results = await asyncio.to_thread(
                self._client.search,
                collection_name=self._collection_name,
                data=[query_embedding],
                filter=f"organization_id == {json.dumps(organization_id)}",
                limit=top_k,
                search_params={"metric_type": "COSINE"},
                output_fields=["text", "document_id"]
            )
        except MilvusException as e:
            raise VectorStoreException(f"Search failed: {e}")

        formatted_results = []
        for hit in (results[0] if results else []):
            similarity = min(max(float(hit["distance"]), 0.0), 1.0)
            if similarity < similarity_threshold:
                continue
            entity = hit.get("entity", {})
            formatted_results.append(SearchResult(
                content=entity.get("text", ""),
                document_id=str(entity.get("document_id") or hit.get("id")),
                similarity=similarity,
                metadata={"chunk_id": hit.get("id")}
            ))

        return formatted_results
