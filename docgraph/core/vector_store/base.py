"""
Base interface for the vector index.

Chunks are stored as points keyed by chunk ID, with metadata used for
exact-match filtering and for delete-by-document.
"""

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field


class VectorEntry(BaseModel):
    """A vector to upsert."""

    id: str
    vector: list[float]
    metadata: dict[str, Any] = Field(default_factory=dict)


class VectorSearchResult(BaseModel):
    """Vector search hit."""

    id: str
    score: float
    metadata: dict[str, Any] = Field(default_factory=dict)


class VectorIndex(ABC):
    """Abstract base class for vector index implementations."""

    @abstractmethod
    async def initialize(self) -> None:
        """
        Initialize the index (create collections and payload indices).

        Raises:
            VectorStoreError: If initialization fails
        """
        pass

    @abstractmethod
    async def upsert(self, id: str, vector: list[float], metadata: dict[str, Any]) -> None:
        """
        Store or replace one vector.

        Args:
            id: Point ID (the chunk ID)
            vector: Embedding vector
            metadata: Payload; must include document_id

        Raises:
            ValidationError: If the entry is invalid
            VectorStoreError: If the upsert fails
        """
        pass

    @abstractmethod
    async def batch_upsert(self, entries: list[VectorEntry]) -> None:
        """
        Store or replace many vectors.

        Args:
            entries: Vectors to write
        """
        pass

    @abstractmethod
    async def delete(self, document_id: str, keep_chunk_ids: list[str] | None = None) -> None:
        """
        Delete every vector whose document_id metadata matches.

        Deleting a document with no vectors is not an error.

        Args:
            document_id: Owning document ID
            keep_chunk_ids: Chunk IDs to spare (used to drop stale chunks
                after a re-ingest)
        """
        pass

    @abstractmethod
    async def search(
        self,
        vector: list[float],
        top_k: int = 10,
        filters: dict[str, Any] | None = None,
    ) -> list[VectorSearchResult]:
        """
        k-NN search.

        Args:
            vector: Query embedding
            top_k: Maximum hits
            filters: Exact-match metadata filters; a list value matches any
                of its elements

        Returns:
            Hits ordered by score descending
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close connections."""
        pass
