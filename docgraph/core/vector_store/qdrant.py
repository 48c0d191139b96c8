"""
Qdrant vector index implementation.

One point per chunk. Point IDs are UUIDv5 of the chunk ID so re-ingesting a
document overwrites its points in place.
"""

from typing import Any
from uuid import NAMESPACE_DNS, UUID, uuid5

from qdrant_client import AsyncQdrantClient
from qdrant_client.http.exceptions import ResponseHandlingException, UnexpectedResponse
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    FilterSelector,
    HnswConfigDiff,
    MatchAny,
    MatchValue,
    PointStruct,
    VectorParams,
)

from docgraph.core.vector_store.base import VectorEntry, VectorIndex, VectorSearchResult
from docgraph.utils.exceptions import (
    TransientVectorStoreError,
    ValidationError,
    VectorStoreError,
)
from docgraph.utils.logger import get_logger
from docgraph.utils.retry import RetryPolicy

logger = get_logger(__name__)

# Payload fields that get a keyword index for filtering
INDEXED_FIELDS = (
    "document_id",
    "chunk_id",
    "repository",
    "doc_type",
    "promotion_level",
    "project",
    "branch",
)

_TRANSIENT_STATUS_CODES = {408, 429, 500, 502, 503, 504}
_TRANSIENT_MARKERS = ("connection", "timeout", "timed out", "unavailable", "temporarily")


def build_filter(filters: dict[str, Any] | None) -> Filter | None:
    """
    Translate exact-match filters into a Qdrant filter.

    Args:
        filters: Field -> value; list values match any element, None is ignored

    Returns:
        Filter or None when no conditions apply
    """
    if not filters:
        return None

    conditions = []
    for key, value in filters.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple, set)):
            conditions.append(FieldCondition(key=key, match=MatchAny(any=list(value))))
        else:
            conditions.append(FieldCondition(key=key, match=MatchValue(value=value)))

    return Filter(must=conditions) if conditions else None


class QdrantVectorIndex(VectorIndex):
    """
    Qdrant-backed vector index for chunk embeddings.

    Features:
    - HNSW indexing with cosine distance
    - Keyword payload indices for tenant, repository and document filters
    - Delete by document via payload filter
    - Every call routed through the injected retry policy
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6333,
        collection_name: str = "docgraph_chunks",
        vector_size: int = 768,
        use_grpc: bool = False,
        hnsw_m: int = 16,
        hnsw_ef_construct: int = 100,
        on_disk: bool = False,
        batch_size: int = 100,
        timeout: int = 30,
        retry_policy: RetryPolicy | None = None,
    ):
        """
        Initialize Qdrant index.

        Args:
            host: Qdrant host
            port: Qdrant port (6333 for HTTP, 6334 for gRPC)
            collection_name: Collection name
            vector_size: Embedding dimension
            use_grpc: Use gRPC connection
            hnsw_m: HNSW M parameter (connections per node)
            hnsw_ef_construct: HNSW ef_construct parameter
            on_disk: Store vectors on disk (reduces RAM usage)
            batch_size: Points per upsert request in batch_upsert
            timeout: Request timeout in seconds
            retry_policy: Retry policy for backend calls
        """
        self.host = host
        self.port = port
        self.collection_name = collection_name
        self.vector_size = vector_size
        self.use_grpc = use_grpc
        self.hnsw_m = hnsw_m
        self.hnsw_ef_construct = hnsw_ef_construct
        self.on_disk = on_disk
        self.batch_size = batch_size
        self.timeout = timeout
        self.retry_policy = retry_policy or RetryPolicy()
        self.client: AsyncQdrantClient | None = None

    def _to_uuid(self, id_str: str) -> str:
        """
        Convert string ID to UUID format consistently.

        Args:
            id_str: String identifier

        Returns:
            UUID string
        """
        try:
            UUID(id_str)
            return id_str
        except ValueError:
            return str(uuid5(NAMESPACE_DNS, id_str))

    def _wrap_error(self, error: Exception, message: str) -> VectorStoreError:
        """Classify a backend error as transient or permanent."""
        transient = isinstance(error, (ResponseHandlingException, TimeoutError, ConnectionError))
        if isinstance(error, UnexpectedResponse):
            transient = error.status_code in _TRANSIENT_STATUS_CODES
        elif not transient:
            text = str(error).lower()
            transient = any(marker in text for marker in _TRANSIENT_MARKERS)

        error_class = TransientVectorStoreError if transient else VectorStoreError
        return error_class(
            f"{message}: {error}",
            context={"collection": self.collection_name, "error_type": type(error).__name__},
        )

    async def _call(self, operation, operation_name: str, error_message: str):
        """Run one backend call under the retry policy, wrapping backend errors."""

        async def _attempt():
            try:
                return await operation()
            except Exception as e:
                logger.bind(
                    collection=self.collection_name, operation=operation_name, error=str(e)
                ).error(f"{error_message}: {e}")
                raise self._wrap_error(e, error_message) from e

        return await self.retry_policy.execute(_attempt, operation_name)

    async def connect(self) -> None:
        """
        Establish connection to Qdrant.

        Raises:
            VectorStoreError: If connection fails
        """
        if self.client is None:
            try:
                self.client = AsyncQdrantClient(
                    host=self.host,
                    port=self.port,
                    prefer_grpc=self.use_grpc,
                    timeout=self.timeout,
                )
            except Exception as e:
                logger.bind(
                    host=self.host, port=self.port, error=str(e)
                ).error(f"Failed to connect to Qdrant: {e}")
                raise VectorStoreError(f"Failed to connect to Qdrant: {e}") from e

    async def initialize(self) -> None:
        """
        Create the collection and payload indices if missing.

        Raises:
            VectorStoreError: If initialization fails
        """
        await self.connect()

        async def _initialize():
            collections = await self.client.get_collections()
            collection_names = [col.name for col in collections.collections]
            if self.collection_name in collection_names:
                return

            await self.client.create_collection(
                collection_name=self.collection_name,
                vectors_config=VectorParams(
                    size=self.vector_size,
                    distance=Distance.COSINE,
                    hnsw_config=HnswConfigDiff(
                        m=self.hnsw_m,
                        ef_construct=self.hnsw_ef_construct,
                    ),
                    on_disk=self.on_disk,
                ),
            )

            for field_name in INDEXED_FIELDS:
                await self.client.create_payload_index(
                    collection_name=self.collection_name,
                    field_name=field_name,
                    field_schema="keyword",
                )

        await self._call(
            _initialize, "qdrant.initialize", "Failed to initialize Qdrant collection"
        )

    def _to_point(self, id: str, vector: list[float], metadata: dict[str, Any]) -> PointStruct:
        if not id:
            raise ValidationError("Vector ID cannot be empty")
        if not vector:
            raise ValidationError("Vector cannot be empty", context={"id": id})
        if not metadata.get("document_id"):
            raise ValidationError("Vector metadata must include document_id", context={"id": id})

        return PointStruct(
            id=self._to_uuid(id),
            vector=vector,
            payload={**metadata, "original_id": id},
        )

    async def upsert(self, id: str, vector: list[float], metadata: dict[str, Any]) -> None:
        """
        Store or replace one chunk vector.

        Raises:
            ValidationError: If ID, vector or document_id is missing
            VectorStoreError: If upsert operation fails
        """
        point = self._to_point(id, vector, metadata)
        await self.connect()

        await self._call(
            lambda: self.client.upsert(
                collection_name=self.collection_name, points=[point], wait=True
            ),
            "qdrant.upsert",
            f"Failed to upsert vector {id}",
        )

    async def batch_upsert(self, entries: list[VectorEntry]) -> None:
        """
        Upsert many vectors in batches of batch_size.

        Raises:
            ValidationError: If any entry is invalid (nothing is written)
            VectorStoreError: If a batch fails
        """
        points = [self._to_point(e.id, e.vector, e.metadata) for e in entries]
        if not points:
            return
        await self.connect()

        for i in range(0, len(points), self.batch_size):
            batch = points[i : i + self.batch_size]
            await self._call(
                lambda batch=batch: self.client.upsert(
                    collection_name=self.collection_name, points=batch, wait=True
                ),
                "qdrant.batch_upsert",
                "Failed to batch upsert vectors",
            )

        logger.bind(
            collection=self.collection_name, count=len(points)
        ).debug(f"Upserted {len(points)} vectors")

    async def delete(self, document_id: str, keep_chunk_ids: list[str] | None = None) -> None:
        """
        Delete vectors of a document by payload match.

        Raises:
            ValidationError: If document_id is empty
            VectorStoreError: If delete operation fails
        """
        if not document_id:
            raise ValidationError("Document ID cannot be empty")
        await self.connect()

        must_not = (
            [FieldCondition(key="chunk_id", match=MatchAny(any=list(keep_chunk_ids)))]
            if keep_chunk_ids
            else None
        )
        selector = FilterSelector(
            filter=Filter(
                must=[FieldCondition(key="document_id", match=MatchValue(value=document_id))],
                must_not=must_not,
            )
        )

        await self._call(
            lambda: self.client.delete(
                collection_name=self.collection_name, points_selector=selector, wait=True
            ),
            "qdrant.delete",
            f"Failed to delete vectors of {document_id}",
        )

    async def search(
        self,
        vector: list[float],
        top_k: int = 10,
        filters: dict[str, Any] | None = None,
    ) -> list[VectorSearchResult]:
        """
        k-NN search with exact-match payload filters.

        Returns:
            Hits ordered by score descending
        """
        if not vector:
            raise ValidationError("Query vector cannot be empty")
        await self.connect()

        query_filter = build_filter(filters)
        response = await self._call(
            lambda: self.client.query_points(
                collection_name=self.collection_name,
                query=vector,
                limit=top_k,
                query_filter=query_filter,
                with_payload=True,
                with_vectors=False,
            ),
            "qdrant.search",
            "Failed to search vectors",
        )

        results = []
        for point in response.points:
            payload = dict(point.payload or {})
            original_id = payload.pop("original_id", str(point.id))
            results.append(
                VectorSearchResult(id=original_id, score=point.score, metadata=payload)
            )

        results.sort(key=lambda r: r.score, reverse=True)
        return results

    async def close(self) -> None:
        """Close Qdrant client."""
        if self.client is not None:
            await self.client.close()
            self.client = None
