"""
Tests for Qdrant vector index implementation.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from qdrant_client.http.exceptions import UnexpectedResponse
from qdrant_client.models import MatchAny, MatchValue

from docgraph.core.vector_store.base import VectorEntry
from docgraph.core.vector_store.qdrant import INDEXED_FIELDS, QdrantVectorIndex, build_filter
from docgraph.utils.exceptions import (
    TransientVectorStoreError,
    ValidationError,
    VectorStoreError,
)
from docgraph.utils.retry import RetryPolicy


def unexpected_response(status_code: int) -> UnexpectedResponse:
    return UnexpectedResponse(
        status_code=status_code, reason_phrase="error", content=b"", headers=httpx.Headers()
    )


def scored_point(chunk_id: str, score: float):
    point = MagicMock()
    point.id = "uuid"
    point.score = score
    point.payload = {"document_id": "docs-repo:docs/auth.md", "original_id": chunk_id}
    return point


@pytest.mark.unit
class TestBuildFilter:
    """Test filter translation."""

    def test_no_filters(self):
        assert build_filter(None) is None
        assert build_filter({}) is None
        assert build_filter({"repository": None}) is None

    def test_exact_and_any_match(self):
        """Test scalars become MatchValue and lists become MatchAny."""
        query_filter = build_filter(
            {"repository": "docs-repo", "promotion_level": ["draft", "promoted"], "doc_type": None}
        )

        conditions = {c.key: c.match for c in query_filter.must}
        assert set(conditions) == {"repository", "promotion_level"}
        assert conditions["repository"] == MatchValue(value="docs-repo")
        assert conditions["promotion_level"] == MatchAny(any=["draft", "promoted"])


@pytest.mark.unit
@pytest.mark.asyncio
class TestQdrantVectorIndex:
    """Test Qdrant vector index implementation."""

    async def test_initialization(self, qdrant_index):
        """Test index initialization."""
        assert qdrant_index.collection_name == "test_chunks"
        assert qdrant_index.vector_size == 4
        assert qdrant_index.client is None

    async def test_to_uuid_stable(self, qdrant_index):
        """Test chunk IDs map to the same UUID every time."""
        first = qdrant_index._to_uuid("docs-repo:docs/auth.md:chunk-0")

        assert first == qdrant_index._to_uuid("docs-repo:docs/auth.md:chunk-0")
        assert len(first) == 36

    async def test_to_uuid_passthrough(self, qdrant_index):
        uuid_str = "550e8400-e29b-41d4-a716-446655440000"
        assert qdrant_index._to_uuid(uuid_str) == uuid_str

    async def test_connect(self, qdrant_index):
        """Test connection to Qdrant."""
        with patch("docgraph.core.vector_store.qdrant.AsyncQdrantClient") as client_class:
            client_class.return_value = AsyncMock()
            await qdrant_index.connect()

            assert qdrant_index.client is not None
            assert client_class.call_args.kwargs["host"] == "localhost"

    async def test_connect_failure(self, qdrant_index):
        with patch("docgraph.core.vector_store.qdrant.AsyncQdrantClient") as client_class:
            client_class.side_effect = Exception("refused")
            with pytest.raises(VectorStoreError, match="Failed to connect"):
                await qdrant_index.connect()

    async def test_initialize_creates_collection(self, qdrant_index, mock_client):
        """Test the collection and keyword payload indices are created when missing."""
        mock_client.get_collections.return_value = MagicMock(collections=[])

        await qdrant_index.initialize()

        mock_client.create_collection.assert_awaited_once()
        indexed = [c.kwargs["field_name"] for c in mock_client.create_payload_index.call_args_list]
        assert indexed == list(INDEXED_FIELDS)

    async def test_initialize_existing_collection(self, qdrant_index, mock_client):
        existing = MagicMock()
        existing.name = "test_chunks"
        mock_client.get_collections.return_value = MagicMock(collections=[existing])

        await qdrant_index.initialize()

        mock_client.create_collection.assert_not_called()

    async def test_upsert(self, qdrant_index, mock_client, metadata_factory):
        """Test the chunk ID is kept in the payload."""
        await qdrant_index.upsert("c-0", [0.1, 0.2, 0.3, 0.4], metadata_factory("c-0"))

        point = mock_client.upsert.call_args.kwargs["points"][0]
        assert point.payload["original_id"] == "c-0"
        assert point.payload["chunk_id"] == "c-0"
        assert point.id == qdrant_index._to_uuid("c-0")

    async def test_upsert_requires_document_id(self, qdrant_index, mock_client):
        with pytest.raises(ValidationError, match="document_id"):
            await qdrant_index.upsert("c-0", [0.1], {"chunk_id": "c-0"})

        mock_client.upsert.assert_not_called()

    async def test_upsert_empty_vector(self, qdrant_index, mock_client, metadata_factory):
        with pytest.raises(ValidationError):
            await qdrant_index.upsert("c-0", [], metadata_factory("c-0"))

    async def test_batch_upsert_batches(self, qdrant_index, mock_client, metadata_factory):
        """Test entries are written in batch_size groups."""
        entries = [
            VectorEntry(id=f"c-{i}", vector=[float(i)] * 4, metadata=metadata_factory(f"c-{i}"))
            for i in range(5)
        ]

        await qdrant_index.batch_upsert(entries)

        sizes = [len(c.kwargs["points"]) for c in mock_client.upsert.call_args_list]
        assert sizes == [2, 2, 1]

    async def test_batch_upsert_invalid_entry_writes_nothing(
        self, qdrant_index, mock_client, metadata_factory
    ):
        entries = [
            VectorEntry(id="c-0", vector=[0.1] * 4, metadata=metadata_factory("c-0")),
            VectorEntry(id="c-1", vector=[], metadata=metadata_factory("c-1")),
        ]

        with pytest.raises(ValidationError):
            await qdrant_index.batch_upsert(entries)

        mock_client.upsert.assert_not_called()

    async def test_batch_upsert_empty(self, qdrant_index, mock_client):
        await qdrant_index.batch_upsert([])

        mock_client.upsert.assert_not_called()

    async def test_delete_by_document(self, qdrant_index, mock_client):
        """Test deletion filters on document_id and spares kept chunks."""
        await qdrant_index.delete("docs-repo:docs/auth.md", keep_chunk_ids=["c-0"])

        selector = mock_client.delete.call_args.kwargs["points_selector"]
        assert selector.filter.must[0].key == "document_id"
        assert selector.filter.must[0].match == MatchValue(value="docs-repo:docs/auth.md")
        assert selector.filter.must_not[0].match == MatchAny(any=["c-0"])

    async def test_delete_whole_document(self, qdrant_index, mock_client):
        await qdrant_index.delete("docs-repo:docs/auth.md")

        selector = mock_client.delete.call_args.kwargs["points_selector"]
        assert selector.filter.must_not is None

    async def test_delete_empty_id(self, qdrant_index):
        with pytest.raises(ValidationError):
            await qdrant_index.delete("")

    async def test_search(self, qdrant_index, mock_client):
        """Test hits come back sorted with the original chunk IDs."""
        mock_client.query_points.return_value = MagicMock(
            points=[scored_point("c-1", 0.5), scored_point("c-0", 0.9)]
        )

        results = await qdrant_index.search([0.1] * 4, top_k=2, filters={"repository": "docs-repo"})

        assert [(r.id, r.score) for r in results] == [("c-0", 0.9), ("c-1", 0.5)]
        assert "original_id" not in results[0].metadata
        kwargs = mock_client.query_points.call_args.kwargs
        assert kwargs["limit"] == 2
        assert kwargs["query_filter"].must[0].key == "repository"

    async def test_search_without_filters(self, qdrant_index, mock_client):
        mock_client.query_points.return_value = MagicMock(points=[])

        assert await qdrant_index.search([0.1] * 4) == []
        assert mock_client.query_points.call_args.kwargs["query_filter"] is None

    async def test_search_empty_vector(self, qdrant_index):
        with pytest.raises(ValidationError):
            await qdrant_index.search([])

    async def test_transient_error_classified(self, qdrant_index, mock_client):
        """Test 503 responses are reported as transient."""
        mock_client.query_points.side_effect = unexpected_response(503)

        with pytest.raises(TransientVectorStoreError):
            await qdrant_index.search([0.1] * 4)

    async def test_permanent_error_classified(self, qdrant_index, mock_client):
        mock_client.query_points.side_effect = unexpected_response(400)

        with pytest.raises(VectorStoreError) as exc_info:
            await qdrant_index.search([0.1] * 4)

        assert not isinstance(exc_info.value, TransientVectorStoreError)

    async def test_transient_error_retried(self, mock_client, metadata_factory):
        """Test transient failures are retried by the injected policy."""
        index = QdrantVectorIndex(
            collection_name="test_chunks",
            retry_policy=RetryPolicy(max_attempts=2, initial_delay=0.0, jitter=False),
        )
        mock_client.upsert.side_effect = [ConnectionError("reset"), None]

        with patch("docgraph.utils.retry.asyncio.sleep", new_callable=AsyncMock):
            await index.upsert("c-0", [0.1] * 4, metadata_factory("c-0"))

        assert mock_client.upsert.await_count == 2

    async def test_close(self, qdrant_index, mock_client):
        await qdrant_index.connect()

        await qdrant_index.close()

        mock_client.close.assert_awaited_once()
        assert qdrant_index.client is None
