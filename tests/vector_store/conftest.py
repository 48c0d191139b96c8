"""
Shared test fixtures for vector store tests.
"""

from unittest.mock import AsyncMock, patch

import pytest

from docgraph.core.vector_store.qdrant import QdrantVectorIndex
from docgraph.utils.retry import RetryPolicy


@pytest.fixture
def qdrant_index():
    """Create Qdrant index for testing."""
    return QdrantVectorIndex(
        host="localhost",
        port=6333,
        collection_name="test_chunks",
        vector_size=4,
        batch_size=2,
        retry_policy=RetryPolicy.no_retry(),
    )


@pytest.fixture
def mock_client():
    """Patch AsyncQdrantClient and yield the client instance."""
    with patch("docgraph.core.vector_store.qdrant.AsyncQdrantClient") as client_class:
        client = AsyncMock()
        client_class.return_value = client
        yield client


def chunk_metadata(chunk_id: str, document_id: str = "docs-repo:docs/auth.md") -> dict:
    """Payload as written by the ingestion service."""
    return {
        "document_id": document_id,
        "chunk_id": chunk_id,
        "repository": "docs-repo",
        "file_path": "docs/auth.md",
        "promotion_level": "draft",
    }


@pytest.fixture
def metadata_factory():
    return chunk_metadata
