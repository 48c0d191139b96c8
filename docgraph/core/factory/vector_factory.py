"""
Factory for creating vector index backends.
"""

from urllib.parse import urlparse

from docgraph.config import QdrantConfig
from docgraph.core.vector_store.base import VectorIndex
from docgraph.core.vector_store.qdrant import QdrantVectorIndex
from docgraph.utils.retry import RetryPolicy


class VectorStoreFactory:
    """Factory for creating vector index backends from configuration."""

    @staticmethod
    def create(
        config: QdrantConfig, vector_size: int, retry_policy: RetryPolicy | None = None
    ) -> VectorIndex:
        """
        Create vector index from configuration.

        Args:
            config: Qdrant configuration
            vector_size: Embedding dimension size
            retry_policy: Retry policy for backend calls

        Returns:
            Vector index instance
        """
        parsed = urlparse(config.url)
        host = parsed.hostname or "localhost"
        port = parsed.port or 6333

        return QdrantVectorIndex(
            host=host,
            port=port,
            collection_name=config.collection_name,
            vector_size=vector_size,
            use_grpc=config.use_grpc,
            hnsw_m=config.hnsw_m,
            hnsw_ef_construct=config.hnsw_ef_construct,
            on_disk=config.on_disk,
            batch_size=config.batch_size,
            timeout=config.timeout,
            retry_policy=retry_policy,
        )
