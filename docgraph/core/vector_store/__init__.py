"""
Vector index contract and Qdrant implementation.
"""

from docgraph.core.vector_store.base import VectorEntry, VectorIndex, VectorSearchResult
from docgraph.core.vector_store.qdrant import QdrantVectorIndex

__all__ = ["VectorIndex", "VectorEntry", "VectorSearchResult", "QdrantVectorIndex"]
