"""Utility modules for docgraph."""

from docgraph.utils.exceptions import (
    ConfigurationError,
    DocGraphError,
    EmbeddingError,
    GraphStoreError,
    LLMError,
    NotFoundError,
    SourceControlError,
    StoreError,
    SyncError,
    TransientEmbeddingError,
    TransientError,
    TransientGraphStoreError,
    TransientVectorStoreError,
    ValidationError,
    VectorStoreError,
)
from docgraph.utils.id_generator import (
    derive_title,
    generate_chunk_id,
    generate_code_example_id,
    generate_document_id,
    generate_repository_node_id,
    normalize_concept_id,
    normalize_path,
    resolve_relative_link,
)
from docgraph.utils.logger import get_logger, setup_logging
from docgraph.utils.retry import RetryPolicy, is_transient

__all__ = [
    # Logging
    "get_logger",
    "setup_logging",
    # Retry
    "RetryPolicy",
    "is_transient",
    # ID Generators
    "derive_title",
    "generate_document_id",
    "generate_chunk_id",
    "generate_code_example_id",
    "generate_repository_node_id",
    "normalize_concept_id",
    "normalize_path",
    "resolve_relative_link",
    # Exceptions
    "DocGraphError",
    "TransientError",
    "StoreError",
    "VectorStoreError",
    "GraphStoreError",
    "TransientVectorStoreError",
    "TransientEmbeddingError",
    "TransientGraphStoreError",
    "SyncError",
    "SourceControlError",
    "ValidationError",
    "NotFoundError",
    "ConfigurationError",
    "EmbeddingError",
    "LLMError",
]
