"""
Custom exception hierarchy for docgraph.

Provides structured error types for ingestion, sync and query handling.
All exceptions inherit from DocGraphError for easy catching.

Failures that are safe to retry inherit from TransientError; the retry
policy and the HTTP boundary both key off that class.
"""


class DocGraphError(Exception):
    """
    Base exception for all docgraph errors.
    All custom exceptions should inherit from this class.
    """

    def __init__(self, message: str, context: dict | None = None):
        """
        Initialize docgraph error.
        Args:
            message: Error message
            context: Optional context dictionary with additional error details
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}


class TransientError(DocGraphError):
    """
    Transient backend failure (timeout, dropped connection, overloaded server).
    Safe to retry with backoff.
    """

    pass


class StoreError(DocGraphError):
    """
    Base exception for store operations.
    Used for errors related to data storage operations.
    """

    pass


class VectorStoreError(StoreError):
    """
    Vector index operation errors.
    Raised when vector database operations fail.
    """

    pass


class GraphStoreError(StoreError):
    """
    Graph store operation errors.
    Raised when graph database operations fail.
    """

    pass


class TransientVectorStoreError(VectorStoreError, TransientError):
    """Vector index failure classified as transient."""

    pass


class TransientGraphStoreError(GraphStoreError, TransientError):
    """Graph store failure classified as transient."""

    pass


class SyncError(DocGraphError):
    """
    Repository synchronization errors.
    Raised when a sync cycle cannot complete for a repository.
    """

    pass


class SourceControlError(DocGraphError):
    """
    Source control errors.
    Raised when cloning, fetching or diffing a repository fails.
    """

    pass


class ValidationError(DocGraphError):
    """
    Validation errors.
    Raised when input validation fails or required metadata is missing.
    """

    pass


class NotFoundError(DocGraphError):
    """
    Resource not found errors.
    Raised when a requested repository, document or file doesn't exist.
    """

    pass


class ConfigurationError(DocGraphError):
    """
    Configuration errors.
    Raised when configuration is invalid or missing required values.
    """

    pass


class EmbeddingError(DocGraphError):
    """
    Embedding generation errors.
    Raised when embedding generation fails.
    """

    pass


class TransientEmbeddingError(EmbeddingError, TransientError):
    """Embedding provider failure classified as transient."""

    pass


class LLMError(DocGraphError):
    """
    LLM operation errors.
    Raised when LLM operations fail (API errors, timeouts, etc.).
    """

    pass
