"""
Abstract base class for embedding providers.
Turns chunk and query text into vectors for semantic search.

Every backend request runs under the injected RetryPolicy. Providers only
implement a single batched request and decide which of their client errors
are transient.
"""

from abc import ABC, abstractmethod

from docgraph.utils.exceptions import EmbeddingError, TransientEmbeddingError, ValidationError
from docgraph.utils.logger import get_logger
from docgraph.utils.retry import RetryPolicy

logger = get_logger(__name__)

# HTTP statuses worth retrying on any provider
TRANSIENT_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


class Embedder(ABC):
    """
    Abstract base for embedding providers.

    embed() and batch_embed() validate input, split requests into batches,
    retry transient failures and guarantee one vector per text in input
    order. Subclasses implement _request() and close(), and refine
    is_transient_error() for their client library.
    """

    provider = "embedding"
    max_batch_size = 32

    def __init__(self, model: str, retry_policy: RetryPolicy | None = None):
        """
        Initialize embedder.

        Args:
            model: Embedding model name
            retry_policy: Retry policy for backend requests
        """
        self.model = model
        self.retry_policy = retry_policy or RetryPolicy()
        self._dimension: int | None = None

    @abstractmethod
    async def _request(self, texts: list[str]) -> list[list[float]]:
        """
        Embed one batch with a single backend call.

        Returns:
            One vector per text, in input order
        """
        pass

    def is_transient_error(self, error: Exception) -> bool:
        """Whether a client error is worth retrying."""
        return isinstance(error, (TimeoutError, ConnectionError))

    async def _embed_batch(self, texts: list[str]) -> list[list[float]]:
        async def _attempt():
            try:
                vectors = await self._request(texts)
            except EmbeddingError:
                raise
            except Exception as e:
                logger.bind(
                    model=self.model, texts=len(texts), error_type=type(e).__name__
                ).error(f"{self.provider} embedding error: {e}")
                transient = self.is_transient_error(e)
                error_class = TransientEmbeddingError if transient else EmbeddingError
                raise error_class(
                    f"{self.provider} embedding error: {e}",
                    context={"model": self.model, "error_type": type(e).__name__},
                ) from e

            if len(vectors) != len(texts):
                raise EmbeddingError(
                    f"{self.provider} returned {len(vectors)} embeddings for {len(texts)} texts",
                    context={"model": self.model},
                )
            return [list(vector) for vector in vectors]

        return await self.retry_policy.execute(_attempt, f"{self.provider.lower()}.embed")

    async def embed(self, text: str) -> list[float]:
        """
        Generate embedding vector for text.

        Raises:
            ValidationError: If text is blank
            EmbeddingError: If embedding generation fails
        """
        if not text or not text.strip():
            raise ValidationError("Text cannot be empty")
        vectors = await self._embed_batch([text])
        return vectors[0]

    async def batch_embed(
        self, texts: list[str], batch_size: int | None = None
    ) -> list[list[float]]:
        """
        Generate embeddings for multiple texts.

        Args:
            texts: Texts to embed; none may be blank
            batch_size: Texts per backend request, capped at max_batch_size

        Returns:
            List of embedding vectors (same count and order as input texts)

        Raises:
            ValidationError: If any text is blank
            EmbeddingError: If a request fails or returns the wrong count
        """
        blank = [i for i, text in enumerate(texts) if not text or not text.strip()]
        if blank:
            raise ValidationError("Texts cannot be empty", context={"indices": blank})

        size = min(batch_size or self.max_batch_size, self.max_batch_size)
        embeddings: list[list[float]] = []
        for i in range(0, len(texts), size):
            embeddings.extend(await self._embed_batch(texts[i : i + size]))
        return embeddings

    async def get_dimension(self) -> int:
        """
        Get the dimension of embeddings produced by this provider.

        Measured with one request to the model, then cached.
        """
        if self._dimension is None:
            self._dimension = len(await self.embed("test"))
        return self._dimension

    @abstractmethod
    async def close(self):
        """
        Close any open connections.
        """
        pass
