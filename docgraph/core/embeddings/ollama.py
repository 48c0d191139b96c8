"""
Ollama embedder using the batched /api/embed endpoint.
"""

import httpx
import ollama

from docgraph.core.embeddings.base import TRANSIENT_STATUS_CODES, Embedder
from docgraph.utils.exceptions import EmbeddingError
from docgraph.utils.retry import RetryPolicy


class OllamaEmbedder(Embedder):
    """
    Ollama embedder for chunk and query embeddings.

    A whole batch goes out as one request; server overload (503, 429) and
    dropped connections are retried.
    """

    provider = "Ollama"
    max_batch_size = 64

    def __init__(
        self,
        host: str = "http://localhost:11434",
        model: str = "nomic-embed-text",
        timeout: float = 120.0,
        retry_policy: RetryPolicy | None = None,
    ):
        """
        Initialize Ollama embedder.

        Args:
            host: Ollama server URL
            model: Embedding model name, e.g. "nomic-embed-text"
            timeout: Request timeout in seconds
            retry_policy: Retry policy for embedding requests
        """
        super().__init__(model, retry_policy)
        self.host = host
        self.timeout = timeout
        self.client = ollama.AsyncClient(host=host, timeout=timeout)

    async def _request(self, texts: list[str]) -> list[list[float]]:
        response = await self.client.embed(model=self.model, input=texts)
        embeddings = response["embeddings"] if response else None
        if not embeddings:
            raise EmbeddingError(
                "Ollama returned no embeddings", context={"model": self.model}
            )
        return embeddings

    def is_transient_error(self, error: Exception) -> bool:
        if isinstance(error, ollama.ResponseError):
            return error.status_code in TRANSIENT_STATUS_CODES
        return isinstance(error, httpx.TransportError) or super().is_transient_error(error)

    async def close(self):
        """Ollama's async client keeps no session to release."""
        pass
