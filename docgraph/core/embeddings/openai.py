"""
OpenAI embedder using the official SDK.
"""

import openai
from openai import AsyncOpenAI

from docgraph.core.embeddings.base import TRANSIENT_STATUS_CODES, Embedder
from docgraph.utils.retry import RetryPolicy

# Dimensions of OpenAI's published embedding models
MODEL_DIMENSIONS = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}


class OpenAIEmbedder(Embedder):
    """
    OpenAI embedder for chunk and query embeddings.

    The SDK's own retries are disabled so the injected RetryPolicy is the
    only retry loop. Rate limits, 5xx responses and connection failures
    are transient.
    """

    provider = "OpenAI"
    max_batch_size = 2048

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        organization: str | None = None,
        base_url: str | None = None,
        timeout: float = 120.0,
        retry_policy: RetryPolicy | None = None,
    ):
        """
        Initialize OpenAI embedder.

        Args:
            api_key: OpenAI API key
            model: Embedding model name, e.g. "text-embedding-3-small"
            organization: Optional organization ID
            base_url: Optional OpenAI-compatible endpoint
            timeout: Request timeout in seconds
            retry_policy: Retry policy for embedding requests
        """
        super().__init__(model, retry_policy)
        self.client = AsyncOpenAI(
            api_key=api_key,
            organization=organization,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
        )

    async def _request(self, texts: list[str]) -> list[list[float]]:
        response = await self.client.embeddings.create(model=self.model, input=texts)
        # Items carry their input position; the API does not promise ordering
        ordered = sorted(response.data, key=lambda item: item.index)
        return [item.embedding for item in ordered]

    def is_transient_error(self, error: Exception) -> bool:
        if isinstance(error, openai.APIConnectionError):
            return True
        if isinstance(error, openai.APIStatusError):
            return error.status_code in TRANSIENT_STATUS_CODES
        return super().is_transient_error(error)

    async def get_dimension(self) -> int:
        """Known dimension for published models, otherwise measured once."""
        if self.model in MODEL_DIMENSIONS:
            return MODEL_DIMENSIONS[self.model]
        return await super().get_dimension()

    async def close(self):
        """Close OpenAI client."""
        await self.client.close()
