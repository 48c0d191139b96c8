"""
Factory for creating embedder providers.
"""

from docgraph.config import EmbedderConfig
from docgraph.core.embeddings.base import Embedder
from docgraph.core.embeddings.ollama import OllamaEmbedder
from docgraph.core.embeddings.openai import OpenAIEmbedder
from docgraph.utils.exceptions import ConfigurationError
from docgraph.utils.retry import RetryPolicy


class EmbedderFactory:
    """Factory for creating embedder providers from configuration."""

    @staticmethod
    def create(config: EmbedderConfig, retry_policy: RetryPolicy | None = None) -> Embedder:
        """
        Create embedder from configuration.

        Args:
            config: Embedder configuration
            retry_policy: Retry policy for embedding requests

        Returns:
            Embedder instance

        Raises:
            ConfigurationError: If provider is not supported or misconfigured
        """
        if config.provider == "ollama":
            return OllamaEmbedder(
                host=config.base_url,
                model=config.model,
                timeout=config.timeout,
                retry_policy=retry_policy,
            )
        elif config.provider == "openai":
            if not config.api_key:
                raise ConfigurationError("OpenAI API key is required")
            return OpenAIEmbedder(
                api_key=config.api_key,
                model=config.model,
                timeout=config.timeout,
                retry_policy=retry_policy,
            )
        else:
            raise ConfigurationError(
                f"Unsupported embedder provider: {config.provider}",
                context={"provider": config.provider},
            )

    @staticmethod
    async def get_dimension(embedder: Embedder, config: EmbedderConfig | None = None) -> int:
        """
        Get embedding dimension, preferring the configured value.

        Args:
            embedder: Embedder instance
            config: Optional embedder config with dimension hint

        Returns:
            Embedding dimension
        """
        if config and config.dimension:
            return config.dimension
        return await embedder.get_dimension()
