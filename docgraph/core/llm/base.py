"""
Abstract base class for LLM providers.
Handles answer synthesis and structured extraction.
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel


class LLMProvider(ABC):
    """
    Abstract base for LLM text generation providers.

    Responsibilities:
    - Answer synthesis from a system prompt and context messages
    - Structured output (Pydantic models) for concept extraction
    """

    @abstractmethod
    async def synthesize(
        self,
        system_prompt: str,
        messages: list[dict[str, str]],
        max_tokens: int = 2000,
        temperature: float = 0.0,
    ) -> str:
        """
        Generate an answer from a system prompt and chat messages.

        Args:
            system_prompt: Instructions for the model
            messages: Chat messages ({"role": ..., "content": ...}) carrying
                the retrieved context and the user question
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature

        Returns:
            Generated text

        Raises:
            ValidationError: If messages are empty
            LLMError: If the provider call fails
        """
        pass

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        response_format: type[BaseModel] | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.0,
        **kwargs,
    ) -> BaseModel | str:
        """
        Generate completion from prompt.

        Args:
            prompt: The input prompt
            response_format: Optional Pydantic model for structured output
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature (0.0 = deterministic, 1.0 = creative)
            **kwargs: Provider-specific parameters

        Returns:
            Pydantic model instance if response_format provided, else string

        Raises:
            ValidationError: If the prompt is empty or structured parsing fails
            LLMError: If the provider call fails
        """
        pass

    @abstractmethod
    async def close(self):
        """
        Close any open connections.
        """
