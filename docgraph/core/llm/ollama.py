"""
Ollama LLM provider using native ollama-python SDK.
"""

import json

import ollama
from pydantic import BaseModel

from docgraph.core.llm.base import LLMProvider
from docgraph.utils.exceptions import LLMError, ValidationError
from docgraph.utils.logger import get_logger

logger = get_logger(__name__)


class OllamaLLM(LLMProvider):
    """
    Ollama LLM provider.

    Uses native ollama-python SDK for chat completions
    with JSON mode for structured outputs.
    """

    def __init__(
        self,
        host: str = "http://localhost:11434",
        model: str = "llama3.1:8b",
        timeout: float = 120.0,
    ):
        """
        Initialize Ollama LLM provider.

        Args:
            host: Ollama server URL
            model: Model name for text generation (e.g., "llama3.1", "mistral")
            timeout: Request timeout in seconds
        """
        self.host = host
        self.model = model
        self.timeout = timeout

        self.client = ollama.AsyncClient(host=host, timeout=timeout)

    async def synthesize(
        self,
        system_prompt: str,
        messages: list[dict[str, str]],
        max_tokens: int = 2000,
        temperature: float = 0.0,
    ) -> str:
        """
        Generate an answer using Ollama chat.

        Args:
            system_prompt: Instructions for the model
            messages: Context and question messages
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature

        Returns:
            Generated answer text

        Raises:
            ValidationError: If messages are empty
            LLMError: If the Ollama call fails
        """
        if not messages:
            raise ValidationError("Messages cannot be empty")

        try:
            response = await self.client.chat(
                model=self.model,
                messages=[{"role": "system", "content": system_prompt}, *messages],
                options={"temperature": temperature, "num_predict": max_tokens},
            )
        except Exception as e:
            logger.bind(
                model=self.model, host=self.host, error=str(e)
            ).error(f"Ollama chat error: {e}")
            raise LLMError(f"Ollama chat error: {e}") from e

        content = response["message"]["content"]
        if not content:
            raise LLMError("Ollama returned empty content")
        return content

    async def complete(
        self,
        prompt: str,
        response_format: type[BaseModel] | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.0,
        **kwargs,
    ) -> BaseModel | str:
        """
        Generate completion using Ollama.

        Supports structured output via JSON mode and schema validation.

        Args:
            prompt: Input prompt
            response_format: Optional Pydantic model for structured JSON output
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature
            **kwargs: Additional options (passed to Ollama)

        Returns:
            Pydantic model if response_format provided, else string

        Raises:
            ValidationError: If the prompt is empty or structured parsing fails
            LLMError: If the Ollama call fails
        """
        if not prompt or not prompt.strip():
            raise ValidationError("Prompt cannot be empty")

        options = {
            "temperature": temperature,
            "num_predict": max_tokens,
            **kwargs.get("options", {}),
        }

        format_type = None
        messages = [{"role": "user", "content": prompt}]

        if response_format:
            format_type = "json"
            schema = json.dumps(response_format.model_json_schema(), indent=2)
            messages = [
                {
                    "role": "user",
                    "content": f"""{prompt}

You MUST respond with a JSON object that validates against this JSON schema:
{schema}

IMPORTANT:
- Return actual data, not the schema itself
- Return ONLY valid JSON, no markdown formatting or extra text""",
                }
            ]

        try:
            response = await self.client.chat(
                model=self.model,
                messages=messages,
                format=format_type,
                options=options,
                **{k: v for k, v in kwargs.items() if k != "options"},
            )
        except Exception as e:
            logger.bind(
                model=self.model, host=self.host, error=str(e)
            ).error(f"Ollama chat error: {e}")
            raise LLMError(f"Ollama chat error: {e}") from e

        content = response["message"]["content"]

        if response_format:
            try:
                return response_format.model_validate_json(self._extract_json(content))
            except Exception as e:
                raise ValidationError(
                    f"Failed to parse structured output as {response_format.__name__}: {e}",
                    context={"raw_response": content[:500]},
                ) from e

        return content

    def _extract_json(self, content: str) -> str:
        """
        Extract JSON from content that might have markdown formatting.

        Args:
            content: Raw content that may contain JSON

        Returns:
            Cleaned JSON string
        """
        content = content.strip()

        if "```json" in content:
            content = content.split("```json")[1].split("```")[0].strip()
        elif "```" in content:
            content = content.split("```")[1].split("```")[0].strip()

        return content

    async def close(self):
        """Close client (Ollama SDK handles cleanup internally)."""
        pass
