"""
Token counting for chunks.

Uses tiktoken for accurate OpenAI-compatible token counting with a
character-based approximation mode.
"""

import tiktoken

from docgraph.config import TokenizerConfig


class Tokenizer:
    """
    Token counter used to annotate chunks with their size.

    Usage:
        tokenizer = Tokenizer()
        count = tokenizer.count_tokens("Hello world")
    """

    def __init__(self, config: TokenizerConfig | None = None):
        """
        Initialize tokenizer with configuration.

        Args:
            config: Optional tokenizer configuration. Uses defaults if not provided.
        """
        self.config = config or TokenizerConfig()
        self._encoder: tiktoken.Encoding | None = None

    @property
    def encoder(self) -> tiktoken.Encoding:
        """
        Lazy-load tiktoken encoder.

        Returns:
            Tiktoken encoding instance
        """
        if self._encoder is None:
            self._encoder = tiktoken.get_encoding(self.config.model)
        return self._encoder

    def count_tokens(self, text: str) -> int:
        """
        Count tokens, exactly with tiktoken or approximately when configured.

        Args:
            text: Text to count tokens for

        Returns:
            Token count
        """
        if not text:
            return 0

        if self.config.provider == "approximate":
            return self.estimate_tokens(text)

        return len(self.encoder.encode(text, disallowed_special=()))

    def estimate_tokens(self, text: str) -> int:
        """
        Fast approximate token count using the configured chars_per_token ratio.

        Args:
            text: Text to estimate tokens for

        Returns:
            Approximate token count
        """
        if not text:
            return 0
        return int(len(text) / self.config.chars_per_token)
