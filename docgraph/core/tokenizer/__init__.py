"""
Tokenizer module for chunk token counts.
"""

from docgraph.config import TokenizerConfig
from docgraph.core.tokenizer.tokenizer import Tokenizer

__all__ = ["Tokenizer", "TokenizerConfig"]
