"""
Embedding providers.
"""

from docgraph.core.embeddings.base import Embedder
from docgraph.core.embeddings.ollama import OllamaEmbedder
from docgraph.core.embeddings.openai import OpenAIEmbedder

__all__ = ["Embedder", "OllamaEmbedder", "OpenAIEmbedder"]
