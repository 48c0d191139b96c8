"""
LLM providers.
"""

from docgraph.core.llm.base import LLMProvider
from docgraph.core.llm.ollama import OllamaLLM
from docgraph.core.llm.openai import OpenAILLM

__all__ = ["LLMProvider", "OllamaLLM", "OpenAILLM"]
