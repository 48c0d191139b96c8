"""
Factory modules for creating docgraph components.

Provides modular factories for LLM, Embedder, Graph Store, Vector Index and
Source Control.
"""

from docgraph.core.factory.embedder_factory import EmbedderFactory
from docgraph.core.factory.graph_factory import GraphStoreFactory
from docgraph.core.factory.llm_factory import LLMFactory
from docgraph.core.factory.source_control_factory import SourceControlFactory
from docgraph.core.factory.vector_factory import VectorStoreFactory

__all__ = [
    "LLMFactory",
    "EmbedderFactory",
    "GraphStoreFactory",
    "VectorStoreFactory",
    "SourceControlFactory",
]
