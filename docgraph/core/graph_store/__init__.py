"""
Graph store contract and Neo4j implementation.
"""

from docgraph.core.graph_store.base import GraphStore
from docgraph.core.graph_store.neo4j_store import Neo4jGraphStore

__all__ = ["GraphStore", "Neo4jGraphStore"]
