"""
Relationship models and node labels for the documentation graph.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class NodeLabel(str, Enum):
    """Labels of nodes stored in the graph."""

    DOCUMENT = "Document"
    CHUNK = "Chunk"
    CONCEPT = "Concept"
    CODE_EXAMPLE = "CodeExample"
    REPOSITORY = "Repository"


class RelationshipType(str, Enum):
    """Types of relationships between nodes in the knowledge graph."""

    # Document structure (Document → Chunk → CodeExample)
    HAS_CHUNK = "HAS_CHUNK"
    HAS_CODE_EXAMPLE = "HAS_CODE_EXAMPLE"

    # Chunk → Concept
    MENTIONS = "MENTIONS"

    # Concept ↔ Concept, and Repository → Concept provenance
    RELATES_TO = "RELATES_TO"

    # Document → Document
    LINKS_TO = "LINKS_TO"


class Relationship(BaseModel):
    """Directed, typed edge between two nodes."""

    type: str = Field(..., description="Relationship type, e.g. MENTIONS")
    source_id: str = Field(..., description="Source node ID")
    target_id: str = Field(..., description="Target node ID")
    properties: dict[str, Any] = Field(default_factory=dict)

    # Optional label hints let the store match endpoints by label
    source_label: NodeLabel | None = None
    target_label: NodeLabel | None = None


class GraphNode(BaseModel):
    """A node as returned by graph queries."""

    id: str
    label: NodeLabel
    properties: dict[str, Any] = Field(default_factory=dict)

    @property
    def repository(self) -> str | None:
        return self.properties.get("repository")

    @property
    def name(self) -> str | None:
        return self.properties.get("name")


class GraphNeighbor(BaseModel):
    """One traversal step: the node reached and the edge used to reach it."""

    source_id: str = Field(..., description="Node the step started from")
    relationship_type: str
    node: GraphNode
