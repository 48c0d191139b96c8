"""
Data models for docgraph.

Core models:
- Document, Chunk, CodeExample: source content owned by a document
- DocumentMetadata: caller-supplied ingest metadata
- DocumentGraph: atomic graph write unit for one document
- Concept, ExtractedConcept, ConceptExtraction, ResolutionResult: emergent concepts
- Relationship, RelationshipType, NodeLabel, GraphNode, GraphNeighbor: graph edges and nodes
- ChangedFile, ChangeType, SyncState, SyncReport, CycleReport, SyncStatus: repository sync
- GraphRagOptions, GraphRagResult, GraphRagSource: query surface
- TenantContext: (project, branch) scope
- IngestionResult: ingest outcome
"""

from docgraph.models.concept import (
    Concept,
    ConceptExtraction,
    ExtractedConcept,
    ResolutionResult,
)
from docgraph.models.document import (
    Chunk,
    CodeExample,
    Document,
    DocumentGraph,
    DocumentMetadata,
)
from docgraph.models.ingestion import IngestionResult
from docgraph.models.query import GraphRagOptions, GraphRagResult, GraphRagSource
from docgraph.models.relationships import (
    GraphNeighbor,
    GraphNode,
    NodeLabel,
    Relationship,
    RelationshipType,
)
from docgraph.models.sync import (
    ChangedFile,
    ChangeType,
    CycleReport,
    SyncReport,
    SyncState,
    SyncStatus,
)
from docgraph.models.tenant import TenantContext

__all__ = [
    # Source content
    "Document",
    "Chunk",
    "CodeExample",
    "DocumentMetadata",
    "DocumentGraph",
    # Concepts
    "Concept",
    "ExtractedConcept",
    "ConceptExtraction",
    "ResolutionResult",
    # Graph
    "Relationship",
    "RelationshipType",
    "NodeLabel",
    "GraphNode",
    "GraphNeighbor",
    # Sync
    "ChangedFile",
    "ChangeType",
    "SyncState",
    "SyncReport",
    "CycleReport",
    "SyncStatus",
    # Query
    "GraphRagOptions",
    "GraphRagResult",
    "GraphRagSource",
    "TenantContext",
    # Ingestion
    "IngestionResult",
]
