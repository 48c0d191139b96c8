"""
Services for docgraph.

High-level business logic services:
- DocumentIngestionService: Markdown -> graph nodes and chunk vectors
- CrossRepoEntityResolver: Canonical concepts shared across repositories
- SyncRunner / SyncScheduler: Git change detection and periodic sync
- GraphRagPipeline: Vector search + graph traversal + cited synthesis
"""

from docgraph.services.document_ingestion import DocumentIngestionService
from docgraph.services.entity_resolver import CrossRepoEntityResolver
from docgraph.services.graph_rag_pipeline import GraphRagPipeline
from docgraph.services.sync_runner import SyncRunner, SyncScheduler

__all__ = [
    "DocumentIngestionService",
    "CrossRepoEntityResolver",
    "GraphRagPipeline",
    "SyncRunner",
    "SyncScheduler",
]
