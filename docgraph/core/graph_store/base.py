"""
Base interface for graph storage.

The graph holds Documents, Chunks, CodeExamples, Concepts and Repository
provenance nodes, the typed edges between them, and per-repository sync
state. Traversal helpers are expressed here so the query pipeline never
builds backend queries itself.
"""

from abc import ABC, abstractmethod
from typing import Any

from docgraph.models.concept import Concept
from docgraph.models.document import Chunk, DocumentGraph
from docgraph.models.relationships import GraphNeighbor, NodeLabel, Relationship
from docgraph.models.sync import SyncState


class GraphStore(ABC):
    """Abstract base class for graph storage implementations."""

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the graph store (constraints and indexes)."""
        pass

    # ═══════════════════════════════════════════════════════════
    # NODE & EDGE OPERATIONS
    # ═══════════════════════════════════════════════════════════

    @abstractmethod
    async def upsert_node(self, node_id: str, label: NodeLabel, properties: dict[str, Any]) -> None:
        """
        Create or update a node.

        Args:
            node_id: Node identifier
            label: Node label
            properties: Properties to set (merged into existing ones)
        """
        pass

    @abstractmethod
    async def upsert_relationship(self, relationship: Relationship) -> None:
        """
        Create or update a directed edge.

        At most one edge of a given type exists between two nodes; upserting
        again updates its properties.

        Args:
            relationship: Edge to write
        """
        pass

    @abstractmethod
    async def write_document_graph(self, graph: DocumentGraph) -> None:
        """
        Persist everything one ingest produced as a single transaction.

        Chunks, code examples, mentions and links left over from an earlier
        ingest of the same document are removed in the same transaction.

        Args:
            graph: Document, chunks, code examples, concepts and edges
        """
        pass

    @abstractmethod
    async def delete_subgraph(self, document_id: str) -> int:
        """
        Delete a document with its chunks and code examples.

        Shared concepts are left in place. Deleting a missing document is
        not an error.

        Args:
            document_id: Document identifier

        Returns:
            Number of nodes deleted
        """
        pass

    # ═══════════════════════════════════════════════════════════
    # SYNC STATE
    # ═══════════════════════════════════════════════════════════

    @abstractmethod
    async def get_sync_state(self, repository: str) -> SyncState | None:
        """
        Read the sync state of a repository.

        Args:
            repository: Repository name (case-insensitive)

        Returns:
            SyncState or None before the first sync
        """
        pass

    @abstractmethod
    async def set_sync_state(
        self, repository: str, commit_hash: str, failed_paths: list[str] | None = None
    ) -> None:
        """
        Record the commit a repository was synced to.

        Args:
            repository: Repository name (case-insensitive)
            commit_hash: Commit the working copy was at
            failed_paths: Paths to retry on the next cycle
        """
        pass

    # ═══════════════════════════════════════════════════════════
    # QUERIES & TRAVERSAL
    # ═══════════════════════════════════════════════════════════

    @abstractmethod
    async def execute_query(
        self, query: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """
        Run a read query.

        Args:
            query: openCypher query text
            params: Query parameters

        Returns:
            One dict per result record
        """
        pass

    @abstractmethod
    async def find_concepts(self, keys: list[str]) -> list[Concept]:
        """
        Find concepts whose name or any alias matches one of the keys.

        Args:
            keys: Lowercased names/aliases

        Returns:
            Matching concepts ordered by ID
        """
        pass

    @abstractmethod
    async def get_chunks(self, chunk_ids: list[str]) -> list[Chunk]:
        """
        Load chunks by ID.

        Args:
            chunk_ids: Chunk identifiers

        Returns:
            Chunks that exist, in no particular order
        """
        pass

    @abstractmethod
    async def get_neighbors(
        self, node_ids: list[str], relationship_types: list[str], limit: int = 200
    ) -> list[GraphNeighbor]:
        """
        One traversal step in both directions.

        Only Document, Chunk and Concept nodes are returned.

        Args:
            node_ids: Nodes to expand
            relationship_types: Edge types to follow
            limit: Maximum neighbours returned for each node in node_ids

        Returns:
            Reached nodes with the edge used to reach them
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close connections."""
        pass
