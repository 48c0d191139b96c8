"""
Neo4j graph store implementation.

Stores the documentation graph with openCypher. Each ingest is written in
one managed write transaction; every call runs through the injected retry
policy, which only retries failures classified as transient.
"""

import json
import re
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any

from neo4j import AsyncDriver, AsyncGraphDatabase
from neo4j.exceptions import ServiceUnavailable, SessionExpired
from neo4j.exceptions import TransientError as Neo4jTransientError

from docgraph.core.graph_store.base import GraphStore
from docgraph.models.concept import Concept
from docgraph.models.document import Chunk, CodeExample, Document, DocumentGraph
from docgraph.models.relationships import GraphNeighbor, GraphNode, NodeLabel, Relationship
from docgraph.models.sync import SyncState
from docgraph.utils.exceptions import (
    GraphStoreError,
    TransientGraphStoreError,
    ValidationError,
)
from docgraph.utils.logger import get_logger
from docgraph.utils.retry import RetryPolicy

logger = get_logger(__name__)

_RELATIONSHIP_TYPE_PATTERN = re.compile(r"^[A-Z][A-Z0-9_]*$")
_TRAVERSABLE_LABELS = (NodeLabel.DOCUMENT, NodeLabel.CHUNK, NodeLabel.CONCEPT)
_TRANSIENT_MARKERS = ("connection", "timeout", "timed out", "unavailable", "temporarily")


def _property_value(value: Any) -> Any:
    """Coerce a value into something Neo4j can store as a property."""
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (list, tuple, set)) and all(
        isinstance(item, (str, int, float, bool)) for item in value
    ):
        return list(value)
    return json.dumps(value, default=str)


def _properties(values: dict[str, Any]) -> dict[str, Any]:
    return {key: _property_value(value) for key, value in values.items()}


def _document_properties(document: Document) -> dict[str, Any]:
    return _properties(document.model_dump(exclude={"id"}))


def _chunk_properties(chunk: Chunk) -> dict[str, Any]:
    return _properties(chunk.model_dump(exclude={"id"}))


def _code_example_properties(example: CodeExample) -> dict[str, Any]:
    return _properties(example.model_dump(exclude={"id"}))


def _concept_properties(concept: Concept) -> dict[str, Any]:
    props = _properties(concept.model_dump(exclude={"id"}))
    # Lowercased copies back the case-insensitive name/alias lookup
    props["name_lower"] = concept.name.strip().lower()
    props["aliases_lower"] = sorted({alias.strip().lower() for alias in concept.aliases})
    return props


def _concept_from_properties(props: dict[str, Any]) -> Concept:
    return Concept(
        id=props["id"],
        name=props.get("name", ""),
        aliases=list(props.get("aliases") or []),
        description=props.get("description"),
        category=props.get("category"),
        related_concept_ids=list(props.get("related_concept_ids") or []),
    )


class Neo4jGraphStore(GraphStore):
    """
    Neo4j-based store for the documentation graph.

    Features:
    - Unique ID constraints per label
    - Atomic per-document writes via managed transactions
    - Cascade delete of a document's chunks and code examples
    - Case-insensitive concept lookup by name or alias
    - Sync state nodes keyed by repository
    """

    def __init__(
        self,
        uri: str = "bolt://localhost:7687",
        username: str = "neo4j",
        password: str = "password",
        database: str = "neo4j",
        retry_policy: RetryPolicy | None = None,
    ):
        """
        Initialize Neo4j graph store.

        Args:
            uri: Neo4j connection URI
            username: Username
            password: Password
            database: Database name
            retry_policy: Retry policy for backend calls
        """
        self.uri = uri
        self.username = username
        self.password = password
        self.database = database
        self.retry_policy = retry_policy or RetryPolicy()
        self.driver: AsyncDriver | None = None

    async def connect(self) -> None:
        """
        Establish connection to Neo4j.

        Raises:
            GraphStoreError: If connection fails
        """
        if self.driver is None:
            try:
                self.driver = AsyncGraphDatabase.driver(
                    self.uri,
                    auth=(self.username, self.password),
                )
            except Exception as e:
                logger.bind(uri=self.uri, error=str(e)).error(f"Failed to connect to Neo4j: {e}")
                raise GraphStoreError(f"Failed to connect to Neo4j: {e}") from e

    def _wrap_error(self, error: Exception, message: str) -> GraphStoreError:
        """Classify a driver error as transient or permanent."""
        transient = isinstance(
            error,
            (ServiceUnavailable, SessionExpired, Neo4jTransientError, TimeoutError, ConnectionError),
        )
        if not transient:
            text = str(error).lower()
            transient = any(marker in text for marker in _TRANSIENT_MARKERS)

        error_class = TransientGraphStoreError if transient else GraphStoreError
        return error_class(
            f"{message}: {error}",
            context={"database": self.database, "error_type": type(error).__name__},
        )

    async def _call(self, operation, operation_name: str, error_message: str, **log_extra):
        """Run one backend call under the retry policy, wrapping driver errors."""
        await self.connect()

        async def _attempt():
            try:
                return await operation()
            except Exception as e:
                logger.bind(
                    operation=operation_name, error=str(e), **log_extra
                ).error(f"{error_message}: {e}")
                raise self._wrap_error(e, error_message) from e

        return await self.retry_policy.execute(_attempt, operation_name)

    @staticmethod
    async def _run(tx, query: str, **params) -> None:
        result = await tx.run(query, params)
        await result.consume()

    async def initialize(self) -> None:
        """
        Create uniqueness constraints and lookup indexes.

        Raises:
            GraphStoreError: If initialization fails
        """
        statements = [
            *(
                f"CREATE CONSTRAINT {label.value.lower()}_id IF NOT EXISTS "
                f"FOR (n:{label.value}) REQUIRE n.id IS UNIQUE"
                for label in NodeLabel
            ),
            "CREATE CONSTRAINT sync_state_repository IF NOT EXISTS "
            "FOR (s:SyncState) REQUIRE s.repository IS UNIQUE",
            "CREATE INDEX concept_name_lower IF NOT EXISTS FOR (c:Concept) ON (c.name_lower)",
            "CREATE INDEX chunk_document IF NOT EXISTS FOR (c:Chunk) ON (c.document_id)",
        ]

        async def _initialize():
            async with self.driver.session(database=self.database) as session:
                for statement in statements:
                    await session.run(statement)

        await self._call(_initialize, "neo4j.initialize", "Failed to initialize Neo4j")

    # ═══════════════════════════════════════════════════════════
    # NODE & EDGE OPERATIONS
    # ═══════════════════════════════════════════════════════════

    async def upsert_node(self, node_id: str, label: NodeLabel, properties: dict[str, Any]) -> None:
        """
        Create or update a node.

        Raises:
            ValidationError: If node_id is empty
            GraphStoreError: If the write fails
        """
        if not node_id:
            raise ValidationError("Node ID cannot be empty")
        label = NodeLabel(label)
        props = _properties({k: v for k, v in properties.items() if k != "id"})

        async def _upsert():
            async with self.driver.session(database=self.database) as session:
                await session.run(
                    f"MERGE (n:{label.value} {{id: $id}}) SET n += $props",
                    {"id": node_id, "props": props},
                )

        await self._call(
            _upsert, "neo4j.upsert_node", f"Failed to upsert node {node_id}", node_id=node_id
        )

    @staticmethod
    def _relationship_query(rel_type: str, source_label, target_label) -> str:
        if not _RELATIONSHIP_TYPE_PATTERN.match(rel_type):
            raise ValidationError(
                f"Invalid relationship type: {rel_type}", context={"type": rel_type}
            )
        source = f"a:{NodeLabel(source_label).value}" if source_label else "a"
        target = f"b:{NodeLabel(target_label).value}" if target_label else "b"
        return (
            "UNWIND $rows AS row "
            f"MATCH ({source} {{id: row.source_id}}) "
            f"MATCH ({target} {{id: row.target_id}}) "
            f"MERGE (a)-[r:{rel_type}]->(b) "
            "SET r += row.props"
        )

    async def upsert_relationship(self, relationship: Relationship) -> None:
        """
        Create or update a directed edge between two existing nodes.

        Missing endpoints make this a no-op.

        Raises:
            ValidationError: If the relationship type is not a valid identifier
            GraphStoreError: If the write fails
        """
        query = self._relationship_query(
            relationship.type, relationship.source_label, relationship.target_label
        )
        rows = [
            {
                "source_id": relationship.source_id,
                "target_id": relationship.target_id,
                "props": _properties(relationship.properties),
            }
        ]

        async def _upsert():
            async with self.driver.session(database=self.database) as session:
                await session.run(query, {"rows": rows})

        await self._call(
            _upsert,
            "neo4j.upsert_relationship",
            f"Failed to upsert {relationship.type} relationship",
            source_id=relationship.source_id,
            target_id=relationship.target_id,
        )

    async def write_document_graph(self, graph: DocumentGraph) -> None:
        """
        Write one ingest as a single transaction.

        Raises:
            ValidationError: If a relationship type is invalid
            GraphStoreError: If the transaction fails (nothing is written)
        """
        document = graph.document
        chunk_ids = [chunk.id for chunk in graph.chunks]
        code_ids = [example.id for example in graph.code_examples]

        grouped: dict[tuple, list[dict[str, Any]]] = defaultdict(list)
        for rel in graph.relationships:
            key = (rel.type, rel.source_label, rel.target_label)
            grouped[key].append(
                {
                    "source_id": rel.source_id,
                    "target_id": rel.target_id,
                    "props": _properties(rel.properties),
                }
            )
        # Validate every type before opening the transaction
        relationship_queries = [
            (self._relationship_query(*key), rows) for key, rows in grouped.items()
        ]

        async def _work(tx):
            # Remove what a previous ingest wrote but this one no longer has
            await self._run(
                tx,
                "MATCH (d:Document {id: $document_id})-[:HAS_CHUNK]->(c:Chunk) "
                "WHERE NOT c.id IN $chunk_ids "
                "OPTIONAL MATCH (c)-[:HAS_CODE_EXAMPLE]->(e:CodeExample) "
                "DETACH DELETE e, c",
                document_id=document.id,
                chunk_ids=chunk_ids,
            )
            await self._run(
                tx,
                "MATCH (c:Chunk)-[:HAS_CODE_EXAMPLE]->(e:CodeExample) "
                "WHERE c.id IN $chunk_ids AND NOT e.id IN $code_ids "
                "DETACH DELETE e",
                chunk_ids=chunk_ids,
                code_ids=code_ids,
            )
            await self._run(
                tx,
                "MATCH (c:Chunk)-[m:MENTIONS]->(:Concept) WHERE c.id IN $chunk_ids DELETE m",
                chunk_ids=chunk_ids,
            )
            await self._run(
                tx,
                "MATCH (:Document {id: $document_id})-[l:LINKS_TO]->() DELETE l",
                document_id=document.id,
            )

            await self._run(
                tx,
                "MERGE (d:Document {id: $id}) SET d += $props",
                id=document.id,
                props=_document_properties(document),
            )
            node_batches = [
                (NodeLabel.CHUNK, [(c.id, _chunk_properties(c)) for c in graph.chunks]),
                (
                    NodeLabel.CODE_EXAMPLE,
                    [(e.id, _code_example_properties(e)) for e in graph.code_examples],
                ),
                (NodeLabel.CONCEPT, [(c.id, _concept_properties(c)) for c in graph.concepts]),
            ]
            if graph.repository_node_id:
                node_batches.append(
                    (
                        NodeLabel.REPOSITORY,
                        [(graph.repository_node_id, {"name": document.repository.lower()})],
                    )
                )
            for label, nodes in node_batches:
                if not nodes:
                    continue
                await self._run(
                    tx,
                    f"UNWIND $rows AS row MERGE (n:{label.value} {{id: row.id}}) SET n += row.props",
                    rows=[{"id": node_id, "props": props} for node_id, props in nodes],
                )

            for query, rows in relationship_queries:
                await self._run(tx, query, rows=rows)

        async def _write():
            async with self.driver.session(database=self.database) as session:
                await session.execute_write(_work)

        await self._call(
            _write,
            "neo4j.write_document_graph",
            f"Failed to write graph for {document.id}",
            document_id=document.id,
        )

        logger.bind(
            document_id=document.id,
            chunks=len(graph.chunks),
            concepts=len(graph.concepts),
            relationships=len(graph.relationships),
        ).debug(f"Wrote graph for {document.id}")

    async def delete_subgraph(self, document_id: str) -> int:
        """
        Cascade-delete a document, its chunks and their code examples.

        Raises:
            ValidationError: If document_id is empty
            GraphStoreError: If the delete fails
        """
        if not document_id:
            raise ValidationError("Document ID cannot be empty")

        async def _work(tx):
            result = await tx.run(
                """
                MATCH (d:Document {id: $id})
                OPTIONAL MATCH (d)-[:HAS_CHUNK]->(c:Chunk)
                OPTIONAL MATCH (c)-[:HAS_CODE_EXAMPLE]->(e:CodeExample)
                WITH d, collect(DISTINCT c) AS chunks, collect(DISTINCT e) AS examples
                WITH d, chunks, examples, size(chunks) + size(examples) + 1 AS total
                FOREACH (n IN examples | DETACH DELETE n)
                FOREACH (n IN chunks | DETACH DELETE n)
                DETACH DELETE d
                RETURN total
                """,
                {"id": document_id},
            )
            record = await result.single()
            return record["total"] if record else 0

        async def _delete():
            async with self.driver.session(database=self.database) as session:
                return await session.execute_write(_work)

        deleted = await self._call(
            _delete,
            "neo4j.delete_subgraph",
            f"Failed to delete document {document_id}",
            document_id=document_id,
        )
        logger.bind(
            document_id=document_id, deleted=deleted
        ).debug(f"Deleted {deleted} nodes for {document_id}")
        return deleted

    # ═══════════════════════════════════════════════════════════
    # SYNC STATE
    # ═══════════════════════════════════════════════════════════

    async def get_sync_state(self, repository: str) -> SyncState | None:
        """Read the sync state node of a repository."""

        async def _get():
            async with self.driver.session(database=self.database) as session:
                result = await session.run(
                    "MATCH (s:SyncState {repository: $repository}) RETURN properties(s) AS props",
                    {"repository": repository.lower()},
                )
                return await result.single()

        record = await self._call(
            _get, "neo4j.get_sync_state", "Failed to read sync state", repository=repository
        )
        if not record:
            return None

        props = record["props"]
        return SyncState(
            repository=props["repository"],
            commit_hash=props["commit_hash"],
            failed_paths=list(props.get("failed_paths") or []),
            updated_at=props.get("updated_at") or datetime.now(timezone.utc),
        )

    async def set_sync_state(
        self, repository: str, commit_hash: str, failed_paths: list[str] | None = None
    ) -> None:
        """
        Upsert the sync state node of a repository.

        Raises:
            ValidationError: If commit_hash is empty
            GraphStoreError: If the write fails
        """
        if not commit_hash:
            raise ValidationError("Commit hash cannot be empty", context={"repository": repository})

        params = {
            "repository": repository.lower(),
            "commit_hash": commit_hash,
            "failed_paths": list(failed_paths or []),
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }

        async def _set():
            async with self.driver.session(database=self.database) as session:
                await session.run(
                    """
                    MERGE (s:SyncState {repository: $repository})
                    SET s.commit_hash = $commit_hash,
                        s.failed_paths = $failed_paths,
                        s.updated_at = $updated_at
                    """,
                    params,
                )

        await self._call(
            _set, "neo4j.set_sync_state", "Failed to write sync state", repository=repository
        )

    # ═══════════════════════════════════════════════════════════
    # QUERIES & TRAVERSAL
    # ═══════════════════════════════════════════════════════════

    async def execute_query(
        self, query: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """
        Run a query and return every record as a dict.

        Raises:
            ValidationError: If the query is empty
            GraphStoreError: If the query fails
        """
        if not query or not query.strip():
            raise ValidationError("Query cannot be empty")

        async def _execute():
            async with self.driver.session(database=self.database) as session:
                result = await session.run(query, params or {})
                return [record.data() async for record in result]

        return await self._call(_execute, "neo4j.execute_query", "Failed to execute query")

    async def find_concepts(self, keys: list[str]) -> list[Concept]:
        """Find concepts by lowercased name or alias."""
        keys = sorted({key.strip().lower() for key in keys if key and key.strip()})
        if not keys:
            return []

        records = await self.execute_query(
            """
            MATCH (c:Concept)
            WHERE c.name_lower IN $keys OR any(a IN coalesce(c.aliases_lower, []) WHERE a IN $keys)
            RETURN properties(c) AS props
            ORDER BY c.id
            """,
            {"keys": keys},
        )
        return [_concept_from_properties(record["props"]) for record in records]

    async def get_chunks(self, chunk_ids: list[str]) -> list[Chunk]:
        """Load chunks by ID."""
        if not chunk_ids:
            return []

        records = await self.execute_query(
            "MATCH (c:Chunk) WHERE c.id IN $ids RETURN properties(c) AS props",
            {"ids": list(chunk_ids)},
        )
        return [Chunk.model_validate(record["props"]) for record in records]

    async def get_neighbors(
        self, node_ids: list[str], relationship_types: list[str], limit: int = 200
    ) -> list[GraphNeighbor]:
        """
        One undirected traversal step over the given edge types.

        The limit applies to each source node separately.
        """
        if not node_ids or not relationship_types:
            return []

        records = await self.execute_query(
            """
            MATCH (n)
            WHERE n.id IN $ids
            CALL {
                WITH n
                MATCH (n)-[r]-(m)
                WHERE type(r) IN $types
                  AND (m:Document OR m:Chunk OR m:Concept)
                RETURN r, m
                ORDER BY type(r), m.id
                LIMIT $limit
            }
            RETURN n.id AS source_id, type(r) AS relationship_type,
                   labels(m) AS labels, properties(m) AS props
            ORDER BY source_id
            """,
            {"ids": list(node_ids), "types": list(relationship_types), "limit": limit},
        )

        neighbors = []
        for record in records:
            label = next(
                (lbl for lbl in _TRAVERSABLE_LABELS if lbl.value in record["labels"]), None
            )
            if label is None:
                continue
            props = dict(record["props"])
            neighbors.append(
                GraphNeighbor(
                    source_id=record["source_id"],
                    relationship_type=record["relationship_type"],
                    node=GraphNode(id=props.get("id", ""), label=label, properties=props),
                )
            )
        return neighbors

    async def close(self) -> None:
        """Close Neo4j driver."""
        if self.driver:
            await self.driver.close()
            self.driver = None
