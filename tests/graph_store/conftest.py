"""
Shared test fixtures for graph store tests.
"""

import pytest

from docgraph.core.graph_store.neo4j_store import Neo4jGraphStore
from docgraph.models.concept import Concept
from docgraph.models.document import Chunk, CodeExample, Document, DocumentGraph
from docgraph.models.relationships import NodeLabel, Relationship
from docgraph.utils.retry import RetryPolicy


@pytest.fixture
def neo4j_store():
    """Create Neo4j store for testing."""
    return Neo4jGraphStore(
        uri="bolt://localhost:7687",
        username="neo4j",
        password="password",
        database="neo4j",
        retry_policy=RetryPolicy.no_retry(),
    )


@pytest.fixture
def sample_graph():
    """One document with two chunks, a code example and a concept."""
    document_id = "docs-repo:docs/auth.md"
    return DocumentGraph(
        document=Document(
            id=document_id,
            title="auth",
            content="# Auth\n\nJWT\n",
            file_path="docs/auth.md",
            repository="docs-repo",
            links=["./refresh.md"],
        ),
        chunks=[
            Chunk(
                id=f"{document_id}:chunk-0",
                document_id=document_id,
                index=0,
                header_path="Auth",
                start_line=1,
                end_line=2,
                content="# Auth\n",
            ),
            Chunk(
                id=f"{document_id}:chunk-1",
                document_id=document_id,
                index=1,
                header_path="Auth > Tokens",
                start_line=3,
                end_line=4,
                content="## Tokens\nJWT",
            ),
        ],
        code_examples=[
            CodeExample(id=f"{document_id}:chunk-1:code-0", chunk_id=f"{document_id}:chunk-1", code="x")
        ],
        concepts=[Concept(id="concept:jwt", name="JWT", aliases=["JSON Web Token"])],
        relationships=[
            Relationship(
                type="HAS_CHUNK",
                source_id=document_id,
                target_id=f"{document_id}:chunk-0",
                source_label=NodeLabel.DOCUMENT,
                target_label=NodeLabel.CHUNK,
                properties={"index": 0},
            ),
            Relationship(
                type="HAS_CHUNK",
                source_id=document_id,
                target_id=f"{document_id}:chunk-1",
                source_label=NodeLabel.DOCUMENT,
                target_label=NodeLabel.CHUNK,
                properties={"index": 1},
            ),
            Relationship(
                type="MENTIONS",
                source_id=f"{document_id}:chunk-1",
                target_id="concept:jwt",
                source_label=NodeLabel.CHUNK,
                target_label=NodeLabel.CONCEPT,
            ),
        ],
        repository_node_id="repository:docs-repo",
    )
