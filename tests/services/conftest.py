"""Fixtures for service tests.

Services are exercised against in-memory implementations of the collaborator
contracts so no Neo4j, Qdrant, LLM or git server is needed.
"""

import copy
import math
from pathlib import Path

import pytest

from docgraph.config import Config, GitSyncConfig, GraphRagConfig, RepositoryConfig, TokenizerConfig
from docgraph.core.embeddings.base import Embedder
from docgraph.core.extraction.concept_extractor import ConceptExtractor
from docgraph.core.graph_store.base import GraphStore
from docgraph.core.llm.base import LLMProvider
from docgraph.core.source_control.base import SourceControl
from docgraph.core.tokenizer import Tokenizer
from docgraph.core.vector_store.base import VectorIndex, VectorSearchResult
from docgraph.models.concept import Concept, ConceptExtraction, ExtractedConcept
from docgraph.models.document import Chunk
from docgraph.models.relationships import GraphNeighbor, GraphNode, NodeLabel
from docgraph.models.sync import ChangedFile, ChangeType, SyncState
from docgraph.services.document_ingestion import DocumentIngestionService
from docgraph.services.entity_resolver import CrossRepoEntityResolver
from docgraph.services.graph_rag_pipeline import GraphRagPipeline
from docgraph.services.sync_runner import SyncRunner
from docgraph.utils.exceptions import GraphStoreError, LLMError, NotFoundError
from docgraph.utils.retry import RetryPolicy

# In-memory collaborators


class InMemoryGraphStore(GraphStore):
    """Dict-backed graph store with the same write semantics as Neo4j."""

    def __init__(self):
        self.nodes: dict[str, tuple[NodeLabel, dict]] = {}
        # (type, source_id, target_id) -> properties
        self.edges: dict[tuple[str, str, str], dict] = {}
        self.sync_states: dict[str, SyncState] = {}
        self.fail_writes = False
        self.fail_deletes = False
        self.write_count = 0

    async def initialize(self) -> None:
        pass

    # Helpers used by tests

    def nodes_with_label(self, label: NodeLabel) -> dict[str, dict]:
        return {node_id: props for node_id, (lbl, props) in self.nodes.items() if lbl == label}

    def edges_of_type(self, rel_type: str) -> list[tuple[str, str]]:
        return [(source, target) for (t, source, target) in self.edges if t == rel_type]

    # Contract

    def _merge_node(self, nodes, node_id: str, label: NodeLabel, properties: dict) -> None:
        current = nodes.get(node_id, (label, {"id": node_id}))[1]
        nodes[node_id] = (label, {**current, **properties, "id": node_id})

    async def upsert_node(self, node_id, label, properties) -> None:
        self._merge_node(self.nodes, node_id, NodeLabel(label), properties)

    async def upsert_relationship(self, relationship) -> None:
        if relationship.source_id in self.nodes and relationship.target_id in self.nodes:
            key = (relationship.type, relationship.source_id, relationship.target_id)
            self.edges[key] = {**self.edges.get(key, {}), **relationship.properties}

    def _detach_delete(self, nodes, edges, node_id: str) -> None:
        nodes.pop(node_id, None)
        for key in [k for k in edges if node_id in (k[1], k[2])]:
            del edges[key]

    async def write_document_graph(self, graph) -> None:
        if self.fail_writes:
            raise GraphStoreError("Simulated graph write failure")

        nodes = copy.deepcopy(self.nodes)
        edges = copy.deepcopy(self.edges)
        document = graph.document
        chunk_ids = {chunk.id for chunk in graph.chunks}
        code_ids = {example.id for example in graph.code_examples}

        old_chunks = [t for (rt, s, t) in edges if rt == "HAS_CHUNK" and s == document.id]
        for chunk_id in old_chunks:
            examples = [t for (rt, s, t) in edges if rt == "HAS_CODE_EXAMPLE" and s == chunk_id]
            if chunk_id not in chunk_ids:
                for example_id in examples:
                    self._detach_delete(nodes, edges, example_id)
                self._detach_delete(nodes, edges, chunk_id)
            else:
                for example_id in examples:
                    if example_id not in code_ids:
                        self._detach_delete(nodes, edges, example_id)
        for key in list(edges):
            if key[0] == "MENTIONS" and key[1] in chunk_ids:
                del edges[key]
            elif key[0] == "LINKS_TO" and key[1] == document.id:
                del edges[key]

        self._merge_node(nodes, document.id, NodeLabel.DOCUMENT, document.model_dump(exclude={"id"}))
        for chunk in graph.chunks:
            self._merge_node(nodes, chunk.id, NodeLabel.CHUNK, chunk.model_dump(exclude={"id"}))
        for example in graph.code_examples:
            self._merge_node(
                nodes, example.id, NodeLabel.CODE_EXAMPLE, example.model_dump(exclude={"id"})
            )
        for concept in graph.concepts:
            self._merge_node(nodes, concept.id, NodeLabel.CONCEPT, concept.model_dump(exclude={"id"}))
        if graph.repository_node_id:
            self._merge_node(
                nodes,
                graph.repository_node_id,
                NodeLabel.REPOSITORY,
                {"name": document.repository.lower()},
            )

        for rel in graph.relationships:
            if rel.source_id in nodes and rel.target_id in nodes:
                key = (rel.type, rel.source_id, rel.target_id)
                edges[key] = {**edges.get(key, {}), **rel.properties}

        self.nodes, self.edges = nodes, edges
        self.write_count += 1

    async def delete_subgraph(self, document_id: str) -> int:
        if self.fail_deletes:
            raise GraphStoreError("Simulated graph delete failure")
        if document_id not in self.nodes:
            return 0
        chunk_ids = [t for (rt, s, t) in self.edges if rt == "HAS_CHUNK" and s == document_id]
        example_ids = [
            t for (rt, s, t) in self.edges if rt == "HAS_CODE_EXAMPLE" and s in chunk_ids
        ]
        for node_id in [*example_ids, *chunk_ids, document_id]:
            self._detach_delete(self.nodes, self.edges, node_id)
        return len(example_ids) + len(chunk_ids) + 1

    async def get_sync_state(self, repository: str) -> SyncState | None:
        return self.sync_states.get(repository.lower())

    async def set_sync_state(self, repository, commit_hash, failed_paths=None) -> None:
        self.sync_states[repository.lower()] = SyncState(
            repository=repository.lower(),
            commit_hash=commit_hash,
            failed_paths=list(failed_paths or []),
        )

    async def execute_query(self, query, params=None):
        return []

    async def find_concepts(self, keys: list[str]) -> list[Concept]:
        wanted = {key.lower() for key in keys}
        found = [
            Concept.model_validate(props)
            for props in self.nodes_with_label(NodeLabel.CONCEPT).values()
        ]
        return sorted((c for c in found if c.match_keys() & wanted), key=lambda c: c.id)

    async def get_chunks(self, chunk_ids: list[str]) -> list[Chunk]:
        return [
            Chunk.model_validate(props)
            for node_id, props in self.nodes_with_label(NodeLabel.CHUNK).items()
            if node_id in chunk_ids
        ]

    async def get_neighbors(self, node_ids, relationship_types, limit=200):
        neighbors = []
        per_source: dict[str, int] = {}
        for (rel_type, source, target) in self.edges:
            if rel_type not in relationship_types:
                continue
            for start, end in ((source, target), (target, source)):
                if start not in node_ids or end not in self.nodes:
                    continue
                label, props = self.nodes[end]
                if label not in (NodeLabel.DOCUMENT, NodeLabel.CHUNK, NodeLabel.CONCEPT):
                    continue
                if per_source.get(start, 0) >= limit:
                    continue
                per_source[start] = per_source.get(start, 0) + 1
                neighbors.append(
                    GraphNeighbor(
                        source_id=start,
                        relationship_type=rel_type,
                        node=GraphNode(id=end, label=label, properties=dict(props)),
                    )
                )
        return neighbors

    async def close(self) -> None:
        pass


def _cosine(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


class InMemoryVectorIndex(VectorIndex):
    """Dict-backed vector index; fixed_scores overrides cosine scoring."""

    def __init__(self):
        self.entries: dict[str, tuple[list[float], dict]] = {}
        self.fixed_scores: dict[str, float] | None = None
        self.search_calls: list[dict] = []
        self.fail_deletes = False

    async def initialize(self) -> None:
        pass

    async def upsert(self, id, vector, metadata) -> None:
        self.entries[id] = (list(vector), dict(metadata))

    async def batch_upsert(self, entries) -> None:
        for entry in entries:
            await self.upsert(entry.id, entry.vector, entry.metadata)

    async def delete(self, document_id, keep_chunk_ids=None) -> None:
        if self.fail_deletes:
            raise GraphStoreError("Simulated vector delete failure")
        keep = set(keep_chunk_ids or [])
        for entry_id in list(self.entries):
            metadata = self.entries[entry_id][1]
            if metadata.get("document_id") == document_id and entry_id not in keep:
                del self.entries[entry_id]

    @staticmethod
    def _matches(metadata: dict, filters: dict | None) -> bool:
        for key, value in (filters or {}).items():
            if value is None:
                continue
            if isinstance(value, list):
                if metadata.get(key) not in value:
                    return False
            elif metadata.get(key) != value:
                return False
        return True

    async def search(self, vector, top_k=10, filters=None):
        self.search_calls.append({"top_k": top_k, "filters": filters})
        results = []
        for entry_id, (stored, metadata) in self.entries.items():
            if not self._matches(metadata, filters):
                continue
            if self.fixed_scores is not None:
                if entry_id not in self.fixed_scores:
                    continue
                score = self.fixed_scores[entry_id]
            else:
                score = _cosine(vector, stored)
            results.append(VectorSearchResult(id=entry_id, score=score, metadata=dict(metadata)))
        results.sort(key=lambda r: r.score, reverse=True)
        return results[:top_k]

    async def close(self) -> None:
        pass


class KeywordEmbedder(Embedder):
    """Deterministic letter-frequency embeddings."""

    def __init__(self):
        super().__init__(model="keyword", retry_policy=RetryPolicy.no_retry())
        self.batch_calls: list[list[str]] = []

    async def _request(self, texts: list[str]) -> list[list[float]]:
        self.batch_calls.append(list(texts))
        return [self._vector(text) for text in texts]

    @staticmethod
    def _vector(text: str) -> list[float]:
        vector = [0.0] * 26
        for char in text.lower():
            if "a" <= char <= "z":
                vector[ord(char) - ord("a")] += 1.0
        vector[0] += 0.001
        return vector

    async def close(self):
        pass


class KeywordExtractor(ConceptExtractor):
    """Proposes every known concept whose name or alias appears in the text."""

    def __init__(self, known: list[ExtractedConcept] | None = None, doc_type: str | None = None):
        self.known = known or []
        self.doc_type = doc_type
        self.fail = False
        self.calls = 0

    async def extract(self, text: str) -> ConceptExtraction:
        self.calls += 1
        if self.fail:
            raise LLMError("Simulated extraction failure")
        lowered = text.lower()
        found = [
            concept.model_copy(deep=True)
            for concept in self.known
            if any(key in lowered for key in concept.match_keys())
        ]
        return ConceptExtraction(concepts=found, doc_type=self.doc_type if found else None)


class ScriptedLLM(LLMProvider):
    """Returns a fixed answer and records the synthesis requests."""

    def __init__(self, answer: str = "Use tokens [1]."):
        self.answer = answer
        self.calls: list[dict] = []

    async def synthesize(self, system_prompt, messages, max_tokens=2000, temperature=0.0):
        self.calls.append({"system_prompt": system_prompt, "messages": messages})
        return self.answer

    async def complete(self, prompt, response_format=None, max_tokens=2000, temperature=0.0, **kwargs):
        raise NotImplementedError

    async def close(self):
        pass


class ScriptedSourceControl(SourceControl):
    """
    Source control over in-memory files.

    diffs maps a base commit to the changes since it; None means every file.
    """

    def __init__(self):
        self.files: dict[str, dict[str, str]] = {}
        self.heads: dict[str, str] = {}
        self.diffs: dict[str, dict[str, list[ChangedFile]]] = {}
        self.diff_requests: list[tuple[str, str | None]] = []
        self.fail_clone: set[str] = set()

    async def clone_or_update(self, config: RepositoryConfig) -> Path:
        if config.name in self.fail_clone:
            raise ConnectionError(f"Cannot reach {config.url}")
        return Path("/repos") / config.name

    async def diff_since(self, config, commit_hash):
        self.diff_requests.append((config.name, commit_hash))
        if commit_hash is None:
            return [
                ChangedFile(path=path, change_type=ChangeType.ADDED)
                for path in self.files.get(config.name, {})
            ]
        return list(self.diffs.get(config.name, {}).get(commit_hash, []))

    async def read_file(self, repo_path: Path, relative_path: str) -> str:
        files = self.files.get(Path(repo_path).name, {})
        if relative_path not in files:
            raise NotFoundError(f"File not found: {relative_path}")
        return files[relative_path]

    async def head_commit_hash(self, repo_path: Path) -> str:
        return self.heads.get(Path(repo_path).name, "head")


# Fixtures


@pytest.fixture
def graph_store() -> InMemoryGraphStore:
    return InMemoryGraphStore()


@pytest.fixture
def vector_index() -> InMemoryVectorIndex:
    return InMemoryVectorIndex()


@pytest.fixture
def embedder() -> KeywordEmbedder:
    return KeywordEmbedder()


@pytest.fixture
def extractor() -> KeywordExtractor:
    return KeywordExtractor(
        known=[
            ExtractedConcept(
                name="JWT",
                category="standard",
                description="JSON Web Token",
                aliases=["JSON Web Token"],
                related=["OAuth"],
            ),
            ExtractedConcept(name="OAuth", category="protocol", aliases=["OAuth 2.0"]),
            ExtractedConcept(name="React", category="library", aliases=["ReactJS"]),
        ],
        doc_type="guide",
    )


@pytest.fixture
def llm() -> ScriptedLLM:
    return ScriptedLLM()


@pytest.fixture
def source_control() -> ScriptedSourceControl:
    return ScriptedSourceControl()


@pytest.fixture
def tokenizer() -> Tokenizer:
    return Tokenizer(TokenizerConfig(provider="approximate"))


@pytest.fixture
def resolver(graph_store) -> CrossRepoEntityResolver:
    return CrossRepoEntityResolver(graph_store)


@pytest.fixture
def ingestion(graph_store, vector_index, embedder, extractor, resolver, tokenizer):
    return DocumentIngestionService(
        graph_store=graph_store,
        vector_index=vector_index,
        embedder=embedder,
        extractor=extractor,
        resolver=resolver,
        tokenizer=tokenizer,
    )


@pytest.fixture
def pipeline(embedder, vector_index, graph_store, llm):
    return GraphRagPipeline(
        embedder,
        vector_index,
        graph_store,
        llm,
        GraphRagConfig(min_relevance_score=0.5, traversal_decay=0.5),
    )


@pytest.fixture
def sync_config() -> Config:
    return Config(
        git_sync=GitSyncConfig(max_concurrent_repositories=2),
        repositories=[
            RepositoryConfig(
                name="docs-repo",
                url="https://git.example.com/docs-repo.git",
                monitored_paths=["docs/"],
            ),
            RepositoryConfig(name="web-app", url="https://git.example.com/web-app.git"),
        ],
    )


@pytest.fixture
def runner(sync_config, source_control, graph_store, ingestion) -> SyncRunner:
    return SyncRunner(sync_config, source_control, graph_store, ingestion)


AUTH_DOC = """# Authentication

Our services authenticate requests with JWT.

## Token Format

Tokens are signed JWT values issued by the OAuth server.

```python
token = issue_token(user)
```

## Refresh

See [the refresh guide](./refresh.md) and [OAuth docs](https://oauth.net).
"""


@pytest.fixture
def auth_doc() -> str:
    return AUTH_DOC
