"""
GraphRAG query pipeline.

Vector search finds the most relevant chunks; a bounded breadth-first walk
over the documentation graph adds neighbouring chunks and concepts; the
LLM answers from the numbered context and cites it with [n] markers.
"""

import re
from dataclasses import dataclass
from typing import Any

from docgraph.config import GraphRagConfig
from docgraph.core.embeddings.base import Embedder
from docgraph.core.graph_store.base import GraphStore
from docgraph.core.llm.base import LLMProvider
from docgraph.core.vector_store.base import VectorIndex
from docgraph.models.document import Chunk
from docgraph.models.query import GraphRagOptions, GraphRagResult, GraphRagSource
from docgraph.models.relationships import GraphNode, NodeLabel, RelationshipType
from docgraph.models.tenant import TenantContext
from docgraph.utils.exceptions import ValidationError
from docgraph.utils.logger import get_logger

logger = get_logger(__name__)

NO_RESULTS_ANSWER = "No relevant information was found for this query."

TRAVERSAL_RELATIONSHIPS = [
    RelationshipType.HAS_CHUNK.value,
    RelationshipType.MENTIONS.value,
    RelationshipType.RELATES_TO.value,
    RelationshipType.LINKS_TO.value,
]

SYSTEM_PROMPT = """You are a documentation assistant. Answer the question using ONLY the numbered context sources.

Guidelines:
- Cite every statement with the number of the source it came from, e.g. [1] or [2][3].
- If the context does not contain the answer, say so plainly.
- Prefer code examples from the context when they help.
- Be concise but complete."""

_CITATION_PATTERN = re.compile(r"\[(\d+)\]")


@dataclass
class _ContextChunk:
    chunk: Chunk
    score: float
    repository: str
    file_path: str


@dataclass
class _Origin:
    score: float
    repository: str | None


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def parse_citations(answer: str, source_count: int) -> set[int]:
    """1-based source numbers cited in the answer, ignoring out-of-range ones."""
    return {
        int(match)
        for match in _CITATION_PATTERN.findall(answer)
        if 1 <= int(match) <= source_count
    }


class GraphRagPipeline:
    """
    Answers questions over the documentation graph.

    Flow:
    1. Embed the query and search the vector index with exact-match filters
    2. Drop hits below min_relevance_score
    3. Traverse the graph from the hit chunks
    4. Synthesize an answer from the numbered context
    5. Compute confidence from the cited sources
    """

    def __init__(
        self,
        embedder: Embedder,
        vector_index: VectorIndex,
        graph_store: GraphStore,
        llm: LLMProvider,
        config: GraphRagConfig | None = None,
    ):
        """
        Initialize pipeline.

        Args:
            embedder: Embedding provider for the query
            vector_index: Vector index of chunk embeddings
            graph_store: Graph store for chunks and traversal
            llm: LLM used for answer synthesis
            config: Default query options and traversal tuning
        """
        self.embedder = embedder
        self.vector_index = vector_index
        self.graph_store = graph_store
        self.llm = llm
        self.config = config or GraphRagConfig()

    def default_options(self) -> GraphRagOptions:
        return GraphRagOptions(
            max_chunks=self.config.max_chunks,
            max_traversal_steps=self.config.max_traversal_steps,
            min_relevance_score=self.config.min_relevance_score,
            use_cross_repo_links=self.config.use_cross_repo_links,
        )

    @staticmethod
    def build_filters(options: GraphRagOptions) -> dict[str, Any]:
        """Exact-match vector filters for the query options."""
        filters: dict[str, Any] = {}
        if options.repository_filter:
            filters["repository"] = options.repository_filter.lower()
        if options.doc_type_filter:
            filters["doc_type"] = options.doc_type_filter
        if options.promotion_levels:
            filters["promotion_level"] = list(options.promotion_levels)
        if options.tenant:
            filters.update(options.tenant.as_filters())
        return filters

    @staticmethod
    def _outside_tenant(node: GraphNode, tenant: TenantContext | None) -> bool:
        if tenant is None:
            return False
        project = node.properties.get("project")
        branch = node.properties.get("branch")
        return (project is not None and project != tenant.project) or (
            branch is not None and branch != tenant.branch
        )

    async def _traverse(
        self,
        seeds: dict[str, _Origin],
        options: GraphRagOptions,
    ) -> tuple[list[_ContextChunk], list[str]]:
        """
        Breadth-first walk from the hit chunks.

        Returns:
            (chunks discovered by traversal, concept names touched)
        """
        visited: set[str] = set(seeds)
        frontier: dict[str, _Origin] = dict(seeds)
        discovered: list[_ContextChunk] = []
        concept_names: list[str] = []
        repository_filter = options.repository_filter.lower() if options.repository_filter else None

        for hop in range(1, options.max_traversal_steps + 1):
            if not frontier:
                break

            neighbors = await self.graph_store.get_neighbors(
                list(frontier), TRAVERSAL_RELATIONSHIPS, limit=self.config.neighbor_limit
            )
            next_frontier: dict[str, _Origin] = {}

            for neighbor in neighbors:
                node = neighbor.node
                if node.id in visited:
                    continue
                origin = frontier.get(neighbor.source_id)
                if origin is None:
                    continue
                if self._outside_tenant(node, options.tenant):
                    continue

                if node.label in (NodeLabel.DOCUMENT, NodeLabel.CHUNK):
                    node_repository = (node.repository or "").lower() or None
                    if repository_filter and node_repository != repository_filter:
                        continue
                    if (
                        not options.use_cross_repo_links
                        and origin.repository
                        and node_repository
                        and node_repository != origin.repository
                    ):
                        continue

                visited.add(node.id)
                next_frontier[node.id] = origin

                if node.label == NodeLabel.CONCEPT:
                    if node.name and node.name not in concept_names:
                        concept_names.append(node.name)
                elif node.label == NodeLabel.CHUNK and len(discovered) < options.max_chunks:
                    chunk = Chunk.model_validate(node.properties)
                    discovered.append(
                        _ContextChunk(
                            chunk=chunk,
                            score=_clamp(origin.score * self.config.traversal_decay**hop),
                            repository=chunk.repository or "",
                            file_path=chunk.file_path or "",
                        )
                    )

            frontier = next_frontier

        return discovered, concept_names

    @staticmethod
    def format_context(context: list[_ContextChunk]) -> str:
        blocks = []
        for n, item in enumerate(context, start=1):
            header = f"[{n}] Source: {item.file_path} (relevance: {item.score:.2f})"
            if item.chunk.header_path:
                header += f"\nSection: {item.chunk.header_path}"
            blocks.append(f"{header}\n{item.chunk.content}")
        return "\n\n".join(blocks)

    async def query(self, query: str, options: GraphRagOptions | None = None) -> GraphRagResult:
        """
        Answer a question from the knowledge base.

        Args:
            query: Natural-language question
            options: Query options; configured defaults when omitted

        Returns:
            Answer with sources sorted by relevance and a confidence in [0, 1]

        Raises:
            ValidationError: If the query is blank
            EmbeddingError / LLMError / StoreError: If a collaborator fails
        """
        if not query or not query.strip():
            raise ValidationError("Query cannot be empty")
        options = options or self.default_options()

        logger.bind(
            max_chunks=options.max_chunks,
            min_score=options.min_relevance_score,
            max_traversal_steps=options.max_traversal_steps,
        ).info("Starting GraphRAG query")

        vector = await self.embedder.embed(query)
        hits = await self.vector_index.search(
            vector, top_k=options.max_chunks, filters=self.build_filters(options) or None
        )
        hits = [hit for hit in hits if hit.score >= options.min_relevance_score]
        logger.bind(hits=len(hits)).debug(f"Vector search kept {len(hits)} hits")

        if not hits:
            return GraphRagResult(answer=NO_RESULTS_ANSWER, confidence=0.0)

        chunks = {
            chunk.id: chunk
            for chunk in await self.graph_store.get_chunks([hit.id for hit in hits])
        }

        context: list[_ContextChunk] = []
        seeds: dict[str, _Origin] = {}
        for hit in hits:
            if hit.id in seeds:
                continue
            chunk = chunks.get(hit.id)
            if chunk is None:
                logger.bind(
                    chunk_id=hit.id
                ).warning(f"Chunk {hit.id} is indexed but missing from the graph")
                continue
            repository = hit.metadata.get("repository") or chunk.repository or ""
            seeds[hit.id] = _Origin(score=_clamp(hit.score), repository=repository.lower() or None)
            context.append(
                _ContextChunk(
                    chunk=chunk,
                    score=_clamp(hit.score),
                    repository=repository,
                    file_path=hit.metadata.get("file_path") or chunk.file_path or "",
                )
            )

        if not context:
            return GraphRagResult(answer=NO_RESULTS_ANSWER, confidence=0.0)

        discovered, related_concepts = await self._traverse(seeds, options)
        seen = {item.chunk.id for item in context}
        for item in discovered:
            if item.chunk.id not in seen:
                seen.add(item.chunk.id)
                context.append(item)

        context.sort(key=lambda item: item.score, reverse=True)

        answer = await self.llm.synthesize(
            SYSTEM_PROMPT,
            [{"role": "user", "content": f"Question: {query}\n\nContext:\n\n{self.format_context(context)}"}],
            max_tokens=self.config.max_tokens,
        )

        cited = parse_citations(answer, len(context))
        confidence = (
            _clamp(sum(context[n - 1].score for n in cited) / len(cited)) if cited else 0.0
        )

        sources = [
            GraphRagSource(
                document_id=item.chunk.document_id,
                chunk_id=item.chunk.id,
                repository=item.repository,
                file_path=item.file_path,
                relevance_score=item.score,
                cited=n in cited,
            )
            for n, item in enumerate(context, start=1)
        ]

        logger.bind(
            sources=len(sources),
            cited=len(cited),
            concepts=len(related_concepts),
            confidence=confidence,
        ).info("GraphRAG query complete")

        return GraphRagResult(
            answer=answer,
            sources=sources,
            related_concepts=related_concepts,
            confidence=confidence,
        )
