"""
Document ingestion service.

Turns one markdown file into graph nodes and chunk vectors:
1. Frontmatter split and header-aware chunking
2. Concept extraction per chunk, resolved across repositories
3. Code examples and relative links
4. One batched embedding call for every non-blank chunk. Whitespace-only
   chunks are still written to the graph but get no vector, so they are
   reachable by traversal and never by vector search
5. A single graph transaction, then the vector upserts

Nothing is written until every step that can fail before the graph write
has succeeded.
"""

import asyncio
from typing import Any

from docgraph.core.embeddings.base import Embedder
from docgraph.core.extraction.concept_extractor import ConceptExtractor
from docgraph.core.graph_store.base import GraphStore
from docgraph.core.markdown.parser import (
    ChunkInfo,
    chunk_by_headers,
    extract_code_blocks,
    extract_links,
    parse,
    parse_frontmatter,
)
from docgraph.core.tokenizer.tokenizer import Tokenizer
from docgraph.core.vector_store.base import VectorEntry, VectorIndex
from docgraph.models.concept import ConceptExtraction
from docgraph.models.document import (
    Chunk,
    CodeExample,
    Document,
    DocumentGraph,
    DocumentMetadata,
)
from docgraph.models.ingestion import IngestionResult
from docgraph.models.relationships import NodeLabel, Relationship, RelationshipType
from docgraph.services.entity_resolver import CrossRepoEntityResolver
from docgraph.utils.exceptions import ValidationError
from docgraph.utils.id_generator import (
    derive_title,
    generate_chunk_id,
    generate_code_example_id,
    generate_repository_node_id,
    resolve_relative_link,
)
from docgraph.utils.logger import get_logger

logger = get_logger(__name__)


def _frontmatter_str(frontmatter: dict[str, Any], key: str) -> str | None:
    value = frontmatter.get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


class DocumentIngestionService:
    """
    Ingests and deletes documents across the graph store and vector index.

    Re-ingesting a document replaces what the previous ingest wrote, so an
    ingest is idempotent for unchanged content.
    """

    def __init__(
        self,
        graph_store: GraphStore,
        vector_index: VectorIndex,
        embedder: Embedder,
        extractor: ConceptExtractor,
        resolver: CrossRepoEntityResolver | None = None,
        tokenizer: Tokenizer | None = None,
    ):
        """
        Initialize ingestion service.

        Args:
            graph_store: Graph store for document structure and concepts
            vector_index: Vector index for chunk embeddings
            embedder: Embedding provider
            extractor: Concept extractor
            resolver: Cross-repository concept resolver
            tokenizer: Token counter for chunk sizes
        """
        self.graph_store = graph_store
        self.vector_index = vector_index
        self.embedder = embedder
        self.extractor = extractor
        self.resolver = resolver or CrossRepoEntityResolver(graph_store)
        self.tokenizer = tokenizer or Tokenizer()

    @staticmethod
    def _validate(metadata: DocumentMetadata) -> None:
        for field in ("document_id", "repository", "file_path"):
            if not getattr(metadata, field) or not getattr(metadata, field).strip():
                raise ValidationError(
                    f"Document metadata field '{field}' cannot be empty",
                    context={"document_id": metadata.document_id, "field": field},
                )

    def _build_chunks(
        self,
        infos: list[ChunkInfo],
        metadata: DocumentMetadata,
        line_offset: int,
    ) -> list[Chunk]:
        tenant = metadata.tenant
        return [
            Chunk(
                id=generate_chunk_id(metadata.document_id, info.index),
                document_id=metadata.document_id,
                index=info.index,
                header_path=info.header_path,
                start_line=info.start_line + line_offset + 1,
                end_line=info.end_line + line_offset + 1,
                content=info.content,
                token_count=self.tokenizer.count_tokens(info.content),
                repository=metadata.repository.lower(),
                file_path=metadata.file_path,
                project=tenant.project if tenant else None,
                branch=tenant.branch if tenant else None,
            )
            for info in infos
        ]

    async def _extract_concepts(self, chunks: list[Chunk]) -> list[ConceptExtraction]:
        """Extract concepts for every chunk; blank chunks yield nothing."""
        return list(
            await asyncio.gather(*(self.extractor.extract(chunk.content) for chunk in chunks))
        )

    async def ingest_document(self, content: str, metadata: DocumentMetadata) -> IngestionResult:
        """
        Ingest one markdown document.

        Every chunk becomes a graph node. Chunks whose text is only whitespace
        are not embedded, so vector_count can be lower than chunk_count.

        Args:
            content: Raw file content, frontmatter included
            metadata: Document identity, tenant and promotion level

        Returns:
            Summary of what was written

        Raises:
            ValidationError: If metadata is incomplete
            EmbeddingError: If embedding fails (nothing written)
            LLMError: If concept extraction fails (nothing written)
            GraphStoreError: If the graph transaction fails (nothing written)
            VectorStoreError: If the vector upsert fails after the graph write
        """
        self._validate(metadata)
        repository = metadata.repository.lower()
        tenant = metadata.tenant

        frontmatter, body = parse_frontmatter(content)
        line_offset = len(content.split("\n")) - len(body.split("\n"))

        chunks = self._build_chunks(chunk_by_headers(body), metadata, line_offset)

        extractions = await self._extract_concepts(chunks)
        candidates = [c for extraction in extractions for c in extraction.concepts]
        resolution = await self.resolver.resolve(candidates, repository)

        title = (
            metadata.title
            or _frontmatter_str(frontmatter, "title")
            or derive_title(metadata.file_path)
        )
        doc_type = (
            metadata.doc_type
            or _frontmatter_str(frontmatter, "doc_type")
            or next((e.doc_type for e in extractions if e.doc_type), None)
        )
        promotion_level = _frontmatter_str(frontmatter, "promotion_level") or metadata.promotion_level

        relationships: list[Relationship] = []
        code_examples: list[CodeExample] = []
        for chunk, extraction in zip(chunks, extractions):
            relationships.append(
                Relationship(
                    type=RelationshipType.HAS_CHUNK.value,
                    source_id=metadata.document_id,
                    target_id=chunk.id,
                    properties={"index": chunk.index},
                    source_label=NodeLabel.DOCUMENT,
                    target_label=NodeLabel.CHUNK,
                )
            )

            for n, block in enumerate(extract_code_blocks(parse(chunk.content))):
                example = CodeExample(
                    id=generate_code_example_id(chunk.id, n),
                    chunk_id=chunk.id,
                    language=block.language,
                    code=block.code,
                    description=chunk.header_path or None,
                )
                code_examples.append(example)
                relationships.append(
                    Relationship(
                        type=RelationshipType.HAS_CODE_EXAMPLE.value,
                        source_id=chunk.id,
                        target_id=example.id,
                        source_label=NodeLabel.CHUNK,
                        target_label=NodeLabel.CODE_EXAMPLE,
                    )
                )

            mentioned: set[str] = set()
            for candidate in extraction.concepts:
                concept_id = resolution.concept_id_for(candidate.name)
                if concept_id and concept_id not in mentioned:
                    mentioned.add(concept_id)
                    relationships.append(
                        Relationship(
                            type=RelationshipType.MENTIONS.value,
                            source_id=chunk.id,
                            target_id=concept_id,
                            source_label=NodeLabel.CHUNK,
                            target_label=NodeLabel.CONCEPT,
                        )
                    )

        links = extract_links(parse(body))
        link_targets: list[str] = []
        for link in links:
            resolved = resolve_relative_link(metadata.file_path, link.url)
            if resolved is None:
                continue
            target_id = f"{repository}:{resolved}"
            if target_id == metadata.document_id or target_id in link_targets:
                continue
            link_targets.append(target_id)
            relationships.append(
                Relationship(
                    type=RelationshipType.LINKS_TO.value,
                    source_id=metadata.document_id,
                    target_id=target_id,
                    properties={"text": link.text},
                    source_label=NodeLabel.DOCUMENT,
                    target_label=NodeLabel.DOCUMENT,
                )
            )

        relationships.extend(resolution.relationships)

        embeddable = [chunk for chunk in chunks if chunk.content.strip()]
        vectors = (
            await self.embedder.batch_embed([chunk.content for chunk in embeddable])
            if embeddable
            else []
        )
        if len(vectors) != len(embeddable):
            raise ValidationError(
                "Embedder returned a different number of vectors than chunks",
                context={
                    "document_id": metadata.document_id,
                    "expected": len(embeddable),
                    "received": len(vectors),
                },
            )

        document = Document(
            id=metadata.document_id,
            title=title,
            content=content,
            doc_type=doc_type,
            file_path=metadata.file_path,
            repository=repository,
            links=[link.url for link in links],
            promotion_level=promotion_level,
            commit_hash=metadata.commit_hash,
            project=tenant.project if tenant else None,
            branch=tenant.branch if tenant else None,
        )

        await self.graph_store.write_document_graph(
            DocumentGraph(
                document=document,
                chunks=chunks,
                code_examples=code_examples,
                concepts=resolution.concepts,
                relationships=relationships,
                repository_node_id=generate_repository_node_id(repository),
            )
        )

        entries = [
            VectorEntry(
                id=chunk.id,
                vector=vector,
                metadata={
                    "document_id": metadata.document_id,
                    "chunk_id": chunk.id,
                    "repository": repository,
                    "file_path": metadata.file_path,
                    "header_path": chunk.header_path,
                    "promotion_level": promotion_level,
                    "doc_type": doc_type,
                    "project": chunk.project,
                    "branch": chunk.branch,
                },
            )
            for chunk, vector in zip(embeddable, vectors)
        ]
        await self.vector_index.batch_upsert(entries)
        await self.vector_index.delete(
            metadata.document_id, keep_chunk_ids=[entry.id for entry in entries]
        )

        concept_ids = [concept.id for concept in resolution.concepts]
        logger.bind(
            document_id=metadata.document_id,
            chunks=len(chunks),
            concepts=len(concept_ids),
            code_examples=len(code_examples),
            links=len(link_targets),
        ).info(f"Ingested {metadata.document_id}")

        return IngestionResult(
            document_id=metadata.document_id,
            title=title,
            chunk_count=len(chunks),
            header_paths=[chunk.header_path for chunk in chunks],
            concept_ids=concept_ids,
            code_example_count=len(code_examples),
            vector_count=len(entries),
            link_count=len(link_targets),
            doc_type=doc_type,
        )

    async def delete_document(self, document_id: str) -> int:
        """
        Delete a document's vectors, then its graph subgraph.

        Deleting a document that does not exist is not an error.

        Args:
            document_id: Document identifier

        Returns:
            Number of graph nodes deleted

        Raises:
            ValidationError: If document_id is empty
            VectorStoreError: If the vector delete fails
            GraphStoreError: If the graph delete fails
        """
        if not document_id or not document_id.strip():
            raise ValidationError("Document ID cannot be empty")

        await self.vector_index.delete(document_id)
        deleted = await self.graph_store.delete_subgraph(document_id)

        logger.bind(document_id=document_id, graph_nodes=deleted).info(f"Deleted {document_id}")
        return deleted
