"""
Document, Chunk and CodeExample models.

A Document exclusively owns its Chunks, and each Chunk owns its
CodeExamples; deleting the Document deletes all of them. Concepts are
shared and live in docgraph.models.concept.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, Field

from docgraph.models.concept import Concept
from docgraph.models.relationships import Relationship
from docgraph.models.tenant import TenantContext


class DocumentMetadata(BaseModel):
    """Caller-supplied metadata for one ingest."""

    document_id: str = Field(..., description="Stable document ID (repository:path)")
    repository: str = Field(..., description="Repository the file belongs to")
    file_path: str = Field(..., description="Repository-relative file path")
    title: str | None = Field(default=None, description="Title; derived when absent")
    doc_type: str | None = Field(default=None, description="Open document type tag")
    promotion_level: str = Field(default="draft", description="Visibility tier")
    commit_hash: str | None = Field(default=None, description="Commit the content came from")
    tenant: TenantContext | None = Field(default=None, description="(project, branch) scope")


class Document(BaseModel):
    """A source file ingested into the knowledge base."""

    id: str
    title: str
    content: str
    doc_type: str | None = None
    file_path: str
    repository: str
    last_modified: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    links: list[str] = Field(default_factory=list, description="Outbound link targets in order")
    promotion_level: str = "draft"
    commit_hash: str | None = None
    project: str | None = None
    branch: str | None = None


class Chunk(BaseModel):
    """
    Header-bounded slice of a document, the unit of vector retrieval.

    Line numbers are 1-indexed and inclusive.
    """

    id: str = Field(..., description="Chunk ID (document_id:chunk-N)")
    document_id: str = Field(..., description="Owning document ID")
    index: int = Field(..., ge=0, description="Zero-based position within the document")
    header_path: str = Field(default="", description="'>'-joined ancestor header titles")
    start_line: int = Field(..., ge=1)
    end_line: int = Field(..., ge=1)
    content: str
    token_count: int = Field(default=0, ge=0)
    repository: str | None = None
    file_path: str | None = None
    project: str | None = None
    branch: str | None = None


class CodeExample(BaseModel):
    """Fenced code block found inside a chunk."""

    id: str = Field(..., description="Code example ID (chunk_id:code-N)")
    chunk_id: str
    language: str = Field(default="", description="Info-string language, '' when unspecified")
    code: str
    description: str | None = None


class DocumentGraph(BaseModel):
    """
    Everything one ingest writes to the graph store.

    Graph stores persist a DocumentGraph as a single transaction, replacing
    whatever a previous ingest of the same document wrote.
    """

    document: Document
    chunks: list[Chunk] = Field(default_factory=list)
    code_examples: list[CodeExample] = Field(default_factory=list)
    concepts: list[Concept] = Field(default_factory=list)
    relationships: list[Relationship] = Field(default_factory=list)
    repository_node_id: str | None = None
