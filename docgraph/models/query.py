"""
GraphRAG query options and results.
"""

from pydantic import BaseModel, Field

from docgraph.models.tenant import TenantContext


class GraphRagOptions(BaseModel):
    """Per-query knobs for the GraphRAG pipeline."""

    max_chunks: int = Field(default=10, ge=1, description="Vector hits to retrieve")
    max_traversal_steps: int = Field(default=5, ge=0, description="Graph hops from each hit")
    min_relevance_score: float = Field(default=0.7, ge=0.0, le=1.0)
    use_cross_repo_links: bool = Field(
        default=True, description="Follow edges into documents of other repositories"
    )
    repository_filter: str | None = None
    doc_type_filter: str | None = None
    promotion_levels: list[str] | None = Field(
        default=None, description="Only return chunks at these promotion levels"
    )
    tenant: TenantContext | None = None


class GraphRagSource(BaseModel):
    """A chunk that was placed in the synthesis context."""

    document_id: str
    chunk_id: str
    repository: str
    file_path: str
    relevance_score: float = Field(..., ge=0.0, le=1.0)
    cited: bool = Field(default=False, description="Whether the answer cites this source")


class GraphRagResult(BaseModel):
    """Answer returned to callers."""

    answer: str
    sources: list[GraphRagSource] = Field(default_factory=list)
    related_concepts: list[str] = Field(default_factory=list)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
