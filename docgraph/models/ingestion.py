"""
Document ingestion result model.
"""

from pydantic import BaseModel, Field


class IngestionResult(BaseModel):
    """
    Result of ingesting one document.

    Returned by DocumentIngestionService.ingest_document() to report
    what was written to the graph and vector stores.
    """

    document_id: str
    title: str
    chunk_count: int = Field(default=0, ge=0)
    header_paths: list[str] = Field(default_factory=list, description="Header path per chunk")
    concept_ids: list[str] = Field(default_factory=list)
    code_example_count: int = Field(default=0, ge=0)
    vector_count: int = Field(default=0, ge=0, description="Chunks written to the vector index")
    link_count: int = Field(default=0, ge=0)
    doc_type: str | None = None
