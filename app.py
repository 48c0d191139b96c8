"""
docgraph FastAPI Application

A REST API server for the docgraph knowledge base.
Provides endpoints for GraphRAG queries, repository sync and document deletion.
"""

import asyncio
import os
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass, field

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from docgraph.config import Config
from docgraph.core.embeddings.base import Embedder
from docgraph.core.extraction import LLMConceptExtractor
from docgraph.core.factory import (
    EmbedderFactory,
    GraphStoreFactory,
    LLMFactory,
    SourceControlFactory,
    VectorStoreFactory,
)
from docgraph.core.graph_store.base import GraphStore
from docgraph.core.llm.base import LLMProvider
from docgraph.core.tokenizer import Tokenizer
from docgraph.core.vector_store.base import VectorIndex
from docgraph.models.query import GraphRagOptions, GraphRagResult
from docgraph.models.sync import SyncReport, SyncStatus
from docgraph.models.tenant import TenantContext
from docgraph.services import (
    CrossRepoEntityResolver,
    DocumentIngestionService,
    GraphRagPipeline,
    SyncRunner,
    SyncScheduler,
)
from docgraph.utils.exceptions import (
    DocGraphError,
    NotFoundError,
    TransientError,
    ValidationError,
)
from docgraph.utils.logger import get_logger, setup_logging
from docgraph.utils.retry import RetryPolicy

logger = get_logger(__name__)


@dataclass
class Services:
    """Components shared by the request handlers."""

    config: Config
    graph_store: GraphStore
    vector_index: VectorIndex
    embedder: Embedder
    llm: LLMProvider
    ingestion: DocumentIngestionService
    pipeline: GraphRagPipeline
    runner: SyncRunner
    scheduler: SyncScheduler
    sync_task: asyncio.Task | None = field(default=None)


# Global services instance
services: Services | None = None


# Pydantic models for API
class QueryRequest(BaseModel):
    """Request model for a GraphRAG query."""

    query: str = Field(..., min_length=3, description="Natural-language question")
    max_chunks: int | None = Field(default=None, ge=1, le=100)
    max_traversal_steps: int | None = Field(default=None, ge=0, le=20)
    min_relevance_score: float | None = Field(default=None, ge=0.0, le=1.0)
    use_cross_repo_links: bool | None = None
    repository_filter: str | None = None
    doc_type_filter: str | None = None
    promotion_levels: list[str] | None = None
    project: str | None = None
    branch: str | None = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    services_initialized: bool
    graph_backend: str
    embedding_model: str
    sync_enabled: bool


class DeleteDocumentResponse(BaseModel):
    """Response model for document deletion."""

    document_id: str
    deleted: bool
    graph_nodes_deleted: int


def build_options(request: QueryRequest, defaults: GraphRagOptions) -> GraphRagOptions:
    """Overlay request fields on the configured default options."""
    overrides = request.model_dump(
        exclude_none=True, exclude={"query", "project", "branch"}
    )
    options = defaults.model_copy(update=overrides)
    if request.project and request.branch:
        options.tenant = TenantContext(project=request.project, branch=request.branch)
    elif request.project or request.branch:
        raise ValidationError(
            "project and branch must be given together",
            context={"project": request.project, "branch": request.branch},
        )
    return GraphRagOptions.model_validate(options.model_dump())


async def build_services(config: Config) -> Services:
    """Create and initialize every component from configuration."""
    logger.info("Creating LLM provider")
    llm = LLMFactory.create(config.llm)

    retry_policy = RetryPolicy.from_config(config.retry)

    logger.info("Creating embedder")
    embedder = EmbedderFactory.create(config.embedder, retry_policy)

    logger.info("Creating graph store")
    graph_store = GraphStoreFactory.create(config)

    logger.info("Detecting embedding dimension")
    vector_size = await EmbedderFactory.get_dimension(embedder, config.embedder)
    logger.info(f"Embedding dimension: {vector_size}")

    logger.info("Creating vector index")
    vector_index = VectorStoreFactory.create(
        config.qdrant, vector_size, retry_policy
    )

    await graph_store.initialize()
    await vector_index.initialize()

    ingestion = DocumentIngestionService(
        graph_store=graph_store,
        vector_index=vector_index,
        embedder=embedder,
        extractor=LLMConceptExtractor(llm),
        resolver=CrossRepoEntityResolver(graph_store),
        tokenizer=Tokenizer(config.tokenizer),
    )
    pipeline = GraphRagPipeline(embedder, vector_index, graph_store, llm, config.graph_rag)
    runner = SyncRunner(
        config, SourceControlFactory.create(config.git_sync), graph_store, ingestion
    )

    return Services(
        config=config,
        graph_store=graph_store,
        vector_index=vector_index,
        embedder=embedder,
        llm=llm,
        ingestion=ingestion,
        pipeline=pipeline,
        runner=runner,
        scheduler=SyncScheduler(config, runner),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown."""
    global services

    # Load configuration from environment, optionally layered on a YAML file
    config = Config.from_env_or_yaml(yaml_path=os.getenv("DOCGRAPH_CONFIG_FILE"))

    setup_logging(
        level=config.logging.level,
        log_to_file=config.logging.log_to_file,
        log_dir=config.logging.log_dir,
        file_rotation=config.logging.file_rotation,
        file_retention=config.logging.file_retention,
        compression=config.logging.compression,
        serialize=config.logging.serialize,
    )

    logger.info("Starting docgraph server")
    logger.info(
        f"Configuration: LLM={config.llm.provider}/{config.llm.model}, "
        f"Embedder={config.embedder.provider}/{config.embedder.model}, "
        f"Graph={config.graph_backend}, Repositories={len(config.repositories)}"
    )

    services = await build_services(config)
    if config.git_sync.enabled:
        services.sync_task = asyncio.create_task(services.scheduler.run_forever())
    logger.info("docgraph services initialized")

    yield

    logger.info("Shutting down docgraph server")
    if services.sync_task:
        services.sync_task.cancel()
        with suppress(asyncio.CancelledError):
            await services.sync_task
    await services.graph_store.close()
    await services.vector_index.close()
    await services.embedder.close()
    await services.llm.close()
    services = None
    logger.info("Cleanup complete")


# Create FastAPI app
app = FastAPI(
    title="docgraph API",
    description="GraphRAG knowledge base over documentation in git repositories",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def error_status(error: DocGraphError) -> int:
    if isinstance(error, ValidationError):
        return 400
    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, TransientError):
        return 503
    return 500


@app.exception_handler(DocGraphError)
async def docgraph_error_handler(request: Request, exc: DocGraphError):
    """Render docgraph errors as structured JSON."""
    status_code = error_status(exc)
    if status_code >= 500:
        logger.bind(path=request.url.path, error_type=type(exc).__name__).error(
            f"Request failed: {exc.message}"
        )
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "type": type(exc).__name__,
                "message": exc.message,
                "context": exc.context,
            }
        },
    )


def get_services() -> Services:
    if services is None:
        raise TransientError("Services not initialized")
    return services


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(
        status="healthy" if services else "initializing",
        services_initialized=services is not None,
        graph_backend=services.config.graph_backend if services else "unknown",
        embedding_model=services.config.embedder.model if services else "unknown",
        sync_enabled=services.config.git_sync.enabled if services else False,
    )


@app.post("/query", response_model=GraphRagResult)
async def query(request: QueryRequest):
    """
    Answer a question from the knowledge base.

    Vector search finds the most relevant chunks, graph traversal adds
    related chunks and concepts, and the answer cites its sources.
    """
    current = get_services()
    min_length = current.config.graph_rag.min_query_length
    if len(request.query.strip()) < min_length:
        raise ValidationError(
            f"Query must be at least {min_length} characters",
            context={"min_query_length": min_length},
        )
    options = build_options(request, current.pipeline.default_options())
    return await current.pipeline.query(request.query, options)


@app.post("/sync/{repository}", response_model=SyncReport)
async def sync_repository(repository: str):
    """Sync one configured repository now."""
    current = get_services()
    report = await current.runner.run(repository)
    if report.exit_code != 0:
        raise NotFoundError(
            f"Unknown repository: {repository}", context={"repository": repository}
        )
    return report


@app.get("/sync/status", response_model=SyncStatus)
async def sync_status():
    """Status of the background sync loop."""
    return get_services().scheduler.status


@app.delete("/documents/{document_id:path}", response_model=DeleteDocumentResponse)
async def delete_document(document_id: str):
    """Delete a document with its chunks, code examples and vectors."""
    deleted = await get_services().ingestion.delete_document(document_id)
    return DeleteDocumentResponse(
        document_id=document_id, deleted=deleted > 0, graph_nodes_deleted=deleted
    )


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "docgraph API",
        "version": "0.1.0",
        "description": "GraphRAG knowledge base over documentation in git repositories",
        "docs": "/docs",
        "health": "/health",
    }
