"""
Tests for the FastAPI application.

Handlers run against mocked services; the lifespan is never entered so no
backend is contacted.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

import app as api
from docgraph.config import Config
from docgraph.models import GraphRagOptions, GraphRagResult, GraphRagSource, SyncReport, SyncStatus
from docgraph.utils.exceptions import LLMError, TransientVectorStoreError


@pytest.fixture
def services(monkeypatch):
    """Services container with mocked components."""
    container = MagicMock()
    container.config = Config()
    container.pipeline.default_options.return_value = GraphRagOptions()
    container.pipeline.query = AsyncMock(
        return_value=GraphRagResult(
            answer="Use JWT [1].",
            sources=[
                GraphRagSource(
                    document_id="auth:docs/jwt.md",
                    chunk_id="auth:docs/jwt.md:chunk-0",
                    repository="auth",
                    file_path="docs/jwt.md",
                    relevance_score=0.9,
                    cited=True,
                )
            ],
            related_concepts=["JWT"],
            confidence=0.9,
        )
    )
    container.runner.run = AsyncMock(return_value=SyncReport(repository="auth", processed=2))
    container.scheduler.status = SyncStatus()
    container.ingestion.delete_document = AsyncMock(return_value=3)
    monkeypatch.setattr(api, "services", container)
    return container


@pytest.fixture
def client():
    return TestClient(api.app)


@pytest.mark.unit
class TestHealth:
    """Tests for informational endpoints."""

    def test_health_initialized(self, services, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["graph_backend"] == "neo4j"
        assert body["sync_enabled"] is False

    def test_health_initializing(self, monkeypatch, client):
        monkeypatch.setattr(api, "services", None)

        body = client.get("/health").json()

        assert body["status"] == "initializing"
        assert body["services_initialized"] is False

    def test_root(self, client):
        assert client.get("/").json()["name"] == "docgraph API"


@pytest.mark.unit
class TestQueryEndpoint:
    """Tests for POST /query."""

    def test_query(self, services, client):
        response = client.post("/query", json={"query": "How do tokens work?"})

        assert response.status_code == 200
        body = response.json()
        assert body["answer"] == "Use JWT [1]."
        assert body["sources"][0]["cited"] is True
        question, options = services.pipeline.query.call_args.args
        assert question == "How do tokens work?"
        assert options.max_chunks == 10

    def test_request_overrides_defaults(self, services, client):
        client.post(
            "/query",
            json={
                "query": "How do tokens work?",
                "max_chunks": 3,
                "repository_filter": "auth",
                "project": "acme",
                "branch": "main",
            },
        )

        options = services.pipeline.query.call_args.args[1]
        assert options.max_chunks == 3
        assert options.repository_filter == "auth"
        assert options.tenant.project == "acme"
        assert options.tenant.branch == "main"
        assert options.max_traversal_steps == 5

    def test_short_query_rejected(self, services, client):
        response = client.post("/query", json={"query": "hi"})

        assert response.status_code == 422
        services.pipeline.query.assert_not_called()

    def test_configured_min_length(self, services, client):
        services.config.graph_rag.min_query_length = 10

        response = client.post("/query", json={"query": "tokens?"})

        assert response.status_code == 400
        assert response.json()["error"]["context"] == {"min_query_length": 10}
        services.pipeline.query.assert_not_called()

    def test_project_without_branch(self, services, client):
        """Test a half-specified tenant maps to a 400 error body."""
        response = client.post("/query", json={"query": "tokens?", "project": "acme"})

        assert response.status_code == 400
        assert response.json()["error"]["type"] == "ValidationError"

    def test_transient_backend_failure(self, services, client):
        services.pipeline.query.side_effect = TransientVectorStoreError("qdrant unavailable")

        response = client.post("/query", json={"query": "How do tokens work?"})

        assert response.status_code == 503
        assert response.json()["error"]["message"] == "qdrant unavailable"

    def test_permanent_failure(self, services, client):
        services.pipeline.query.side_effect = LLMError("bad response", context={"model": "m"})

        response = client.post("/query", json={"query": "How do tokens work?"})

        assert response.status_code == 500
        assert response.json()["error"] == {
            "type": "LLMError",
            "message": "bad response",
            "context": {"model": "m"},
        }

    def test_services_not_initialized(self, monkeypatch, client):
        monkeypatch.setattr(api, "services", None)

        response = client.post("/query", json={"query": "How do tokens work?"})

        assert response.status_code == 503


@pytest.mark.unit
class TestSyncEndpoints:
    """Tests for the sync endpoints."""

    def test_sync_repository(self, services, client):
        response = client.post("/sync/auth")

        assert response.status_code == 200
        assert response.json()["processed"] == 2
        services.runner.run.assert_awaited_once_with("auth")

    def test_sync_unknown_repository(self, services, client):
        services.runner.run.return_value = SyncReport(
            repository="ghost", exit_code=1, error="Unknown repository: ghost"
        )

        response = client.post("/sync/ghost")

        assert response.status_code == 404
        assert response.json()["error"]["context"] == {"repository": "ghost"}

    def test_sync_status(self, services, client):
        response = client.get("/sync/status")

        assert response.status_code == 200
        assert response.json()["last_run_failed"] is False


@pytest.mark.unit
class TestDeleteDocument:
    """Tests for DELETE /documents/{id}."""

    def test_delete_document_with_path_id(self, services, client):
        response = client.delete("/documents/auth:docs/guides/jwt.md")

        assert response.status_code == 200
        assert response.json() == {
            "document_id": "auth:docs/guides/jwt.md",
            "deleted": True,
            "graph_nodes_deleted": 3,
        }
        services.ingestion.delete_document.assert_awaited_once_with("auth:docs/guides/jwt.md")

    def test_delete_missing_document(self, services, client):
        services.ingestion.delete_document.return_value = 0

        body = client.delete("/documents/auth:missing.md").json()

        assert body["deleted"] is False
