"""
Tests for configuration management.

Tests config loading from:
1. Environment variables
2. YAML files
3. Combined (env overrides YAML)
"""

import pytest
import yaml
from pydantic import ValidationError as PydanticValidationError

from docgraph.config import Config, GraphRagConfig, RepositoryConfig, RetryConfig


class TestConfigDefaults:
    """Test default configuration values."""

    def test_default_config_creation(self):
        """Test creating config with defaults."""
        config = Config()

        # LLM defaults
        assert config.llm.provider == "ollama"
        assert config.llm.model == "llama3.1:8b"
        assert config.llm.api_key is None

        # Embedder defaults
        assert config.embedder.provider == "ollama"
        assert config.embedder.dimension is None  # Auto-detect

        # Stores
        assert config.graph_backend == "neo4j"
        assert config.neo4j.uri == "bolt://localhost:7687"
        assert config.qdrant.url == "http://localhost:6333"
        assert config.qdrant.collection_name == "docgraph_chunks"

        # Sync
        assert config.git_sync.enabled is False
        assert config.git_sync.file_extensions == [".md", ".markdown", ".mdx"]
        assert config.repositories == []

    def test_graph_rag_defaults(self):
        """Test query option defaults."""
        rag = GraphRagConfig()

        assert rag.max_chunks == 10
        assert rag.max_traversal_steps == 5
        assert rag.min_relevance_score == 0.7
        assert rag.use_cross_repo_links is True

    def test_graph_rag_bounds(self):
        """Test out-of-range query options are rejected."""
        with pytest.raises(PydanticValidationError):
            GraphRagConfig(max_chunks=0)
        with pytest.raises(PydanticValidationError):
            GraphRagConfig(min_relevance_score=1.5)

    def test_retry_bounds(self):
        with pytest.raises(PydanticValidationError):
            RetryConfig(max_attempts=0)

    def test_repository_defaults(self):
        repository = RepositoryConfig(name="docs", url="https://example.com/docs.git")

        assert repository.branch == "main"
        assert repository.monitored_paths == []
        assert repository.project is None


class TestGetRepository:
    """Test repository lookup."""

    def test_case_insensitive(self):
        config = Config(repositories=[RepositoryConfig(name="Docs-Repo", url="u")])

        assert config.get_repository("docs-repo").name == "Docs-Repo"

    def test_unknown(self):
        assert Config().get_repository("missing") is None


class TestConfigFromEnv:
    """Test loading configuration from environment variables."""

    def test_from_env_basic(self, monkeypatch):
        """Test loading basic config from env vars."""
        monkeypatch.setenv("DOCGRAPH_LLM_PROVIDER", "openai")
        monkeypatch.setenv("DOCGRAPH_LLM_MODEL", "gpt-4o-mini")
        monkeypatch.setenv("DOCGRAPH_LLM_API_KEY", "sk-test-key")
        monkeypatch.setenv("DOCGRAPH_EMBEDDER_PROVIDER", "openai")

        config = Config.from_env()

        assert config.llm.provider == "openai"
        assert config.llm.model == "gpt-4o-mini"
        assert config.llm.api_key == "sk-test-key"
        assert config.embedder.provider == "openai"

    def test_from_env_with_numbers(self, monkeypatch):
        """Test type conversion for numeric values."""
        monkeypatch.setenv("DOCGRAPH_LLM_TEMPERATURE", "0.7")
        monkeypatch.setenv("DOCGRAPH_RAG_MAX_CHUNKS", "4")
        monkeypatch.setenv("DOCGRAPH_RAG_MIN_RELEVANCE", "0.5")
        monkeypatch.setenv("DOCGRAPH_EMBEDDER_DIMENSION", "1536")

        config = Config.from_env()

        assert config.llm.temperature == 0.7
        assert config.graph_rag.max_chunks == 4
        assert config.graph_rag.min_relevance_score == 0.5
        assert config.embedder.dimension == 1536

    def test_from_env_with_booleans(self, monkeypatch):
        """Test type conversion for boolean values."""
        monkeypatch.setenv("DOCGRAPH_SYNC_ENABLED", "true")
        monkeypatch.setenv("DOCGRAPH_RAG_USE_CROSS_REPO_LINKS", "0")

        config = Config.from_env()

        assert config.git_sync.enabled is True
        assert config.graph_rag.use_cross_repo_links is False

    def test_empty_value_uses_default(self, monkeypatch):
        monkeypatch.setenv("DOCGRAPH_NEO4J_URI", "")

        assert Config.from_env().neo4j.uri == "bolt://localhost:7687"

    def test_from_env_with_dotenv_file(self, monkeypatch, tmp_path):
        """Test loading from a .env file."""
        monkeypatch.delenv("DOCGRAPH_QDRANT_COLLECTION", raising=False)
        env_file = tmp_path / ".env.test"
        env_file.write_text("DOCGRAPH_QDRANT_COLLECTION=from_dotenv\n")

        config = Config.from_env(env_file=env_file)

        assert config.qdrant.collection_name == "from_dotenv"
        monkeypatch.delenv("DOCGRAPH_QDRANT_COLLECTION", raising=False)


class TestConfigFromYaml:
    """Test loading configuration from YAML files."""

    def test_from_yaml_with_repositories(self, tmp_path):
        """Test repositories are read from YAML."""
        yaml_file = tmp_path / "config.yaml"
        yaml_file.write_text(
            yaml.dump(
                {
                    "git_sync": {"enabled": True, "interval_seconds": 60},
                    "repositories": [
                        {
                            "name": "docs-repo",
                            "url": "https://example.com/docs.git",
                            "monitored_paths": ["docs/"],
                        },
                        {"name": "web-app", "url": "https://example.com/web.git", "branch": "dev"},
                    ],
                }
            )
        )

        config = Config.from_yaml(yaml_file)

        assert config.git_sync.enabled is True
        assert config.git_sync.interval_seconds == 60
        assert [r.name for r in config.repositories] == ["docs-repo", "web-app"]
        assert config.repositories[0].monitored_paths == ["docs/"]
        assert config.get_repository("web-app").branch == "dev"

    def test_from_yaml_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Config.from_yaml(tmp_path / "missing.yaml")

    def test_from_yaml_empty_file(self, tmp_path):
        yaml_file = tmp_path / "config.yaml"
        yaml_file.write_text("")

        assert Config.from_yaml(yaml_file) == Config()


class TestConfigFromEnvOrYaml:
    """Test env vars overriding YAML."""

    def test_env_overrides_yaml_section(self, monkeypatch, tmp_path):
        yaml_file = tmp_path / "config.yaml"
        yaml_file.write_text(
            yaml.dump(
                {
                    "neo4j": {"uri": "bolt://yaml:7687"},
                    "repositories": [{"name": "docs", "url": "u"}],
                }
            )
        )
        monkeypatch.setenv("DOCGRAPH_LLM_MODEL", "env-model")

        config = Config.from_env_or_yaml(yaml_file)

        assert config.neo4j.uri == "bolt://yaml:7687"
        assert config.llm.model == "env-model"
        assert [r.name for r in config.repositories] == ["docs"]

    def test_missing_yaml_uses_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("DOCGRAPH_GRAPH_BACKEND", "neo4j")

        config = Config.from_env_or_yaml(tmp_path / "missing.yaml")

        assert config.graph_backend == "neo4j"
