"""
Configuration for docgraph.

Supports loading from:
1. Environment variables (highest priority)
2. YAML config file
3. Default values (fallback)

Repository definitions are only read from YAML.
"""

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field


class LLMConfig(BaseModel):
    """LLM provider configuration."""

    provider: str = "ollama"  # ollama, openai
    model: str = "llama3.1:8b"
    base_url: str = "http://localhost:11434"
    api_key: str | None = None
    temperature: float = 0.0
    max_tokens: int = 2000
    timeout: float = 120.0


class EmbedderConfig(BaseModel):
    """Embedder configuration."""

    provider: str = "ollama"  # ollama, openai
    model: str = "nomic-embed-text"
    base_url: str = "http://localhost:11434"
    api_key: str | None = None
    timeout: float = 120.0
    # Optional: embedding dimension (fallback to auto-detect)
    dimension: int | None = None


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    log_to_file: bool = True
    log_dir: str = "logs"
    file_rotation: str = "10 MB"
    file_retention: str = "7 days"
    compression: str = "zip"
    serialize: bool = True


class QdrantConfig(BaseModel):
    """Qdrant vector index configuration."""

    url: str = "http://localhost:6333"
    collection_name: str = "docgraph_chunks"
    use_grpc: bool = False
    hnsw_m: int = 16
    hnsw_ef_construct: int = 100
    on_disk: bool = False
    batch_size: int = 100
    timeout: int = 30


class Neo4jConfig(BaseModel):
    """Neo4j graph database configuration."""

    uri: str = "bolt://localhost:7687"
    username: str = "neo4j"
    password: str = "password"
    database: str = "neo4j"


class RetryConfig(BaseModel):
    """Retry policy applied to graph store and vector index calls."""

    max_attempts: int = Field(default=3, ge=1)
    initial_delay: float = 0.2
    max_delay: float = 5.0
    multiplier: float = 2.0
    jitter: bool = True


class TokenizerConfig(BaseModel):
    """Token counting configuration."""

    provider: str = "tiktoken"  # tiktoken, approximate
    model: str = "cl100k_base"
    chars_per_token: float = 4.0


class GraphRagConfig(BaseModel):
    """Default query options for the GraphRAG pipeline."""

    max_chunks: int = Field(default=10, ge=1)
    max_traversal_steps: int = Field(default=5, ge=0)
    min_relevance_score: float = Field(default=0.7, ge=0.0, le=1.0)
    use_cross_repo_links: bool = True
    # Score multiplier applied per hop to traversal-discovered chunks
    traversal_decay: float = Field(default=0.7, gt=0.0, le=1.0)
    # Max neighbours fetched per frontier node on each traversal hop
    neighbor_limit: int = Field(default=200, ge=1)
    min_query_length: int = Field(default=3, ge=1)
    max_tokens: int = 2000


class RepositoryConfig(BaseModel):
    """A source-control repository to keep in sync."""

    name: str
    url: str
    branch: str = "main"
    monitored_paths: list[str] = Field(default_factory=list)
    # Tenant project; defaults to the repository name
    project: str | None = None


class GitSyncConfig(BaseModel):
    """Repository synchronization configuration."""

    enabled: bool = False
    clone_base_directory: str = "tmp/docgraph-repos"
    interval_seconds: float = 300.0
    max_concurrent_repositories: int = Field(default=4, ge=1)
    # Empty list processes every changed file
    file_extensions: list[str] = Field(default_factory=lambda: [".md", ".markdown", ".mdx"])


class Config(BaseModel):
    """Main configuration."""

    llm: LLMConfig = Field(default_factory=LLMConfig)
    embedder: EmbedderConfig = Field(default_factory=EmbedderConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    qdrant: QdrantConfig = Field(default_factory=QdrantConfig)
    neo4j: Neo4jConfig = Field(default_factory=Neo4jConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    tokenizer: TokenizerConfig = Field(default_factory=TokenizerConfig)
    graph_rag: GraphRagConfig = Field(default_factory=GraphRagConfig)
    git_sync: GitSyncConfig = Field(default_factory=GitSyncConfig)
    repositories: list[RepositoryConfig] = Field(default_factory=list)

    # Graph store backend
    graph_backend: str = "neo4j"

    def get_repository(self, name: str) -> RepositoryConfig | None:
        """
        Look up a repository by name (case-insensitive).

        Args:
            name: Repository name

        Returns:
            RepositoryConfig or None if not configured
        """
        wanted = name.lower()
        for repository in self.repositories:
            if repository.name.lower() == wanted:
                return repository
        return None

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> "Config":
        """
        Load configuration from environment variables.

        Priority: .env file -> system environment variables -> defaults

        Args:
            env_file: Optional path to .env file (default: .env in project root)

        Returns:
            Config instance

        Environment variables:
            DOCGRAPH_LLM_PROVIDER: LLM provider (ollama, openai)
            DOCGRAPH_LLM_MODEL: LLM model name
            DOCGRAPH_LLM_BASE_URL: LLM base URL
            DOCGRAPH_LLM_API_KEY: LLM API key (for OpenAI)
            DOCGRAPH_EMBEDDER_PROVIDER: Embedder provider
            DOCGRAPH_EMBEDDER_MODEL: Embedder model name
            DOCGRAPH_EMBEDDER_API_KEY: Embedder API key (for OpenAI)
            DOCGRAPH_EMBEDDER_DIMENSION: Embedding dimension (optional)
            DOCGRAPH_GRAPH_BACKEND: Graph backend (neo4j)
            DOCGRAPH_NEO4J_URI: Neo4j URI
            DOCGRAPH_NEO4J_USERNAME: Neo4j username
            DOCGRAPH_NEO4J_PASSWORD: Neo4j password
            DOCGRAPH_QDRANT_URL: Qdrant URL
            DOCGRAPH_QDRANT_COLLECTION: Qdrant collection name
            DOCGRAPH_RETRY_MAX_ATTEMPTS: Attempts per backend call
            DOCGRAPH_RAG_MAX_CHUNKS: Default chunk budget per query
            DOCGRAPH_RAG_MIN_RELEVANCE: Default minimum relevance score
            DOCGRAPH_SYNC_ENABLED: Run the periodic sync loop in the server
            DOCGRAPH_SYNC_INTERVAL_SECONDS: Seconds between sync cycles
        """
        # Load .env file if provided or exists
        if env_file:
            load_dotenv(env_file)
        elif Path(".env").exists():
            load_dotenv()

        def get_env(key: str, default: Any = None) -> Any:
            """Get environment variable with type conversion."""
            value = os.getenv(key)
            if value is None:
                return default
            # If value is empty string, return default
            if value == "":
                return default
            # Convert boolean strings
            if isinstance(default, bool):
                return str(value).lower() in ("true", "1", "yes")
            # Convert numeric strings
            if isinstance(default, int):
                return int(value)
            if isinstance(default, float):
                return float(value)
            return value

        return cls(
            llm=LLMConfig(
                provider=get_env("DOCGRAPH_LLM_PROVIDER", "ollama"),
                model=get_env("DOCGRAPH_LLM_MODEL", "llama3.1:8b"),
                base_url=get_env("DOCGRAPH_LLM_BASE_URL", "http://localhost:11434"),
                api_key=get_env("DOCGRAPH_LLM_API_KEY"),
                temperature=get_env("DOCGRAPH_LLM_TEMPERATURE", 0.0),
                max_tokens=get_env("DOCGRAPH_LLM_MAX_TOKENS", 2000),
                timeout=get_env("DOCGRAPH_LLM_TIMEOUT", 120.0),
            ),
            embedder=EmbedderConfig(
                provider=get_env("DOCGRAPH_EMBEDDER_PROVIDER", "ollama"),
                model=get_env("DOCGRAPH_EMBEDDER_MODEL", "nomic-embed-text"),
                base_url=get_env("DOCGRAPH_EMBEDDER_BASE_URL", "http://localhost:11434"),
                api_key=get_env("DOCGRAPH_EMBEDDER_API_KEY"),
                timeout=get_env("DOCGRAPH_EMBEDDER_TIMEOUT", 120.0),
                dimension=get_env("DOCGRAPH_EMBEDDER_DIMENSION"),
            ),
            graph_backend=get_env("DOCGRAPH_GRAPH_BACKEND", "neo4j"),
            neo4j=Neo4jConfig(
                uri=get_env("DOCGRAPH_NEO4J_URI", "bolt://localhost:7687"),
                username=get_env("DOCGRAPH_NEO4J_USERNAME", "neo4j"),
                password=get_env("DOCGRAPH_NEO4J_PASSWORD", "password"),
                database=get_env("DOCGRAPH_NEO4J_DATABASE", "neo4j"),
            ),
            qdrant=QdrantConfig(
                url=get_env("DOCGRAPH_QDRANT_URL", "http://localhost:6333"),
                collection_name=get_env("DOCGRAPH_QDRANT_COLLECTION", "docgraph_chunks"),
                use_grpc=get_env("DOCGRAPH_QDRANT_USE_GRPC", False),
                hnsw_m=get_env("DOCGRAPH_QDRANT_HNSW_M", 16),
                hnsw_ef_construct=get_env("DOCGRAPH_QDRANT_HNSW_EF_CONSTRUCT", 100),
                on_disk=get_env("DOCGRAPH_QDRANT_ON_DISK", False),
                timeout=get_env("DOCGRAPH_QDRANT_TIMEOUT", 30),
            ),
            logging=LoggingConfig(
                level=get_env("DOCGRAPH_LOG_LEVEL", "INFO"),
                log_to_file=get_env("DOCGRAPH_LOG_TO_FILE", True),
                log_dir=get_env("DOCGRAPH_LOG_DIR", "logs"),
                file_rotation=get_env("DOCGRAPH_LOG_FILE_ROTATION", "10 MB"),
                file_retention=get_env("DOCGRAPH_LOG_FILE_RETENTION", "7 days"),
                compression=get_env("DOCGRAPH_LOG_COMPRESSION", "zip"),
                serialize=get_env("DOCGRAPH_LOG_SERIALIZE", True),
            ),
            retry=RetryConfig(
                max_attempts=get_env("DOCGRAPH_RETRY_MAX_ATTEMPTS", 3),
                initial_delay=get_env("DOCGRAPH_RETRY_INITIAL_DELAY", 0.2),
                max_delay=get_env("DOCGRAPH_RETRY_MAX_DELAY", 5.0),
                multiplier=get_env("DOCGRAPH_RETRY_MULTIPLIER", 2.0),
                jitter=get_env("DOCGRAPH_RETRY_JITTER", True),
            ),
            tokenizer=TokenizerConfig(
                provider=get_env("DOCGRAPH_TOKENIZER_PROVIDER", "tiktoken"),
                model=get_env("DOCGRAPH_TOKENIZER_MODEL", "cl100k_base"),
            ),
            graph_rag=GraphRagConfig(
                max_chunks=get_env("DOCGRAPH_RAG_MAX_CHUNKS", 10),
                max_traversal_steps=get_env("DOCGRAPH_RAG_MAX_TRAVERSAL_STEPS", 5),
                min_relevance_score=get_env("DOCGRAPH_RAG_MIN_RELEVANCE", 0.7),
                use_cross_repo_links=get_env("DOCGRAPH_RAG_USE_CROSS_REPO_LINKS", True),
                min_query_length=get_env("DOCGRAPH_RAG_MIN_QUERY_LENGTH", 3),
            ),
            git_sync=GitSyncConfig(
                enabled=get_env("DOCGRAPH_SYNC_ENABLED", False),
                clone_base_directory=get_env(
                    "DOCGRAPH_SYNC_CLONE_DIRECTORY", "tmp/docgraph-repos"
                ),
                interval_seconds=get_env("DOCGRAPH_SYNC_INTERVAL_SECONDS", 300.0),
                max_concurrent_repositories=get_env("DOCGRAPH_SYNC_MAX_CONCURRENT", 4),
            ),
        )

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> "Config":
        """
        Load configuration from YAML file.

        Args:
            yaml_path: Path to YAML configuration file

        Returns:
            Config instance

        Raises:
            FileNotFoundError: If YAML file doesn't exist
            yaml.YAMLError: If YAML is invalid
        """
        yaml_path = Path(yaml_path)
        if not yaml_path.exists():
            raise FileNotFoundError(f"Config file not found: {yaml_path}")

        with open(yaml_path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    @classmethod
    def from_env_or_yaml(
        cls, yaml_path: str | Path | None = None, env_file: str | Path | None = None
    ) -> "Config":
        """
        Load configuration with priority: env vars > YAML > defaults.

        Args:
            yaml_path: Optional path to YAML config
            env_file: Optional path to .env file

        Returns:
            Config instance
        """
        if yaml_path and Path(yaml_path).exists():
            with open(yaml_path) as f:
                config_dict = yaml.safe_load(f) or {}
        else:
            config_dict = {}

        env_config = cls.from_env(env_file=env_file)

        # Merge: env vars override YAML, section by section
        final_dict = {**config_dict}
        default = cls()
        for section in (
            "llm",
            "embedder",
            "neo4j",
            "qdrant",
            "logging",
            "retry",
            "tokenizer",
            "graph_rag",
            "git_sync",
        ):
            env_section = getattr(env_config, section)
            if env_section != getattr(default, section):
                final_dict[section] = env_section.model_dump()

        if env_config.graph_backend != default.graph_backend:
            final_dict["graph_backend"] = env_config.graph_backend

        return cls(**final_dict) if final_dict else env_config


# Default config instance
default_config = Config()
