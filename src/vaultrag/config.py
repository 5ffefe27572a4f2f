"""
Configuration management using Pydantic Settings.

All configuration is loaded from environment variables with sensible defaults.
Use a .env file for local development.

Environment Variables:
    OPENAI_API_KEY: API key for the embedding endpoint
    EMBEDDING_MODEL: Embedding model identifier sent upstream
    EMBEDDING_DIMENSION: Expected length of every embedding vector
    MIN_CHUNK_CHARS / MAX_CHUNK_CHARS: Chunk size bounds in characters
    COLLECTION_ID: Collection whose index is maintained
    VAULT_DIR: Root directory of the markdown vault
    INDEX_PATH: Directory holding the persisted vector index
    LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Embedding Endpoint
    # ==========================================================================
    openai_api_key: Optional[SecretStr] = Field(
        default=None,
        description="API key for the OpenAI-compatible embedding endpoint",
    )
    embedding_model: str = Field(
        default="text-embedding-3-small",
        description="Embedding model identifier",
    )
    embedding_dimension: int = Field(
        default=1536,
        ge=1,
        description="Dimension of embedding vectors (must match model)",
    )
    embedding_base_url: str = Field(
        default="https://api.openai.com/v1",
        description="Root URL of the OpenAI-compatible embedding API",
    )
    embedding_timeout: float = Field(
        default=30.0,
        gt=0.0,
        description="Timeout in seconds for a single embedding request",
    )
    embedding_cache_size: int = Field(
        default=1000,
        ge=1,
        description="Maximum number of cached embeddings",
    )
    embedding_cache_key_chars: int = Field(
        default=500,
        ge=1,
        description="Number of leading characters used as the cache key",
    )

    # ==========================================================================
    # Chunking Configuration
    # ==========================================================================
    min_chunk_chars: int = Field(
        default=200,
        ge=1,
        description="Chunks shorter than this are dropped",
    )
    max_chunk_chars: int = Field(
        default=4000,
        ge=2,
        description="Chunks longer than this are split at paragraph/sentence boundaries",
    )

    # ==========================================================================
    # Indexing Configuration
    # ==========================================================================
    collection_id: str = Field(
        default="default",
        min_length=1,
        description="Collection (node) whose documents are indexed",
    )
    vault_dir: Path = Field(
        default=Path("vault"),
        description="Root directory of the markdown vault",
    )
    vault_file_pattern: str = Field(
        default="*.md",
        description="Glob pattern selecting indexable files",
    )
    vault_exclude_patterns: list[str] = Field(
        default_factory=list,
        description="Glob patterns (relative paths) excluded from indexing",
    )
    index_path: Path = Field(
        default=Path("data/index"),
        description="Directory for the persisted FAISS store",
    )
    index_workers: int = Field(
        default=4,
        ge=1,
        le=32,
        description="Number of files indexed concurrently",
    )

    # ==========================================================================
    # Retrieval Configuration
    # ==========================================================================
    search_limit: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Default number of results returned by a search",
    )
    search_threshold: float = Field(
        default=0.7,
        ge=-1.0,
        le=1.0,
        description="Default minimum cosine similarity for search results",
    )
    stats_top_directories: int = Field(
        default=10,
        ge=1,
        description="Number of directories reported by vault stats",
    )

    # ==========================================================================
    # Observability Configuration
    # ==========================================================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )
    phoenix_endpoint: str = Field(
        default="http://localhost:6006",
        description="Arize Phoenix collector endpoint",
    )
    enable_tracing: bool = Field(
        default=False,
        description="Enable OpenTelemetry tracing to Phoenix",
    )

    # ==========================================================================
    # Validators
    # ==========================================================================
    @field_validator("max_chunk_chars")
    @classmethod
    def validate_max_chunk_chars(cls, v: int, info) -> int:
        """Ensure the max leaves room for two minimum-sized chunks."""
        min_chars = info.data.get("min_chunk_chars", 200)
        if v < 2 * min_chars:
            raise ValueError(
                f"max_chunk_chars ({v}) must be at least twice min_chunk_chars ({min_chars})"
            )
        return v

    @field_validator("vault_dir", "index_path")
    @classmethod
    def resolve_path(cls, v: Path) -> Path:
        """Resolve paths to absolute paths."""
        return v.resolve()

    # ==========================================================================
    # Computed Properties
    # ==========================================================================
    @property
    def openai_api_key_value(self) -> Optional[str]:
        """Get the actual API key value (use sparingly)."""
        if self.openai_api_key:
            return self.openai_api_key.get_secret_value()
        return None


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Call `get_settings.cache_clear()` to reload settings.

    Returns:
        Settings: Application settings instance
    """
    return Settings()


# Convenience alias
settings = get_settings()
