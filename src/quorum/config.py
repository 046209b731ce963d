"""Configuration settings.

All options can be set through ``QUORUM_``-prefixed environment variables
or a ``.env`` file, e.g. ``QUORUM_OLLAMA_HOST=http://gpu-box:11434``.
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class QuorumSettings(BaseSettings):
    """Database, embedding provider, chunking, and backlog configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="QUORUM_",
        case_sensitive=False,
        extra="ignore",
    )

    database_url: str = Field(
        default="sqlite+aiosqlite:///quorum.db",
        description="SQLAlchemy async URL (sqlite+aiosqlite or postgresql+asyncpg)",
    )
    echo_sql: bool = Field(default=False, description="Echo SQL statements to logs")

    provider: Literal["ollama", "openai"] = Field(
        default="ollama", description="Embedding provider backend"
    )
    ollama_host: str = Field(default="http://localhost:11434", description="Ollama base URL")
    embed_model: str = Field(default="mxbai-embed-large", description="Embedding model name")
    embedding_dim: int = Field(default=1024, gt=0, description="Embedding vector dimension")
    health_timeout: float = Field(
        default=5.0, gt=0, description="Provider health check timeout in seconds"
    )

    chunk_size: int = Field(default=500, gt=0, description="Chunk size in characters")
    chunk_overlap: int = Field(default=50, ge=0, description="Overlap between chunks")

    batch_size: int = Field(default=50, gt=0, description="Max items per kind per backlog cycle")
    poll_interval: float = Field(default=30.0, gt=0, description="Seconds between backlog cycles")
    backlog_concurrency: int = Field(
        default=1, ge=1, description="References embedded in parallel within a cycle"
    )

    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("chunk_overlap")
    @classmethod
    def _overlap_below_size(cls, value: int, info: ValidationInfo) -> int:
        chunk_size = info.data.get("chunk_size")
        if chunk_size is not None and value >= chunk_size:
            msg = f"chunk_overlap ({value}) must be smaller than chunk_size ({chunk_size})"
            raise ValueError(msg)
        return value

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()
