"""Embedding providers — protocol and implementations."""

from __future__ import annotations

from typing import TYPE_CHECKING

from quorum.search.protocols import EmbeddingProvider
from quorum.search.providers.ollama import OllamaEmbedding
from quorum.search.providers.openai import OpenAIEmbedding

if TYPE_CHECKING:
    from quorum.config import QuorumSettings

__all__ = [
    "EmbeddingProvider",
    "OllamaEmbedding",
    "OpenAIEmbedding",
    "create_provider",
]


def create_provider(settings: QuorumSettings) -> EmbeddingProvider:
    """Build the provider named by ``settings.provider``."""
    if settings.provider == "ollama":
        return OllamaEmbedding(
            host=settings.ollama_host,
            model=settings.embed_model,
            dimensions=settings.embedding_dim,
            health_timeout=settings.health_timeout,
        )
    if settings.provider == "openai":
        return OpenAIEmbedding(
            model=settings.embed_model,
            dimensions=settings.embedding_dim,
            health_timeout=settings.health_timeout,
        )
    msg = f"Unknown embedding provider {settings.provider!r}; expected 'ollama' or 'openai'"
    raise ValueError(msg)
