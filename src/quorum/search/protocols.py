"""Search layer protocols — async-first interface for embedding providers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from quorum.search.types import ProviderHealth


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Async-first protocol for text-to-vector embedding.

    Implementations convert text into fixed-dimension float vectors and
    raise :class:`~quorum.exceptions.EmbeddingProviderError` subclasses when
    they cannot: ``ProviderUnavailableError`` for transport failures and
    ``EmptyProviderResponseError`` for malformed answers.
    """

    async def embed(self, text: str) -> list[float]:
        """Embed a single text string into a vector."""
        ...

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed multiple texts into vectors."""
        ...

    async def check_health(self) -> ProviderHealth:
        """Report reachability and model availability. Never raises."""
        ...

    @property
    def dimensions(self) -> int:
        """Number of dimensions in the embedding vectors."""
        ...

    @property
    def model_name(self) -> str:
        """Name of the embedding model."""
        ...
