"""OllamaEmbedding — async embedding provider backed by a local Ollama server."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from quorum.exceptions import EmptyProviderResponseError, ProviderUnavailableError
from quorum.search.types import ProviderHealth

logger = logging.getLogger(__name__)

DEFAULT_HOST = "http://localhost:11434"
DEFAULT_MODEL = "mxbai-embed-large"
DEFAULT_DIMENSIONS = 1024
DEFAULT_HEALTH_TIMEOUT = 5.0


class OllamaEmbedding:
    """Embedding provider for Ollama's ``/api/embed`` endpoint.

    Embedding calls carry no timeout of their own; they stop when the
    awaiting task is cancelled.  Health checks are bounded by
    *health_timeout* so a hung server cannot stall status reporting.

    Pass *client* to share or mock the underlying ``httpx.AsyncClient``;
    a client passed in is not closed by :meth:`close`.
    """

    def __init__(
        self,
        *,
        host: str = DEFAULT_HOST,
        model: str = DEFAULT_MODEL,
        dimensions: int = DEFAULT_DIMENSIONS,
        health_timeout: float = DEFAULT_HEALTH_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._host = host.rstrip("/")
        self._model = model
        self._dimensions = dimensions
        self._health_timeout = health_timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=None)

    # ------------------------------------------------------------------
    # EmbeddingProvider protocol
    # ------------------------------------------------------------------

    async def embed(self, text: str) -> list[float]:
        """Embed a single text; the first returned vector is used."""
        vectors = await self._call_api(text)
        return vectors[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed several texts in one request."""
        if not texts:
            return []
        vectors = await self._call_api(texts)
        if len(vectors) != len(texts):
            msg = f"Ollama returned {len(vectors)} embeddings for {len(texts)} inputs"
            raise EmptyProviderResponseError(msg)
        return vectors

    async def check_health(self) -> ProviderHealth:
        """List installed models and look for the configured one."""
        try:
            resp = await self._client.get(
                f"{self._host}/api/tags", timeout=self._health_timeout
            )
        except httpx.HTTPError as e:
            return ProviderHealth(reachable=False, model_available=False, error=_describe(e))

        if resp.is_error:
            return ProviderHealth(
                reachable=False, model_available=False, error=f"HTTP {resp.status_code}"
            )

        try:
            data = resp.json()
        except ValueError as e:
            return ProviderHealth(reachable=True, model_available=False, error=str(e))

        models = (data.get("models") if isinstance(data, dict) else None) or []
        names = [m.get("name", "") for m in models if isinstance(m, dict)]
        return ProviderHealth(reachable=True, model_available=self.matches_model(names))

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def model_name(self) -> str:
        return self._model

    @property
    def host(self) -> str:
        return self._host

    def matches_model(self, names: list[str]) -> bool:
        """True if a name equals the model or is a ``"{model}:tag"`` variant."""
        prefix = f"{self._model}:"
        return any(name == self._model or name.startswith(prefix) for name in names)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Close the underlying httpx client if this provider created it."""
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _call_api(self, payload: str | list[str]) -> list[list[float]]:
        """POST to ``/api/embed`` and return the ``embeddings`` list."""
        body: dict[str, Any] = {"model": self._model, "input": payload}
        try:
            resp = await self._client.post(f"{self._host}/api/embed", json=body)
        except httpx.HTTPError as e:
            msg = f"Ollama embedding request failed: {_describe(e)}"
            raise ProviderUnavailableError(msg) from e

        if resp.is_error:
            msg = (
                f"Ollama embedding request failed ({resp.status_code} "
                f"{resp.reason_phrase}): {resp.text}"
            )
            raise ProviderUnavailableError(msg)

        try:
            data = resp.json()
        except ValueError as e:
            msg = "Ollama returned a non-JSON embeddings response"
            raise EmptyProviderResponseError(msg) from e

        embeddings = data.get("embeddings") if isinstance(data, dict) else None
        if not embeddings or not embeddings[0]:
            msg = "Ollama returned empty embeddings response"
            raise EmptyProviderResponseError(msg)
        return [[float(x) for x in vector] for vector in embeddings]


def _describe(error: Exception) -> str:
    return str(error) or type(error).__name__
