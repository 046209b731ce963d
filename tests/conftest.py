"""Shared fixtures for Quorum tests."""

from __future__ import annotations

import hashlib
import math
import re
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from quorum._quorum_async import QuorumAsync
from quorum.config import QuorumSettings
from quorum.embedding.pipeline import Embedder
from quorum.exceptions import ProviderUnavailableError
from quorum.search.types import ProviderHealth
from quorum.store.content import ContentStore
from quorum.store.embeddings import EmbeddingStore
from quorum.store.schema import ensure_schema

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from sqlalchemy.ext.asyncio import AsyncEngine

FAKE_DIM = 64

_WORD_RE = re.compile(r"[a-z0-9]+")


# ------------------------------------------------------------------
# Fake embedding provider (deterministic, fast)
# ------------------------------------------------------------------


class FakeProvider:
    """Deterministic bag-of-words embedding provider for testing.

    Each lowercase word adds 1 to a hashed bucket, so texts sharing words
    score higher against each other.  ``vectors`` pins exact vectors for
    specific texts.  Set ``available = False`` to make every call fail, or
    ``fail_when`` to fail selectively.
    """

    def __init__(
        self,
        *,
        dimensions: int = FAKE_DIM,
        vectors: dict[str, list[float]] | None = None,
    ) -> None:
        self._dimensions = dimensions
        self.vectors = dict(vectors or {})
        self.available = True
        self.fail_when: Callable[[str], bool] | None = None
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if not self.available or (self.fail_when is not None and self.fail_when(text)):
            msg = "Cannot connect to fake provider"
            raise ProviderUnavailableError(msg)
        if text in self.vectors:
            return list(self.vectors[text])
        return self.bag_of_words(text, self._dimensions)

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        return [await self.embed(t) for t in texts]

    async def check_health(self) -> ProviderHealth:
        if not self.available:
            return ProviderHealth(reachable=False, model_available=False, error="offline")
        return ProviderHealth(reachable=True, model_available=True)

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def model_name(self) -> str:
        return "fake-test-model"

    @staticmethod
    def bag_of_words(text: str, dimensions: int = FAKE_DIM) -> list[float]:
        vec = [0.0] * dimensions
        for word in _WORD_RE.findall(text.lower()):
            bucket = int.from_bytes(hashlib.sha256(word.encode()).digest()[:4], "big")
            vec[bucket % dimensions] += 1.0
        norm = math.sqrt(sum(x * x for x in vec))
        if norm == 0:
            return vec
        return [x / norm for x in vec]


# ------------------------------------------------------------------
# Database fixtures
# ------------------------------------------------------------------


@pytest.fixture
async def async_engine() -> AsyncIterator[AsyncEngine]:
    """Async in-memory SQLite engine with all tables created."""
    eng = create_async_engine("sqlite+aiosqlite://", echo=False)
    await ensure_schema(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def content_store(session_factory: async_sessionmaker[AsyncSession]) -> ContentStore:
    return ContentStore(session_factory)


@pytest.fixture
def embedding_store(session_factory: async_sessionmaker[AsyncSession]) -> EmbeddingStore:
    return EmbeddingStore(session_factory, dialect="sqlite", model_name="fake-test-model")


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def embedder(provider: FakeProvider, embedding_store: EmbeddingStore) -> Embedder:
    return Embedder(provider, embedding_store, chunk_size=200, overlap=20)


# ------------------------------------------------------------------
# Facade fixtures
# ------------------------------------------------------------------


@pytest.fixture
def settings() -> QuorumSettings:
    return QuorumSettings(
        _env_file=None,  # type: ignore[call-arg]
        database_url="sqlite+aiosqlite://",
        embedding_dim=FAKE_DIM,
        chunk_size=200,
        chunk_overlap=20,
        batch_size=10,
        poll_interval=0.05,
    )


@pytest.fixture
async def quorum(
    settings: QuorumSettings, async_engine: AsyncEngine, provider: FakeProvider
) -> AsyncIterator[QuorumAsync]:
    q = QuorumAsync(settings, engine=async_engine, provider=provider)
    await q.setup()
    yield q
    await q.close()
