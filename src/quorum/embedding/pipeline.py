"""Embedder — chunk, embed, and store content for a reference."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from quorum.embedding.chunker import DEFAULT_CHUNK_SIZE, DEFAULT_OVERLAP, chunk_text
from quorum.embedding.hashing import content_hash
from quorum.ref import chunk_ref_type
from quorum.types import EmbedOutcome

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Hashable

    from quorum.search.protocols import EmbeddingProvider
    from quorum.store.embeddings import EmbeddingStore

logger = logging.getLogger(__name__)


class KeyedLock:
    """One :class:`asyncio.Lock` per key, dropped once nobody holds or awaits it."""

    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._users: dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


class Embedder:
    """Drives text through the chunker, the provider, and the store.

    Shared by the immediate-store path and the backlog so that work on the
    same reference never interleaves within a process; different
    references proceed independently.
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        store: EmbeddingStore,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        overlap: int = DEFAULT_OVERLAP,
    ) -> None:
        self._provider = provider
        self._store = store
        self._chunk_size = chunk_size
        self._overlap = overlap
        self._locks = KeyedLock()

    @property
    def provider(self) -> EmbeddingProvider:
        return self._provider

    @property
    def store(self) -> EmbeddingStore:
        return self._store

    async def embed_and_store(
        self,
        ref_type: str,
        ref_id: str,
        text: str,
        *,
        vector: list[float] | None = None,
    ) -> EmbedOutcome:
        """Embed *text* as one record, skipping when the stored hash is current.

        Pass *vector* to store an embedding the caller already computed.
        """
        async with self._locks.hold((ref_type, ref_id)):
            return await self._embed_single(ref_type, ref_id, text, vector=vector)

    async def embed_and_store_chunked(
        self, ref_type: str, ref_id: str, text: str
    ) -> EmbedOutcome:
        """Embed *text*, splitting it into chunk records when it is long.

        Every chunk record carries the hash of the whole text.  Before a new
        chunk family is written all previous records of the reference are
        deleted, so a shrinking text never leaves orphaned chunks behind.
        """
        async with self._locks.hold((ref_type, ref_id)):
            digest = content_hash(text)
            if await self._store.has_current_any_chunk(ref_type, ref_id, digest):
                return EmbedOutcome(embedded=False, content_hash=digest)

            if len(text) <= self._chunk_size:
                return await self._embed_single(ref_type, ref_id, text, digest=digest)

            chunks = chunk_text(text, self._chunk_size, self._overlap)
            await self._store.delete_all_for(ref_type, ref_id)

            try:
                for chunk in chunks:
                    vector = await self._provider.embed(chunk.text)
                    await self._store.upsert(
                        chunk_ref_type(ref_type, chunk.index), ref_id, vector, digest
                    )
            except Exception:
                # A partial family would carry the current hash and look complete.
                await self._store.delete_all_for(ref_type, ref_id)
                raise

            logger.debug("Stored %d chunks for %s/%s", len(chunks), ref_type, ref_id)
            return EmbedOutcome(embedded=True, content_hash=digest, chunks_stored=len(chunks))

    async def _embed_single(
        self,
        ref_type: str,
        ref_id: str,
        text: str,
        *,
        digest: str | None = None,
        vector: list[float] | None = None,
    ) -> EmbedOutcome:
        digest = digest or content_hash(text)
        if await self._store.has_current(ref_type, ref_id, digest):
            return EmbedOutcome(embedded=False, content_hash=digest)

        if vector is None:
            vector = await self._provider.embed(text)
        # A previous, longer version may have been stored as chunks.
        await self._store.delete_chunks_for(ref_type, ref_id)
        await self._store.upsert(ref_type, ref_id, vector, digest)
        return EmbedOutcome(embedded=True, content_hash=digest, chunks_stored=1)
