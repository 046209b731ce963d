"""Backlog processing — embed documents and events that have no embedding yet."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

from quorum.exceptions import EmbeddingProviderError
from quorum.ref import DOCUMENT, EVENT
from quorum.types import BacklogResult

if TYPE_CHECKING:
    from quorum.embedding.pipeline import Embedder
    from quorum.store.content import ContentStore

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50
DEFAULT_POLL_INTERVAL = 30.0


class BacklogProcessor:
    """Reconciles references that lack an embedding.

    Each cycle fetches up to *batch_size* un-embedded documents, then up to
    *batch_size* un-embedded events, oldest first, and runs each through
    the chunk-aware embed path.  A failing item is logged and counted; it
    never aborts the cycle and is picked up again on a later one.

    Cycles never overlap: calling :meth:`process_once` while a cycle is
    running returns immediately with ``skipped=True``.
    """

    def __init__(
        self,
        content: ContentStore,
        embedder: Embedder,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        concurrency: int = 1,
    ) -> None:
        if batch_size <= 0:
            msg = f"batch_size must be positive, got {batch_size}"
            raise ValueError(msg)
        if concurrency <= 0:
            msg = f"concurrency must be positive, got {concurrency}"
            raise ValueError(msg)
        self._content = content
        self._embedder = embedder
        self._batch_size = batch_size
        self._concurrency = concurrency
        self._running = asyncio.Lock()

    @property
    def running(self) -> bool:
        """True while a cycle is in progress."""
        return self._running.locked()

    async def process_once(self) -> BacklogResult:
        """Run one backlog cycle and return its counts."""
        if self._running.locked():
            logger.debug("Backlog cycle already running; skipping")
            return BacklogResult(skipped=True)

        async with self._running:
            docs = await self._content.get_unembedded_documents(self._batch_size)
            doc_ok, doc_failed = await self._process(
                DOCUMENT, [(doc.id, doc.embedding_text()) for doc in docs]
            )

            events = await self._content.get_unembedded_events(self._batch_size)
            event_ok, event_failed = await self._process(
                EVENT, [(event.id, event.embedding_text()) for event in events]
            )

        return BacklogResult(processed=doc_ok + event_ok, errors=doc_failed + event_failed)

    async def _process(self, kind: str, items: list[tuple[str, str]]) -> tuple[int, int]:
        """Embed *items* with bounded parallelism. Returns ``(processed, errors)``."""
        if not items:
            return 0, 0

        semaphore = asyncio.Semaphore(self._concurrency)

        async def _one(ref_id: str, text: str) -> bool:
            async with semaphore:
                try:
                    await self._embedder.embed_and_store_chunked(kind, ref_id, text)
                except EmbeddingProviderError as e:
                    logger.error("Failed to embed %s %s: %s", kind, ref_id, e)
                    return False
                except Exception as e:
                    logger.error("Failed to embed %s %s: %s", kind, ref_id, e, exc_info=True)
                    return False
                return True

        outcomes = await asyncio.gather(*(_one(ref_id, text) for ref_id, text in items))
        processed = sum(outcomes)
        return processed, len(outcomes) - processed


class BacklogWorker:
    """Runs :meth:`BacklogProcessor.process_once` on a fixed interval.

    The interval is measured from the end of one cycle to the start of the
    next.  :meth:`stop` lets an in-flight cycle finish and skips the rest.
    """

    def __init__(
        self,
        processor: BacklogProcessor,
        *,
        interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        if interval <= 0:
            msg = f"interval must be positive, got {interval}"
            raise ValueError(msg)
        self._processor = processor
        self._interval = interval
        self._stopping = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._cycles = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def cycles(self) -> int:
        """Number of completed cycles."""
        return self._cycles

    def start(self) -> asyncio.Task[None]:
        """Schedule :meth:`run_forever` on the running loop (idempotent)."""
        if self._task is None or self._task.done():
            self._stopping.clear()
            self._task = asyncio.create_task(self.run_forever(), name="quorum-backlog")
        return self._task

    async def stop(self) -> None:
        """Signal the loop to exit and wait for the current cycle to finish."""
        self._stopping.set()
        if self._task is not None:
            await self._task
            self._task = None

    async def run_forever(self) -> None:
        while not self._stopping.is_set():
            try:
                result = await self._processor.process_once()
            except Exception:
                logger.error("Embedding backlog cycle failed", exc_info=True)
            else:
                if result.processed or result.errors:
                    logger.info(
                        "Embedding backlog: processed=%d, errors=%d",
                        result.processed,
                        result.errors,
                    )
            self._cycles += 1

            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._stopping.wait(), timeout=self._interval)
