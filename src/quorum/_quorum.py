"""Main Quorum class — sync wrappers over QuorumAsync."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import TYPE_CHECKING, Any

from quorum._quorum_async import QuorumAsync
from quorum.exceptions import ReferenceNotFoundError
from quorum.search.retriever import SearchScope

if TYPE_CHECKING:
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncEngine

    from quorum.config import QuorumSettings
    from quorum.models.documents import Document
    from quorum.models.events import Event
    from quorum.models.tasks import Task
    from quorum.search.protocols import EmbeddingProvider
    from quorum.search.types import SearchResponse
    from quorum.types import (
        BacklogResult,
        EmbedResult,
        IntegrationStatus,
        MemoryStats,
        StoreResult,
        TaskResult,
    )

logger = logging.getLogger(__name__)


class Quorum:
    """Synchronous facade over :class:`QuorumAsync`.

    Runs a private event loop in a daemon thread so callers can use the
    memory from plain sync code, notebooks, or from inside another event
    loop.  Lookups raise :class:`ReferenceNotFoundError` instead of
    returning None.

    Usage::

        with Quorum() as q:
            q.setup()
            q.store_event("decision", "Adopt Postgres", "Replaces SQLite in prod")
            for hit in q.search("postgres").hits:
                print(hit.title, hit.score)
    """

    def __init__(
        self,
        settings: QuorumSettings | None = None,
        *,
        engine: AsyncEngine | None = None,
        provider: EmbeddingProvider | None = None,
    ) -> None:
        self._closed = False

        # Private event loop in a daemon thread
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._loop.run_forever, daemon=True)
        self._thread.start()

        self._async: QuorumAsync = self._run(self._async_init(settings, engine, provider))

    async def _async_init(
        self,
        settings: QuorumSettings | None,
        engine: AsyncEngine | None,
        provider: EmbeddingProvider | None,
    ) -> QuorumAsync:
        return QuorumAsync(settings, engine=engine, provider=provider)

    def _run(self, coro: Any) -> Any:
        """Submit *coro* to the private loop and block for the result."""
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def setup(self) -> None:
        self._run(self._async.setup())

    def close(self) -> None:
        """Close the async facade, stop the event loop and join the thread."""
        if self._closed:
            return
        self._closed = True

        try:
            self._run(self._async.close())
        finally:
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._thread.join(timeout=5)

    def __enter__(self) -> Quorum:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Documents and events
    # ------------------------------------------------------------------

    def store_document(
        self,
        title: str,
        content: str,
        *,
        doc_type: str = "note",
        metadata: dict[str, Any] | None = None,
        tags: list[str] | None = None,
    ) -> StoreResult:
        return self._run(
            self._async.store_document(
                title, content, doc_type=doc_type, metadata=metadata, tags=tags
            )
        )

    def store_event(
        self,
        event_type: str,
        title: str,
        description: str = "",
        *,
        metadata: dict[str, Any] | None = None,
    ) -> StoreResult:
        return self._run(
            self._async.store_event(event_type, title, description, metadata=metadata)
        )

    def get_document(self, doc_id: str) -> Document:
        doc = self._run(self._async.get_document(doc_id))
        if doc is None:
            msg = f"Document not found: {doc_id}"
            raise ReferenceNotFoundError(msg)
        return doc

    def get_event(self, event_id: str) -> Event:
        event = self._run(self._async.get_event(event_id))
        if event is None:
            msg = f"Event not found: {event_id}"
            raise ReferenceNotFoundError(msg)
        return event

    def list_events(
        self,
        *,
        event_type: str | None = None,
        since: datetime | None = None,
        limit: int = 50,
    ) -> list[Event]:
        return self._run(self._async.list_events(event_type=event_type, since=since, limit=limit))

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def create_task(self, title: str, **fields: Any) -> TaskResult:
        return self._run(self._async.create_task(title, **fields))

    def update_task(self, task_id: str, **updates: Any) -> TaskResult:
        return self._run(self._async.update_task(task_id, **updates))

    def save_task(self, task_id: str | None = None, **fields: Any) -> TaskResult:
        return self._run(self._async.save_task(task_id, **fields))

    def get_task(self, task_id: str) -> Task:
        task = self._run(self._async.get_task(task_id))
        if task is None:
            msg = f"Task not found: {task_id}"
            raise ReferenceNotFoundError(msg)
        return task

    def list_tasks(
        self,
        *,
        status: str | None = None,
        priority: str | None = None,
        owner: str | None = None,
        limit: int = 50,
    ) -> list[Task]:
        return self._run(
            self._async.list_tasks(status=status, priority=priority, owner=owner, limit=limit)
        )

    # ------------------------------------------------------------------
    # Search, embedding, backlog
    # ------------------------------------------------------------------

    def search(
        self,
        query: str,
        *,
        ref_type: SearchScope | str = SearchScope.ALL,
        limit: int = 10,
    ) -> SearchResponse:
        return self._run(self._async.search(query, ref_type=ref_type, limit=limit))

    def embed(
        self,
        text: str,
        *,
        ref_type: str | None = None,
        ref_id: str | None = None,
    ) -> EmbedResult:
        return self._run(self._async.embed(text, ref_type=ref_type, ref_id=ref_id))

    def process_backlog(self) -> BacklogResult:
        return self._run(self._async.process_backlog())

    def start_worker(self, interval: float | None = None) -> None:
        """Start the backlog worker on the private loop; it runs until :meth:`stop_worker`."""
        self._run(self._async.start_worker(interval))

    def stop_worker(self) -> None:
        self._run(self._async.stop_worker())

    def stats(self) -> MemoryStats:
        return self._run(self._async.stats())

    def integration_status(self) -> IntegrationStatus:
        return self._run(self._async.integration_status())

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def aio(self) -> QuorumAsync:
        """The underlying :class:`QuorumAsync` (for advanced async use)."""
        return self._async
