"""QuorumAsync — primary async class wiring stores, embedder, backlog, and search."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import text as sql_text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from quorum.config import QuorumSettings
from quorum.embedding.backlog import BacklogProcessor, BacklogWorker
from quorum.embedding.hashing import content_hash
from quorum.embedding.pipeline import Embedder
from quorum.exceptions import EmbeddingProviderError
from quorum.ref import DOCUMENT, EVENT
from quorum.search.providers import create_provider
from quorum.search.retriever import Retriever, SearchScope
from quorum.store.content import ContentStore
from quorum.store.dialect import get_dialect
from quorum.store.embeddings import EmbeddingStore
from quorum.store.schema import ensure_schema
from quorum.types import (
    ComponentStatus,
    EmbeddingStatus,
    EmbedResult,
    IntegrationStatus,
    StoreResult,
    TaskResult,
)

if TYPE_CHECKING:
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncEngine

    from quorum.models.documents import Document
    from quorum.models.events import Event
    from quorum.models.tasks import Task
    from quorum.search.protocols import EmbeddingProvider
    from quorum.search.types import SearchResponse
    from quorum.types import BacklogResult, MemoryStats

logger = logging.getLogger(__name__)

EMBED_PREVIEW_VALUES = 5


class QuorumAsync:
    """Async facade over the semantic memory.

    Owns one engine and session factory; every store receives the factory
    explicitly.  Storing content is two-phase: the row is committed first,
    then an immediate embedding is attempted.  If the provider is down the
    content stays stored and the backlog embeds it later.

    Usage::

        async with QuorumAsync(QuorumSettings()) as q:
            await q.setup()
            await q.store_document("Design notes", "...", doc_type="note")
            response = await q.search("design")

    Pass *engine* and/or *provider* to share an existing engine or inject a
    provider; whatever is passed in is not closed by :meth:`close`.
    """

    def __init__(
        self,
        settings: QuorumSettings | None = None,
        *,
        engine: AsyncEngine | None = None,
        provider: EmbeddingProvider | None = None,
    ) -> None:
        self._settings = settings or QuorumSettings()
        self._closed = False

        self._owns_engine = engine is None
        self._engine: AsyncEngine = engine or create_async_engine(
            self._settings.database_url, echo=self._settings.echo_sql
        )
        self._session_factory = async_sessionmaker(
            self._engine, class_=AsyncSession, expire_on_commit=False
        )
        self._dialect = get_dialect(self._engine)

        self._owns_provider = provider is None
        self._provider: EmbeddingProvider = provider or create_provider(self._settings)

        self._content = ContentStore(self._session_factory)
        self._embeddings = EmbeddingStore(
            self._session_factory,
            dialect=self._dialect,
            model_name=self._provider.model_name,
        )
        self._embedder = Embedder(
            self._provider,
            self._embeddings,
            chunk_size=self._settings.chunk_size,
            overlap=self._settings.chunk_overlap,
        )
        self._backlog = BacklogProcessor(
            self._content,
            self._embedder,
            batch_size=self._settings.batch_size,
            concurrency=self._settings.backlog_concurrency,
        )
        self._retriever = Retriever(self._provider, self._embeddings, self._content)
        self._worker: BacklogWorker | None = None

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    async def setup(self) -> None:
        """Create all tables and indexes if they do not exist."""
        await ensure_schema(self._engine)
        logger.info("Schema ready on %s", self._dialect)

    # ------------------------------------------------------------------
    # Documents and events
    # ------------------------------------------------------------------

    async def store_document(
        self,
        title: str,
        content: str,
        *,
        doc_type: str = "note",
        metadata: dict[str, Any] | None = None,
        tags: list[str] | None = None,
    ) -> StoreResult:
        """Persist a document, then try to embed it immediately."""
        doc = await self._content.store_document(
            doc_type, title, content, metadata=metadata, tags=tags
        )
        status, error = await self._embed_now(DOCUMENT, doc.id, doc.embedding_text())
        return StoreResult(
            success=True,
            message=f"Stored document {doc.id}",
            id=doc.id,
            kind=DOCUMENT,
            type_label=doc.doc_type,
            title=doc.title,
            tags=list(doc.tags),
            created_at=doc.created_at,
            embedding_status=status,
            embedding_error=error,
        )

    async def store_event(
        self,
        event_type: str,
        title: str,
        description: str = "",
        *,
        metadata: dict[str, Any] | None = None,
    ) -> StoreResult:
        """Persist an event, then try to embed it immediately."""
        try:
            event = await self._content.store_event(
                event_type, title, description, metadata=metadata
            )
        except ValueError:
            return StoreResult(
                success=False,
                message=f"Unknown event type {event_type!r}",
                kind=EVENT,
                type_label=event_type,
                title=title,
            )
        status, error = await self._embed_now(EVENT, event.id, event.embedding_text())
        return StoreResult(
            success=True,
            message=f"Stored event {event.id}",
            id=event.id,
            kind=EVENT,
            type_label=event.event_type,
            title=event.title,
            created_at=event.created_at,
            embedding_status=status,
            embedding_error=error,
        )

    async def get_document(self, doc_id: str) -> Document | None:
        return await self._content.get_document(doc_id)

    async def get_event(self, event_id: str) -> Event | None:
        return await self._content.get_event(event_id)

    async def list_events(
        self,
        *,
        event_type: str | None = None,
        since: datetime | None = None,
        limit: int = 50,
    ) -> list[Event]:
        return await self._content.list_events(event_type=event_type, since=since, limit=limit)

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    async def create_task(self, title: str, **fields: Any) -> TaskResult:
        """Create a task. Invalid status or priority yields ``success=False``."""
        try:
            task = await self._content.create_task(title, **fields)
        except ValueError as e:
            return TaskResult(success=False, message=str(e), action="created")
        return TaskResult(
            success=True, message=f"Created task {task.id}", action="created", task=task
        )

    async def update_task(self, task_id: str, **updates: Any) -> TaskResult:
        """Update a task. A missing task yields ``success=False``."""
        try:
            task = await self._content.update_task(task_id, **updates)
        except ValueError as e:
            return TaskResult(success=False, message=str(e), action="updated")
        if task is None:
            return TaskResult(success=False, message=f"Task {task_id} not found", action="updated")
        return TaskResult(
            success=True, message=f"Updated task {task_id}", action="updated", task=task
        )

    async def save_task(self, task_id: str | None = None, **fields: Any) -> TaskResult:
        """Create a task when *task_id* is None, otherwise update it."""
        if task_id is None:
            title = fields.pop("title", None)
            if not title:
                return TaskResult(
                    success=False, message="A title is required to create a task", action="created"
                )
            return await self.create_task(title, **fields)
        return await self.update_task(task_id, **fields)

    async def get_task(self, task_id: str) -> Task | None:
        return await self._content.get_task(task_id)

    async def list_tasks(
        self,
        *,
        status: str | None = None,
        priority: str | None = None,
        owner: str | None = None,
        limit: int = 50,
    ) -> list[Task]:
        return await self._content.list_tasks(
            status=status, priority=priority, owner=owner, limit=limit
        )

    # ------------------------------------------------------------------
    # Search and embedding
    # ------------------------------------------------------------------

    async def search(
        self,
        query: str,
        *,
        ref_type: SearchScope | str = SearchScope.ALL,
        limit: int = 10,
    ) -> SearchResponse:
        return await self._retriever.search(query, ref_type=ref_type, limit=limit)

    async def embed(
        self,
        text: str,
        *,
        ref_type: str | None = None,
        ref_id: str | None = None,
    ) -> EmbedResult:
        """Embed arbitrary text; store it when both *ref_type* and *ref_id* are given.

        Storing goes through the Embedder under the reference lock, so earlier
        chunk records are replaced.  ``stored`` is False when the stored hash
        was already current.

        Raises:
            ValueError: If only one of *ref_type* and *ref_id* is given.
            EmbeddingProviderError: If the provider cannot embed the text.
        """
        if (ref_type is None) != (ref_id is None):
            msg = "ref_type and ref_id must be given together"
            raise ValueError(msg)

        digest = content_hash(text)
        vector = await self._provider.embed(text)
        stored = False
        if ref_type is not None and ref_id is not None:
            outcome = await self._embedder.embed_and_store(
                ref_type, ref_id, text, vector=vector
            )
            stored = outcome.embedded
        return EmbedResult(
            dimension=len(vector),
            content_hash=digest,
            stored=stored,
            ref_type=ref_type,
            ref_id=ref_id,
            preview=list(vector[:EMBED_PREVIEW_VALUES]),
        )

    # ------------------------------------------------------------------
    # Backlog
    # ------------------------------------------------------------------

    async def process_backlog(self) -> BacklogResult:
        """Run one backlog cycle now."""
        return await self._backlog.process_once()

    async def start_worker(self, interval: float | None = None) -> BacklogWorker:
        """Start the recurring backlog worker on the running loop (idempotent)."""
        if self._worker is None:
            self._worker = BacklogWorker(
                self._backlog, interval=interval or self._settings.poll_interval
            )
        self._worker.start()
        return self._worker

    async def stop_worker(self) -> None:
        if self._worker is not None:
            await self._worker.stop()
            self._worker = None

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    async def stats(self) -> MemoryStats:
        return await self._content.get_stats()

    async def integration_status(self) -> IntegrationStatus:
        """Check the database and the embedding provider."""
        return IntegrationStatus(
            components={
                "database": await self._database_status(),
                "embedding_provider": await self._provider_status(),
            }
        )

    async def _database_status(self) -> ComponentStatus:
        details: dict[str, Any] = {
            "dialect": self._dialect,
            "url": self._engine.url.render_as_string(hide_password=True),
        }
        try:
            async with self._engine.connect() as conn:
                await conn.execute(sql_text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.warning("Database health check failed: %s", e)
            return ComponentStatus(status="error", details={**details, "error": str(e)})
        return ComponentStatus(status="connected", details=details)

    async def _provider_status(self) -> ComponentStatus:
        health = await self._provider.check_health()
        details: dict[str, Any] = {"model": self._provider.model_name}
        if health.error:
            details["error"] = health.error
        if not health.reachable:
            return ComponentStatus(status="unreachable", details=details)
        if not health.model_available:
            return ComponentStatus(status="model_missing", details=details)
        details["dimensions"] = self._provider.dimensions
        return ComponentStatus(status="connected", details=details)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _embed_now(
        self, kind: str, ref_id: str, body: str
    ) -> tuple[EmbeddingStatus, str | None]:
        try:
            outcome = await self._embedder.embed_and_store_chunked(kind, ref_id, body)
        except EmbeddingProviderError as e:
            logger.warning("Immediate embedding of %s %s deferred to backlog: %s", kind, ref_id, e)
            return EmbeddingStatus.PENDING, str(e)
        except Exception as e:
            # The content row is already committed; the backlog retries it.
            logger.error(
                "Immediate embedding of %s %s failed: %s", kind, ref_id, e, exc_info=True
            )
            return EmbeddingStatus.PENDING, str(e) or type(e).__name__
        if outcome.embedded:
            return EmbeddingStatus.STORED, None
        return EmbeddingStatus.ALREADY_CURRENT, None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        await self.stop_worker()
        if self._owns_provider:
            close = getattr(self._provider, "close", None)
            if close is not None:
                await close()
        if self._owns_engine:
            await self._engine.dispose()

    async def __aenter__(self) -> QuorumAsync:
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def settings(self) -> QuorumSettings:
        return self._settings

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    @property
    def provider(self) -> EmbeddingProvider:
        return self._provider

    @property
    def content(self) -> ContentStore:
        return self._content

    @property
    def embeddings(self) -> EmbeddingStore:
        return self._embeddings

    @property
    def embedder(self) -> Embedder:
        return self._embedder

    @property
    def backlog(self) -> BacklogProcessor:
        return self._backlog

    @property
    def retriever(self) -> Retriever:
        return self._retriever
