"""ContentStore — documents, events, and tasks."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import case, func, or_
from sqlmodel import select

from quorum.models.documents import Document
from quorum.models.embeddings import EmbeddingRecord
from quorum.models.events import Event, EventType
from quorum.models.tasks import PRIORITY_RANK, Task, TaskPriority, TaskStatus
from quorum.ref import DOCUMENT, EVENT
from quorum.store._session import SessionScoped
from quorum.store.embeddings import family_clause
from quorum.types import MemoryStats

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

DEFAULT_TEXT_LIMIT = 20
DEFAULT_LIST_LIMIT = 50
DEFAULT_BACKLOG_LIMIT = 100

_TASK_FIELDS = frozenset(
    {"title", "description", "status", "priority", "owner", "due_at", "metadata"}
)


def _unembedded(kind: str, id_column: Any) -> ColumnElement[bool]:
    """Anti-join: no embedding record of any form exists for the row."""
    embedded = (
        select(EmbeddingRecord.id)
        .where(EmbeddingRecord.ref_id == id_column, family_clause(kind))
        .exists()
    )
    return ~embedded


class ContentStore(SessionScoped):
    """CRUD for the content the memory is built from.

    Stateless apart from the session factory; every call acquires and
    releases its own session unless one is passed in.
    """

    def __init__(self, session_factory: Callable[..., AsyncSession]) -> None:
        super().__init__(session_factory)

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def store_document(
        self,
        doc_type: str,
        title: str,
        content: str,
        *,
        metadata: dict[str, Any] | None = None,
        tags: list[str] | None = None,
        session: AsyncSession | None = None,
    ) -> Document:
        """Insert a document and return it."""
        doc = Document(
            doc_type=doc_type,
            title=title,
            content=content,
            metadata_=dict(metadata or {}),
            tags=list(tags or []),
        )
        async with self._scope(session, f"Store document {title!r}") as s:
            s.add(doc)
            await s.flush()
        return doc

    async def get_document(
        self, doc_id: str, *, session: AsyncSession | None = None
    ) -> Document | None:
        async with self._scope(session, f"Get document {doc_id}") as s:
            return await s.get(Document, doc_id)

    async def get_documents(
        self, ids: Iterable[str], *, session: AsyncSession | None = None
    ) -> dict[str, Document]:
        """Return the documents among *ids*, keyed by id. Missing ids are omitted."""
        wanted = list(dict.fromkeys(ids))
        if not wanted:
            return {}
        async with self._scope(session, "Get documents") as s:
            result = await s.execute(select(Document).where(Document.id.in_(wanted)))  # type: ignore[attr-defined]
            return {doc.id: doc for doc in result.scalars().all()}

    async def search_documents_by_text(
        self,
        query: str,
        *,
        doc_type: str | None = None,
        limit: int = DEFAULT_TEXT_LIMIT,
        session: AsyncSession | None = None,
    ) -> list[Document]:
        """Case-insensitive substring match on title or content, newest first."""
        stmt = select(Document).where(
            or_(
                Document.title.icontains(query, autoescape=True),  # type: ignore[attr-defined]
                Document.content.icontains(query, autoescape=True),  # type: ignore[attr-defined]
            )
        )
        if doc_type:
            stmt = stmt.where(Document.doc_type == doc_type)
        stmt = stmt.order_by(Document.updated_at.desc()).limit(limit)  # type: ignore[attr-defined]
        async with self._scope(session, "Text search documents") as s:
            result = await s.execute(stmt)
            return list(result.scalars().all())

    async def get_unembedded_documents(
        self,
        limit: int = DEFAULT_BACKLOG_LIMIT,
        *,
        session: AsyncSession | None = None,
    ) -> list[Document]:
        """Documents with no embedding record of any form, oldest first."""
        stmt = (
            select(Document)
            .where(_unembedded(DOCUMENT, Document.id))
            .order_by(Document.created_at.asc())  # type: ignore[attr-defined]
            .limit(limit)
        )
        async with self._scope(session, "List unembedded documents") as s:
            result = await s.execute(stmt)
            return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    async def store_event(
        self,
        event_type: str,
        title: str,
        description: str = "",
        *,
        metadata: dict[str, Any] | None = None,
        session: AsyncSession | None = None,
    ) -> Event:
        """Insert an event and return it.

        Raises:
            ValueError: If *event_type* is not a known :class:`EventType`.
        """
        event = Event(
            event_type=EventType(event_type).value,
            title=title,
            description=description,
            metadata_=dict(metadata or {}),
        )
        async with self._scope(session, f"Store event {title!r}") as s:
            s.add(event)
            await s.flush()
        return event

    async def get_event(
        self, event_id: str, *, session: AsyncSession | None = None
    ) -> Event | None:
        async with self._scope(session, f"Get event {event_id}") as s:
            return await s.get(Event, event_id)

    async def get_events(
        self, ids: Iterable[str], *, session: AsyncSession | None = None
    ) -> dict[str, Event]:
        """Return the events among *ids*, keyed by id. Missing ids are omitted."""
        wanted = list(dict.fromkeys(ids))
        if not wanted:
            return {}
        async with self._scope(session, "Get events") as s:
            result = await s.execute(select(Event).where(Event.id.in_(wanted)))  # type: ignore[attr-defined]
            return {event.id: event for event in result.scalars().all()}

    async def list_events(
        self,
        *,
        event_type: str | None = None,
        since: datetime | None = None,
        limit: int = DEFAULT_LIST_LIMIT,
        session: AsyncSession | None = None,
    ) -> list[Event]:
        """Events, newest first, optionally filtered by type and start time."""
        stmt = select(Event)
        if event_type:
            stmt = stmt.where(Event.event_type == event_type)
        if since is not None:
            stmt = stmt.where(Event.created_at >= since)
        stmt = stmt.order_by(Event.created_at.desc()).limit(limit)  # type: ignore[attr-defined]
        async with self._scope(session, "List events") as s:
            result = await s.execute(stmt)
            return list(result.scalars().all())

    async def search_events_by_text(
        self,
        query: str,
        *,
        event_type: str | None = None,
        limit: int = DEFAULT_TEXT_LIMIT,
        session: AsyncSession | None = None,
    ) -> list[Event]:
        """Case-insensitive substring match on title or description, newest first."""
        stmt = select(Event).where(
            or_(
                Event.title.icontains(query, autoescape=True),  # type: ignore[attr-defined]
                Event.description.icontains(query, autoescape=True),  # type: ignore[attr-defined]
            )
        )
        if event_type:
            stmt = stmt.where(Event.event_type == event_type)
        stmt = stmt.order_by(Event.created_at.desc()).limit(limit)  # type: ignore[attr-defined]
        async with self._scope(session, "Text search events") as s:
            result = await s.execute(stmt)
            return list(result.scalars().all())

    async def get_unembedded_events(
        self,
        limit: int = DEFAULT_BACKLOG_LIMIT,
        *,
        session: AsyncSession | None = None,
    ) -> list[Event]:
        """Events with no embedding record of any form, oldest first."""
        stmt = (
            select(Event)
            .where(_unembedded(EVENT, Event.id))
            .order_by(Event.created_at.asc())  # type: ignore[attr-defined]
            .limit(limit)
        )
        async with self._scope(session, "List unembedded events") as s:
            result = await s.execute(stmt)
            return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    async def create_task(
        self,
        title: str,
        *,
        description: str = "",
        status: str = TaskStatus.OPEN.value,
        priority: str = TaskPriority.MEDIUM.value,
        owner: str | None = None,
        due_at: datetime | None = None,
        metadata: dict[str, Any] | None = None,
        session: AsyncSession | None = None,
    ) -> Task:
        """Insert a task and return it.

        Raises:
            ValueError: On an unknown status or priority.
        """
        task = Task(
            title=title,
            description=description,
            status=TaskStatus(status).value,
            priority=TaskPriority(priority).value,
            owner=owner,
            due_at=due_at,
            metadata_=dict(metadata or {}),
        )
        async with self._scope(session, f"Create task {title!r}") as s:
            s.add(task)
            await s.flush()
        return task

    async def update_task(
        self,
        task_id: str,
        *,
        session: AsyncSession | None = None,
        **updates: Any,
    ) -> Task | None:
        """Apply *updates* to a task. Returns None if the task does not exist.

        Only the keys present in *updates* are written, so ``owner=None``
        clears the owner while omitting ``owner`` leaves it alone.

        Raises:
            ValueError: On an unknown field, status, or priority.
        """
        unknown = set(updates) - _TASK_FIELDS
        if unknown:
            msg = f"Unknown task fields: {', '.join(sorted(unknown))}"
            raise ValueError(msg)
        if "status" in updates:
            updates["status"] = TaskStatus(updates["status"]).value
        if "priority" in updates:
            updates["priority"] = TaskPriority(updates["priority"]).value

        async with self._scope(session, f"Update task {task_id}") as s:
            task = await s.get(Task, task_id)
            if task is None:
                return None
            if not updates:
                return task
            for key, value in updates.items():
                if key == "metadata":
                    task.metadata_ = dict(value or {})
                else:
                    setattr(task, key, value)
            task.updated_at = datetime.now(UTC)
            s.add(task)
            await s.flush()
            return task

    async def get_task(
        self, task_id: str, *, session: AsyncSession | None = None
    ) -> Task | None:
        async with self._scope(session, f"Get task {task_id}") as s:
            return await s.get(Task, task_id)

    async def list_tasks(
        self,
        *,
        status: str | None = None,
        priority: str | None = None,
        owner: str | None = None,
        limit: int = DEFAULT_LIST_LIMIT,
        session: AsyncSession | None = None,
    ) -> list[Task]:
        """Tasks ordered by priority (critical first), due date (nulls last), newest."""
        stmt = select(Task)
        if status:
            stmt = stmt.where(Task.status == status)
        if priority:
            stmt = stmt.where(Task.priority == priority)
        if owner:
            stmt = stmt.where(Task.owner == owner)

        rank = case(PRIORITY_RANK, value=Task.priority, else_=len(PRIORITY_RANK))
        stmt = stmt.order_by(
            rank,
            Task.due_at.is_(None),  # type: ignore[union-attr]
            Task.due_at.asc(),  # type: ignore[union-attr]
            Task.created_at.desc(),  # type: ignore[attr-defined]
        ).limit(limit)
        async with self._scope(session, "List tasks") as s:
            result = await s.execute(stmt)
            return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    async def get_stats(self, *, session: AsyncSession | None = None) -> MemoryStats:
        """Row counts, including how many documents and events await embedding."""
        async with self._scope(session, "Get stats") as s:

            async def _count(stmt: Any) -> int:
                return int((await s.execute(stmt)).scalar_one())

            return MemoryStats(
                documents=await _count(select(func.count()).select_from(Document)),
                events=await _count(select(func.count()).select_from(Event)),
                tasks=await _count(select(func.count()).select_from(Task)),
                embeddings=await _count(select(func.count()).select_from(EmbeddingRecord)),
                unembedded_documents=await _count(
                    select(func.count())
                    .select_from(Document)
                    .where(_unembedded(DOCUMENT, Document.id))
                ),
                unembedded_events=await _count(
                    select(func.count())
                    .select_from(Event)
                    .where(_unembedded(EVENT, Event.id))
                ),
            )
