"""Result types: StoreResult, TaskResult, EmbedOutcome, BacklogResult, etc."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from datetime import datetime

    from quorum.models.tasks import Task


class EmbeddingStatus(str, Enum):
    """Outcome of the immediate embedding attempt after a store."""

    STORED = "stored"
    ALREADY_CURRENT = "already_current"
    PENDING = "pending"


@dataclass(frozen=True, slots=True)
class EmbedOutcome:
    """Result of embedding one reference.

    Attributes:
        embedded: False when the stored embedding was already current.
        content_hash: Hash of the whole text that was (or would be) embedded.
        chunks_stored: Number of records written (1 for unchunked content).
    """

    embedded: bool
    content_hash: str
    chunks_stored: int = 0


@dataclass(frozen=True, slots=True)
class BacklogResult:
    """Counts from one backlog cycle. ``skipped`` is set when a cycle was already running."""

    processed: int = 0
    errors: int = 0
    skipped: bool = False


@dataclass
class StoreResult:
    """Result of storing a document or event.

    Content is committed before embedding is attempted, so ``success`` is
    True even when ``embedding_status`` is ``PENDING``; the backlog will
    embed it later.
    """

    success: bool
    message: str
    id: str | None = None
    kind: str | None = None
    type_label: str | None = None
    title: str | None = None
    tags: list[str] = field(default_factory=list)
    created_at: datetime | None = None
    embedding_status: EmbeddingStatus = EmbeddingStatus.PENDING
    embedding_error: str | None = None


@dataclass
class TaskResult:
    """Result of creating or updating a task."""

    success: bool
    message: str
    action: str | None = None
    task: Task | None = None


@dataclass
class EmbedResult:
    """Result of an explicit embed request."""

    dimension: int
    content_hash: str
    stored: bool = False
    ref_type: str | None = None
    ref_id: str | None = None
    preview: list[float] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class MemoryStats:
    """Row counts across the memory tables."""

    documents: int = 0
    events: int = 0
    tasks: int = 0
    embeddings: int = 0
    unembedded_documents: int = 0
    unembedded_events: int = 0


@dataclass
class ComponentStatus:
    """Health of one integration (database, embedding provider)."""

    status: str
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def healthy(self) -> bool:
        return self.status == "connected"


@dataclass
class IntegrationStatus:
    """Aggregated health report."""

    components: dict[str, ComponentStatus] = field(default_factory=dict)

    @property
    def overall(self) -> str:
        if self.components and all(c.healthy for c in self.components.values()):
            return "healthy"
        return "degraded"
