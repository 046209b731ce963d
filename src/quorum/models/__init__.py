"""SQLModel database models for Quorum."""

from quorum.models.documents import Document
from quorum.models.embeddings import EmbeddingRecord
from quorum.models.events import Event, EventType
from quorum.models.tasks import PRIORITY_RANK, Task, TaskPriority, TaskStatus

__all__ = [
    "PRIORITY_RANK",
    "Document",
    "EmbeddingRecord",
    "Event",
    "EventType",
    "Task",
    "TaskPriority",
    "TaskStatus",
]
