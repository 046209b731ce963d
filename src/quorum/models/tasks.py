"""Task model — actionable work items with status, priority, and owner."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, DateTime
from sqlmodel import Field, SQLModel


class TaskStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    BLOCKED = "blocked"
    DONE = "done"
    CANCELLED = "cancelled"


class TaskPriority(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


PRIORITY_RANK: dict[str, int] = {
    TaskPriority.CRITICAL.value: 0,
    TaskPriority.HIGH.value: 1,
    TaskPriority.MEDIUM.value: 2,
    TaskPriority.LOW.value: 3,
}
"""Sort rank per priority; unknown priorities sort last."""


class Task(SQLModel, table=True):
    """A tracked task. Tasks are not embedded."""

    __tablename__ = "quorum_tasks"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    title: str
    description: str = Field(default="")
    status: str = Field(default=TaskStatus.OPEN.value, index=True)
    priority: str = Field(default=TaskPriority.MEDIUM.value, index=True)
    owner: str | None = Field(default=None, index=True)
    due_at: datetime | None = Field(default=None, sa_type=DateTime(timezone=True))
    metadata_: dict[str, Any] = Field(
        default_factory=dict, sa_type=JSON, sa_column_kwargs={"name": "metadata"}
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
    )
