"""Event model — timestamped decisions, insights, milestones."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, DateTime
from sqlmodel import Field, SQLModel


class EventType(str, Enum):
    """Recognised event categories."""

    DECISION = "decision"
    INSIGHT = "insight"
    CRITIQUE = "critique"
    OPPORTUNITY = "opportunity"
    MILESTONE = "milestone"
    ERROR = "error"
    OBSERVATION = "observation"


class Event(SQLModel, table=True):
    """A logged event. Embedded as ``"[{event_type}] {title}\\n\\n{description}"``."""

    __tablename__ = "quorum_events"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    event_type: str = Field(index=True)
    title: str
    description: str = Field(default="")
    metadata_: dict[str, Any] = Field(
        default_factory=dict, sa_type=JSON, sa_column_kwargs={"name": "metadata"}
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
        index=True,
    )

    def embedding_text(self) -> str:
        """Return the canonical text used for embedding."""
        return f"[{self.event_type}] {self.title}\n\n{self.description}"
