"""Document model — free-text notes, decisions, analyses."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, DateTime
from sqlmodel import Field, SQLModel


class Document(SQLModel, table=True):
    """A stored document. Embedded as ``"{title}\\n\\n{content}"``."""

    __tablename__ = "quorum_documents"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    doc_type: str = Field(default="note", index=True)
    title: str
    content: str
    metadata_: dict[str, Any] = Field(
        default_factory=dict, sa_type=JSON, sa_column_kwargs={"name": "metadata"}
    )
    tags: list[str] = Field(default_factory=list, sa_type=JSON)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
    )

    def embedding_text(self) -> str:
        """Return the canonical text used for embedding."""
        return f"{self.title}\n\n{self.content}"
