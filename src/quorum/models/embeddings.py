"""Embedding record model — one vector per reference (or per chunk)."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import JSON, DateTime, Index
from sqlmodel import Field, SQLModel


class EmbeddingRecord(SQLModel, table=True):
    """A stored vector for a reference.

    Chunked content is stored as one record per chunk with a
    ``"{base}_chunk_{index}"`` ref_type; every chunk carries the hash of the
    whole text so a single comparison decides whether the family is current.
    There is deliberately no unique constraint on ``(ref_type, ref_id)``;
    uniqueness is maintained by :meth:`EmbeddingStore.upsert`.
    """

    __tablename__ = "quorum_embeddings"
    __table_args__ = (Index("idx_quorum_embeddings_ref", "ref_type", "ref_id"),)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    ref_type: str
    ref_id: str
    vector: list[float] = Field(default_factory=list, sa_type=JSON)
    content_hash: str = Field(default="")
    model_name: str = Field(default="")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
    )
