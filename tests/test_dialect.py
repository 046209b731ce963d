"""Tests for store/dialect.py — dialect detection and conditional insert."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlmodel import select

from quorum.models.embeddings import EmbeddingRecord
from quorum.store.dialect import get_dialect, insert_if_absent

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker


def _values(record_id: str, ref_id: str = "doc-1", content_hash: str = "h1") -> dict:
    return {
        "id": record_id,
        "ref_type": "document",
        "ref_id": ref_id,
        "vector": [0.1, 0.2],
        "content_hash": content_hash,
        "model_name": "m",
    }


class TestGetDialect:
    def test_sqlite_async(self, async_engine: AsyncEngine):
        assert get_dialect(async_engine) == "sqlite"

    def test_sqlite_sync(self):
        assert get_dialect(create_engine("sqlite://")) == "sqlite"


class TestInsertIfAbsent:
    async def test_inserts_when_absent(self, session_factory: async_sessionmaker[AsyncSession]):
        async with session_factory() as session:
            count = await insert_if_absent(
                session, "sqlite", EmbeddingRecord, _values("r1"), ["ref_type", "ref_id"]
            )
            await session.commit()

        assert count == 1

    async def test_skips_when_keys_match(self, session_factory: async_sessionmaker[AsyncSession]):
        async with session_factory() as session:
            await insert_if_absent(
                session, "sqlite", EmbeddingRecord, _values("r1"), ["ref_type", "ref_id"]
            )
            count = await insert_if_absent(
                session,
                "sqlite",
                EmbeddingRecord,
                _values("r2", content_hash="h2"),
                ["ref_type", "ref_id"],
            )
            await session.commit()

            rows = (await session.execute(select(EmbeddingRecord))).scalars().all()

        assert count == 0
        assert [r.content_hash for r in rows] == ["h1"]

    async def test_primary_key_collision_is_skipped(
        self, session_factory: async_sessionmaker[AsyncSession]
    ):
        async with session_factory() as session:
            await insert_if_absent(
                session, "sqlite", EmbeddingRecord, _values("r1"), ["ref_type", "ref_id"]
            )
            count = await insert_if_absent(
                session,
                "sqlite",
                EmbeddingRecord,
                _values("r1", ref_id="doc-2"),
                ["ref_type", "ref_id"],
            )
            await session.commit()

        assert count == 0

    async def test_unsupported_dialect(self, session_factory: async_sessionmaker[AsyncSession]):
        async with session_factory() as session:
            with pytest.raises(ValueError, match="Unsupported dialect"):
                await insert_if_absent(
                    session, "mssql", EmbeddingRecord, _values("r1"), ["ref_id"]
                )
