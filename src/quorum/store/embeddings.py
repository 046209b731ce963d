"""EmbeddingStore — vector persistence keyed by (ref_type, ref_id)."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import numpy as np
from sqlalchemy import delete, func, or_, update
from sqlmodel import select

from quorum.models.embeddings import EmbeddingRecord
from quorum.ref import CHUNK_SEPARATOR
from quorum.store._session import SessionScoped
from quorum.store.dialect import insert_if_absent

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SimilarityMatch:
    """A reference matched by vector similarity.

    Attributes:
        ref_id: Parent reference id.
        ref_type: The ref_type of the best-matching record (base or chunk form).
        distance: Cosine distance in ``[0, 2]``.
    """

    ref_id: str
    ref_type: str
    distance: float

    @property
    def score(self) -> float:
        """Cosine similarity, ``1 - distance``."""
        return 1.0 - self.distance


def family_clause(base: str) -> ColumnElement[bool]:
    """SQL clause matching *base* and every ``{base}_chunk_*`` ref_type."""
    model = EmbeddingRecord
    return or_(
        model.ref_type == base,
        model.ref_type.startswith(f"{base}{CHUNK_SEPARATOR}", autoescape=True),  # type: ignore[attr-defined]
    )


class EmbeddingStore(SessionScoped):
    """SQL-backed embedding store.

    Vectors live in a JSON column so the same tables work on SQLite and
    PostgreSQL; similarity is computed with numpy over the candidate
    family.  Every check round-trips to the database; nothing is cached.

    :meth:`similarity_search` is brute force: each query loads every
    vector of the requested family and scores it, O(N) per query.  An
    approximate index (such as usearch's HNSW) is the way to scale past
    that.
    """

    def __init__(
        self,
        session_factory: Callable[..., AsyncSession],
        *,
        dialect: str = "sqlite",
        model_name: str = "",
    ) -> None:
        super().__init__(session_factory)
        self._dialect = dialect
        self._model_name = model_name

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def upsert(
        self,
        ref_type: str,
        ref_id: str,
        vector: Sequence[float],
        content_hash: str,
        *,
        session: AsyncSession | None = None,
    ) -> EmbeddingRecord:
        """Store *vector* for ``(ref_type, ref_id)``, replacing any existing record.

        Three steps, each a fallback for the previous one:

        1. insert a fresh record if none exists for the reference (an id
           collision is skipped, not raised);
        2. otherwise update the existing record in place;
        3. if the update matched nothing (the record was deleted in
           between), insert unconditionally.
        """
        model = EmbeddingRecord
        now = datetime.now(UTC)
        values = {
            "id": str(uuid.uuid4()),
            "ref_type": ref_type,
            "ref_id": ref_id,
            "vector": [float(x) for x in vector],
            "content_hash": content_hash,
            "model_name": self._model_name,
            "created_at": now,
        }

        async with self._scope(session, f"Upsert embedding {ref_type}/{ref_id}") as s:
            inserted = await insert_if_absent(
                s, self._dialect, model, values, ["ref_type", "ref_id"]
            )
            if inserted:
                record = await self._fetch_one(s, model.id == values["id"])
                if record is not None:
                    return record

            result = await s.execute(
                update(model)
                .where(model.ref_type == ref_type, model.ref_id == ref_id)  # type: ignore[arg-type]
                .values(
                    vector=values["vector"],
                    content_hash=content_hash,
                    model_name=self._model_name,
                    created_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount:  # type: ignore[attr-defined]
                record = await self._fetch_one(
                    s, model.ref_type == ref_type, model.ref_id == ref_id
                )
                if record is not None:
                    return record

            logger.debug("Upsert fell through to fresh insert for %s/%s", ref_type, ref_id)
            record = model(**values)
            s.add(record)
            await s.flush()
            return record

    async def delete_all_for(
        self,
        ref_type: str,
        ref_id: str,
        *,
        session: AsyncSession | None = None,
    ) -> int:
        """Delete every record for the reference, chunk forms included. Returns count."""
        model = EmbeddingRecord
        async with self._scope(session, f"Delete embeddings {ref_type}/{ref_id}") as s:
            result = await s.execute(
                delete(model)
                .where(model.ref_id == ref_id, family_clause(ref_type))  # type: ignore[arg-type]
                .execution_options(synchronize_session=False)
            )
            return result.rowcount or 0  # type: ignore[attr-defined]

    async def delete_chunks_for(
        self,
        ref_type: str,
        ref_id: str,
        *,
        session: AsyncSession | None = None,
    ) -> int:
        """Delete only the ``{ref_type}_chunk_*`` records of a reference."""
        model = EmbeddingRecord
        async with self._scope(session, f"Delete chunk embeddings {ref_type}/{ref_id}") as s:
            result = await s.execute(
                delete(model)
                .where(
                    model.ref_id == ref_id,  # type: ignore[arg-type]
                    model.ref_type.startswith(  # type: ignore[attr-defined]
                        f"{ref_type}{CHUNK_SEPARATOR}", autoescape=True
                    ),
                )
                .execution_options(synchronize_session=False)
            )
            return result.rowcount or 0  # type: ignore[attr-defined]

    # ------------------------------------------------------------------
    # Change detection
    # ------------------------------------------------------------------

    async def has_current(
        self,
        ref_type: str,
        ref_id: str,
        content_hash: str,
        *,
        session: AsyncSession | None = None,
    ) -> bool:
        """Return whether ``(ref_type, ref_id)`` is embedded with *content_hash*."""
        model = EmbeddingRecord
        async with self._scope(session, "has_current") as s:
            result = await s.execute(
                select(model.id)
                .where(
                    model.ref_type == ref_type,
                    model.ref_id == ref_id,
                    model.content_hash == content_hash,
                )
                .limit(1)
            )
            return result.first() is not None

    async def has_current_any_chunk(
        self,
        ref_type: str,
        ref_id: str,
        content_hash: str,
        *,
        session: AsyncSession | None = None,
    ) -> bool:
        """Like :meth:`has_current`, also matching any ``{ref_type}_chunk_*`` record."""
        model = EmbeddingRecord
        async with self._scope(session, "has_current_any_chunk") as s:
            result = await s.execute(
                select(model.id)
                .where(
                    model.ref_id == ref_id,
                    model.content_hash == content_hash,
                    family_clause(ref_type),
                )
                .limit(1)
            )
            return result.first() is not None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(
        self,
        ref_type: str,
        ref_id: str,
        *,
        session: AsyncSession | None = None,
    ) -> EmbeddingRecord | None:
        """Return the record for the exact ``(ref_type, ref_id)``, if any."""
        model = EmbeddingRecord
        async with self._scope(session, "Get embedding") as s:
            return await self._fetch_one(s, model.ref_type == ref_type, model.ref_id == ref_id)

    async def list_for(
        self,
        ref_type: str,
        ref_id: str,
        *,
        session: AsyncSession | None = None,
    ) -> list[EmbeddingRecord]:
        """Return every record of the reference family, ordered by ref_type."""
        model = EmbeddingRecord
        async with self._scope(session, "List embeddings") as s:
            result = await s.execute(
                select(model)
                .where(model.ref_id == ref_id, family_clause(ref_type))
                .order_by(model.ref_type)  # type: ignore[arg-type]
                .execution_options(populate_existing=True)
            )
            return list(result.scalars().all())

    async def count(self, *, session: AsyncSession | None = None) -> int:
        """Return the total number of embedding records."""
        async with self._scope(session, "Count embeddings") as s:
            result = await s.execute(select(func.count()).select_from(EmbeddingRecord))
            return int(result.scalar_one())

    async def similarity_search(
        self,
        vector: Sequence[float],
        ref_type: str,
        *,
        limit: int = 10,
        session: AsyncSession | None = None,
    ) -> list[SimilarityMatch]:
        """Return the closest references of kind *ref_type*, ascending by distance.

        Records of the base form and of every chunk form are scored; chunk
        hits are projected back to their parent so each reference appears
        at most once, carrying its best-matching record's distance.
        """
        if limit <= 0:
            return []

        model = EmbeddingRecord
        async with self._scope(session, "Similarity search") as s:
            result = await s.execute(
                select(model.ref_type, model.ref_id, model.vector)
                .where(family_clause(ref_type))
                .order_by(model.created_at, model.id)  # type: ignore[arg-type]
            )
            rows = result.all()

        query = np.asarray(vector, dtype=np.float64)
        candidates = [row for row in rows if len(row.vector) == query.shape[0]]
        if len(candidates) < len(rows):
            logger.warning(
                "Skipped %d %s embeddings with dimension != %d",
                len(rows) - len(candidates),
                ref_type,
                query.shape[0],
            )
        if not candidates:
            return []

        matrix = np.asarray([row.vector for row in candidates], dtype=np.float64)
        distances = cosine_distances(matrix, query)

        best: dict[str, SimilarityMatch] = {}
        for position in np.argsort(distances, kind="stable").tolist():
            row = candidates[position]
            if row.ref_id in best:
                continue
            best[row.ref_id] = SimilarityMatch(
                ref_id=row.ref_id,
                ref_type=row.ref_type,
                distance=float(distances[position]),
            )
            if len(best) >= limit:
                break
        return list(best.values())

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    @staticmethod
    async def _fetch_one(
        session: AsyncSession, *clauses: ColumnElement[bool]
    ) -> EmbeddingRecord | None:
        result = await session.execute(
            select(EmbeddingRecord)
            .where(*clauses)
            .order_by(EmbeddingRecord.created_at.desc())  # type: ignore[attr-defined]
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()


def cosine_distances(matrix: np.ndarray, query: np.ndarray) -> np.ndarray:
    """Return ``1 - cos(row, query)`` for every row; zero vectors get distance 1."""
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    dots = matrix @ query
    with np.errstate(divide="ignore", invalid="ignore"):
        similarity = np.where(norms > 0, dots / norms, 0.0)
    return 1.0 - np.clip(similarity, -1.0, 1.0)
