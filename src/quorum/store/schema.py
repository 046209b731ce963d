"""Schema bootstrap — create the Quorum tables if they are missing."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from quorum.exceptions import StorageError
from quorum.models import Document, EmbeddingRecord, Event, Task

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)

TABLES = (Document, Event, Task, EmbeddingRecord)


async def ensure_schema(engine: AsyncEngine) -> None:
    """Create every Quorum table (and its indexes) that does not exist yet.

    Raises:
        StorageError: If the database cannot be reached or the DDL fails.
    """
    try:
        async with engine.begin() as conn:
            for model in TABLES:
                await conn.run_sync(
                    lambda c, m=model: m.__table__.create(c, checkfirst=True)  # type: ignore[attr-defined]
                )
    except SQLAlchemyError as e:
        msg = f"Schema setup failed: {e}"
        raise StorageError(msg) from e
    logger.debug("Schema verified for %d tables", len(TABLES))
