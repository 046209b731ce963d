"""Session scoping shared by the SQL-backed stores."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class SessionScoped:
    """Mixin for stores that acquire one session per operation.

    Receives a session factory at construction.  Every public operation
    accepts an optional ``session``: a caller-provided session is reused and
    never committed or closed; otherwise a fresh session is opened,
    committed on success, rolled back on failure, and closed.
    """

    def __init__(self, session_factory: Callable[..., AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _scope(
        self,
        session: AsyncSession | None,
        operation: str,
    ) -> AsyncIterator[AsyncSession]:
        if session is not None:
            yield session
            return

        _session = self._session_factory()
        try:
            yield _session
            await _session.commit()
        except Exception as e:
            logger.error("%s failed: %s", operation, e, exc_info=True)
            await _session.rollback()
            raise
        finally:
            await _session.close()
