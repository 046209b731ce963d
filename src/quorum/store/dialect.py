"""Dialect-aware SQL helpers — conditional insert for the embedding upsert."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import literal, select

if TYPE_CHECKING:
    from sqlalchemy import Engine
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

SUPPORTED_DIALECTS = ("sqlite", "postgresql")


def get_dialect(engine: Engine | AsyncEngine) -> str:
    """Return 'sqlite', 'postgresql', or the raw dialect name."""
    # AsyncEngine wraps a sync engine
    sync_engine = getattr(engine, "sync_engine", engine)
    name = sync_engine.dialect.name
    if name == "sqlite":
        return "sqlite"
    if name in ("postgresql", "postgres"):
        return "postgresql"
    return name


def _dialect_module(dialect: str) -> Any:
    if dialect == "postgresql":
        from sqlalchemy.dialects import postgresql as pg_dialect

        return pg_dialect
    if dialect == "sqlite":
        from sqlalchemy.dialects import sqlite as sqlite_dialect

        return sqlite_dialect
    msg = f"Unsupported dialect {dialect!r}; expected one of {SUPPORTED_DIALECTS}"
    raise ValueError(msg)


async def insert_if_absent(
    session: AsyncSession,
    dialect: str,
    model: type,
    values: dict[str, Any],
    absent_keys: list[str],
) -> int:
    """Insert *values* unless a row already matches *absent_keys*. Returns rowcount.

    Renders ``INSERT ... SELECT ... WHERE NOT EXISTS (...) ON CONFLICT (id)
    DO NOTHING``.  A row counts as present when every column in
    *absent_keys* equals the corresponding entry of *values*.  A primary
    key collision is skipped rather than raised.
    """
    table = model.__table__  # type: ignore[attr-defined]
    columns = list(values)

    present = (
        select(table.c.id)
        .where(*(table.c[k] == values[k] for k in absent_keys))
        .correlate(None)
        .exists()
    )
    source = select(
        *(literal(values[c], type_=table.c[c].type).label(c) for c in columns)
    ).where(~present)

    dialect_module = _dialect_module(dialect)
    stmt = (
        dialect_module.insert(table)
        .from_select(columns, source)
        .on_conflict_do_nothing(index_elements=["id"])
    )
    result = await session.execute(stmt)
    return result.rowcount  # type: ignore[return-value]
