"""Dialect-specific INSERT constructs that support ON CONFLICT clauses."""

from __future__ import annotations

from typing import Any

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession


def conflict_insert(db: AsyncSession, model: type[Any]) -> Any:
    """Return an ``insert(model)`` that understands ``on_conflict_do_nothing``.

    PostgreSQL and SQLite share the same ``on_conflict_*`` API, so callers can
    stay backend-agnostic.
    """
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert(model)
    if dialect == "sqlite":
        return sqlite_insert(model)
    msg = f"Unsupported database dialect for conflict-aware insert: {dialect}"
    raise NotImplementedError(msg)
