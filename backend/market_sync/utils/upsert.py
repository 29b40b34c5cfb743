# backend/market_sync/utils/upsert.py
"""
Dialect-aware INSERT ... ON CONFLICT builder.

PostgreSQL and SQLite both support ON CONFLICT DO UPDATE with the same
SQLAlchemy API, but through dialect-specific insert() constructs. This
helper picks the right one from the session's bind so the same upsert
code runs in production (PostgreSQL) and in tests (SQLite).

Usage:
    stmt = build_upsert(
        db, MarketInstrument, values,
        index_elements=["symbol", "market"],
        update_columns=["name", "last_price"],
    )
    db.execute(stmt)
"""

from typing import Any

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session


def get_insert(db: Session):
    """Return the dialect's insert() that supports on_conflict_do_update."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert
    if dialect == "sqlite":
        return sqlite_insert
    raise NotImplementedError(f"Upsert is not supported for dialect '{dialect}'")


def build_upsert(
        db: Session,
        model: type,
        values: dict[str, Any] | list[dict[str, Any]],
        index_elements: list[str],
        update_columns: list[str],
        extra_set: dict[str, Any] | None = None,
):
    """
    Build an upsert statement keyed on a unique index.

    Args:
        db: Session whose bind decides the dialect
        model: Mapped class to insert into
        values: Row (or rows) to insert
        index_elements: Columns of the unique constraint
        update_columns: Columns overwritten from the incoming row on conflict
        extra_set: Literal values also applied on conflict (e.g. updated_at)

    Returns:
        Executable insert statement
    """
    insert = get_insert(db)
    stmt = insert(model).values(values)

    set_ = {col: stmt.excluded[col] for col in update_columns}
    if extra_set:
        set_.update(extra_set)

    if not set_:
        return stmt.on_conflict_do_nothing(index_elements=index_elements)

    return stmt.on_conflict_do_update(
        index_elements=index_elements,
        set_=set_,
    )
