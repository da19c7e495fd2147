"""
Saved-query store -- user-curated {name, query_text, created_at} records.

The table is created automatically on first use.  The store lives in the
main database unless SAVED_QUERIES_URL points somewhere else.  Any failure
to reach or use the store surfaces as a ConfigurationError with a
descriptive message; the rest of the application keeps working.
"""
from __future__ import annotations

import re
import threading
from dataclasses import dataclass
from typing import Any

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from src.core.config import get_settings
from src.core.errors import ConfigurationError, InputValidationError
from src.db.connection import get_engine
from src.db.executor import serialise_value
from src.core.logging import get_logger

logger = get_logger(__name__)

_IDENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_store_engine: Engine | None = None
_store_lock = threading.Lock()
_table_ready = False


@dataclass(frozen=True)
class SavedQuery:
    id: int
    name: str
    query_text: str
    created_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "query_text": self.query_text,
            "created_at": self.created_at,
        }


def _table_name() -> str:
    name = get_settings().saved_queries_table
    if not _IDENT_RE.match(name):
        raise ConfigurationError(
            f"SAVED_QUERIES_TABLE '{name}' is not a valid table name."
        )
    return name


def _get_store_engine() -> Engine:
    """Engine for the store: a dedicated one when configured, else the shared one."""
    global _store_engine
    if _store_engine is not None:
        return _store_engine
    with _store_lock:
        if _store_engine is None:
            url = get_settings().saved_queries_url
            if url:
                _store_engine = create_engine(url, pool_pre_ping=True, echo=False)
                logger.info("Saved-query store engine created (dedicated URL)")
            else:
                _store_engine = get_engine()
    return _store_engine


def _store_error(action: str, exc: SQLAlchemyError) -> ConfigurationError:
    logger.exception("Saved-query store failed to %s", action)
    return ConfigurationError(
        f"Failed to {action}. The saved-query store is unreachable or not set up; "
        "check the database configuration and permissions."
    )


def ensure_saved_queries_table() -> None:
    """Create the saved-query table if it doesn't exist."""
    global _table_ready
    if _table_ready:
        return
    table = _table_name()
    create_sql = f"""
    CREATE TABLE IF NOT EXISTS {table} (
        id          SERIAL PRIMARY KEY,
        name        TEXT NOT NULL,
        query_text  TEXT NOT NULL,
        created_at  TIMESTAMPTZ DEFAULT NOW()
    );
    """
    try:
        with _get_store_engine().begin() as conn:
            conn.execute(text(create_sql))
    except SQLAlchemyError as exc:
        raise _store_error("prepare the saved-query table", exc) from exc
    _table_ready = True
    logger.info("Saved-query table '%s' ensured", table)


def _row_to_saved(row: Any) -> SavedQuery:
    created = row.created_at
    return SavedQuery(
        id=row.id,
        name=row.name,
        query_text=row.query_text,
        created_at=serialise_value(created) if created is not None else None,
    )


def add_saved_query(name: str, query_text: str) -> SavedQuery:
    """Persist a new saved query and return it."""
    if not (name or "").strip() or not (query_text or "").strip():
        raise InputValidationError("Both a name and a query are required to save.")
    name, query_text = name.strip(), query_text.strip()

    ensure_saved_queries_table()
    insert_sql = text(
        f"INSERT INTO {_table_name()} (name, query_text) VALUES (:name, :query_text) "
        "RETURNING id, name, query_text, created_at"
    )
    try:
        with _get_store_engine().begin() as conn:
            row = conn.execute(insert_sql, {"name": name, "query_text": query_text}).one()
    except SQLAlchemyError as exc:
        raise _store_error("save the query", exc) from exc
    logger.info("Saved query id=%s name=%s", row.id, name[:60])
    return _row_to_saved(row)


def list_saved_queries() -> list[SavedQuery]:
    """Return saved queries newest first; rows without a timestamp sort last."""
    ensure_saved_queries_table()
    select_sql = text(
        f"SELECT id, name, query_text, created_at FROM {_table_name()} "
        "ORDER BY created_at DESC NULLS LAST, id DESC"
    )
    try:
        with _get_store_engine().connect() as conn:
            rows = conn.execute(select_sql).fetchall()
    except SQLAlchemyError as exc:
        raise _store_error("fetch saved queries", exc) from exc
    return [_row_to_saved(r) for r in rows]


def delete_saved_query(query_id: int) -> bool:
    """Delete one saved query.  Returns False when no row had that id."""
    ensure_saved_queries_table()
    delete_sql = text(f"DELETE FROM {_table_name()} WHERE id = :id")
    try:
        with _get_store_engine().begin() as conn:
            result = conn.execute(delete_sql, {"id": int(query_id)})
    except SQLAlchemyError as exc:
        raise _store_error("delete the saved query", exc) from exc
    logger.info("Deleted saved query id=%s (rows=%d)", query_id, result.rowcount)
    return result.rowcount > 0
