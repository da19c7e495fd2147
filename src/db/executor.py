"""
Execution gateway -- runs a finished SQL string and returns its rows.

`execute_query` is a thin pass-through:
  1. Opens a READ ONLY transaction (Postgres-enforced)
  2. Applies a per-statement timeout so nothing hangs silently
  3. Converts Decimal/date/datetime to JSON-safe Python types
  4. Wraps any backend failure in ExecutionError

No retries and no query rewriting happen here.
"""
from __future__ import annotations

import datetime
import decimal
import uuid
from dataclasses import dataclass
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from src.core.config import get_settings
from src.core.errors import ExecutionError
from src.core.utils import require_text
from src.db.connection import readonly_connection
from src.core.logging import get_logger

logger = get_logger(__name__)

COLUMN_NUMBER = "number"
COLUMN_TEXT = "text"


@dataclass(frozen=True)
class ColumnInfo:
    """A result column and the kind of values it carries."""
    name: str
    kind: str  # number | text


def serialise_value(val: Any) -> Any:
    """Convert DB types to JSON-serialisable Python types."""
    if isinstance(val, decimal.Decimal):
        return float(val)
    if isinstance(val, (datetime.date, datetime.datetime, datetime.time)):
        return val.isoformat()
    if isinstance(val, datetime.timedelta):
        return str(val)
    if isinstance(val, uuid.UUID):
        return str(val)
    return val


def _backend_message(exc: SQLAlchemyError) -> str:
    """Prefer the driver's own message over SQLAlchemy's wrapped repr."""
    orig = getattr(exc, "orig", None)
    message = str(orig) if orig is not None else str(exc)
    return message.strip().splitlines()[0] if message.strip() else exc.__class__.__name__


def execute_query(sql: str, timeout_ms: int | None = None) -> list[dict[str, Any]]:
    """Execute *sql* read-only and return rows as serialisable dicts.

    Row order is whatever the database returned.

    Raises
    ------
    InputValidationError
        If *sql* is blank.
    ExecutionError
        If the database rejects or fails to run the query (timeouts included).
    """
    sql = require_text(sql, "SQL query")
    if timeout_ms is None:
        timeout_ms = get_settings().query_timeout_ms
    logger.info("Executing SQL (%d chars)", len(sql))

    try:
        with readonly_connection() as conn:
            conn.execute(text(f"SET LOCAL statement_timeout = {int(timeout_ms)}"))
            result = conn.execute(text(sql))
            columns = list(result.keys())
            rows = [
                {col: serialise_value(val) for col, val in zip(columns, row)}
                for row in result.fetchall()
            ]
    except SQLAlchemyError as exc:
        logger.warning("SQL execution failed: %s", _backend_message(exc))
        raise ExecutionError(f"Database query failed: {_backend_message(exc)}") from exc

    logger.info("Returned %d rows", len(rows))
    return rows


def describe_columns(rows: list[dict[str, Any]]) -> list[ColumnInfo]:
    """Tag every column of a result once, so renderers never sniff per row.

    A column is ``number`` when every non-null value is numeric (booleans
    excluded) and at least one value is present; otherwise ``text``.
    """
    if not rows:
        return []
    infos: list[ColumnInfo] = []
    for col in rows[0].keys():
        values = [r.get(col) for r in rows if r.get(col) is not None]
        numeric = bool(values) and all(
            isinstance(v, (int, float)) and not isinstance(v, bool) for v in values
        )
        infos.append(ColumnInfo(name=col, kind=COLUMN_NUMBER if numeric else COLUMN_TEXT))
    return infos
