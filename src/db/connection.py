"""SQLAlchemy engine factory.

One shared engine per process, created on first use and reused by every
call.  Missing connection parameters fail fast with a ConfigurationError
instead of retrying.  Queries run through `readonly_connection`, which sets
the transaction to READ ONLY before yielding.
"""
from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine

from src.core.config import get_settings
from src.core.logging import get_logger

logger = get_logger(__name__)

_engine: Engine | None = None
_engine_lock = threading.Lock()


def get_engine() -> Engine:
    """Return the shared SQLAlchemy engine (lazy-created, cached).

    Raises
    ------
    ConfigurationError
        If any POSTGRES_* connection parameter is missing.
    """
    global _engine
    if _engine is not None:
        return _engine
    with _engine_lock:
        if _engine is None:
            settings = get_settings()
            url = settings.database_url  # raises ConfigurationError when incomplete
            _engine = create_engine(
                url,
                pool_pre_ping=True,
                pool_size=5,
                max_overflow=10,
                connect_args={"sslmode": settings.postgres_sslmode},
                echo=False,
            )
            logger.info("DB engine created  host=%s  db=%s", settings.postgres_host, settings.postgres_db)
    return _engine


@contextmanager
def readonly_connection() -> Generator[Connection, None, None]:
    """Yield a connection set to READ ONLY transaction mode.

    The connection is returned to the pool on exit.
    """
    engine = get_engine()
    conn = engine.connect()
    try:
        conn.execute(text("SET TRANSACTION READ ONLY"))
        yield conn
    finally:
        conn.close()
