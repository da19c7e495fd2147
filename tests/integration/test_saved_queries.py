"""
Integration tests: saved-query store against live PostgreSQL.

Uses a throwaway table so real saved queries are never touched.
"""
from __future__ import annotations

import pytest
from sqlalchemy import text

# ── Guard: skip if DB is unreachable ─────────────────────
try:
    from src.db.connection import get_engine

    engine = get_engine()
    with engine.connect() as _conn:
        _conn.execute(text("SELECT 1"))
    DB_AVAILABLE = True
except Exception:
    DB_AVAILABLE = False

pytestmark = pytest.mark.skipif(not DB_AVAILABLE, reason="Postgres not reachable")

from src.core.config import get_settings
from src.core.errors import InputValidationError
from src.db import saved_queries
from src.db.saved_queries import add_saved_query, delete_saved_query, list_saved_queries

TEST_TABLE = "saved_queries_test"


@pytest.fixture(autouse=True)
def scratch_table(monkeypatch):
    monkeypatch.setattr(get_settings(), "saved_queries_table", TEST_TABLE)
    monkeypatch.setattr(saved_queries, "_table_ready", False)
    yield
    with saved_queries._get_store_engine().begin() as conn:
        conn.execute(text(f"DROP TABLE IF EXISTS {TEST_TABLE}"))


def test_add_and_list():
    saved = add_saved_query("  old drivers ", "SELECT name FROM drivers WHERE age > 30;")
    assert saved.id > 0
    assert saved.name == "old drivers"
    assert saved.created_at is not None
    assert [q.id for q in list_saved_queries()] == [saved.id]


def test_newest_first():
    first = add_saved_query("first", "SELECT 1")
    second = add_saved_query("second", "SELECT 2")
    ids = [q.id for q in list_saved_queries()]
    assert ids.index(second.id) < ids.index(first.id)


def test_missing_timestamp_sorts_last():
    add_saved_query("stamped", "SELECT 1")
    with saved_queries._get_store_engine().begin() as conn:
        conn.execute(text(
            f"INSERT INTO {TEST_TABLE} (name, query_text, created_at) VALUES ('legacy', 'SELECT 2', NULL)"
        ))
    names = [q.name for q in list_saved_queries()]
    assert names[-1] == "legacy"


def test_delete():
    saved = add_saved_query("temp", "SELECT 1")
    assert delete_saved_query(saved.id) is True
    assert delete_saved_query(saved.id) is False
    assert list_saved_queries() == []


def test_blank_name_rejected():
    with pytest.raises(InputValidationError):
        add_saved_query(" ", "SELECT 1")
