"""
Unit tests -- performance commentary (never affects validity).
"""
from src.checks.performance import performance_notes


def test_select_star_noted():
    notes = performance_notes("SELECT * FROM drivers WHERE age > 30")
    assert any("SELECT *" in n for n in notes)


def test_unbounded_scan_noted():
    notes = performance_notes("SELECT name FROM drivers")
    assert any("neither a WHERE clause nor a LIMIT" in n for n in notes)


def test_limit_avoids_unbounded_note():
    notes = performance_notes("SELECT name FROM drivers LIMIT 10")
    assert not any("neither a WHERE" in n for n in notes)


def test_plain_aggregate_is_not_unbounded():
    assert performance_notes("SELECT COUNT(*) FROM drivers") == []


def test_order_by_without_limit():
    notes = performance_notes("SELECT name FROM drivers WHERE age > 30 ORDER BY name")
    assert "ORDER BY without LIMIT sorts the entire result set." in notes


def test_leading_wildcard_like():
    notes = performance_notes("SELECT name FROM drivers WHERE name LIKE '%son'")
    assert any("starts with a wildcard" in n for n in notes)


def test_trailing_wildcard_like_is_fine():
    notes = performance_notes("SELECT name FROM drivers WHERE name LIKE 'son%'")
    assert not any("wildcard" in n for n in notes)


def test_function_on_filtered_column():
    notes = performance_notes("SELECT name FROM drivers WHERE LOWER(name) = 'bob'")
    assert any("LOWER()" in n for n in notes)


def test_clean_query_has_no_notes():
    assert performance_notes("SELECT name FROM drivers WHERE age > 30 LIMIT 50") == []


def test_empty_sql():
    assert performance_notes("") == []
