"""
Unit tests -- requalification: raw report SQL -> dashboard query.
"""
import json

import pytest

from src.copilot.requalifier import derive_dashboard, split_report_query
from src.core.errors import GenerationError, InputValidationError

SCHEMA = "drivers(driver_id:int, age:int, name:text, city:text)\ntrips(trip_id:int, driver_id:int, fare:numeric)"


def _never_called(prompt, provider=None):
    raise AssertionError("backend must not be called")


# ── split_report_query ───────────────────────────────────

def test_split_simple():
    parts = split_report_query("SELECT name FROM drivers WHERE age > 30")
    assert parts.source == "drivers"
    assert parts.condition == "age > 30"
    assert parts.aggregate == "COUNT(*)"
    assert parts.prefix == ""


def test_split_stops_at_order_by():
    parts = split_report_query("SELECT name FROM drivers WHERE age > 30 ORDER BY age LIMIT 5;")
    assert parts.condition == "age > 30"


def test_split_join_and_aggregate():
    sql = (
        "SELECT d.city, SUM(t.fare) AS total FROM drivers d "
        "JOIN trips t ON t.driver_id = d.driver_id "
        "WHERE t.fare > 100 GROUP BY d.city"
    )
    parts = split_report_query(sql)
    assert parts.source == "drivers d JOIN trips t ON t.driver_id = d.driver_id"
    assert parts.condition == "t.fare > 100"
    assert parts.aggregate == "SUM(t.fare)"


def test_split_with_prefix():
    sql = "WITH recent AS (SELECT * FROM trips WHERE fare > 0) SELECT trip_id FROM recent WHERE fare > 100;"
    parts = split_report_query(sql)
    assert parts.prefix == "WITH recent AS (SELECT * FROM trips WHERE fare > 0)"
    assert parts.source == "recent"
    assert parts.condition == "fare > 100"


def test_split_ignores_where_in_subquery():
    sql = "SELECT x.name FROM (SELECT name FROM drivers WHERE age > 50) x WHERE x.name LIKE 'A%'"
    parts = split_report_query(sql)
    assert parts.source == "(SELECT name FROM drivers WHERE age > 50) x"
    assert parts.condition == "x.name LIKE 'A%'"


def test_split_no_where():
    with pytest.raises(GenerationError, match="no discernible condition"):
        split_report_query("SELECT name FROM drivers")


def test_split_not_select():
    with pytest.raises(GenerationError, match="not a SELECT"):
        split_report_query("UPDATE drivers SET age = 1 WHERE age > 2")


def test_split_unparseable():
    with pytest.raises(GenerationError, match="could not be parsed"):
        split_report_query("SELECT name FROM drivers WHERE (age > 30")


@pytest.mark.parametrize("op", ["UNION", "UNION ALL", "INTERSECT", "EXCEPT"])
def test_split_set_operation_rejected(op):
    sql = f"SELECT * FROM drivers WHERE age > 30 {op} SELECT * FROM drivers WHERE age < 20"
    with pytest.raises(GenerationError, match="combines several SELECTs"):
        split_report_query(sql)


def test_split_union_inside_cte_allowed():
    sql = (
        "WITH picked AS (SELECT * FROM drivers WHERE age > 60 UNION SELECT * FROM drivers WHERE age < 20) "
        "SELECT name FROM picked WHERE city = 'Pune'"
    )
    parts = split_report_query(sql)
    assert parts.source == "picked"
    assert parts.condition == "city = 'Pune'"


# ── derive_dashboard ─────────────────────────────────────

def test_derive_mock():
    result = derive_dashboard(SCHEMA, "SELECT name FROM drivers WHERE age > 30", mode="mock")
    sql = result.dashboard_query
    assert "'Age > 30' AS label" in sql
    assert "FROM drivers\n    WHERE age > 30" in sql
    assert "WHERE (age > 30) IS NOT TRUE" in sql


def test_derive_mock_mirrors_aggregate():
    sql = "SELECT AVG(fare) FROM trips WHERE fare > 100"
    result = derive_dashboard(SCHEMA, sql, mode="mock")
    assert "COALESCE(AVG(fare), 0) AS value" in result.dashboard_query


def test_derive_no_where_fails_in_every_mode(monkeypatch):
    monkeypatch.setattr("src.copilot.structured.call_llm", _never_called)
    for mode in ("mock", "openai"):
        with pytest.raises(GenerationError, match="no discernible condition"):
            derive_dashboard(SCHEMA, "SELECT name FROM drivers", mode=mode)


def test_derive_union_report_fails_in_every_mode(monkeypatch):
    monkeypatch.setattr("src.copilot.structured.call_llm", _never_called)
    sql = "SELECT * FROM drivers WHERE age > 30 UNION SELECT * FROM drivers WHERE age < 20"
    for mode in ("mock", "openai"):
        with pytest.raises(GenerationError, match="combines several SELECTs"):
            derive_dashboard(SCHEMA, sql, mode=mode)


def test_derive_blank_inputs(monkeypatch):
    monkeypatch.setattr("src.copilot.structured.call_llm", _never_called)
    with pytest.raises(InputValidationError):
        derive_dashboard("", "SELECT name FROM drivers WHERE age > 30", mode="openai")
    with pytest.raises(InputValidationError):
        derive_dashboard(SCHEMA, "  ", mode="openai")


def test_derive_llm(monkeypatch):
    dashboard = (
        "SELECT 'Age > 30' AS label, COUNT(*) AS value FROM drivers WHERE age > 30 "
        "UNION ALL SELECT 'Others', COUNT(*) FROM drivers WHERE NOT (age > 30)"
    )
    seen = []

    def fake(prompt, provider=None):
        seen.append(prompt)
        return json.dumps({"dashboard_query": dashboard + ";"})

    monkeypatch.setattr("src.copilot.structured.call_llm", fake)
    result = derive_dashboard(SCHEMA, "SELECT name FROM drivers WHERE age > 30", mode="openai")
    assert result.dashboard_query == dashboard
    assert "SELECT name FROM drivers WHERE age > 30" in seen[0]


def test_derive_llm_empty_reply(monkeypatch):
    monkeypatch.setattr("src.copilot.structured.call_llm", lambda prompt, provider=None: '{"dashboard_query": ""}')
    with pytest.raises(GenerationError, match="dashboard_query"):
        derive_dashboard(SCHEMA, "SELECT name FROM drivers WHERE age > 30", mode="openai")
