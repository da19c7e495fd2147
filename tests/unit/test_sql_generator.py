"""
Unit tests -- SQL generator: prompt + schema -> report and dashboard queries.
"""
import json

import pytest

from src.checks.references import check_references
from src.checks.syntax import check_syntax
from src.copilot.models import DualQueryResult
from src.copilot.sql_generator import generate
from src.core.errors import GenerationError, InputValidationError
from src.schema.description import parse_schema_text

SCHEMA = "drivers(age:int, name:text)"


# ── Helper ───────────────────────────────────────────────

def _fake_llm(monkeypatch, reply: str):
    calls = []

    def fake(prompt, provider=None):
        calls.append((prompt, provider))
        return reply

    monkeypatch.setattr("src.copilot.structured.call_llm", fake)
    return calls


def _never_called(prompt, provider=None):
    raise AssertionError("backend must not be called")


# ── Mock mode ────────────────────────────────────────────

def test_mock_report_query():
    result = generate(SCHEMA, "Show drivers older than 30", mode="mock")
    assert isinstance(result, DualQueryResult)
    assert result.report_query == "SELECT age, name\nFROM drivers\nWHERE age > 30"


def test_mock_dashboard_query_shape():
    result = generate(SCHEMA, "Show drivers older than 30", mode="mock")
    sql = result.dashboard_query
    assert "'Age > 30' AS label" in sql
    assert "'Others' AS label" in sql
    assert "WHERE (age > 30) IS NOT TRUE" in sql


def test_mock_queries_are_valid_against_schema():
    schema = parse_schema_text(SCHEMA)
    result = generate(schema, "Show drivers older than 30", mode="mock")
    for sql in (result.report_query, result.dashboard_query):
        assert check_syntax(sql) == []
        assert check_references(sql, schema) == []


def test_mock_multi_word_string_value():
    schema = "drivers(age:int, name:text, city:text)"
    result = generate(schema, "Show drivers whose city is 'New Delhi'", mode="mock")
    assert result.report_query.endswith("WHERE city = 'New Delhi'")
    assert "'City = New Delhi' AS label" in result.dashboard_query
    assert "WHERE (city = 'New Delhi') IS NOT TRUE" in result.dashboard_query


def test_mock_apostrophe_value_escaped():
    schema = "drivers(age:int, name:text, city:text)"
    result = generate(schema, "Show drivers whose name is O'Brien", mode="mock")
    assert result.report_query.endswith("WHERE name = 'O''Brien'")
    assert "WHERE (name = 'O''Brien') IS NOT TRUE" in result.dashboard_query


def test_mock_aggregate_mirrored_in_dashboard():
    schema = "drivers(driver_id:int, age:int, rating:numeric)"
    result = generate(schema, "average rating of drivers older than 40", mode="mock")
    assert "COALESCE(AVG(rating), 0) AS value" in result.dashboard_query


def test_mock_no_condition():
    with pytest.raises(GenerationError):
        generate(SCHEMA, "Show all drivers", mode="mock")


def test_mock_unparseable_schema():
    with pytest.raises(GenerationError, match="lists no tables"):
        generate("just some prose about drivers", "Show drivers older than 30", mode="mock")


# ── Input validation ─────────────────────────────────────

@pytest.mark.parametrize("schema,prompt", [
    ("", "Show drivers older than 30"),
    ("   ", "Show drivers older than 30"),
    (SCHEMA, ""),
    (SCHEMA, "  \n "),
])
def test_blank_inputs_rejected_before_backend(monkeypatch, schema, prompt):
    monkeypatch.setattr("src.copilot.structured.call_llm", _never_called)
    with pytest.raises(InputValidationError):
        generate(schema, prompt, mode="openai")


# ── LLM mode (backend stubbed) ───────────────────────────

def test_llm_both_queries(monkeypatch):
    reply = json.dumps({
        "report_query": "SELECT age, name FROM drivers WHERE age > 30;",
        "dashboard_query": "SELECT 'Age > 30' AS label, COUNT(*) AS value FROM drivers",
    })
    calls = _fake_llm(monkeypatch, reply)
    result = generate(SCHEMA, "Show drivers older than 30", mode="openai")
    assert result.report_query == "SELECT age, name FROM drivers WHERE age > 30"
    assert calls[0][1] == "openai"
    assert "drivers(age:int, name:text)" in calls[0][0]
    assert "Show drivers older than 30" in calls[0][0]


def test_llm_fenced_reply(monkeypatch):
    reply = "```json\n" + json.dumps({
        "report_query": "```sql\nSELECT 1\n```",
        "dashboard_query": "SELECT 'x' AS label, 1 AS value",
    }) + "\n```"
    _fake_llm(monkeypatch, reply)
    result = generate(SCHEMA, "anything", mode="anthropic")
    assert result.report_query == "SELECT 1"


def test_llm_missing_dashboard_is_error(monkeypatch):
    _fake_llm(monkeypatch, json.dumps({"report_query": "SELECT age FROM drivers WHERE age > 30"}))
    with pytest.raises(GenerationError, match="dashboard_query"):
        generate(SCHEMA, "Show drivers older than 30", mode="openai")


def test_llm_empty_report_is_error(monkeypatch):
    _fake_llm(monkeypatch, json.dumps({"report_query": "  ", "dashboard_query": "SELECT 1"}))
    with pytest.raises(GenerationError, match="report_query"):
        generate(SCHEMA, "Show drivers older than 30", mode="openai")


def test_llm_no_output_is_error(monkeypatch):
    _fake_llm(monkeypatch, "")
    with pytest.raises(GenerationError, match="no output"):
        generate(SCHEMA, "Show drivers older than 30", mode="openai")


def test_llm_not_json_is_error(monkeypatch):
    _fake_llm(monkeypatch, "Sure! Here is your SQL: SELECT 1")
    with pytest.raises(GenerationError, match="malformed"):
        generate(SCHEMA, "Show drivers older than 30", mode="openai")
