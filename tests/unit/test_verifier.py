"""
Unit tests -- two-stage query verification.
"""
import json

import pytest

from src.copilot.models import VerificationResult
from src.copilot.verifier import verify
from src.core.errors import InputValidationError

SCHEMA = "drivers(driver_id:int, age:int, name:text, rating:numeric)"


def _never_called(prompt, provider=None):
    raise AssertionError("backend must not be called")


# ── Stage 1: syntax ──────────────────────────────────────

def test_misspelled_keyword_invalid():
    result = verify("SELEC * FROM drivers", mode="mock")
    assert isinstance(result, VerificationResult)
    assert result.is_valid is False
    assert "SELEC" in result.explanation
    assert result.issues


def test_syntax_checked_before_schema():
    result = verify("SELECT salary FORM drivers", SCHEMA, mode="mock")
    assert result.is_valid is False
    assert "syntax error" in result.explanation
    assert not any("salary" in i for i in result.issues)


def test_schema_column_named_like_keyword_not_flagged():
    result = verify("SELECT name FROM drivers wher", "drivers(name:text, wher:text)", mode="mock")
    assert not any("Misspelled" in i for i in result.issues)


# ── Stage 2: schema ──────────────────────────────────────

def test_missing_column_invalid():
    result = verify("SELECT salary FROM drivers", SCHEMA, mode="mock")
    assert result.is_valid is False
    assert "salary" in result.explanation
    assert result.issues == ["Column 'salary' does not exist in table 'drivers'"]


def test_missing_table_invalid():
    result = verify("SELECT name FROM employees", SCHEMA, mode="mock")
    assert result.is_valid is False
    assert "employees" in result.explanation


def test_valid_with_schema():
    result = verify("SELECT name FROM drivers WHERE age > 30", SCHEMA, mode="mock")
    assert result.is_valid is True
    assert result.issues == []
    assert "every table and column it references exists" in result.explanation
    assert result.explanation.startswith("The query reads data from drivers and filters rows.")


# ── No schema ────────────────────────────────────────────

def test_no_schema_is_syntax_only():
    result = verify("SELECT * FROM drivers", mode="mock")
    assert result.is_valid is True
    assert "no schema was supplied" in result.explanation
    assert any("SELECT *" in n for n in result.notes)


def test_unreadable_schema_treated_as_absent():
    result = verify("SELECT salary FROM drivers", "the drivers table has some columns", mode="mock")
    assert result.is_valid is True
    assert "could not be read" in result.explanation


def test_performance_note_in_explanation():
    result = verify("SELECT name FROM drivers", mode="mock")
    assert "neither a WHERE clause nor a LIMIT" in result.explanation


# ── Determinism / input ──────────────────────────────────

def test_idempotent():
    first = verify("SELECT salary FROM drivers", SCHEMA, mode="mock")
    second = verify("SELECT salary FROM drivers", SCHEMA, mode="mock")
    assert first == second


def test_blank_query_rejected():
    with pytest.raises(InputValidationError):
        verify("   ", SCHEMA, mode="mock")


# ── LLM explanation ──────────────────────────────────────

def test_llm_writes_explanation_for_valid_query(monkeypatch):
    reply = json.dumps({"explanation": "Lists drivers older than 30. It matches the schema."})
    monkeypatch.setattr("src.copilot.structured.call_llm", lambda prompt, provider=None: reply)
    result = verify("SELECT name FROM drivers WHERE age > 30", SCHEMA, mode="openai")
    assert result.is_valid is True
    assert result.explanation == "Lists drivers older than 30. It matches the schema."


def test_llm_not_consulted_for_invalid_query(monkeypatch):
    monkeypatch.setattr("src.copilot.structured.call_llm", _never_called)
    result = verify("SELECT salary FROM drivers", SCHEMA, mode="openai")
    assert result.is_valid is False


def test_llm_garbage_falls_back(monkeypatch):
    monkeypatch.setattr("src.copilot.structured.call_llm", lambda prompt, provider=None: "no idea")
    result = verify("SELECT name FROM drivers WHERE age > 30", SCHEMA, mode="openai")
    assert result.is_valid is True
    assert "every table and column it references exists" in result.explanation


def test_llm_overlong_explanation_falls_back(monkeypatch):
    reply = json.dumps({"explanation": "It reads drivers. It filters by age. It is valid. Ages are ints. Done."})
    monkeypatch.setattr("src.copilot.structured.call_llm", lambda prompt, provider=None: reply)
    result = verify("SELECT name FROM drivers WHERE age > 30", SCHEMA, mode="openai")
    assert result.is_valid is True
    assert "every table and column it references exists" in result.explanation


def test_llm_single_sentence_falls_back(monkeypatch):
    reply = json.dumps({"explanation": "Looks fine."})
    monkeypatch.setattr("src.copilot.structured.call_llm", lambda prompt, provider=None: reply)
    result = verify("SELECT name FROM drivers WHERE age > 30", SCHEMA, mode="openai")
    assert "every table and column it references exists" in result.explanation


def test_llm_three_sentences_kept(monkeypatch):
    text = "It lists drivers older than 30. Every name exists in the schema. No performance concerns."
    monkeypatch.setattr(
        "src.copilot.structured.call_llm",
        lambda prompt, provider=None: json.dumps({"explanation": text}),
    )
    result = verify("SELECT name FROM drivers WHERE age > 30", SCHEMA, mode="openai")
    assert result.explanation == text
