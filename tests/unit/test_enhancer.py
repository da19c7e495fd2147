"""
Unit tests -- prompt enhancement.
"""
import json

import pytest

from src.copilot.enhancer import enhance_prompt
from src.copilot.models import EnhancedPrompt
from src.core.errors import GenerationError, InputValidationError

SCHEMA = "drivers(age:int, name:text, rating:numeric)"


def test_mock_names_table_column_and_condition():
    result = enhance_prompt(SCHEMA, "drivers older than 30", mode="mock")
    assert isinstance(result, EnhancedPrompt)
    assert result.enhanced_prompt == (
        "Show all rows of the drivers table where age > 30, and compare the number of rows "
        "matching 'Age > 30' with all other rows ('Others')."
    )
    assert "'age'" in result.explanation


def test_mock_mentions_aggregate():
    result = enhance_prompt(SCHEMA, "average rating of drivers older than 30", mode="mock")
    assert "the average of rating" in result.enhanced_prompt


def test_mock_without_condition_adds_hint():
    result = enhance_prompt(SCHEMA, "Show all drivers.", mode="mock")
    assert result.enhanced_prompt.startswith("Show all drivers (use table drivers;")
    assert "age = <value>" in result.enhanced_prompt
    assert "age, name, rating" in result.explanation


def test_mock_unreadable_schema_leaves_prompt():
    result = enhance_prompt("some prose", "drivers older than 30", mode="mock")
    assert result.enhanced_prompt == "drivers older than 30"


def test_blank_inputs():
    with pytest.raises(InputValidationError):
        enhance_prompt(SCHEMA, " ", mode="mock")
    with pytest.raises(InputValidationError):
        enhance_prompt("", "drivers older than 30", mode="mock")


def test_llm(monkeypatch):
    reply = json.dumps({"enhanced_prompt": "Show drivers where age > 30", "explanation": "Named the column."})
    monkeypatch.setattr("src.copilot.structured.call_llm", lambda prompt, provider=None: reply)
    result = enhance_prompt(SCHEMA, "old drivers", mode="anthropic")
    assert result.enhanced_prompt == "Show drivers where age > 30"
    assert result.explanation == "Named the column."


def test_llm_empty_reply(monkeypatch):
    monkeypatch.setattr("src.copilot.structured.call_llm", lambda prompt, provider=None: '{"enhanced_prompt": ""}')
    with pytest.raises(GenerationError):
        enhance_prompt(SCHEMA, "old drivers", mode="openai")
