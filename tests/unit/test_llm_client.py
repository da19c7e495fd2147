"""
Unit tests -- LLM client: mock mode + dispatch.
"""
import pytest

from src.copilot.llm_client import call_llm, resolve_provider
from src.core.config import get_settings
from src.core.errors import ConfigurationError


@pytest.fixture
def settings(monkeypatch):
    s = get_settings()
    monkeypatch.setattr(s, "llm_provider", "mock")
    monkeypatch.setattr(s, "openai_api_key", "")
    monkeypatch.setattr(s, "anthropic_api_key", "")
    return s


def test_mock_returns_string():
    result = call_llm("Hello world", provider="mock")
    assert isinstance(result, str)


def test_mock_prefix():
    result = call_llm("Hello world", provider="mock")
    assert result.startswith("[MOCK]")


def test_mock_echoes_prompt():
    prompt = "What is the meaning of life?"
    result = call_llm(prompt, provider="mock")
    assert prompt[:20] in result


def test_unknown_provider_raises():
    with pytest.raises(NotImplementedError, match="not supported"):
        call_llm("hi", provider="banana")


def test_openai_missing_key_raises(settings):
    """Should raise a ConfigurationError (a RuntimeError) when key is empty."""
    with pytest.raises(RuntimeError, match="openai_api_key"):
        call_llm("hi", provider="openai")


def test_anthropic_missing_key_raises(settings):
    with pytest.raises(ConfigurationError, match="anthropic_api_key"):
        call_llm("hi", provider="anthropic")


def test_default_provider_is_mock(settings):
    """Settings default to mock -- this should work without any keys."""
    result = call_llm("test")
    assert "[MOCK]" in result


def test_resolve_provider(settings):
    assert resolve_provider(None) == "mock"
    assert resolve_provider(" OpenAI ") == "openai"
