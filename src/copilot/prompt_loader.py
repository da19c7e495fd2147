"""
Loads and caches the prompt templates in ``prompts/prompts.yml``.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path

import yaml

from src.core.errors import ConfigurationError

_PROMPTS_PATH = Path(__file__).resolve().parents[2] / "prompts" / "prompts.yml"


@lru_cache
def load_prompts() -> dict[str, str]:
    """Load every named template from disk (cached after the first call)."""
    with open(_PROMPTS_PATH, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    return {str(name): str(body) for name, body in raw.items()}


def render_prompt(name: str, **inputs: str) -> str:
    """Fill the template *name* with *inputs*.

    Raises
    ------
    ConfigurationError
        If the template does not exist or expects an input that was not given.
    """
    prompts = load_prompts()
    if name not in prompts:
        raise ConfigurationError(f"Prompt template '{name}' is not defined in {_PROMPTS_PATH.name}.")
    try:
        return prompts[name].format(**inputs)
    except KeyError as exc:
        raise ConfigurationError(f"Prompt template '{name}' needs input {exc}.") from exc
