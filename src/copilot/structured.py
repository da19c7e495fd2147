"""
Structured completions -- render a named template, call the LLM, and parse
the reply into a declared pydantic output model.

Anything short of a fully valid reply (no text, non-JSON, a missing or empty
field) is a GenerationError; partial results are never returned.
"""
from __future__ import annotations

import json
import re
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from src.copilot.llm_client import call_llm
from src.copilot.prompt_loader import render_prompt
from src.core.errors import ConfigurationError, GenerationError
from src.core.logging import get_logger

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_FENCE_OPEN_RE = re.compile(r"^```[\w-]*\s*")
_FENCE_CLOSE_RE = re.compile(r"\s*```$")
_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


def strip_fences(text: str) -> str:
    """Remove a surrounding markdown code fence, if any."""
    text = text.strip()
    if text.startswith("```"):
        text = _FENCE_OPEN_RE.sub("", text)
        text = _FENCE_CLOSE_RE.sub("", text)
    return text.strip()


def clean_sql(sql: str) -> str:
    """Strip fences, surrounding whitespace and trailing semicolons from SQL."""
    return strip_fences(sql).rstrip().rstrip(";").strip()


def _parse_json(text: str) -> dict[str, Any]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        # tolerate prose around the object
        m = _JSON_OBJECT_RE.search(text)
        if not m:
            raise
        data = json.loads(m.group(0))
    if not isinstance(data, dict):
        raise json.JSONDecodeError("expected a JSON object", text, 0)
    return data


def complete_structured(
    name: str,
    output_model: type[ModelT],
    provider: str | None = None,
    **inputs: str,
) -> ModelT:
    """Render template *name* with *inputs* and return a validated *output_model*.

    Raises
    ------
    GenerationError
        If the backend fails, returns nothing, or returns something that does
        not validate against *output_model*.
    ConfigurationError
        If the provider is not usable (missing key / package) or the template
        is broken.
    """
    prompt = render_prompt(name, **inputs)
    try:
        raw = call_llm(prompt, provider=provider)
    except (ConfigurationError, NotImplementedError):
        raise
    except Exception as exc:
        logger.exception("Completion '%s' failed", name)
        raise GenerationError(f"The completion backend failed: {exc}") from exc

    text = strip_fences(raw or "")
    if not text:
        raise GenerationError("The completion backend returned no output.")

    try:
        data = _parse_json(text)
    except json.JSONDecodeError as exc:
        logger.warning("Completion '%s' returned invalid JSON: %s", name, exc)
        raise GenerationError("The completion backend returned a malformed response.") from exc

    data = {
        key: clean_sql(value) if isinstance(value, str) and key.endswith("_query") else value
        for key, value in data.items()
    }
    try:
        result = output_model.model_validate(data)
    except ValidationError as exc:
        fields = sorted({str(err["loc"][0]) for err in exc.errors() if err.get("loc")})
        logger.warning("Completion '%s' failed validation: %s", name, fields)
        raise GenerationError(
            f"The completion backend returned an incomplete response (missing or empty: {', '.join(fields)})."
        ) from exc

    logger.info("Completion '%s' parsed into %s", name, output_model.__name__)
    return result
