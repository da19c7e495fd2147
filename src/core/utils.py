"""
Small shared utilities.
"""
from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Generator

from src.core.errors import InputValidationError


@contextmanager
def timer() -> Generator[dict, None, None]:
    """Context manager that records elapsed wall-clock milliseconds."""
    result: dict = {}
    start = time.perf_counter()
    try:
        yield result
    finally:
        result["elapsed_ms"] = int((time.perf_counter() - start) * 1000)


def require_text(value: str | None, field: str) -> str:
    """Return *value* stripped, or raise InputValidationError if it is blank."""
    if value is None or not str(value).strip():
        raise InputValidationError(f"{field} is required and cannot be empty.")
    return str(value).strip()
