"""
Post-execution shape check for dashboard results.

A dashboard result must be exactly two rows of (text label, numeric value),
the second label being ``Others``.
"""
from __future__ import annotations

from typing import Any

OTHERS_LABEL = "Others"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def check_dashboard_shape(rows: list[dict[str, Any]]) -> list[str]:
    """Return a list of shape violations (empty list = well-formed)."""
    if len(rows) != 2:
        return [f"The dashboard query must return exactly 2 rows, got {len(rows)}"]

    errors: list[str] = []
    for position, row in enumerate(rows, start=1):
        if len(row) != 2:
            errors.append(f"Dashboard row {position} must have exactly 2 columns, got {len(row)}")
            continue
        label, value = list(row.values())
        if not isinstance(label, str):
            errors.append(f"Dashboard row {position} must start with a text label")
        if value is not None and not _is_number(value):
            errors.append(f"Dashboard row {position} must have a numeric value, got {value!r}")

    if not errors:
        second_label = list(rows[1].values())[0]
        if second_label != OTHERS_LABEL:
            errors.append(f"The second dashboard row must be labelled '{OTHERS_LABEL}', got '{second_label}'")
    return errors
