"""
Dashboard SQL builder.

Every dashboard query has the same fixed shape: a condition row and an
``Others`` row, in that order, over the same base population.  The
complement uses ``(cond) IS NOT TRUE`` so rows where the condition is NULL
are counted under Others instead of disappearing.
"""
from __future__ import annotations

from src.checks.dashboard_shape import OTHERS_LABEL


def _text_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def aggregate_value(aggregate_sql: str) -> str:
    """COUNT is never NULL; other aggregates default to 0 on an empty group."""
    if aggregate_sql.strip().upper().startswith("COUNT"):
        return aggregate_sql
    return f"COALESCE({aggregate_sql}, 0)"


def build_dashboard_query(
    label: str,
    condition_sql: str,
    source_sql: str,
    aggregate_sql: str = "COUNT(*)",
    prefix: str = "",
) -> str:
    """Assemble the two-row condition / Others query.

    Parameters
    ----------
    label : str
        Text for the first row, e.g. ``"Age > 30"``.
    condition_sql : str
        The filter, e.g. ``"age > 30"``.
    source_sql : str
        Everything between FROM and WHERE (table plus any JOINs).
    aggregate_sql : str
        ``COUNT(*)`` unless the question implies SUM / AVG / MIN / MAX.
    prefix : str
        A leading ``WITH ...`` clause the source depends on.
    """
    value = aggregate_value(aggregate_sql)
    body = (
        "SELECT label, value\n"
        "FROM (\n"
        f"    SELECT {_text_literal(label)} AS label, {value} AS value, 1 AS sort_order\n"
        f"    FROM {source_sql}\n"
        f"    WHERE {condition_sql}\n"
        "    UNION ALL\n"
        f"    SELECT {_text_literal(OTHERS_LABEL)} AS label, {value} AS value, 2 AS sort_order\n"
        f"    FROM {source_sql}\n"
        f"    WHERE ({condition_sql}) IS NOT TRUE\n"
        ") AS dashboard\n"
        "ORDER BY sort_order"
    )
    return f"{prefix.rstrip()}\n{body}" if prefix.strip() else body
