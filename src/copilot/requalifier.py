"""
Dashboard requalification -- derive the two-row dashboard query for a report
query the user wrote by hand.

The condition is the report's top-level WHERE clause and the base
population is its FROM clause (JOINs included).  A report with no WHERE has
no condition to compare against Others, which is a GenerationError in every
mode; callers treat it as "dashboard unavailable".
"""
from __future__ import annotations

from dataclasses import dataclass

from src.checks.references import check_references
from src.checks.sql_tokens import SYMBOL, WORD, Token, lex, matching_paren
from src.copilot.conditions import describe_condition
from src.copilot.dashboard import build_dashboard_query
from src.copilot.llm_client import resolve_provider
from src.copilot.models import DashboardQueryResult
from src.copilot.structured import clean_sql, complete_structured
from src.core.errors import GenerationError
from src.core.utils import require_text
from src.schema.description import SchemaDescription, parse_schema_text, schema_text_of
from src.core.logging import get_logger

logger = get_logger(__name__)

_WHERE_ENDERS = {
    "GROUP", "HAVING", "ORDER", "LIMIT", "OFFSET", "FETCH", "WINDOW",
    "FOR", "RETURNING",
}
_MIRRORED_AGGREGATES = ("SUM", "AVG", "MIN", "MAX", "COUNT")
_SET_OPERATORS = {"UNION", "INTERSECT", "EXCEPT"}


@dataclass(frozen=True)
class ReportParts:
    """The pieces of a report query a dashboard is built from."""
    prefix: str        # leading WITH clause, or ""
    source: str        # FROM ... (without the keyword), JOINs included
    condition: str     # top-level WHERE body
    aggregate: str     # mirrored aggregate or COUNT(*)


def _main_select_index(tokens: list[Token]) -> int:
    for i, t in enumerate(tokens):
        if t.depth == 0 and t.is_word("SELECT"):
            return i
    raise GenerationError("The report query is not a SELECT statement, so no dashboard can be derived.")


def _first_aggregate(sql: str, tokens: list[Token], start: int, end: int) -> str | None:
    """Text of the first top-level aggregate call in the select list."""
    for i in range(start, end):
        t = tokens[i]
        if (
            t.depth == 0
            and t.kind == WORD
            and t.upper in _MIRRORED_AGGREGATES
            and i + 1 < end
            and tokens[i + 1].text == "("
        ):
            close = matching_paren(tokens, i + 1)
            if close < len(tokens):
                return sql[t.pos:tokens[close].pos + 1]
    return None


def split_report_query(report_query: str) -> ReportParts:
    """Pull the WITH prefix, FROM source, WHERE condition and aggregate out of *report_query*.

    Raises
    ------
    GenerationError
        If the query cannot be parsed, combines SELECTs with a set operator,
        or has no top-level WHERE clause.
    """
    sql = clean_sql(report_query)
    lexed = lex(sql)
    if lexed.issues:
        raise GenerationError(f"The report query could not be parsed: {lexed.issues[0]}")
    tokens = lexed.tokens

    select_idx = _main_select_index(tokens)
    # each branch of a set operation has its own population and condition
    if any(t.depth == 0 and t.kind == WORD and t.upper in _SET_OPERATORS for t in tokens[select_idx:]):
        raise GenerationError(
            "The report query combines several SELECTs (UNION/INTERSECT/EXCEPT), "
            "so it has no single condition to compare against 'Others'."
        )
    after_select = tokens[select_idx + 1:]
    from_idx = next(
        (select_idx + 1 + k for k, t in enumerate(after_select) if t.depth == 0 and t.is_word("FROM")),
        None,
    )
    if from_idx is None:
        raise GenerationError("The report query has no FROM clause, so no dashboard can be derived.")

    where_idx = next(
        (k for k in range(from_idx + 1, len(tokens)) if tokens[k].depth == 0 and tokens[k].is_word("WHERE")),
        None,
    )
    if where_idx is None:
        raise GenerationError(
            "The report query has no discernible condition (no WHERE clause), "
            "so there is nothing to compare against 'Others'."
        )
    end_idx = next(
        (
            k for k in range(where_idx + 1, len(tokens))
            if tokens[k].depth == 0
            and (tokens[k].kind == WORD and tokens[k].upper in _WHERE_ENDERS
                 or tokens[k].kind == SYMBOL and tokens[k].text == ";")
        ),
        len(tokens),
    )

    source = sql[tokens[from_idx].pos + len(tokens[from_idx].text):tokens[where_idx].pos].strip()
    cond_end = tokens[end_idx].pos if end_idx < len(tokens) else len(sql)
    condition = sql[tokens[where_idx].pos + len(tokens[where_idx].text):cond_end].strip()
    if not source or not condition:
        raise GenerationError("The report query's FROM or WHERE clause is empty.")

    aggregate = _first_aggregate(sql, tokens, select_idx + 1, from_idx) or "COUNT(*)"
    prefix = sql[:tokens[select_idx].pos].strip()
    return ReportParts(prefix=prefix, source=source, condition=condition, aggregate=aggregate)


def _derive_mock(parts: ReportParts) -> DashboardQueryResult:
    dashboard = build_dashboard_query(
        label=describe_condition(parts.condition),
        condition_sql=parts.condition,
        source_sql=parts.source,
        aggregate_sql=parts.aggregate,
        prefix=parts.prefix,
    )
    return DashboardQueryResult(dashboard_query=dashboard)


def derive_dashboard(
    schema: str | SchemaDescription,
    report_query: str,
    mode: str | None = None,
) -> DashboardQueryResult:
    """Derive the dashboard query for an existing report query.

    Raises
    ------
    InputValidationError
        If *schema* or *report_query* is blank.
    GenerationError
        If the report has no condition, or the completion is unusable.
    """
    schema_text = require_text(schema_text_of(schema), "Schema description")
    report_query = require_text(report_query, "Report query")
    provider = resolve_provider(mode)

    parts = split_report_query(report_query)
    logger.info("Derive[%s] | condition=%s", provider, parts.condition[:120])

    if provider == "mock":
        return _derive_mock(parts)

    result = complete_structured(
        "derive_dashboard",
        DashboardQueryResult,
        provider=provider,
        schema=schema_text,
        report_query=report_query,
    )
    parsed = schema if isinstance(schema, SchemaDescription) else parse_schema_text(schema_text)
    if parsed:
        issues = check_references(result.dashboard_query, parsed)
        if issues:
            logger.warning("Derived dashboard query does not match the schema: %s", issues)
    return result
