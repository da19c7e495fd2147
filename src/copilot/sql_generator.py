"""
SQL Generator -- turns a schema description and a natural-language question
into a report query plus a two-row dashboard query.

Two modes:
  mock               -> deterministic condition extraction over the parsed
                        schema (no API key needed, great for tests)
  openai / anthropic -> structured completion via llm_client

Both queries share one extracted condition.  The result is both-or-neither:
a completion missing either query is a GenerationError.
"""
from __future__ import annotations

from src.checks.references import check_references
from src.copilot.conditions import extract_aggregate, extract_condition, sql_identifier
from src.copilot.dashboard import build_dashboard_query
from src.copilot.llm_client import resolve_provider
from src.copilot.models import DualQueryResult
from src.copilot.structured import complete_structured
from src.core.errors import GenerationError
from src.core.utils import require_text
from src.schema.description import SchemaDescription, parse_schema_text, schema_text_of
from src.core.logging import get_logger

logger = get_logger(__name__)


# ── Mock generator ───────────────────────────────────────

def _generate_mock(prompt: str, schema: SchemaDescription) -> DualQueryResult:
    """Deterministic NL -> (report, dashboard) over the parsed schema."""
    if not schema:
        raise GenerationError(
            "The schema description lists no tables, so no query can be generated."
        )

    condition = extract_condition(prompt, schema)
    aggregate = extract_aggregate(prompt, condition.table)
    table = sql_identifier(condition.table.name)
    columns = ", ".join(sql_identifier(c) for c in condition.table.field_names())

    report = f"SELECT {columns}\nFROM {table}\nWHERE {condition.sql}"
    dashboard = build_dashboard_query(
        label=condition.label,
        condition_sql=condition.sql,
        source_sql=table,
        aggregate_sql=aggregate.sql,
    )
    logger.info("Mock generation: condition=%s aggregate=%s", condition.sql, aggregate.sql)
    return DualQueryResult(report_query=report, dashboard_query=dashboard)


# ── LLM generator ────────────────────────────────────────

def _log_schema_discrepancies(result: DualQueryResult, schema: SchemaDescription) -> None:
    """Generated identifiers are checked, not enforced: mismatches are only logged."""
    if not schema:
        return
    for name, sql in (("report", result.report_query), ("dashboard", result.dashboard_query)):
        issues = check_references(sql, schema)
        if issues:
            logger.warning("Generated %s query does not match the schema: %s", name, issues)


def _generate_llm(prompt: str, schema_text: str, provider: str) -> DualQueryResult:
    return complete_structured(
        "generate_queries",
        DualQueryResult,
        provider=provider,
        schema=schema_text,
        prompt=prompt,
    )


# ── Public API ───────────────────────────────────────────

def generate(
    schema: str | SchemaDescription,
    prompt: str,
    mode: str | None = None,
) -> DualQueryResult:
    """Generate the report and dashboard queries for *prompt*.

    Parameters
    ----------
    schema : str | SchemaDescription
        Schema description (text or parsed).
    prompt : str
        Natural-language question, e.g. "Show drivers older than 30".
    mode : str, optional
        mock | openai | anthropic.  Defaults to ``Settings.llm_provider``.

    Raises
    ------
    InputValidationError
        If *schema* or *prompt* is blank (before any backend call).
    GenerationError
        If no complete pair of queries is produced.
    """
    schema_text = require_text(schema_text_of(schema), "Schema description")
    prompt = require_text(prompt, "Prompt")
    provider = resolve_provider(mode)
    parsed = schema if isinstance(schema, SchemaDescription) else parse_schema_text(schema_text)

    logger.info("Generate[%s] | prompt=%s", provider, prompt[:120])
    if provider == "mock":
        result = _generate_mock(prompt, parsed)
    else:
        result = _generate_llm(prompt, schema_text, provider)
        _log_schema_discrepancies(result, parsed)

    logger.info(
        "Generated report (%d chars) and dashboard (%d chars)",
        len(result.report_query), len(result.dashboard_query),
    )
    return result
