"""
Copilot service -- orchestrates generate -> execute (report + dashboard).

Each user action is one unit of work:
  generate_and_run      prompt -> both queries -> run the pair
  run_raw_and_derive    user SQL -> derive dashboard -> run the pair
  verify_query          SQL (+ schema) -> verdict

The report and dashboard queries run concurrently and fail together: if
either fails, the pair fails, so a report is never shown without its
dashboard (or the reverse).  The one exception is a raw report whose
dashboard cannot be derived at all; it runs alone and carries
``dashboard_error``.
"""
from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any

from src.checks.dashboard_shape import check_dashboard_shape
from src.copilot.models import VerificationResult
from src.copilot.requalifier import derive_dashboard
from src.copilot.sql_generator import generate
from src.copilot.structured import clean_sql
from src.copilot.verifier import verify
from src.core.errors import (
    ConfigurationError,
    CopilotError,
    ExecutionError,
    GenerationError,
    InputValidationError,
)
from src.core.utils import require_text, timer
from src.db.executor import ColumnInfo, describe_columns, execute_query
from src.schema.description import SchemaDescription
from src.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class QueryRunResult:
    """Rows of one executed query, with their column kinds."""
    sql: str
    rows: list[dict[str, Any]]
    columns: list[ColumnInfo]
    latency_ms: int = 0


@dataclass
class CopilotRun:
    report_query: str
    report: QueryRunResult
    dashboard_query: str | None = None
    dashboard: QueryRunResult | None = None
    dashboard_error: str | None = None
    latency_ms: int = 0


def _run_one(sql: str) -> QueryRunResult:
    with timer() as t:
        rows = execute_query(sql)
    return QueryRunResult(sql=sql, rows=rows, columns=describe_columns(rows), latency_ms=t["elapsed_ms"])


def run_pair(report_sql: str, dashboard_sql: str) -> tuple[QueryRunResult, QueryRunResult]:
    """Run both queries concurrently; return both results or raise.

    Raises
    ------
    ConfigurationError
        If the database is not configured (passed through unchanged).
    ExecutionError
        If either query failed; the message names the failing half.
    GenerationError
        If the dashboard result does not have the two-row / Others shape.
    """
    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="query-pair") as pool:
        futures = {
            "report": pool.submit(_run_one, report_sql),
            "dashboard": pool.submit(_run_one, dashboard_sql),
        }
        results: dict[str, QueryRunResult] = {}
        failures: dict[str, CopilotError] = {}
        for name, future in futures.items():
            try:
                results[name] = future.result()
            except CopilotError as exc:
                failures[name] = exc

    if failures:
        for exc in failures.values():
            if isinstance(exc, ConfigurationError):
                raise exc
        logger.warning("Query pair failed: %s", {k: str(v) for k, v in failures.items()})
        if len(failures) == 2:
            message = (
                "Both queries failed. "
                f"Report query: {failures['report']} Dashboard query: {failures['dashboard']}"
            )
        else:
            name, exc = next(iter(failures.items()))
            message = f"The {name} query failed, so neither result is shown: {exc}"
        raise ExecutionError(message) from next(iter(failures.values()))

    shape_errors = check_dashboard_shape(results["dashboard"].rows)
    if shape_errors:
        logger.warning("Dashboard shape check failed: %s", shape_errors)
        raise GenerationError(
            "The dashboard query did not return the expected two rows (condition, then 'Others'): "
            + "; ".join(shape_errors)
        )
    return results["report"], results["dashboard"]


def generate_and_run(
    schema: str | SchemaDescription,
    prompt: str,
    mode: str | None = None,
) -> CopilotRun:
    """Generate both queries for *prompt* and run them as a pair."""
    t0 = time.perf_counter()
    logger.info("Copilot.generate_and_run | mode=%s", mode)

    queries = generate(schema, prompt, mode=mode)
    report, dashboard = run_pair(queries.report_query, queries.dashboard_query)

    return CopilotRun(
        report_query=queries.report_query,
        dashboard_query=queries.dashboard_query,
        report=report,
        dashboard=dashboard,
        latency_ms=int((time.perf_counter() - t0) * 1000),
    )


def run_raw_and_derive(
    schema: str | SchemaDescription | None,
    report_query: str,
    mode: str | None = None,
) -> CopilotRun:
    """Run a user-written report query together with a derived dashboard query.

    When no dashboard can be derived (no schema, no WHERE clause, unusable
    completion) the report runs alone and ``dashboard_error`` says why.
    """
    t0 = time.perf_counter()
    report_query = clean_sql(require_text(report_query, "SQL query"))
    logger.info("Copilot.run_raw_and_derive | mode=%s | sql_len=%d", mode, len(report_query))

    try:
        derived = derive_dashboard(schema, report_query, mode=mode)
    except (GenerationError, InputValidationError) as exc:
        logger.warning("Dashboard unavailable for raw query: %s", exc)
        report = _run_one(report_query)
        return CopilotRun(
            report_query=report_query,
            report=report,
            dashboard_error=str(exc),
            latency_ms=int((time.perf_counter() - t0) * 1000),
        )

    report, dashboard = run_pair(report_query, derived.dashboard_query)
    return CopilotRun(
        report_query=report_query,
        dashboard_query=derived.dashboard_query,
        report=report,
        dashboard=dashboard,
        latency_ms=int((time.perf_counter() - t0) * 1000),
    )


def verify_query(
    sql_query: str,
    schema: str | SchemaDescription | None = None,
    mode: str | None = None,
) -> VerificationResult:
    """Verify a (saved) query; an invalid query is a result, not an error."""
    result = verify(sql_query, schema=schema, mode=mode)
    logger.info("Copilot.verify_query | is_valid=%s", result.is_valid)
    return result
