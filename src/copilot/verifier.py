"""
Query verification -- a two-stage gate over arbitrary SQL.

  Stage 1  syntax check (always)           any issue -> is_valid=False
  Stage 2  schema check (schema supplied)  missing table/column -> is_valid=False
           performance notes (no schema)   commentary only, stays valid

The verdict always comes from the deterministic checks, so identical input
always yields the same ``is_valid``.  In openai / anthropic mode the model
only writes the explanation for a query that passed both stages; an unusable
reply falls back to the deterministic explanation.
"""
from __future__ import annotations

import re

from src.checks.performance import performance_notes
from src.checks.references import check_references
from src.checks.sql_tokens import WORD, lex
from src.checks.syntax import check_syntax
from src.copilot.llm_client import resolve_provider
from src.copilot.models import ExplanationOutput, VerificationResult
from src.copilot.structured import complete_structured
from src.core.errors import GenerationError
from src.core.utils import require_text
from src.schema.description import SchemaDescription, parse_schema_text, schema_text_of
from src.core.logging import get_logger

logger = get_logger(__name__)

_SENTENCE_RE = re.compile(r"[^.!?]+[.!?]+(?=\s|$)")
_EXPLANATION_SENTENCES = (2, 3)


def _sentence(text: str) -> str:
    text = text.strip()
    return text if text.endswith((".", "?", "!", ")")) else text + "."


def _explain_syntax(issues: list[str]) -> str:
    parts = [_sentence(f"The query has a syntax error: {issues[0]}")]
    if len(issues) > 1:
        parts.append(_sentence(f"Other problems: {'; '.join(issues[1:3])}"))
    parts.append("Fix the syntax before running or verifying the schema alignment.")
    return " ".join(parts)


def _explain_references(issues: list[str]) -> str:
    return (
        _sentence(f"The query references names that are not in the supplied schema: {'; '.join(issues[:4])}")
        + " Use only the tables and columns listed in the schema description."
    )


def _describe(sql: str) -> str:
    """One sentence on what the statement does."""
    tokens = lex(sql).tokens
    words = [t for t in tokens if t.kind == WORD]
    kind = words[0].upper if words else "SQL"
    tables: list[str] = []
    for i, t in enumerate(tokens[:-1]):
        if t.is_word("FROM", "JOIN") and not t.in_from_function and tokens[i + 1].is_name:
            name = tokens[i + 1].text
            if name not in tables:
                tables.append(name)
    top = {t.upper for t in tokens if t.depth == 0 and t.kind == WORD}

    clauses = []
    if "WHERE" in top:
        clauses.append("filters rows")
    if "GROUP" in top:
        clauses.append("groups them")
    if "ORDER" in top:
        clauses.append("sorts the result")
    if "LIMIT" in top:
        clauses.append("limits the number of rows")

    source = f" from {', '.join(tables)}" if tables else ""
    kind_text = "reads data" if kind in ("SELECT", "WITH") else f"is a {kind} statement"
    detail = f" and {', '.join(clauses)}" if clauses else ""
    return f"The query {kind_text}{source}{detail}."


def _explain_valid(sql: str, schema_checked: bool, schema_unreadable: bool, notes: list[str]) -> str:
    if schema_checked:
        verdict = "It is syntactically valid and every table and column it references exists in the schema."
    elif schema_unreadable:
        verdict = (
            "It is syntactically valid; the schema description could not be read as a table listing, "
            "so names were not checked."
        )
    else:
        verdict = "It is syntactically valid; no schema was supplied, so only the syntax was checked."
    third = notes[0] if notes else "No obvious performance problems were found."
    return " ".join([_describe(sql), verdict, _sentence(third)])


def _llm_explanation(sql: str, schema_text: str, notes: list[str], provider: str) -> str | None:
    try:
        output = complete_structured(
            "verify_explanation",
            ExplanationOutput,
            provider=provider,
            schema=schema_text or "(none supplied)",
            notes="\n".join(f"- {n}" for n in notes) or "(none)",
            sql_query=sql,
        )
    except GenerationError as exc:
        logger.warning("Falling back to the rule-based explanation: %s", exc)
        return None
    count = len(_SENTENCE_RE.findall(output.explanation)) or 1
    low, high = _EXPLANATION_SENTENCES
    if not low <= count <= high:
        logger.warning("Falling back to the rule-based explanation: reply has %d sentences", count)
        return None
    return output.explanation


def verify(
    sql_query: str,
    schema: str | SchemaDescription | None = None,
    mode: str | None = None,
) -> VerificationResult:
    """Verify *sql_query*, optionally against a schema description.

    An invalid query is a normal result (``is_valid=False``), not an error.

    Raises
    ------
    InputValidationError
        If *sql_query* is blank.
    """
    sql = require_text(sql_query, "SQL query")
    schema_text = schema_text_of(schema).strip()
    parsed = schema if isinstance(schema, SchemaDescription) else parse_schema_text(schema_text)
    provider = resolve_provider(mode)
    logger.info("Verify[%s] | sql_len=%d | schema=%s", provider, len(sql), bool(schema_text))

    known = parsed.all_field_names() | {n.lower() for n in parsed.table_names()}
    syntax_issues = check_syntax(sql, known_identifiers=known)
    if syntax_issues:
        return VerificationResult(is_valid=False, explanation=_explain_syntax(syntax_issues), issues=syntax_issues)

    if parsed:
        reference_issues = check_references(sql, parsed)
        if reference_issues:
            return VerificationResult(
                is_valid=False,
                explanation=_explain_references(reference_issues),
                issues=reference_issues,
            )

    notes = performance_notes(sql)
    explanation = None
    if provider != "mock":
        explanation = _llm_explanation(sql, schema_text, notes, provider)
    if explanation is None:
        explanation = _explain_valid(
            sql,
            schema_checked=bool(parsed),
            schema_unreadable=bool(schema_text) and not parsed,
            notes=notes,
        )
    return VerificationResult(is_valid=True, explanation=explanation, notes=notes)
