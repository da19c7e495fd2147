"""
Generic performance commentary for a query that has no schema to check
against.  These notes never make a query invalid.
"""
from __future__ import annotations

from src.checks.sql_tokens import COMPARISON_OPS, STRING, WORD, Token, lex
from src.core.logging import get_logger

logger = get_logger(__name__)

_AGGREGATES = {"COUNT", "SUM", "AVG", "MIN", "MAX"}
_FILTER_CLAUSES = {"WHERE", "ON", "HAVING"}
_FILTER_ENDERS = {"GROUP", "ORDER", "LIMIT", "UNION", "INTERSECT", "EXCEPT", "OFFSET", "JOIN"}


def _top(tokens: list[Token]) -> list[Token]:
    return [t for t in tokens if t.depth == 0]


def _filter_ranges(tokens: list[Token]) -> list[tuple[int, int]]:
    """Index ranges of WHERE / ON / HAVING bodies at any depth."""
    ranges = []
    for i, t in enumerate(tokens):
        if not (t.kind == WORD and t.upper in _FILTER_CLAUSES):
            continue
        end = i + 1
        while end < len(tokens):
            nxt = tokens[end]
            if nxt.depth < t.depth or (nxt.depth == t.depth and nxt.kind == WORD and nxt.upper in _FILTER_ENDERS):
                break
            end += 1
        ranges.append((i + 1, end))
    return ranges


def performance_notes(sql: str) -> list[str]:
    """Return human-readable notes about likely slow patterns in *sql*."""
    tokens = lex(sql).tokens
    if not tokens:
        return []
    top = _top(tokens)
    top_words = {t.upper for t in top if t.kind == WORD}
    notes: list[str] = []

    # ── SELECT * ────────────────────────────────────────
    for i, t in enumerate(tokens[:-1]):
        if t.is_word("SELECT") and tokens[i + 1].text == "*":
            notes.append(
                "SELECT * reads every column; listing only the needed columns "
                "reduces I/O and keeps the result stable if the table changes."
            )
            break

    # ── Unbounded scan ──────────────────────────────────
    is_select = tokens[0].is_word("SELECT", "WITH")
    aggregate_only = any(t.upper in _AGGREGATES for t in tokens if t.kind == WORD) and "GROUP" not in top_words
    if is_select and "FROM" in top_words and not ({"WHERE", "LIMIT", "FETCH"} & top_words) and not aggregate_only:
        notes.append(
            "The query has neither a WHERE clause nor a LIMIT, so it scans and "
            "returns the whole table."
        )

    # ── ORDER BY without LIMIT ─────────────────────────
    if "ORDER" in top_words and not ({"LIMIT", "FETCH"} & top_words):
        notes.append("ORDER BY without LIMIT sorts the entire result set.")

    # ── Filters ─────────────────────────────────────────
    for start, end in _filter_ranges(tokens):
        body = tokens[start:end]
        for j, t in enumerate(body):
            if t.is_word("LIKE", "ILIKE") and j + 1 < len(body):
                pattern = body[j + 1]
                if pattern.kind == STRING and pattern.text.startswith("%"):
                    notes.append(
                        f"LIKE '{pattern.text}' starts with a wildcard, which prevents "
                        "index use on the filtered column."
                    )
            if (
                t.kind == WORD
                and j + 1 < len(body)
                and t.upper not in _AGGREGATES
                and body[j + 1].text == "("
                and (j == 0 or body[j - 1].is_word("AND", "OR", "NOT") or body[j - 1].text == "(")
                and _compared_after_call(body, j + 1)
            ):
                notes.append(
                    f"The filter applies {t.text.upper()}() to a column; an index on "
                    "that column cannot be used unless it is an expression index."
                )

    notes = list(dict.fromkeys(notes))
    if notes:
        logger.info("Performance notes: %d", len(notes))
    return notes


def _compared_after_call(body: list[Token], open_idx: int) -> bool:
    """True when the call starting at *open_idx* is followed by a comparison."""
    depth = body[open_idx].depth
    for k in range(open_idx + 1, len(body)):
        if body[k].text == ")" and body[k].depth == depth:
            nxt = body[k + 1] if k + 1 < len(body) else None
            return nxt is not None and (nxt.text in COMPARISON_OPS or nxt.is_word("LIKE", "ILIKE", "IN", "BETWEEN"))
    return False
