"""
Stage 1 of verification -- deterministic syntax checks (non-LLM).

Checks performed:
  1. Lexical problems (unterminated literals/comments, unbalanced parentheses)
  2. The statement starts with a SQL statement keyword (SELEC -> SELECT)
  3. Misspelled clause keywords in keyword position (FORM, WHER, GRUOP BY)
  4. Empty SELECT list
  5. Trailing comma before a clause or ')'
  6. GROUP / ORDER not followed by BY
  7. WHERE / HAVING / ON without a condition
  8. Comparison operators missing their right-hand value
  9. Statement ending on an operator or keyword
 10. Top-level clause order (WHERE before GROUP BY before ORDER BY ...)
 11. The same keyword repeated back to back
"""
from __future__ import annotations

import difflib

from src.checks.sql_tokens import (
    CLAUSE_KEYWORDS,
    COMPARISON_OPS,
    RESERVED,
    STATEMENT_KEYWORDS,
    SYMBOL,
    WORD,
    Token,
    lex,
)
from src.core.logging import get_logger

logger = get_logger(__name__)

_CLAUSE_ORDER = ("FROM", "WHERE", "GROUP", "HAVING", "ORDER", "LIMIT")
_CLAUSE_LABEL = {"GROUP": "GROUP BY", "ORDER": "ORDER BY"}
_SET_OPERATORS = {"UNION", "INTERSECT", "EXCEPT"}
_CONDITION_STARTERS = {"WHERE", "HAVING", "ON"}
_CONDITION_ENDERS = {"GROUP", "ORDER", "LIMIT", "HAVING", "UNION", "INTERSECT", "EXCEPT", "OFFSET", "WINDOW"}
_DANGLING_WORDS = {
    "AND", "OR", "NOT", "WHERE", "FROM", "SELECT", "ON", "BY", "JOIN", "LIKE",
    "ILIKE", "IN", "BETWEEN", "HAVING", "AS", "IS", "LIMIT", "OFFSET", "SET",
    "WHEN", "THEN", "ELSE", "CASE",
}
_DANGLING_SYMBOLS = COMPARISON_OPS | {"+", "-", "/", "%", "||", ",", "::"}
_MISSPELL_CUTOFF = 0.75
_MIN_MISSPELL_LEN = 4


def _closest_keyword(word: str, vocabulary) -> str | None:
    matches = difflib.get_close_matches(word.upper(), list(vocabulary), n=1, cutoff=_MISSPELL_CUTOFF)
    return matches[0] if matches else None


def _clause_name(word: str) -> str:
    return _CLAUSE_LABEL.get(word, word)


def _check_statement_start(tokens: list[Token]) -> list[str]:
    first = next((t for t in tokens if t.text != "("), None)
    if first is None:
        return ["The query contains no SQL statement"]
    if first.kind != WORD:
        return [f"The query does not start with a SQL statement keyword (found '{first.text}')"]
    if first.upper in STATEMENT_KEYWORDS:
        return []
    guess = _closest_keyword(first.text, STATEMENT_KEYWORDS)
    if guess:
        return [f"Misspelled keyword '{first.text}' at the start of the query (did you mean '{guess}'?)"]
    return [f"The query does not start with a SQL statement keyword (found '{first.text}')"]


def _check_misspellings(tokens: list[Token], known_identifiers: set[str]) -> list[str]:
    """Flag words that look like a clause keyword absent from the query.

    Only words in keyword position are considered: preceded by an operand and
    followed by an operand (or nothing), or followed by BY.
    """
    present = {t.upper for t in tokens if t.kind == WORD}
    first_word_idx = next((i for i, t in enumerate(tokens) if t.kind == WORD), -1)
    issues: list[str] = []
    seen: set[str] = set()

    for idx, tok in enumerate(tokens):
        if idx == first_word_idx or tok.kind != WORD or len(tok.text) < _MIN_MISSPELL_LEN:
            continue
        upper = tok.upper
        if upper in RESERVED:
            continue
        if tok.text.lower() in known_identifiers:
            continue

        prev = tokens[idx - 1] if idx > 0 else None
        nxt = tokens[idx + 1] if idx + 1 < len(tokens) else None
        if nxt is not None and nxt.text in ("(", "."):
            continue
        if prev is not None and (prev.text in (".", "::", ":") or prev.is_word("AS")):
            continue

        guess = _closest_keyword(upper, CLAUSE_KEYWORDS)
        if not guess or guess in present:
            continue

        before_by = nxt is not None and nxt.is_word("BY") and guess in ("GROUP", "ORDER")
        keyword_slot = (
            prev is not None
            and prev.is_operand
            and (nxt is None or nxt.is_operand or nxt.text == "(")
        )
        if (before_by or keyword_slot) and upper not in seen:
            seen.add(upper)
            issues.append(f"Misspelled keyword '{tok.text}' (did you mean '{guess}'?)")
    return issues


def _check_structure(tokens: list[Token]) -> list[str]:
    issues: list[str] = []
    n = len(tokens)

    for idx, tok in enumerate(tokens):
        nxt = tokens[idx + 1] if idx + 1 < n else None

        if tok.is_word("SELECT"):
            after = nxt
            if after is not None and after.is_word("DISTINCT", "ALL"):
                after = tokens[idx + 2] if idx + 2 < n else None
            if after is not None and after.is_word("FROM"):
                issues.append("The SELECT list is empty: no columns are listed before FROM")

        if tok.kind == SYMBOL and tok.text == "," and nxt is not None:
            if nxt.text == ")" or nxt.is_word(*_CLAUSE_ORDER, "UNION"):
                issues.append(f"There is a trailing comma before '{nxt.text.upper()}'")

        if tok.is_word("GROUP", "ORDER") and not (nxt is not None and nxt.is_word("BY")):
            issues.append(f"{tok.upper} must be followed by BY")

        if tok.kind == WORD and tok.upper in _CONDITION_STARTERS:
            if (
                nxt is None
                or nxt.text in (")", ";")
                or (nxt.kind == WORD and nxt.upper in _CONDITION_ENDERS)
            ):
                issues.append(f"The {tok.upper} clause has no condition")

        if tok.kind == SYMBOL and tok.text in COMPARISON_OPS and nxt is not None:
            if nxt.text in (")", ";", ",") or (
                nxt.kind == WORD and nxt.upper in RESERVED and nxt.upper not in ("NOT", "ANY", "ALL", "SOME", "CASE", "INTERVAL")
            ):
                issues.append(f"The '{tok.text}' operator is missing its right-hand value")

        if (
            tok.kind == WORD
            and nxt is not None
            and nxt.kind == WORD
            and tok.upper == nxt.upper
            and tok.upper in RESERVED
        ):
            issues.append(f"The keyword '{tok.upper}' is repeated")

    last = next((t for t in reversed(tokens) if t.text != ";"), None)
    if last is not None:
        if (last.kind == SYMBOL and last.text in _DANGLING_SYMBOLS) or (
            last.kind == WORD and last.upper in _DANGLING_WORDS
        ):
            issues.append(f"The query ends unexpectedly after '{last.text}'")

    issues.extend(_check_clause_order(tokens))
    return issues


def _check_clause_order(tokens: list[Token]) -> list[str]:
    top = [t for t in tokens if t.depth == 0 and t.kind == WORD]
    if any(t.upper in _SET_OPERATORS for t in top):
        return []
    positions: dict[str, int] = {}
    for t in top:
        if t.upper in _CLAUSE_ORDER and t.upper not in positions:
            positions[t.upper] = t.pos
    present = [c for c in _CLAUSE_ORDER if c in positions]
    for i, earlier in enumerate(present):
        for later in present[i + 1:]:
            if positions[later] < positions[earlier]:
                return [f"{_clause_name(earlier)} must come before {_clause_name(later)}"]
    return []


def check_syntax(sql: str, known_identifiers: set[str] | None = None) -> list[str]:
    """Return a list of syntax problems (empty list = syntax looks clean).

    Parameters
    ----------
    sql : str
        The SQL text to check.
    known_identifiers : set[str], optional
        Lower-cased table/column names from a schema; they are never reported
        as misspelled keywords.
    """
    lexed = lex(sql)
    issues = list(lexed.issues)
    tokens = lexed.tokens

    issues.extend(_check_statement_start(tokens))
    if tokens:
        issues.extend(_check_misspellings(tokens, known_identifiers or set()))
        issues.extend(_check_structure(tokens))

    deduped = list(dict.fromkeys(issues))
    if deduped:
        logger.info("Syntax issues: %s", deduped)
    return deduped
