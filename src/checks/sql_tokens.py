"""
A small SQL lexer shared by the syntax, reference and performance checks.

It is deliberately dialect-light: it knows about string literals, quoted
identifiers, comments, numbers, words and operators, and it tracks the
parenthesis depth of every token.  It never raises -- lexical problems
(unterminated literals, unbalanced parentheses) are reported as issues.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field

WORD = "word"
IDENT = "ident"      # "quoted" or `quoted` identifier
STRING = "string"
NUMBER = "number"
SYMBOL = "symbol"

_NUMBER_RE = re.compile(r"\d+(?:\.\d*)?(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?")
_WORD_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_$]*")
_MULTI_SYMBOLS = ("<=", ">=", "<>", "!=", "::", "||", "->>", "->")

# ── Keyword vocabularies ─────────────────────────────────

STATEMENT_KEYWORDS = frozenset({
    "SELECT", "WITH", "INSERT", "UPDATE", "DELETE", "CREATE", "ALTER", "DROP",
    "EXPLAIN", "VALUES", "TRUNCATE", "MERGE", "SHOW", "DESCRIBE", "TABLE",
})

CLAUSE_KEYWORDS = (
    "SELECT", "FROM", "WHERE", "GROUP", "ORDER", "HAVING", "LIMIT", "OFFSET",
    "JOIN", "INNER", "LEFT", "RIGHT", "OUTER", "FULL", "CROSS", "UNION",
    "EXCEPT", "INTERSECT", "DISTINCT", "BETWEEN", "LIKE", "ILIKE", "INSERT",
    "INTO", "VALUES", "UPDATE", "DELETE", "WITH", "CASE", "WHEN", "THEN",
    "ELSE", "EXISTS", "RETURNING",
)

RESERVED = frozenset(CLAUSE_KEYWORDS) | frozenset({
    "BY", "ON", "USING", "NATURAL", "ALL", "AS", "AND", "OR", "NOT", "IN", "IS",
    "END", "SET", "CREATE", "ALTER", "DROP", "TABLE", "ASC", "DESC", "NULLS",
    "FIRST", "LAST", "FETCH", "NEXT", "ROWS", "ROW", "ONLY", "OVER", "PARTITION",
    "WINDOW", "FILTER", "ANY", "SOME", "RECURSIVE", "LATERAL", "EXPLAIN",
    "TRUNCATE", "MERGE", "SIMILAR", "ESCAPE", "INTERVAL", "DEFAULT",
})

VALUE_WORDS = frozenset({
    "NULL", "TRUE", "FALSE", "CURRENT_DATE", "CURRENT_TIME",
    "CURRENT_TIMESTAMP", "LOCALTIME", "LOCALTIMESTAMP", "CURRENT_USER",
})

# Functions whose argument list may legally contain FROM
FROM_FUNCTIONS = frozenset({"EXTRACT", "SUBSTRING", "TRIM", "OVERLAY", "POSITION"})

COMPARISON_OPS = frozenset({"=", "<", ">", "<=", ">=", "<>", "!="})


@dataclass(frozen=True)
class Token:
    text: str
    kind: str
    depth: int
    pos: int
    # True for tokens inside the argument list of EXTRACT/SUBSTRING/...
    in_from_function: bool = False

    @property
    def upper(self) -> str:
        return self.text.upper() if self.kind == WORD else ""

    def is_word(self, *words: str) -> bool:
        return self.kind == WORD and self.text.upper() in words

    @property
    def is_name(self) -> bool:
        """Word or quoted identifier that is not a reserved keyword."""
        if self.kind == IDENT:
            return True
        return self.kind == WORD and self.text.upper() not in RESERVED

    @property
    def is_operand(self) -> bool:
        """Something that can end an expression: name, literal, value word, ')' or '*'."""
        if self.kind in (IDENT, STRING, NUMBER):
            return True
        if self.kind == WORD:
            return self.text.upper() not in RESERVED or self.text.upper() in VALUE_WORDS
        return self.text in (")", "*")


@dataclass
class LexResult:
    tokens: list[Token] = field(default_factory=list)
    issues: list[str] = field(default_factory=list)


def lex(sql: str) -> LexResult:
    """Split *sql* into tokens, tracking depth and lexical issues."""
    result = LexResult()
    i, n = 0, len(sql)
    depth = 0
    # one entry per open parenthesis: was it opened by a FROM-taking function?
    opener_stack: list[bool] = []

    def emit(text: str, kind: str, pos: int, tok_depth: int) -> None:
        result.tokens.append(Token(text, kind, tok_depth, pos, any(opener_stack)))

    while i < n:
        ch = sql[i]

        if ch.isspace():
            i += 1
            continue

        if sql.startswith("--", i):
            nl = sql.find("\n", i)
            i = n if nl == -1 else nl + 1
            continue

        if sql.startswith("/*", i):
            end = sql.find("*/", i + 2)
            if end == -1:
                result.issues.append("A block comment (/* ... */) is never closed")
                break
            i = end + 2
            continue

        if ch == "'":
            j = i + 1
            while True:
                j = sql.find("'", j)
                if j == -1:
                    break
                if j + 1 < n and sql[j + 1] == "'":
                    j += 2
                    continue
                break
            if j == -1:
                result.issues.append(f"The string literal starting at position {i + 1} is never closed")
                break
            emit(sql[i + 1:j].replace("''", "'"), STRING, i, depth)
            i = j + 1
            continue

        if ch in ('"', "`"):
            j = sql.find(ch, i + 1)
            if j == -1:
                result.issues.append(f"The quoted identifier starting at position {i + 1} is never closed")
                break
            emit(sql[i + 1:j], IDENT, i, depth)
            i = j + 1
            continue

        m = _NUMBER_RE.match(sql, i)
        if m and (ch.isdigit() or (ch == "." and m.group(0) != ".")):
            emit(m.group(0), NUMBER, i, depth)
            i = m.end()
            continue

        m = _WORD_RE.match(sql, i)
        if m:
            emit(m.group(0), WORD, i, depth)
            i = m.end()
            continue

        if ch == "(":
            prev = result.tokens[-1] if result.tokens else None
            emit("(", SYMBOL, i, depth)
            opener_stack.append(bool(prev and prev.kind == WORD and prev.upper in FROM_FUNCTIONS))
            depth += 1
            i += 1
            continue

        if ch == ")":
            if depth == 0:
                result.issues.append(f"There is an unmatched ')' at position {i + 1}")
            else:
                depth -= 1
                opener_stack.pop()
            emit(")", SYMBOL, i, depth)
            i += 1
            continue

        for sym in _MULTI_SYMBOLS:
            if sql.startswith(sym, i):
                emit(sym, SYMBOL, i, depth)
                i += len(sym)
                break
        else:
            emit(ch, SYMBOL, i, depth)
            i += 1

    if depth > 0 and not result.issues:
        result.issues.append(
            f"Parentheses are unbalanced: {depth} '(' {'is' if depth == 1 else 'are'} never closed"
        )
    return result


def matching_paren(tokens: list[Token], open_idx: int) -> int:
    """Index of the ')' closing the '(' at *open_idx* (or len(tokens) if none)."""
    depth = tokens[open_idx].depth
    for j in range(open_idx + 1, len(tokens)):
        if tokens[j].text == ")" and tokens[j].kind == SYMBOL and tokens[j].depth == depth:
            return j
    return len(tokens)
