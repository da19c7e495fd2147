"""
Stage 2 of verification -- every table and column a query references must
exist in the supplied schema.

Resolution rules:
  - FROM / JOIN / INTO / UPDATE targets are tables; CTE names, subqueries and
    set-returning functions are derived sources whose columns are unknown.
  - ``alias.column`` is checked against the aliased table.
  - An unqualified column must exist in at least one referenced schema table,
    unless it is an output alias (``AS x``, implicit aliases, CTE column
    lists).  When the query references no schema table at all, unqualified
    columns are not checked.
"""
from __future__ import annotations

from dataclasses import dataclass

from src.checks.sql_tokens import (
    IDENT,
    STRING,
    SYMBOL,
    VALUE_WORDS,
    WORD,
    Token,
    lex,
    matching_paren,
)
from src.schema.description import SchemaDescription, SchemaTable
from src.core.logging import get_logger

logger = get_logger(__name__)

_SOURCE_KEYWORDS = {"FROM", "JOIN", "INTO", "UPDATE"}
_SOURCE_PREFIXES = {"LATERAL", "ONLY"}


@dataclass
class _Source:
    name: str
    table: SchemaTable | None  # None for CTEs, subqueries and unknown tables


def _norm(text: str) -> str:
    return text.strip().lower()


def _opening_paren(tokens: list[Token], close_idx: int) -> int:
    depth = tokens[close_idx].depth
    for j in range(close_idx - 1, -1, -1):
        if tokens[j].text == "(" and tokens[j].kind == SYMBOL and tokens[j].depth == depth:
            return j
    return -1


def _names_in_parens(tokens: list[Token], open_idx: int, close_idx: int) -> list[int]:
    return [k for k in range(open_idx + 1, close_idx) if tokens[k].kind in (WORD, IDENT)]


class _ReferenceScan:
    """Two-pass scan: collect sources and aliases, then check column references."""

    def __init__(self, tokens: list[Token], schema: SchemaDescription):
        self.tokens = tokens
        self.schema = schema
        self.cte_names: set[str] = set()
        self.sources: list[_Source] = []
        self.aliases: dict[str, _Source] = {}
        self.column_aliases: set[str] = set()
        self.consumed: set[int] = set()
        self.issues: list[str] = []

    # ── pass 1 ───────────────────────────────────────

    def collect_ctes(self) -> None:
        toks = self.tokens
        for i, t in enumerate(toks):
            if not (t.is_word("AS") and i + 1 < len(toks) and toks[i + 1].text == "(" and i >= 1):
                continue
            j = i - 1
            if toks[j].text == ")":
                open_idx = _opening_paren(toks, j)
                if open_idx <= 0:
                    continue
                for k in _names_in_parens(toks, open_idx, j):
                    self.column_aliases.add(_norm(toks[k].text))
                    self.consumed.add(k)
                j = open_idx - 1
            name_tok = toks[j]
            before = toks[j - 1] if j >= 1 else None
            if name_tok.is_name and before is not None and (
                before.is_word("WITH", "RECURSIVE") or before.text == ","
            ):
                self.cte_names.add(_norm(name_tok.text))
                self.consumed.add(j)

    def collect_sources(self) -> None:
        # keep scanning inside subqueries: their FROM clauses have sources too
        for i, t in enumerate(self.tokens):
            if t.kind == WORD and t.upper in _SOURCE_KEYWORDS and not t.in_from_function:
                self._read_source_list(i + 1, allow_list=t.upper == "FROM")

    def _register(self, source: _Source, *names: str) -> None:
        self.sources.append(source)
        for name in names:
            if name:
                self.aliases[_norm(name)] = source

    def _read_source_list(self, j: int, allow_list: bool) -> int:
        toks = self.tokens
        n = len(toks)
        while j < n:
            while j < n and toks[j].is_word(*_SOURCE_PREFIXES):
                j += 1
            if j >= n:
                return j

            tok = toks[j]
            names: list[str] = []
            if tok.text == "(":
                j = matching_paren(toks, j) + 1
                source = _Source(name="(subquery)", table=None)
            elif tok.is_name:
                parts = [tok.text]
                self.consumed.add(j)
                while j + 2 < n and toks[j + 1].text == "." and toks[j + 2].is_name:
                    parts.append(toks[j + 2].text)
                    self.consumed.update({j + 1, j + 2})
                    j += 2
                j += 1
                full = ".".join(parts)
                if j < n and toks[j].text == "(":
                    # set-returning function, e.g. generate_series(1, 3)
                    j = matching_paren(toks, j) + 1
                    source = _Source(name=full, table=None)
                elif len(parts) == 1 and _norm(full) in self.cte_names:
                    source = _Source(name=full, table=None)
                else:
                    table = self.schema.table(full)
                    if table is None:
                        self.issues.append(f"Table '{full}' does not exist in the supplied schema")
                    source = _Source(name=full, table=table)
                names.extend([full, parts[-1]])
            else:
                return j

            if j < n and toks[j].is_word("AS"):
                j += 1
            if j < n and toks[j].is_name and not (j + 1 < n and toks[j + 1].text == "."):
                names.append(toks[j].text)
                self.consumed.add(j)
                j += 1
                if j < n and toks[j].text == "(":
                    close = matching_paren(toks, j)
                    for k in _names_in_parens(toks, j, close):
                        self.column_aliases.add(_norm(toks[k].text))
                        self.consumed.add(k)
                    j = close + 1

            self._register(source, *names)

            if allow_list and j < n and toks[j].text == ",":
                j += 1
                continue
            return j
        return j

    def collect_column_aliases(self) -> None:
        toks = self.tokens
        for i, t in enumerate(toks):
            if i in self.consumed or not t.is_name:
                continue
            prev = toks[i - 1] if i > 0 else None
            nxt = toks[i + 1] if i + 1 < len(toks) else None
            if nxt is not None and nxt.text in ("(", "."):
                continue
            if prev is not None and prev.is_word("AS"):
                self.column_aliases.add(_norm(t.text))
            elif prev is not None and self._is_implicit_alias_slot(prev):
                self.column_aliases.add(_norm(t.text))

    @staticmethod
    def _is_implicit_alias_slot(prev: Token) -> bool:
        if prev.is_word("END"):
            return True
        if prev.text == "*" or (prev.kind == WORD and prev.upper in VALUE_WORDS):
            return False
        return prev.is_operand

    # ── pass 2 ───────────────────────────────────────

    def check_columns(self) -> None:
        toks = self.tokens
        n = len(toks)
        real_tables = [s.table for s in self.sources if s.table is not None]
        i = 0
        while i < n:
            t = toks[i]
            if i in self.consumed or not t.is_name or (t.kind == WORD and t.upper in VALUE_WORDS):
                i += 1
                continue
            prev = toks[i - 1] if i > 0 else None
            nxt = toks[i + 1] if i + 1 < n else None

            if nxt is not None and nxt.text == "(":
                i += 1
                continue
            if prev is not None and (prev.text in ("::", ":") or prev.is_word("AS")):
                i += 1
                continue
            if t.kind == WORD and nxt is not None and nxt.kind == STRING:
                # typed literal: DATE '2024-01-01'
                i += 1
                continue
            if t.in_from_function and nxt is not None and (nxt.is_word("FROM") or nxt.kind == STRING):
                # EXTRACT(YEAR FROM x), TRIM(BOTH ' ' FROM x)
                i += 1
                continue

            if nxt is not None and nxt.text == ".":
                i = self._check_qualified(i)
                continue

            name = _norm(t.text)
            if (
                name not in self.column_aliases
                and name not in self.aliases
                and name not in self.cte_names
                and real_tables
                and not any(tbl.has_field(t.text) for tbl in real_tables)
            ):
                tables = ", ".join(f"'{tbl.name}'" for tbl in dict.fromkeys(real_tables))
                self.issues.append(f"Column '{t.text}' does not exist in table {tables}")
            i += 1

    def _check_qualified(self, i: int) -> int:
        toks = self.tokens
        n = len(toks)
        parts = [toks[i].text]
        j = i
        while j + 2 < n and toks[j + 1].text == "." and (toks[j + 2].is_name or toks[j + 2].text == "*"):
            parts.append(toks[j + 2].text)
            j += 2
        end = j + 1
        if end < n and toks[end].text == "(":
            return end  # schema-qualified function call
        if len(parts) < 2:
            return end

        qualifier, column = ".".join(parts[:-1]), parts[-1]
        source = self.aliases.get(_norm(qualifier)) or self.aliases.get(_norm(parts[-2]))
        table = source.table if source is not None else self.schema.table(qualifier)
        if source is None and table is None:
            self.issues.append(f"Table or alias '{qualifier}' is not defined in the query")
        elif table is not None and column != "*" and not table.has_field(column):
            self.issues.append(f"Column '{column}' does not exist in table '{table.name}'")
        return end


def check_references(sql: str, schema: SchemaDescription) -> list[str]:
    """Return missing-table / missing-column problems (empty list = all found)."""
    lexed = lex(sql)
    if lexed.issues or not schema:
        return []
    scan = _ReferenceScan(lexed.tokens, schema)
    scan.collect_ctes()
    scan.collect_sources()
    scan.collect_column_aliases()
    scan.check_columns()
    issues = list(dict.fromkeys(scan.issues))
    if issues:
        logger.info("Schema reference issues: %s", issues)
    return issues
