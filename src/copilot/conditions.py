"""
Rule-based condition and aggregate extraction for mock mode.

Turns a question such as "Count the drivers who have rating 3 or above"
into a `Condition` (drivers.rating >= 3, labelled "Rating >= 3") and an
`Aggregate` (COUNT(*)), using only names from the schema.
"""
from __future__ import annotations

import re
from dataclasses import dataclass

from src.core.errors import GenerationError
from src.schema.description import SchemaDescription, SchemaTable
from src.core.logging import get_logger

logger = get_logger(__name__)

_NUM = r"(-?\d+(?:\.\d+)?)"
_PLAIN_IDENT_RE = re.compile(r"^[a-z_][a-z0-9_]*$")
_QUOTED_NUMBER_RE = re.compile(r"['\"](-?\d+(?:\.\d+)?)['\"]")

# ── Comparator phrases (first matching pattern wins) ─────

_RANGE_PATTERNS: list[str] = [
    rf"between\s+{_NUM}\s+(?:and|to|-)\s+{_NUM}",
    rf"from\s+{_NUM}\s+to\s+{_NUM}",
]

_COMPARATOR_PATTERNS: list[tuple[str, str]] = [
    (rf"{_NUM}\s+or\s+(?:above|more|higher|greater|over)", ">="),
    (rf"{_NUM}\s+or\s+(?:below|less|lower|fewer|under)", "<="),
    (rf"(?:at\s+least|no\s+less\s+than|not\s+less\s+than)\s+{_NUM}", ">="),
    (rf"(?:at\s+most|no\s+more\s+than|not\s+more\s+than|up\s+to)\s+{_NUM}", "<="),
    (rf"(?:greater|more|higher|older|larger|bigger|longer)\s+than\s+{_NUM}", ">"),
    (rf"(?:less|fewer|lower|younger|smaller|shorter)\s+than\s+{_NUM}", "<"),
    (rf"(?:above|over|exceeding|exceeds)\s+{_NUM}", ">"),
    (rf"(?:below|under)\s+{_NUM}", "<"),
    (rf"(>=|<=|!=|<>|=|>|<)\s*{_NUM}", "symbol"),
    (rf"(?:not\s+equal(?:\s+to)?|other\s+than)\s+{_NUM}", "!="),
    (rf"(?:equal\s+to|equals|exactly)\s+{_NUM}", "="),
]

_AGE_HINT_RE = re.compile(r"\b(older|younger)\b")

# ── "<column> is <value>" values ─────────────────────────

# words that start the next clause of a question
_CLAUSE_WORDS = (
    r"(?:and|or|but|who|whose|which|that|with|where|in|on|at|for|from|"
    r"sorted|ordered|order|grouped|group|by|having|limit|than|please)"
)
_VALUE = (
    r"(?:'(?P<single>.*?)'(?=[\s,;:?!).]|$)"
    r'|"(?P<double>.*?)"(?=[\s,;:?!).]|$)'
    rf"|(?P<bare>[\w@][\w@.\-']*(?:\s+(?!{_CLAUSE_WORDS}\b)[\w@][\w@.\-']*)*))"
)

_AGGREGATE_KEYWORDS: dict[str, list[str]] = {
    "SUM": ["total", "sum of", "sum"],
    "AVG": ["average", "avg", "mean"],
    "MAX": ["maximum", "max", "highest", "largest"],
    "MIN": ["minimum", "min", "lowest", "smallest"],
}


# ── Value objects ────────────────────────────────────────

def sql_identifier(name: str) -> str:
    """Quote *name* unless it is a plain lower-case identifier."""
    if _PLAIN_IDENT_RE.match(name):
        return name
    return '"' + name.replace('"', '""') + '"'


def sql_literal(value: str) -> str:
    """Render *value* as a SQL number or a quoted string."""
    if re.fullmatch(_NUM, value):
        return value
    return "'" + value.replace("'", "''") + "'"


def column_title(name: str) -> str:
    """driver_rating -> Driver Rating"""
    words = re.split(r"[_\s]+", name.strip())
    return " ".join(w[:1].upper() + w[1:] for w in words if w)


@dataclass(frozen=True)
class Condition:
    table: SchemaTable
    column: str
    op: str
    value: str
    upper: str | None = None  # second bound for BETWEEN

    @property
    def sql(self) -> str:
        col = sql_identifier(self.column)
        if self.op == "BETWEEN":
            return f"{col} BETWEEN {sql_literal(self.value)} AND {sql_literal(self.upper or '')}"
        return f"{col} {self.op} {sql_literal(self.value)}"

    @property
    def label(self) -> str:
        title = column_title(self.column)
        if self.op == "BETWEEN":
            return f"{title} between {self.value} and {self.upper}"
        return f"{title} {self.op} {self.value}"


@dataclass(frozen=True)
class Aggregate:
    func: str = "COUNT"
    column: str | None = None

    @property
    def sql(self) -> str:
        if self.column is None:
            return f"{self.func}(*)"
        return f"{self.func}({sql_identifier(self.column)})"


# ── Mentions ─────────────────────────────────────────────

def _mention_pattern(name: str) -> re.Pattern:
    variants = {name.lower(), name.lower().replace("_", " ")}
    alternatives = "|".join(re.escape(v) for v in sorted(variants, key=len, reverse=True))
    return re.compile(rf"\b(?:{alternatives})s?\b")


def _column_mentions(text: str, schema: SchemaDescription) -> list[tuple[int, SchemaTable, str]]:
    """(position, table, column) for every column named in *text*."""
    found = []
    for table in schema.tables:
        for col in table.field_names():
            for m in _mention_pattern(col).finditer(text):
                found.append((m.start(), table, col))
    found.sort(key=lambda item: item[0])
    return found


def _mentioned_tables(text: str, schema: SchemaDescription) -> list[SchemaTable]:
    tables = []
    for table in schema.tables:
        short = table.name.rsplit(".", 1)[-1]
        singular = short[:-1] if short.lower().endswith("s") else short
        if _mention_pattern(short).search(text) or _mention_pattern(singular).search(text):
            tables.append(table)
    return tables


def _age_column(schema: SchemaDescription, preferred: list[SchemaTable]) -> tuple[SchemaTable, str] | None:
    for table in preferred + [t for t in schema.tables if t not in preferred]:
        for col in table.field_names():
            lowered = col.lower()
            if lowered == "age" or lowered.endswith("_age") or lowered.startswith("age_"):
                return table, col
    return None


def _pick_column(
    mentions: list[tuple[int, SchemaTable, str]],
    at: int,
    preferred: list[SchemaTable],
) -> tuple[SchemaTable, str] | None:
    """The column mentioned closest before *at* (else closest after)."""
    if not mentions:
        return None
    before = [m for m in mentions if m[0] <= at]
    candidates = before or mentions
    best_pos = max(m[0] for m in candidates) if before else min(m[0] for m in candidates)
    at_pos = [m for m in candidates if m[0] == best_pos]
    for pos, table, col in at_pos:
        if table in preferred:
            return table, col
    return at_pos[0][1], at_pos[0][2]


def _normalise(prompt: str) -> str:
    text = prompt.lower()
    return _QUOTED_NUMBER_RE.sub(r"\1", text)


# ── Public API ───────────────────────────────────────────

def extract_condition(prompt: str, schema: SchemaDescription) -> Condition:
    """Find the single filter condition a question implies.

    Raises
    ------
    GenerationError
        If no comparison, or no schema column for it, can be identified.
    """
    text = _normalise(prompt)
    mentions = _column_mentions(text, schema)
    preferred = _mentioned_tables(text, schema)

    def resolve(at: int, phrase: str) -> tuple[SchemaTable, str]:
        # "older than" / "younger than" always mean the age column
        picked = _age_column(schema, preferred) if _AGE_HINT_RE.search(phrase) else None
        if picked is None:
            picked = _pick_column(mentions, at, preferred)
        if picked is None:
            raise GenerationError(
                "Could not tell which column the condition applies to. "
                "Name a column from the schema in the prompt."
            )
        return picked

    for pattern in _RANGE_PATTERNS:
        m = re.search(pattern, text)
        if m:
            table, col = resolve(m.start(), m.group(0))
            low, high = m.group(1), m.group(2)
            return Condition(table=table, column=col, op="BETWEEN", value=low, upper=high)

    for pattern, op in _COMPARATOR_PATTERNS:
        m = re.search(pattern, text)
        if not m:
            continue
        if op == "symbol":
            op, value = m.group(1), m.group(2)
            op = "!=" if op == "<>" else op
        else:
            value = m.group(1)
        table, col = resolve(m.start(), m.group(0))
        return Condition(table=table, column=col, op=op, value=value)

    # "<column> is <value>" / "<column> is not <value>" / "<column> 5"
    cased = _QUOTED_NUMBER_RE.sub(r"\1", prompt)  # string values keep their case
    for _, table, col in mentions:
        mention = _mention_pattern(col).pattern
        m = re.search(
            rf"{mention}\s+(?:is|=|equals|equal\s+to|of)\s+(not\s+)?{_VALUE}",
            cased,
            re.IGNORECASE,
        )
        if m:
            if m.group("bare") is not None:
                value = m.group("bare").rstrip(".'")
            else:
                value = m.group("single") if m.group("single") is not None else m.group("double")
            if not value.strip():
                raise GenerationError(f"The value compared with '{col}' is empty.")
            return Condition(table=table, column=col, op="!=" if m.group(1) else "=", value=value)
        m = re.search(rf"{mention}\s+{_NUM}\b", text)
        if m:
            return Condition(table=table, column=col, op="=", value=m.group(1))

    raise GenerationError(
        "No filter condition could be identified in the prompt. "
        "State a condition such as 'age greater than 30'."
    )


def extract_aggregate(prompt: str, table: SchemaTable) -> Aggregate:
    """SUM / AVG / MAX / MIN of a column when the question asks for one, else COUNT(*)."""
    text = _normalise(prompt)
    best: tuple[int, Aggregate] | None = None
    for func, keywords in _AGGREGATE_KEYWORDS.items():
        for kw in keywords:
            for m in re.finditer(rf"\b{re.escape(kw)}\b", text):
                tail = text[m.end():]
                for col in table.field_names():
                    # "average age", "total of the fare", "max driver rating"
                    lead = rf"\s+(?:of\s+)?(?:the\s+)?(?:\w+\s+)?(?:{_mention_pattern(col).pattern})"
                    if re.match(lead, tail) and (best is None or m.start() < best[0]):
                        best = (m.start(), Aggregate(func=func, column=col))
    aggregate = best[1] if best else Aggregate()
    logger.info("Aggregate for prompt: %s", aggregate.sql)
    return aggregate


def describe_condition(condition_sql: str) -> str:
    """Human label for a SQL condition, e.g. 'age > 30' -> 'Age > 30'."""
    cond = " ".join(condition_sql.split())
    m = re.fullmatch(
        r"(?:[\w\"]+\.)?\"?(\w+)\"?\s+between\s+'?([^']+?)'?\s+and\s+'?([^']+?)'?",
        cond,
        re.IGNORECASE,
    )
    if m:
        return f"{column_title(m.group(1))} between {m.group(2)} and {m.group(3)}"
    m = re.fullmatch(r"(?:[\w\"]+\.)?\"?(\w+)\"?\s*(>=|<=|<>|!=|=|>|<)\s*'?([^']*?)'?", cond)
    if m:
        op = "!=" if m.group(2) == "<>" else m.group(2)
        return f"{column_title(m.group(1))} {op} {m.group(3)}"
    return cond if len(cond) <= 60 else cond[:57].rstrip() + "..."
