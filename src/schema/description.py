"""
SchemaDescription -- the flat table/field listing every downstream step
is grounded on.

Two text shapes are understood by `parse_schema_text`:

  Table: drivers              drivers(age:int, name:text)
  Columns:
  - age: Driver age in years
  - name: Full name

`SchemaDescription.to_text()` always emits the first (block) shape.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field

_TABLE_HEADER_RE = re.compile(r"^\s*table\s*:\s*(.+?)\s*$", re.IGNORECASE)
_COLUMNS_HEADER_RE = re.compile(r"^\s*columns\s*:\s*$", re.IGNORECASE)
_FIELD_LINE_RE = re.compile(r"^\s*[-*]\s*(.+?)\s*(?::\s*(.*))?$")
_COMPACT_RE = re.compile(r"^\s*([\w.\"]+)\s*\(([^)]*)\)\s*;?\s*$")

NO_DESCRIPTION = "No description"


@dataclass(frozen=True)
class SchemaField:
    name: str
    description: str = NO_DESCRIPTION


@dataclass(frozen=True)
class SchemaTable:
    name: str
    fields: tuple[SchemaField, ...] = field(default_factory=tuple)

    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    def has_field(self, name: str) -> bool:
        target = _norm(name)
        return any(_norm(f.name) == target for f in self.fields)


@dataclass(frozen=True)
class SchemaDescription:
    """Ordered, immutable collection of tables."""

    tables: tuple[SchemaTable, ...] = field(default_factory=tuple)

    def __bool__(self) -> bool:
        return bool(self.tables)

    def table(self, name: str) -> SchemaTable | None:
        """Case-insensitive lookup; a schema-qualified name matches on its last part."""
        target = _norm(name)
        short = target.rsplit(".", 1)[-1]
        for t in self.tables:
            tn = _norm(t.name)
            if tn == target or tn == short or tn.rsplit(".", 1)[-1] == short:
                return t
        return None

    def table_names(self) -> list[str]:
        return [t.name for t in self.tables]

    def all_field_names(self) -> set[str]:
        return {_norm(f.name) for t in self.tables for f in t.fields}

    def to_text(self) -> str:
        blocks: list[str] = []
        for t in self.tables:
            lines = [f"Table: {t.name}", "Columns:"]
            lines.extend(f"- {f.name}: {f.description}" for f in t.fields)
            blocks.append("\n".join(lines))
        return "\n\n".join(blocks)


def _norm(name: str) -> str:
    return name.strip().strip('"').strip("`").lower()


def build_schema(tables: list[tuple[str, list[tuple[str, str]]]]) -> SchemaDescription:
    """Build a SchemaDescription from (table, [(field, description), ...]) pairs.

    Blank field names are skipped and tables left with no fields are dropped.
    """
    built: list[SchemaTable] = []
    for table_name, pairs in tables:
        table_name = (table_name or "").strip()
        if not table_name:
            continue
        fields = tuple(
            SchemaField(name=f.strip(), description=(d or "").strip() or NO_DESCRIPTION)
            for f, d in pairs
            if f and f.strip()
        )
        if fields:
            built.append(SchemaTable(name=table_name, fields=fields))
    return SchemaDescription(tables=tuple(built))


def parse_schema_text(text: str | None) -> SchemaDescription:
    """Parse schema text (block or compact shape) back into a SchemaDescription.

    Unrecognised lines are ignored, so free-form notes around the listing
    do no harm.
    """
    if not text or not text.strip():
        return SchemaDescription()

    tables: list[tuple[str, list[tuple[str, str]]]] = []
    current: list[tuple[str, str]] | None = None

    for raw_line in text.splitlines():
        line = raw_line.rstrip()
        if not line.strip():
            continue

        m = _TABLE_HEADER_RE.match(line)
        if m:
            current = []
            tables.append((m.group(1), current))
            continue

        if _COLUMNS_HEADER_RE.match(line):
            continue

        m = _COMPACT_RE.match(line)
        if m:
            pairs: list[tuple[str, str]] = []
            for part in m.group(2).split(","):
                name, _, col_type = part.partition(":")
                name = name.strip()
                if name:
                    pairs.append((name, col_type.strip() or NO_DESCRIPTION))
            tables.append((m.group(1).strip('"'), pairs))
            current = None
            continue

        m = _FIELD_LINE_RE.match(line)
        if m and current is not None:
            current.append((m.group(1), m.group(2) or ""))

    return build_schema(tables)


def schema_text_of(value: str | SchemaDescription | None) -> str:
    """Schema input as text, whichever form the caller passed."""
    if isinstance(value, SchemaDescription):
        return value.to_text()
    return value or ""
