"""
Schema normalizer -- turns an uploaded workbook (sheet name -> rows with
"Field Name" / "Description" columns) into a SchemaDescription.
"""
from __future__ import annotations

from typing import Any, Mapping

import pandas as pd

from src.core.errors import SchemaSourceError
from src.schema.description import SchemaDescription, build_schema
from src.core.logging import get_logger

logger = get_logger(__name__)

FIELD_NAME_HEADERS = ("Field Name", "fieldName", "field_name")
DESCRIPTION_HEADERS = ("Description", "description")

_NO_SCHEMA_MSG = (
    "No valid schema data found in the workbook. Please check sheet names and "
    'column headers (e.g., "Field Name", "Description").'
)


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        pass
    return str(value).strip()


def _first_present(row: Mapping[str, Any], headers: tuple[str, ...]) -> str:
    for header in headers:
        text = _cell_text(row.get(header))
        if text:
            return text
    return ""


def normalize_sheets(sheets: Mapping[str, pd.DataFrame]) -> SchemaDescription:
    """Build a SchemaDescription from ``{sheet_name: DataFrame}``.

    Each sheet is a table.  Rows without a field name are skipped and sheets
    that end up with no fields are dropped.

    Raises
    ------
    SchemaSourceError
        If no sheet yields a usable table.
    """
    tables: list[tuple[str, list[tuple[str, str]]]] = []
    for sheet_name, df in sheets.items():
        if df is None or df.empty:
            continue
        df = df.rename(columns=lambda c: str(c).strip())
        pairs = []
        for row in df.to_dict(orient="records"):
            field = _first_present(row, FIELD_NAME_HEADERS)
            if field:
                pairs.append((field, _first_present(row, DESCRIPTION_HEADERS)))
        tables.append((str(sheet_name), pairs))

    schema = build_schema(tables)
    if not schema:
        raise SchemaSourceError(_NO_SCHEMA_MSG)
    logger.info(
        "Normalized schema: %d tables, %d fields",
        len(schema.tables), sum(len(t.fields) for t in schema.tables),
    )
    return schema
