"""
Schema sources -- an uploaded Excel workbook or one fetched from a URL.

Both end up in `normalize_sheets`, so every source produces the same
SchemaDescription shape.
"""
from __future__ import annotations

import io
from pathlib import Path
from typing import BinaryIO

import httpx
import pandas as pd

from src.core.config import get_settings
from src.core.errors import SchemaSourceError
from src.schema.description import SchemaDescription
from src.schema.normalizer import normalize_sheets
from src.core.logging import get_logger

logger = get_logger(__name__)

# openpyxl is the only Excel engine installed
WORKBOOK_EXTENSIONS = (".xlsx",)


def load_schema_workbook(source: str | Path | bytes | BinaryIO) -> SchemaDescription:
    """Read every sheet of an Excel workbook and normalize it.

    *source* may be a file path, raw bytes, or a binary file object.
    """
    if isinstance(source, (bytes, bytearray)):
        source = io.BytesIO(source)
    try:
        sheets = pd.read_excel(source, sheet_name=None)
    except Exception as exc:
        logger.warning("Could not read schema workbook: %s", exc)
        raise SchemaSourceError(f"Failed to read the schema workbook: {exc}") from exc
    logger.info("Workbook loaded with %d sheets", len(sheets))
    return normalize_sheets(sheets)


def fetch_schema_from_url(
    url: str | None = None,
    client: httpx.Client | None = None,
) -> SchemaDescription:
    """Download a schema workbook and normalize it.

    Uses ``Settings.schema_url`` when *url* is omitted.
    """
    settings = get_settings()
    url = (url or settings.schema_url).strip()
    logger.info("Fetching schema workbook from %s", url)

    owns_client = client is None
    if client is None:
        client = httpx.Client(timeout=settings.schema_fetch_timeout, follow_redirects=True)
    try:
        response = client.get(url)
        response.raise_for_status()
    except httpx.HTTPError as exc:
        raise SchemaSourceError(f"Failed to download the schema workbook from {url}: {exc}") from exc
    finally:
        if owns_client:
            client.close()

    return load_schema_workbook(response.content)
