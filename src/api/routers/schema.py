"""POST /schema/upload, /schema/fetch, /schema/parse -- schema sources."""
from __future__ import annotations

from fastapi import APIRouter, File, UploadFile
from pydantic import BaseModel, Field

from src.schema.description import SchemaDescription, parse_schema_text
from src.schema.loader import WORKBOOK_EXTENSIONS, fetch_schema_from_url, load_schema_workbook
from src.core.errors import SchemaSourceError
from src.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


class FieldItem(BaseModel):
    name: str
    description: str


class TableItem(BaseModel):
    name: str
    fields: list[FieldItem]


class SchemaResponse(BaseModel):
    schema_text: str
    tables: list[TableItem]


class FetchRequest(BaseModel):
    url: str | None = Field(None, description="Workbook URL; defaults to SCHEMA_URL")


class ParseRequest(BaseModel):
    schema_text: str = Field(..., description="Schema text in block or compact form")


def _to_response(schema: SchemaDescription) -> SchemaResponse:
    return SchemaResponse(
        schema_text=schema.to_text(),
        tables=[
            TableItem(
                name=t.name,
                fields=[FieldItem(name=f.name, description=f.description) for f in t.fields],
            )
            for t in schema.tables
        ],
    )


@router.post("/upload", response_model=SchemaResponse)
async def upload_schema(file: UploadFile = File(...)):
    """Normalize an uploaded Excel workbook (one sheet per table)."""
    content = await file.read()
    logger.info("Schema upload: %s (%d bytes)", file.filename, len(content))
    if file.filename and not file.filename.lower().endswith(WORKBOOK_EXTENSIONS):
        raise SchemaSourceError(
            f"Unsupported workbook type: {file.filename}. Upload an .xlsx file."
        )
    if not content:
        raise SchemaSourceError("The uploaded file is empty.")
    return _to_response(load_schema_workbook(content))


@router.post("/fetch", response_model=SchemaResponse)
def fetch_schema(req: FetchRequest):
    """Download and normalize a workbook from a URL."""
    return _to_response(fetch_schema_from_url(req.url))


@router.post("/parse", response_model=SchemaResponse)
def parse_schema(req: ParseRequest):
    """Parse schema text into tables (used to check a hand-written schema)."""
    schema = parse_schema_text(req.schema_text)
    if not schema:
        raise SchemaSourceError(
            "No tables found. Use 'Table: name' / '- field: description' blocks "
            "or the compact form name(col:type, ...)."
        )
    return _to_response(schema)
