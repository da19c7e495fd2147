"""
FastAPI application entry-point.
"""
from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.api.routers import queries, saved, schema
from src.core.errors import (
    ConfigurationError,
    CopilotError,
    ExecutionError,
    GenerationError,
    InputValidationError,
    SchemaSourceError,
)
from src.core.logging import get_logger

logger = get_logger(__name__)

app = FastAPI(
    title="Dual-Query SQL Copilot",
    version="0.1.0",
    description="Natural language to report + dashboard SQL, with verification",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(schema.router, prefix="/schema", tags=["Schema"])
app.include_router(queries.router, prefix="/queries", tags=["Queries"])
app.include_router(saved.router, prefix="/saved", tags=["Saved queries"])


# ── Error mapping ────────────────────────────────────────

_STATUS_BY_ERROR: list[tuple[type[CopilotError], int]] = [
    (InputValidationError, 400),
    (SchemaSourceError, 400),
    (ExecutionError, 422),
    (GenerationError, 502),
    (ConfigurationError, 503),
]


def status_for(exc: CopilotError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 500


@app.exception_handler(CopilotError)
async def copilot_error_handler(request: Request, exc: CopilotError) -> JSONResponse:
    status = status_for(exc)
    logger.warning("%s %s -> %d %s: %s", request.method, request.url.path, status, exc.kind, exc)
    return JSONResponse(status_code=status, content={"error": exc.kind, "detail": str(exc)})


@app.get("/health")
def health():
    return {"status": "ok"}
