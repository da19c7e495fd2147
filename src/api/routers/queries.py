"""POST /queries/* -- generation, execution, requalification, verification."""
from __future__ import annotations

from fastapi import APIRouter
from pydantic import BaseModel, Field

from src.copilot.enhancer import enhance_prompt
from src.copilot.models import (
    DashboardQueryResult,
    DualQueryResult,
    EnhancedPrompt,
    GenerationRequest,
    VerificationRequest,
    VerificationResult,
)
from src.copilot.requalifier import derive_dashboard
from src.copilot.service import CopilotRun, QueryRunResult, generate_and_run, run_raw_and_derive, verify_query
from src.copilot.sql_generator import generate
from src.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


class PromptRequest(GenerationRequest):
    mode: str | None = Field(None, description="mock | openai | anthropic (default: LLM_PROVIDER)")
    execute: bool = Field(True, description="If true, run both queries and return rows")


class RunRequest(BaseModel):
    sql_query: str = Field(..., description="Report query to run")
    schema_text: str | None = Field(None, description="Schema used to derive the dashboard query")
    mode: str | None = None


class DashboardRequest(BaseModel):
    schema_text: str
    report_query: str
    mode: str | None = None


class VerifyRequest(VerificationRequest):
    mode: str | None = None


class EnhanceRequest(GenerationRequest):
    mode: str | None = None


class ColumnItem(BaseModel):
    name: str
    kind: str


class ResultSet(BaseModel):
    sql: str
    columns: list[ColumnItem]
    rows: list[dict]
    latency_ms: int


class RunResponse(BaseModel):
    report_query: str
    dashboard_query: str | None
    report: ResultSet | None
    dashboard: ResultSet | None
    dashboard_error: str | None = None
    latency_ms: int = 0


def _result_set(result: QueryRunResult | None) -> ResultSet | None:
    if result is None:
        return None
    return ResultSet(
        sql=result.sql,
        columns=[ColumnItem(name=c.name, kind=c.kind) for c in result.columns],
        rows=result.rows,
        latency_ms=result.latency_ms,
    )


def _run_response(run: CopilotRun) -> RunResponse:
    return RunResponse(
        report_query=run.report_query,
        dashboard_query=run.dashboard_query,
        report=_result_set(run.report),
        dashboard=_result_set(run.dashboard),
        dashboard_error=run.dashboard_error,
        latency_ms=run.latency_ms,
    )


@router.post("/generate", response_model=RunResponse)
def generate_endpoint(req: PromptRequest):
    """Prompt -> report + dashboard queries, executed as a pair unless execute=false."""
    if not req.execute:
        queries: DualQueryResult = generate(req.schema_text, req.prompt, mode=req.mode)
        return RunResponse(
            report_query=queries.report_query,
            dashboard_query=queries.dashboard_query,
            report=None,
            dashboard=None,
        )
    return _run_response(generate_and_run(req.schema_text, req.prompt, mode=req.mode))


@router.post("/run", response_model=RunResponse)
def run_endpoint(req: RunRequest):
    """Run a hand-written report query with a derived dashboard query."""
    return _run_response(run_raw_and_derive(req.schema_text, req.sql_query, mode=req.mode))


@router.post("/dashboard", response_model=DashboardQueryResult)
def dashboard_endpoint(req: DashboardRequest):
    """Derive (without running) the dashboard query for a report query."""
    return derive_dashboard(req.schema_text, req.report_query, mode=req.mode)


@router.post("/verify", response_model=VerificationResult)
def verify_endpoint(req: VerifyRequest):
    """Two-stage verification; an invalid query is a 200 with is_valid=false."""
    return verify_query(req.sql_query, schema=req.schema_text, mode=req.mode)


@router.post("/enhance", response_model=EnhancedPrompt)
def enhance_endpoint(req: EnhanceRequest):
    return enhance_prompt(req.schema_text, req.prompt, mode=req.mode)
