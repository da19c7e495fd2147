"""
Request / result models shared by the generation, requalification,
verification and enhancement services.

Result models double as the declared output shape of a structured
completion: a completion that does not validate against them is rejected.
"""
from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


def _non_blank(value: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValueError("must not be empty")
    return value


class GenerationRequest(BaseModel):
    """A schema description plus the natural-language question to answer."""

    schema_text: str = Field(..., description="Schema description text")
    prompt: str = Field(..., description="Natural-language question")


class DualQueryResult(BaseModel):
    """Report query + two-row dashboard query.  Both or neither."""

    report_query: str = Field(..., description="Row-level detail matching the condition")
    dashboard_query: str = Field(..., description="Two rows: condition label, then 'Others'")

    @field_validator("report_query", "dashboard_query")
    @classmethod
    def not_blank(cls, value: str) -> str:
        return _non_blank(value)


class DashboardQueryResult(BaseModel):
    dashboard_query: str = Field(..., description="Two rows: condition label, then 'Others'")

    @field_validator("dashboard_query")
    @classmethod
    def not_blank(cls, value: str) -> str:
        return _non_blank(value)


class VerificationRequest(BaseModel):
    sql_query: str
    schema_text: str | None = None


class VerificationResult(BaseModel):
    is_valid: bool
    explanation: str = Field(..., description="Two to three sentences; names the defect when invalid")
    issues: list[str] = Field(default_factory=list, description="Defects that made the query invalid")
    notes: list[str] = Field(default_factory=list, description="Performance commentary")


class ExplanationOutput(BaseModel):
    """What the model writes for a query that already passed both checks."""

    explanation: str

    @field_validator("explanation")
    @classmethod
    def not_blank(cls, value: str) -> str:
        return _non_blank(value)


class EnhancedPrompt(BaseModel):
    enhanced_prompt: str
    explanation: str = ""

    @field_validator("enhanced_prompt")
    @classmethod
    def not_blank(cls, value: str) -> str:
        return _non_blank(value)
