"""
Prompt enhancement -- rewrite a question so it names the schema's exact
table, column and condition before it is sent to generation.
"""
from __future__ import annotations

from src.copilot.conditions import extract_aggregate, extract_condition
from src.copilot.llm_client import resolve_provider
from src.copilot.models import EnhancedPrompt
from src.copilot.structured import complete_structured
from src.core.errors import GenerationError
from src.core.utils import require_text
from src.schema.description import SchemaDescription, parse_schema_text, schema_text_of
from src.core.logging import get_logger

logger = get_logger(__name__)

_AGGREGATE_WORDS = {"SUM": "total", "AVG": "average", "MIN": "minimum", "MAX": "maximum"}


def _enhance_mock(prompt: str, schema: SchemaDescription) -> EnhancedPrompt:
    if not schema:
        return EnhancedPrompt(
            enhanced_prompt=prompt,
            explanation="The schema description could not be read as a table listing, so the prompt was left unchanged.",
        )
    try:
        condition = extract_condition(prompt, schema)
    except GenerationError as exc:
        table = schema.tables[0]
        example = table.field_names()[0]
        return EnhancedPrompt(
            enhanced_prompt=(
                f"{prompt.rstrip('. ')} (use table {table.name}; state the column and "
                f"condition explicitly, e.g. {example} = <value>)"
            ),
            explanation=f"{exc} Available columns in {table.name}: {', '.join(table.field_names())}.",
        )

    aggregate = extract_aggregate(prompt, condition.table)
    if aggregate.column is None:
        measure = "the number of rows"
    else:
        measure = f"the {_AGGREGATE_WORDS.get(aggregate.func, aggregate.func.lower())} of {aggregate.column}"
    enhanced = (
        f"Show all rows of the {condition.table.name} table where {condition.sql}, "
        f"and compare {measure} matching '{condition.label}' with all other rows ('Others')."
    )
    explanation = (
        f"The prompt now names the exact table '{condition.table.name}' and column "
        f"'{condition.column}' from the schema and states the condition as {condition.sql}."
    )
    return EnhancedPrompt(enhanced_prompt=enhanced, explanation=explanation)


def enhance_prompt(
    schema: str | SchemaDescription,
    prompt: str,
    mode: str | None = None,
) -> EnhancedPrompt:
    """Return an improved version of *prompt* plus what changed.

    Raises
    ------
    InputValidationError
        If *schema* or *prompt* is blank.
    GenerationError
        If the completion backend returns nothing usable (LLM modes).
    """
    schema_text = require_text(schema_text_of(schema), "Schema description")
    prompt = require_text(prompt, "Prompt")
    provider = resolve_provider(mode)
    logger.info("Enhance[%s] | prompt=%s", provider, prompt[:120])

    if provider == "mock":
        parsed = schema if isinstance(schema, SchemaDescription) else parse_schema_text(schema_text)
        return _enhance_mock(prompt, parsed)
    return complete_structured(
        "enhance_prompt",
        EnhancedPrompt,
        provider=provider,
        schema=schema_text,
        prompt=prompt,
    )
