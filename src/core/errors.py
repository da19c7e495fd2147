"""
Error taxonomy shared by every layer.

An invalid SQL query found by verification is NOT an error -- it is a normal
VerificationResult with ``is_valid=False``.
"""
from __future__ import annotations


class CopilotError(Exception):
    """Base class for all errors surfaced to the caller."""

    kind = "copilot_error"


class InputValidationError(CopilotError, ValueError):
    """Empty prompt / schema / query, caught before any backend call."""

    kind = "input_validation"


class GenerationError(CopilotError):
    """The completion backend produced no or partial output, or no condition
    could be derived for a dashboard query."""

    kind = "generation"


class ExecutionError(CopilotError):
    """The database rejected or failed to run a query."""

    kind = "execution"


class ConfigurationError(CopilotError, RuntimeError):
    """Missing connection parameters, credentials, or an unusable store."""

    kind = "configuration"


class SchemaSourceError(CopilotError):
    """A schema workbook could not be read, fetched, or held nothing usable."""

    kind = "schema_source"
