"""
Centralised application settings loaded from environment / .env file.

Connection parameters have no defaults: they are validated the first time a
database handle is requested, not at import time.
"""
from __future__ import annotations

from pathlib import Path
from functools import lru_cache

from pydantic_settings import BaseSettings
from dotenv import load_dotenv

from src.core.errors import ConfigurationError

# Load .env from project root (two levels up from this file)
_ENV_PATH = Path(__file__).resolve().parents[2] / ".env"
load_dotenv(_ENV_PATH)

DEFAULT_SCHEMA_URL = "https://storage.googleapis.com/tendly/query/RootCabsTableDetails%20(1).xlsx"


class Settings(BaseSettings):
    # ── Postgres ─────────────────────────────────────────
    postgres_user: str | None = None
    postgres_password: str | None = None
    postgres_db: str | None = None
    postgres_host: str | None = None
    postgres_port: int | None = None
    postgres_sslmode: str = "prefer"
    query_timeout_ms: int = 30_000

    # ── Saved-query store ────────────────────────────────
    saved_queries_url: str | None = None
    saved_queries_table: str = "saved_queries"

    # ── LLM ──────────────────────────────────────────────
    llm_provider: str = "mock"  # mock | openai | anthropic
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    anthropic_model: str = "claude-3-haiku-20240307"
    llm_timeout_seconds: float = 60.0
    llm_max_tokens: int = 1024

    # ── Schema source ────────────────────────────────────
    schema_url: str = DEFAULT_SCHEMA_URL
    schema_fetch_timeout: float = 30.0

    # ── App ──────────────────────────────────────────────
    api_port: int = 8000
    streamlit_port: int = 8501
    api_base_url: str = "http://localhost:8000"
    log_level: str = "INFO"

    def missing_connection_params(self) -> list[str]:
        """Names of the POSTGRES_* variables that are not set."""
        required = {
            "POSTGRES_USER": self.postgres_user,
            "POSTGRES_PASSWORD": self.postgres_password,
            "POSTGRES_DB": self.postgres_db,
            "POSTGRES_HOST": self.postgres_host,
            "POSTGRES_PORT": self.postgres_port,
        }
        return [name for name, value in required.items() if value in (None, "")]

    @property
    def database_url(self) -> str:
        missing = self.missing_connection_params()
        if missing:
            raise ConfigurationError(
                "Database connection is not configured. "
                f"Set {', '.join(missing)} in your .env file or environment."
            )
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    return Settings()
