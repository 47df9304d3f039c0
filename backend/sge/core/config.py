"""
config.py — Centralized Application Configuration Loader

Purpose:
- Define a single source of truth for application settings.
- Load and validate environment variables from `.env` or OS environment.

Settings groups:
- Runtime (environment label, log level, listen port)
- Supabase (project URL, public key, service role key, optional JWT secret)
- LLM (OpenAI key, model, timeout)
- CORS allow list

This module does NOT:
- Open any client connections (see core/supabase.py).
- Make external API calls.
"""

from pathlib import Path
from typing import Any, List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# config.py is at: backend/sge/core/config.py
# .env should be at: backend/.env
_CONFIG_DIR = Path(__file__).parent  # backend/sge/core
_BACKEND_DIR = _CONFIG_DIR.parent.parent  # backend
_ENV_FILE = _BACKEND_DIR / ".env"

if _ENV_FILE.exists():
    _ENV_FILE_PATH = str(_ENV_FILE.resolve())
else:
    # pydantic will look in CWD
    _ENV_FILE_PATH = ".env"


class Settings(BaseSettings):
    """
    Settings container for the SGE backend.

    Nothing here is required at import time. Endpoints that need Supabase or
    the LLM raise an upstream error when the matching keys are empty.
    """

    # Runtime
    ENVIRONMENT: str = Field(
        "development",
        description="Deployment label reported by the health endpoints",
    )
    LOG_LEVEL: str = Field(
        "INFO",
        description="Root log level (DEBUG, INFO, WARNING, ERROR)",
    )
    PORT: int = Field(
        3001,
        description="Port uvicorn listens on when started via `python -m sge.main`",
    )

    # Supabase (identity provider + hosted Postgres)
    SUPABASE_URL: str = Field(
        "",
        description="Supabase project URL",
    )
    SUPABASE_KEY: str = Field(
        "",
        description="Supabase public (anon) key, used for per-request clients under RLS",
    )
    SUPABASE_SERVICE_ROLE_KEY: str = Field(
        "",
        description="Supabase service role key; bypasses RLS, used by onboarding only",
    )
    SUPABASE_JWT_SECRET: str = Field(
        "",
        description="Project JWT secret. When set, bearer tokens are verified locally",
    )

    # LLM API - chat replies
    OPENAI_API_KEY: str = Field(
        "",
        description="OpenAI API key for chat replies (empty means echo fallback only)",
    )
    OPENAI_MODEL: str = Field(
        "gpt-4o-mini",
        description="OpenAI model used for chat replies",
    )
    LLM_TIMEOUT_SECONDS: int = Field(
        30,
        description="Timeout for LLM API calls (seconds)",
    )
    LLM_MAX_RETRIES: int = Field(
        0,
        description="SDK-level retries for LLM API calls (0: fail fast into the echo fallback)",
    )

    # CORS
    ALLOWED_ORIGINS: str = Field(
        "http://localhost:3000",
        description="Comma-separated list of origins allowed to call the API",
    )

    @field_validator(
        "SUPABASE_URL",
        "SUPABASE_KEY",
        "SUPABASE_SERVICE_ROLE_KEY",
        "SUPABASE_JWT_SECRET",
        "OPENAI_API_KEY",
        mode="before",
    )
    @classmethod
    def strip_secret(cls, v: Any) -> str:
        """Strip whitespace from URLs and keys."""
        if isinstance(v, str):
            return v.strip()
        return v or ""

    @property
    def allowed_origins(self) -> List[str]:
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]

    @property
    def supabase_configured(self) -> bool:
        return bool(self.SUPABASE_URL and self.SUPABASE_KEY)

    @property
    def llm_configured(self) -> bool:
        return bool(self.OPENAI_API_KEY)

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE_PATH,
        env_file_encoding="utf-8",
        extra="ignore",
    )


# Singleton pattern — settings imported anywhere will reference same object.
settings = Settings()
