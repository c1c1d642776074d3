"""Application configuration.

Configuration is loaded once at process start from environment variables. For local
development, you can provide a `.env` file and set `ARTLENS_ENV_FILE` to point to it.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

OperatingMode = Literal["off", "shadow", "enrich"]


class Settings(BaseSettings):
    """ArtLens settings.

    All fields are environment-configurable. Prefix is `ARTLENS_`.
    """

    model_config = SettingsConfigDict(
        env_prefix="ARTLENS_",
        env_file=None,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core
    app_env: Literal["dev", "prod"] = Field(default="dev")
    log_level: str = Field(default="INFO")
    mode: OperatingMode = Field(default="enrich")

    # Identification model
    openai_api_key: str | None = Field(default=None)
    openai_base_url: str | None = Field(default=None)
    recognition_model: str = Field(default="gpt-4o")
    recognition_timeout_s: float = Field(default=30.0, ge=1.0, le=300.0)
    recognition_max_tokens: int = Field(default=500, ge=64, le=4096)
    recognition_temperature: float = Field(default=0.2, ge=0.0, le=2.0)

    # Facts draft (second, smaller model call)
    facts_model: str = Field(default="gpt-4o-mini")
    facts_draft_timeout_ms: int = Field(default=1800, ge=100, le=30000)
    facts_draft_min_ms: int = Field(default=400, ge=0, le=10000)

    # Evidence budget
    evidence_budget_ms: int = Field(default=2500, ge=0, le=60000)
    provider_timeout_ms: int = Field(default=1200, ge=50, le=30000)
    phase_a_budget_ms: int = Field(default=900, ge=0, le=60000)
    response_buffer_ms: int = Field(default=200, ge=0, le=10000)
    max_facts: int = Field(default=3, ge=1, le=5)
    wikimedia_languages: list[str] = Field(default_factory=lambda: ["en", "ru"])

    # Result cache
    cache_ttl_ms: int = Field(default=6 * 60 * 60 * 1000, ge=0)

    # Networking
    http_user_agent: str = Field(default="ArtLens/0.1 (+https://github.com/artlens/artlens)")

    # Trace recording (optional JSONL per request)
    trace_dir: Path | None = Field(default=None)


def load_settings() -> Settings:
    """Load settings from env.

    Returns:
        Settings: Parsed settings.
    """

    env_file_override = os.getenv("ARTLENS_ENV_FILE")
    if env_file_override:
        env_path = Path(env_file_override)
        return Settings(_env_file=env_path)

    default_env = Path.cwd() / ".env"
    if default_env.exists():
        return Settings(_env_file=default_env)

    return Settings()
