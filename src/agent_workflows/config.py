"""Centralised configuration loaded from environment / .env file."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from agent_workflows.models import FailurePolicy


class Settings(BaseSettings):
    """Root application settings – populated from env vars / .env."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Server ───────────────────────────────────────────────────────
    api_host: str = Field(default="0.0.0.0", validation_alias="API_HOST")
    api_port: int = Field(default=8080, validation_alias="API_PORT")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_json: bool = Field(default=False, validation_alias="LOG_JSON")
    log_agent_io: bool = Field(default=False, validation_alias="LOG_AGENT_IO")
    log_max_chars: int = Field(default=3000, validation_alias="LOG_MAX_CHARS")

    # ── Model endpoint ───────────────────────────────────────────────
    llm_endpoint: str = Field(default="http://localhost:8000/v1", validation_alias="LLM_ENDPOINT")
    llm_api_key: str = Field(default="", validation_alias="LLM_API_KEY")
    llm_model: str = Field(default="gpt-4o-mini", validation_alias="LLM_MODEL")
    llm_temperature: float = Field(default=0.2, validation_alias="LLM_TEMPERATURE")
    llm_max_tokens: int = Field(default=4096, validation_alias="LLM_MAX_TOKENS")
    json_mode: bool = Field(default=False, validation_alias="JSON_MODE")

    # ── Transport tuning ─────────────────────────────────────────────
    request_timeout_secs: float = Field(default=120.0, validation_alias="REQUEST_TIMEOUT_SECS")
    max_retries: int = Field(default=2, ge=0, validation_alias="MAX_RETRIES")
    retry_backoff_secs: float = Field(default=1.5, ge=0, validation_alias="RETRY_BACKOFF_SECS")

    # ── Workflow defaults ────────────────────────────────────────────
    call_timeout_secs: float = Field(default=180.0, ge=0, validation_alias="CALL_TIMEOUT_SECS")
    max_concurrency: int = Field(default=4, ge=1, validation_alias="MAX_CONCURRENCY")
    failure_policy: FailurePolicy = Field(default=FailurePolicy.FAIL_FAST, validation_alias="FAILURE_POLICY")
    max_iterations: int = Field(default=5, ge=1, validation_alias="MAX_ITERATIONS")


settings = Settings()
