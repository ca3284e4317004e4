"""Configuration for the workflow engine.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)

Settings objects can be built directly in tests, e.g.
`EngineSettings(max_steps=10)` or `EngineSettings(_env_file=path_to_env)`.
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Engine defaults applied to runs that do not override them.

    Environment variables:
    - AGENT_WORKFLOW_LOG_LEVEL
    - AGENT_WORKFLOW_LOG_JSON
    - AGENT_WORKFLOW_MAX_STEPS
    - AGENT_WORKFLOW_STRICT_ROUTING
    - AGENT_WORKFLOW_MAX_CONCURRENCY
    """

    log_level: str = Field(
        default="INFO",
        description="Root logging level",
    )
    log_json: bool = Field(
        default=True,
        description="Emit logs as JSON lines instead of plain text",
    )

    max_steps: int = Field(
        default=100,
        gt=0,
        description="Maximum executor invocations per run before it fails",
    )
    strict_routing: bool = Field(
        default=False,
        description="Fail the run when a droppable conditional edge matches nothing",
    )
    max_concurrency: int | None = Field(
        default=None,
        gt=0,
        description="Upper bound on simultaneously running invocations (None = unbounded)",
    )

    model_config = SettingsConfigDict(
        env_prefix="AGENT_WORKFLOW_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def _normalise_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level


class LLMConfig(BaseSettings):
    """Configuration for the model collaborator used by model-backed executors."""

    provider: str = Field(
        default="openai",
        description="Name of a provider registered with LLMFactory",
    )

    openai_api_key: str | None = Field(
        default=None,
        description="OpenAI API key",
    )
    openai_model: str = Field(
        default="gpt-4o-mini",
        description="OpenAI model to use",
    )
    openai_temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="Temperature for OpenAI model",
    )
    openai_base_url: str | None = Field(
        default=None,
        description="Override for OpenAI-compatible endpoints",
    )
    request_timeout: float = Field(
        default=60.0,
        gt=0,
        description="Seconds before a single model request times out",
    )
    max_retries: int = Field(
        default=2,
        ge=0,
        description="Client-level retries for transient API errors",
    )

    model_config = SettingsConfigDict(
        env_prefix="AGENT_WORKFLOW_LLM_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("provider")
    @classmethod
    def _normalise_provider(cls, value: str) -> str:
        return value.strip().lower()
