"""Configuration for the SSE server."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerSettings(BaseSettings):
    """Transport settings.

    Engine defaults (max steps, routing strictness) come from
    :class:`agent_workflow.config.EngineSettings`; only HTTP concerns live here.

    Environment variables:
    - AGENT_WORKFLOW_CORS_ORIGINS
    - AGENT_WORKFLOW_MAX_STEPS_LIMIT
    """

    cors_origins: str = Field(
        default="http://localhost:5173,http://127.0.0.1:5173",
        description="Comma-separated list of allowed CORS origins.",
    )
    max_steps_limit: int | None = Field(
        default=None,
        gt=0,
        description="Ceiling on the max_steps a client may request for one run (None = no ceiling)",
    )

    model_config = SettingsConfigDict(
        env_prefix="AGENT_WORKFLOW_",
        env_file=".env",
        extra="ignore",
    )

    def parsed_cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    def clamp_max_steps(self, requested: int | None) -> int | None:
        """Apply the server ceiling to a run's requested step cap."""

        if self.max_steps_limit is None:
            return requested
        if requested is None:
            return self.max_steps_limit
        return min(requested, self.max_steps_limit)
