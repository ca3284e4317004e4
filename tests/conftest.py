"""Test configuration and fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from agent_workflow.config import EngineSettings, LLMConfig


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a developer's shell or `.env` from leaking into settings."""
    for name in (
        "AGENT_WORKFLOW_LOG_LEVEL",
        "AGENT_WORKFLOW_LOG_JSON",
        "AGENT_WORKFLOW_MAX_STEPS",
        "AGENT_WORKFLOW_STRICT_ROUTING",
        "AGENT_WORKFLOW_MAX_CONCURRENCY",
        "AGENT_WORKFLOW_CORS_ORIGINS",
        "AGENT_WORKFLOW_LLM_PROVIDER",
        "AGENT_WORKFLOW_LLM_OPENAI_API_KEY",
        "AGENT_WORKFLOW_LLM_OPENAI_MODEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def settings() -> EngineSettings:
    """Provide engine settings with a small step cap."""
    return EngineSettings(max_steps=50)


@pytest.fixture
def llm_config() -> LLMConfig:
    """Provide a test LLM configuration."""
    return LLMConfig(
        provider="openai",
        openai_api_key="test-key",
        openai_model="gpt-4o-mini",
    )

