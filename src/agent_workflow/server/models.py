"""Pydantic models for the SSE server."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class RunRequest(BaseModel):
    input: Any = None
    max_steps: int | None = Field(default=None, gt=0)
    strict_routing: bool | None = None


class WorkflowInfo(BaseModel):
    name: str
    start_executor: str
    executors: list[str]
    outputs: list[str]
