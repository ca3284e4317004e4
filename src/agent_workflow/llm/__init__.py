"""LLM package initialization."""

from agent_workflow.llm.factory import LLMFactory
from agent_workflow.llm.provider import LLMProvider, ModelClient

__all__ = [
    "LLMFactory",
    "LLMProvider",
    "ModelClient",
]
