"""Agent Workflow Engine.

An in-process, asyncio-based engine for typed message-passing workflows:
- fan-out / fan-in with deterministic barriers
- conditional routing and caller-guarded loops
- run-scoped state with staged writes
- a live event stream per run
"""

__version__ = "0.1.0"

from agent_workflow.config import EngineSettings
from agent_workflow.workflow import Workflow, WorkflowBuilder

__all__ = ["__version__", "EngineSettings", "Workflow", "WorkflowBuilder"]
