"""FastAPI adapter that streams workflow runs as server-sent events.

Business logic stays in `agent_workflow.workflow`; routing, CORS and SSE
framing live here.
"""

from __future__ import annotations

__all__ = ["create_app"]

from agent_workflow.server.app import create_app
