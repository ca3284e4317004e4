"""FastAPI app factory.

A run is started per POST and its event stream is relayed as SSE frames until
the terminal event. Closing the connection early cancels the run.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Mapping

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse

from agent_workflow import __version__
from agent_workflow.samples import SAMPLES
from agent_workflow.server.config import ServerSettings
from agent_workflow.server.models import RunRequest, WorkflowInfo
from agent_workflow.workflow import RunHandle, Workflow, WorkflowEvent

logger = logging.getLogger(__name__)

_SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def format_sse(event: WorkflowEvent) -> str:
    data = json.dumps(event.to_json(), ensure_ascii=False, default=str)
    return f"event: {event.type}\ndata: {data}\n\n"


async def _relay(handle: RunHandle) -> AsyncIterator[str]:
    try:
        async for event in handle.events():
            yield format_sse(event)
    finally:
        if not handle.done:
            logger.info("Client disconnected, cancelling run", extra={"run_id": handle.run_id})
            handle.cancel()


def _info(name: str, workflow: Workflow) -> WorkflowInfo:
    return WorkflowInfo(
        name=name,
        start_executor=workflow.start_id,
        executors=list(workflow.executors),
        outputs=sorted(workflow.output_ids),
    )


def create_app(workflows: Mapping[str, Workflow] | None = None) -> FastAPI:
    settings = ServerSettings()
    if workflows is None:
        workflows = {name: build() for name, build in SAMPLES.items()}
    registry = dict(workflows)

    app = FastAPI(
        title="Agent Workflow Engine",
        version=__version__,
        description="Start workflow runs and stream their events over SSE.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )
    app.state.settings = settings
    app.state.workflows = registry

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.parsed_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "version": __version__}

    @app.get("/api/workflows", response_model=list[WorkflowInfo])
    def list_workflows() -> list[WorkflowInfo]:
        return [_info(name, wf) for name, wf in registry.items()]

    @app.post("/api/workflows/{name}/runs")
    async def start_run(name: str, req: RunRequest) -> StreamingResponse:
        workflow = registry.get(name)
        if workflow is None:
            raise HTTPException(status_code=404, detail=f"Unknown workflow: {name}")

        handle = workflow.start(
            req.input,
            max_steps=settings.clamp_max_steps(req.max_steps),
            strict_routing=req.strict_routing,
        )
        logger.info("Run accepted", extra={"run_id": handle.run_id, "workflow": name})
        return StreamingResponse(
            _relay(handle),
            media_type="text/event-stream",
            headers={**_SSE_HEADERS, "X-Run-Id": handle.run_id},
        )

    return app
