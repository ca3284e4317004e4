"""Executors that wrap external collaborators.

The engine treats models and tools as black boxes: a model answers a prompt, a
tool maps structured input to structured output. Both are called in a worker
thread so a slow call only suspends its own branch. Conversation history travels
in the payload rather than in any process-wide registry. A whole workflow can
stand in for a model through :class:`WorkflowAgent`.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from agent_workflow.llm.provider import ModelClient, Turn

from .context import ReadOnlyWorkflowContext
from .errors import RunCancelledError
from .events import RunStatus
from .executor import Executor, RetryStrategy

if TYPE_CHECKING:
    from .graph import Workflow

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ModelRequest:
    prompt: str
    conversation: tuple[dict[str, str], ...] = ()


@dataclass(frozen=True, slots=True)
class ModelAnswer:
    text: str
    executor_id: str
    conversation: tuple[dict[str, str], ...] = field(default=())


class ModelExecutor(Executor):
    """Ask a model and emit its answer.

    Accepts a plain prompt string or a :class:`ModelRequest`; emits a
    :class:`ModelAnswer` whose `conversation` includes the new exchange, so the
    next model in the chain can continue it.
    """

    def __init__(
        self,
        id: str,  # noqa: A002 (id)
        client: ModelClient,
        *,
        instructions: str | None = None,
        retry_policy: RetryStrategy | None = None,
    ) -> None:
        super().__init__(
            id,
            input_types=(str, ModelRequest),
            output_types=ModelAnswer,
            retry_policy=retry_policy,
        )
        self._client = client
        self._instructions = instructions

    async def handle(self, payload: Any, ctx: ReadOnlyWorkflowContext) -> ModelAnswer:
        request = payload if isinstance(payload, ModelRequest) else ModelRequest(prompt=payload)
        context: list[dict[str, str]] = []
        if self._instructions:
            context.append({"role": "system", "content": self._instructions})
        context.extend(request.conversation)

        text = await asyncio.to_thread(self._client.ask, request.prompt, context)

        history = (
            *request.conversation,
            {"role": "user", "content": request.prompt},
            {"role": "assistant", "content": text},
        )
        return ModelAnswer(text=text, executor_id=self.id, conversation=history)


class Tool(Protocol):
    def call(self, structured_input: Mapping[str, Any]) -> Mapping[str, Any]: ...


class ToolExecutor(Executor):
    """Call an opaque lookup/tool collaborator with a mapping payload."""

    def __init__(
        self,
        id: str,  # noqa: A002 (id)
        tool: Tool,
        *,
        retry_policy: RetryStrategy | None = None,
    ) -> None:
        super().__init__(
            id, input_types=Mapping, output_types=Mapping, retry_policy=retry_policy
        )
        self._tool = tool

    async def handle(self, payload: Any, ctx: ReadOnlyWorkflowContext) -> Mapping[str, Any]:
        return await asyncio.to_thread(self._tool.call, payload)


class WorkflowExecutor(Executor):
    """Run a whole workflow as one step of another (sub-workflow).

    The nested run gets its own state store and event stream; the outer run only
    sees its output, plus a summary event. A failed nested run fails this executor.
    """

    def __init__(
        self,
        id: str,  # noqa: A002 (id)
        workflow: Workflow,
        *,
        output_types: Any = None,
        retry_policy: RetryStrategy | None = None,
    ) -> None:
        super().__init__(
            id,
            input_types=workflow.start_executor.input_types,
            output_types=output_types,
            retry_policy=retry_policy,
        )
        self.workflow = workflow

    async def handle(self, payload: Any, ctx: ReadOnlyWorkflowContext) -> Any:
        handle = self.workflow.start(payload)
        try:
            result = await handle.result()
        except asyncio.CancelledError:
            handle.cancel()
            raise
        ctx.add_event(
            {"sub_run_id": result.run_id, "status": result.status.value, "steps": result.steps}
        )
        if result.status is RunStatus.FAILED:
            result.raise_for_status()
        if result.status is RunStatus.CANCELLED:
            raise RunCancelledError(f"Nested run {result.run_id} was cancelled")
        return result.output


class WorkflowAgent:
    """Expose a built workflow through the :class:`ModelClient` contract.

    The prompt and prior turns are delivered as a :class:`ModelRequest` when the
    start executor accepts one, otherwise as the bare prompt string. The run's
    output is returned as text: a :class:`ModelAnswer` yields its text, strings
    pass through, mappings and lists are JSON-encoded. A run without output
    answers with an empty string; failed or cancelled runs raise.

    `ask` drives the run on a fresh event loop, which is what happens when a
    :class:`ModelExecutor` calls it from its worker thread. Code already running
    on a loop should await `ask_async` instead.
    """

    def __init__(
        self, workflow: Workflow, *, name: str | None = None, description: str = ""
    ) -> None:
        self.workflow = workflow
        self.name = name or workflow.name
        self.description = description

    def ask(self, prompt: str, conversation_context: Sequence[Turn] = ()) -> str:
        return asyncio.run(self.ask_async(prompt, conversation_context))

    async def ask_async(self, prompt: str, conversation_context: Sequence[Turn] = ()) -> str:
        request = ModelRequest(
            prompt=prompt, conversation=tuple(dict(turn) for turn in conversation_context)
        )
        message = request if self.workflow.start_executor.accepts(request) else prompt

        result = await self.workflow.run(message)
        logger.info(
            "Workflow agent answered",
            extra={"agent": self.name, "sub_run_id": result.run_id, "status": result.status.value},
        )
        if result.status in (RunStatus.FAILED, RunStatus.CANCELLED):
            result.raise_for_status()
        if result.status is RunStatus.NO_OUTPUT:
            return ""
        return _as_text(result.output)


def _as_text(output: Any) -> str:
    if isinstance(output, ModelAnswer):
        return output.text
    if isinstance(output, str):
        return output
    if isinstance(output, Mapping):
        return json.dumps(dict(output), ensure_ascii=False, default=str)
    if isinstance(output, list | tuple):
        return json.dumps(list(output), ensure_ascii=False, default=str)
    return str(output)
