"""The scheduler that drives one run of a :class:`Workflow`.

Every work item runs as its own asyncio task. Everything that decides what
happens next (routing, fan-in bookkeeping, termination) runs in the single
runner coroutine after a task finishes, so arrivals at a barrier are never
counted concurrently.
"""

from __future__ import annotations

import asyncio
import copy
import itertools
import logging
import threading
import uuid
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..logging import log_context
from .context import ReadOnlyWorkflowContext, WorkflowContext
from .edges import FanOutEdge, SwitchEdge
from .errors import (
    ExecutorFailedError,
    FanInStalledError,
    MaxStepsExceededError,
    MultipleEmitError,
    NoRouteMatchedError,
    PayloadTypeError,
    RunCancelledError,
    RunFailedError,
    WorkflowError,
)
from .events import (
    ErrorDetail,
    EventStream,
    ExecutorCompletedEvent,
    ExecutorEvent,
    ExecutorFailedEvent,
    ExecutorInvokedEvent,
    NoRouteMatchedEvent,
    OutputProducedEvent,
    RunCompletedEvent,
    RunStartedEvent,
    RunStatus,
    StateCommittedEvent,
    WorkflowEvent,
)
from .executor import Executor
from .fan_in import FanInBarrier
from .messages import Message
from .state import StateStore

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from .graph import Workflow

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RunResult:
    run_id: str
    status: RunStatus
    output: Any = None
    error: ErrorDetail | None = None
    exception: BaseException | None = None
    steps: int = 0
    events: tuple[WorkflowEvent, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.status is RunStatus.SUCCEEDED

    def raise_for_status(self) -> None:
        """Re-raise the failure of a failed or cancelled run."""

        if self.exception is not None:
            raise self.exception
        if self.status is RunStatus.CANCELLED:
            raise RunCancelledError(f"Run {self.run_id} was cancelled")


class RunHandle:
    """Caller-side view of a live run: its event stream, cancellation and result."""

    def __init__(
        self, run_id: str, stream: EventStream, runner: _Runner, task: asyncio.Task[RunResult]
    ) -> None:
        self.run_id = run_id
        self.stream = stream
        self._runner = runner
        self._task = task

    def events(self) -> AsyncIterator[WorkflowEvent]:
        return self.stream.subscribe()

    def __aiter__(self) -> AsyncIterator[WorkflowEvent]:
        return self.stream.subscribe()

    def cancel(self) -> None:
        """Request cancellation; in-flight invocations are cancelled best-effort."""

        if not self._task.done():
            self._runner.request_cancel()

    @property
    def done(self) -> bool:
        return self._task.done()

    async def result(self) -> RunResult:
        # Shielded so that abandoning the wait does not cancel the run itself.
        return await asyncio.shield(self._task)


@dataclass(slots=True)
class _WorkItem:
    seq: int
    executor: Executor
    message: Message


@dataclass(slots=True)
class _Outcome:
    messages: list[Any] = field(default_factory=list)
    error: WorkflowError | None = None


def start_run(
    workflow: Workflow,
    message: Any,
    *,
    max_steps: int,
    strict_routing: bool,
    max_concurrency: int | None,
) -> RunHandle:
    run_id = uuid.uuid4().hex
    stream = EventStream(run_id)
    runner = _Runner(
        workflow,
        run_id=run_id,
        stream=stream,
        max_steps=max_steps,
        strict_routing=strict_routing,
        max_concurrency=max_concurrency,
    )
    task = asyncio.get_running_loop().create_task(
        runner.run(message), name=f"workflow-run-{run_id}"
    )
    return RunHandle(run_id, stream, runner, task)


class _Runner:
    def __init__(
        self,
        workflow: Workflow,
        *,
        run_id: str,
        stream: EventStream,
        max_steps: int,
        strict_routing: bool,
        max_concurrency: int | None,
    ) -> None:
        if max_steps < 1:
            raise ValueError("max_steps must be >= 1")
        if max_concurrency is not None and max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self._workflow = workflow
        self._run_id = run_id
        self._stream = stream
        self._max_steps = max_steps
        self._strict_routing = strict_routing
        self._max_concurrency = max_concurrency

        self._state = StateStore()
        self._barriers = {e.target: FanInBarrier(e) for e in workflow.fan_in_edges}
        self._ready: deque[_WorkItem] = deque()
        self._inflight: dict[asyncio.Task[_Outcome], _WorkItem] = {}
        self._seq = itertools.count(1)
        self._steps = 0
        self._cancel_requested = asyncio.Event()
        self._cancel_flag = threading.Event()

    def request_cancel(self) -> None:
        self._cancel_flag.set()
        self._cancel_requested.set()

    def _log_extra(self, **kwargs: Any) -> dict[str, Any]:
        return {"run_id": self._run_id, "workflow": self._workflow.name, **kwargs}

    async def run(self, initial: Any) -> RunResult:
        with log_context(run_id=self._run_id, workflow=self._workflow.name):
            return await self._run(initial)

    async def _run(self, initial: Any) -> RunResult:
        wf = self._workflow
        self._stream.publish(RunStartedEvent(start_executor_id=wf.start_id))
        logger.info("Run started", extra=self._log_extra(start=wf.start_id))
        self._ready.append(_WorkItem(next(self._seq), wf.start_executor, Message(initial)))

        cancel_waiter = asyncio.ensure_future(self._cancel_requested.wait())
        error: WorkflowError | None = None
        try:
            output = await self._loop(cancel_waiter)
        except WorkflowError as exc:
            output, error = _NO_OUTPUT, exc
        except Exception as exc:
            logger.exception("Scheduler error", extra=self._log_extra())
            output, error = _NO_OUTPUT, RunFailedError(exc)
        except asyncio.CancelledError:
            # The runner task itself was cancelled (loop shutdown); still close the stream.
            self._abort_inflight()
            self._discard_run_state()
            self._finish(RunStatus.CANCELLED, error=RunCancelledError("Run task cancelled"))
            raise
        finally:
            cancel_waiter.cancel()

        await self._teardown()
        if error is not None:
            status = (
                RunStatus.CANCELLED if isinstance(error, RunCancelledError) else RunStatus.FAILED
            )
            return self._finish(status, error=error)
        if output is _NO_OUTPUT:
            return self._finish(RunStatus.NO_OUTPUT)
        return self._finish(RunStatus.SUCCEEDED, output=output)

    async def _loop(self, cancel_waiter: asyncio.Future[Any]) -> Any:
        while self._ready or self._inflight:
            if self._cancel_requested.is_set():
                raise RunCancelledError(f"Run {self._run_id} was cancelled")
            self._dispatch_ready()

            done, _ = await asyncio.wait(
                {*self._inflight, cancel_waiter}, return_when=asyncio.FIRST_COMPLETED
            )
            if self._cancel_requested.is_set():
                raise RunCancelledError(f"Run {self._run_id} was cancelled")

            finished = sorted(
                (t for t in done if t is not cancel_waiter), key=lambda t: self._inflight[t].seq
            )
            for task in finished:
                item = self._inflight.pop(task)
                outcome = task.result()
                if outcome.error is not None:
                    raise outcome.error
                output = self._route(item, outcome.messages)
                if output is not _NO_OUTPUT:
                    return output

        stalled = {
            agg: barrier.missing_sources()
            for agg, barrier in self._barriers.items()
            if barrier.partially_filled
        }
        if stalled:
            raise FanInStalledError(stalled)
        return _NO_OUTPUT

    def _dispatch_ready(self) -> None:
        while self._ready:
            if self._max_concurrency is not None and len(self._inflight) >= self._max_concurrency:
                return
            if self._steps >= self._max_steps:
                raise MaxStepsExceededError(self._max_steps)
            item = self._ready.popleft()
            self._steps += 1
            if not item.executor.accepts(item.message.payload):
                raise PayloadTypeError(
                    item.executor.id, item.message.payload, item.executor.input_types
                )
            task = asyncio.ensure_future(self._invoke(item))
            self._inflight[task] = item

    def _new_context(self, executor: Executor) -> ReadOnlyWorkflowContext:
        cls = (
            ReadOnlyWorkflowContext
            if executor.id in self._workflow.read_only_ids
            else WorkflowContext
        )
        return cls(
            run_id=self._run_id,
            executor_id=executor.id,
            store=self._state,
            cancel_event=self._cancel_flag,
        )

    async def _invoke(self, item: _WorkItem) -> _Outcome:
        with log_context(executor_id=item.executor.id):
            return await self._attempt(item)

    async def _attempt(self, item: _WorkItem) -> _Outcome:
        executor = item.executor
        attempt = 1
        while True:
            ctx = self._new_context(executor)
            self._stream.publish(
                ExecutorInvokedEvent(
                    executor_id=executor.id,
                    origin_executor_id=item.message.origin_executor_id,
                    attempt=attempt,
                )
            )
            try:
                result = await executor.handle(item.message.payload, ctx)
                messages = ctx._drain_outbox()
                if result is not None:
                    messages.append(result)
                if len(messages) > 1 and not executor.multi_emit:
                    raise MultipleEmitError(executor.id)
                staged = ctx._staged_writes()
                committed = self._state.commit(staged, executor_id=executor.id) if staged else []
            except Exception as exc:
                delay = None
                if executor.retry_policy is not None:
                    delay = executor.retry_policy.next_delay(attempt, exc)
                self._stream.publish(
                    ExecutorFailedEvent(
                        executor_id=executor.id,
                        error=ErrorDetail(type(exc).__name__, str(exc), executor.id),
                        attempt=attempt,
                        will_retry=delay is not None,
                    )
                )
                logger.warning(
                    "Executor failed",
                    extra=self._log_extra(
                        executor_id=executor.id, attempt=attempt, retry=delay is not None
                    ),
                    exc_info=delay is None,
                )
                if delay is None:
                    return _Outcome(error=ExecutorFailedError(executor.id, exc, attempt))
                if delay:
                    await asyncio.sleep(delay)
                attempt += 1
                continue

            for data in ctx._drain_custom_events():
                self._stream.publish(ExecutorEvent(executor_id=executor.id, data=data))
            if committed:
                self._stream.publish(
                    StateCommittedEvent(
                        executor_id=executor.id,
                        keys=tuple(f"{e.scope}/{e.key}" for e in committed),
                    )
                )
            self._stream.publish(
                ExecutorCompletedEvent(executor_id=executor.id, emitted=len(messages))
            )
            return _Outcome(messages=messages)

    def _route(self, item: _WorkItem, messages: list[Any]) -> Any:
        """Apply outbound routing for one finished invocation.

        Returns the run output if `item` is an output executor that emitted,
        otherwise the _NO_OUTPUT sentinel.
        """

        wf = self._workflow
        source_id = item.executor.id

        if source_id in wf.output_ids and messages:
            output = messages[0]
            self._stream.publish(OutputProducedEvent(executor_id=source_id, data=output))
            return output

        # Fan-in sources count on completion, even when they sent nothing.
        for edge in wf.fan_in_edges_from(source_id):
            barrier = self._barriers[edge.target]
            fired = []
            if messages:
                for payload in messages:
                    fired.append(barrier.arrive(source_id, payload))
            else:
                fired.append(barrier.arrive_silent(source_id))
            for results in fired:
                if results is not None:
                    self._push(wf.executors[edge.target], results, source_id)

        for payload in messages:
            for edge in wf.outgoing_edges(source_id):
                try:
                    targets = edge.route(payload)
                except Exception as exc:
                    raise ExecutorFailedError(source_id, exc) from exc
                if not targets and isinstance(edge, SwitchEdge):
                    self._stream.publish(NoRouteMatchedEvent(source_executor_id=source_id))
                    logger.info("No route matched", extra=self._log_extra(source=source_id))
                    if self._strict_routing:
                        raise NoRouteMatchedError(source_id)
                for target_id in targets:
                    copied = payload
                    if isinstance(edge, FanOutEdge):
                        try:
                            copied = copy.deepcopy(payload)
                        except Exception as exc:
                            raise ExecutorFailedError(source_id, exc) from exc
                    self._push(wf.executors[target_id], copied, source_id)
        return _NO_OUTPUT

    def _push(self, executor: Executor, payload: Any, origin: str) -> None:
        self._ready.append(_WorkItem(next(self._seq), executor, Message(payload, origin)))

    def _finish(
        self, status: RunStatus, *, output: Any = None, error: BaseException | None = None
    ) -> RunResult:
        detail = ErrorDetail.from_exception(error) if error is not None else None
        self._stream.publish(
            RunCompletedEvent(status=status, output=output, error=detail, steps=self._steps)
        )
        log = logger.info if status in (RunStatus.SUCCEEDED, RunStatus.NO_OUTPUT) else logger.error
        log(
            "Run completed",
            extra=self._log_extra(status=status.value, steps=self._steps, error=str(error or "")),
        )
        return RunResult(
            run_id=self._run_id,
            status=status,
            output=output,
            error=detail,
            exception=error,
            steps=self._steps,
            events=tuple(self._stream.history),
        )

    def _abort_inflight(self) -> list[asyncio.Task[_Outcome]]:
        self._cancel_flag.set()
        tasks = list(self._inflight)
        for task in tasks:
            task.cancel()
        self._inflight.clear()
        return tasks

    def _discard_run_state(self) -> None:
        self._ready.clear()
        for barrier in self._barriers.values():
            barrier.discard()
        self._state.clear()

    async def _teardown(self) -> None:
        tasks = self._abort_inflight()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._discard_run_state()


_NO_OUTPUT: Any = object()
