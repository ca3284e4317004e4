"""Run events and the per-run event stream.

Events are small frozen dataclasses. Each carries the run id and a run-scoped
sequence number assigned by :class:`EventStream` when it is published, so the
stream is gap-free by construction.
"""

from __future__ import annotations

import asyncio
import dataclasses
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class RunStatus(str, Enum):
    SUCCEEDED = "succeeded"
    NO_OUTPUT = "no_output"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class ErrorDetail:
    type: str
    message: str
    executor_id: str | None = None

    @staticmethod
    def from_exception(exc: BaseException) -> ErrorDetail:
        return ErrorDetail(
            type=type(exc).__name__,
            message=str(exc),
            executor_id=getattr(exc, "executor_id", None),
        )

    def to_json(self) -> dict[str, object]:
        out: dict[str, object] = {"type": self.type, "message": self.message}
        if self.executor_id is not None:
            out["executor_id"] = self.executor_id
        return out


@dataclass(frozen=True, slots=True, kw_only=True)
class WorkflowEvent:
    run_id: str = ""
    sequence: int = 0
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def type(self) -> str:
        name = type(self).__name__
        return name[: -len("Event")] if name.endswith("Event") else name

    def to_json(self) -> dict[str, object]:
        out: dict[str, object] = {
            "type": self.type,
            "run_id": self.run_id,
            "sequence": self.sequence,
            "timestamp": self.timestamp.isoformat(),
        }
        for f in dataclasses.fields(self):
            if f.name in out:
                continue
            out[f.name] = _jsonable(getattr(self, f.name))
        return out


@dataclass(frozen=True, slots=True, kw_only=True)
class RunStartedEvent(WorkflowEvent):
    start_executor_id: str


@dataclass(frozen=True, slots=True, kw_only=True)
class ExecutorInvokedEvent(WorkflowEvent):
    """Node entered."""

    executor_id: str
    origin_executor_id: str | None = None
    attempt: int = 1


@dataclass(frozen=True, slots=True, kw_only=True)
class ExecutorCompletedEvent(WorkflowEvent):
    """Node completed; `emitted` is how many messages it sent."""

    executor_id: str
    emitted: int = 0


@dataclass(frozen=True, slots=True, kw_only=True)
class ExecutorFailedEvent(WorkflowEvent):
    executor_id: str
    error: ErrorDetail
    attempt: int = 1
    will_retry: bool = False


@dataclass(frozen=True, slots=True, kw_only=True)
class ExecutorEvent(WorkflowEvent):
    """Custom event attached by an executor body via ``ctx.add_event``."""

    executor_id: str
    data: Any = None


@dataclass(frozen=True, slots=True, kw_only=True)
class StateCommittedEvent(WorkflowEvent):
    executor_id: str
    keys: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True, kw_only=True)
class NoRouteMatchedEvent(WorkflowEvent):
    source_executor_id: str


@dataclass(frozen=True, slots=True, kw_only=True)
class OutputProducedEvent(WorkflowEvent):
    executor_id: str
    data: Any = None


@dataclass(frozen=True, slots=True, kw_only=True)
class RunCompletedEvent(WorkflowEvent):
    """Terminal event: every run publishes exactly one."""

    status: RunStatus
    output: Any = None
    error: ErrorDetail | None = None
    steps: int = 0


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, str | int | float | bool):
        return value
    if isinstance(value, Enum):
        return value.value
    if hasattr(value, "to_json"):
        return value.to_json()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: _jsonable(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    if isinstance(value, dict) or hasattr(value, "items"):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, list | tuple | set | frozenset):
        return [_jsonable(v) for v in value]
    return repr(value)


class EventStream:
    """Append-only, forward-only event log for one run.

    Every subscriber starts at the first event and walks forward, so late
    subscribers see the full history and nobody observes a gap or a reordering.
    Closed after the terminal event is published.
    """

    def __init__(self, run_id: str) -> None:
        self.run_id = run_id
        self._events: list[WorkflowEvent] = []
        self._closed = False
        self._waiters: list[asyncio.Future[None]] = []

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def history(self) -> list[WorkflowEvent]:
        return list(self._events)

    def publish(self, event: WorkflowEvent) -> WorkflowEvent:
        """Stamp and append an event. Must be called from the run's event loop."""

        if self._closed:
            raise RuntimeError(f"Event stream for run {self.run_id} is closed")
        stamped = dataclasses.replace(event, run_id=self.run_id, sequence=len(self._events) + 1)
        self._events.append(stamped)
        if isinstance(stamped, RunCompletedEvent):
            self._closed = True
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)
        return stamped

    async def subscribe(self) -> AsyncIterator[WorkflowEvent]:
        index = 0
        while True:
            while index < len(self._events):
                event = self._events[index]
                index += 1
                yield event
            if self._closed:
                return
            waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
            self._waiters.append(waiter)
            await waiter

    def __aiter__(self) -> AsyncIterator[WorkflowEvent]:
        return self.subscribe()
