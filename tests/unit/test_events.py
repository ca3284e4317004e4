"""Unit tests for run events and the event stream."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import pytest

from agent_workflow.workflow import (
    ErrorDetail,
    EventStream,
    ExecutorEvent,
    RunCompletedEvent,
    RunStartedEvent,
    RunStatus,
)


@dataclass
class _Payload:
    name: str
    tags: tuple[str, ...]


def test_publish_stamps_run_id_and_sequence() -> None:
    stream = EventStream("run-1")

    first = stream.publish(RunStartedEvent(start_executor_id="start"))
    second = stream.publish(ExecutorEvent(executor_id="start", data={"x": 1}))

    assert (first.run_id, first.sequence) == ("run-1", 1)
    assert (second.run_id, second.sequence) == ("run-1", 2)
    assert first.type == "RunStarted"


def test_terminal_event_closes_stream() -> None:
    stream = EventStream("run-1")
    stream.publish(RunCompletedEvent(status=RunStatus.SUCCEEDED))

    assert stream.closed
    with pytest.raises(RuntimeError):
        stream.publish(ExecutorEvent(executor_id="late"))


def test_to_json_handles_nested_values() -> None:
    event = ExecutorEvent(executor_id="e", data=_Payload("n", ("a", "b")))
    as_json = event.to_json()

    assert as_json["type"] == "Executor"
    assert as_json["data"] == {"name": "n", "tags": ["a", "b"]}

    completed = RunCompletedEvent(
        status=RunStatus.FAILED,
        error=ErrorDetail("ValueError", "boom", "e"),
    ).to_json()
    assert completed["status"] == "failed"
    assert completed["error"] == {"type": "ValueError", "message": "boom", "executor_id": "e"}


@pytest.mark.asyncio
async def test_subscribers_see_full_history_in_order() -> None:
    stream = EventStream("run-1")
    stream.publish(RunStartedEvent(start_executor_id="start"))

    async def consume() -> list[int]:
        return [event.sequence async for event in stream.subscribe()]

    early = asyncio.create_task(consume())
    await asyncio.sleep(0)
    for i in range(5):
        stream.publish(ExecutorEvent(executor_id="e", data=i))
        await asyncio.sleep(0)
    stream.publish(RunCompletedEvent(status=RunStatus.SUCCEEDED))

    late = [event.sequence async for event in stream]

    assert await early == [1, 2, 3, 4, 5, 6, 7]
    assert late == [1, 2, 3, 4, 5, 6, 7]
