"""Unit tests for build-time graph validation."""

from __future__ import annotations

from typing import Any

import pytest

from agent_workflow.config import EngineSettings
from agent_workflow.workflow import (
    DanglingEdgeError,
    DuplicateExecutorError,
    EdgeTypeMismatchError,
    FanInResults,
    FanInSourceMismatchError,
    GraphValidationError,
    MissingDefaultRouteError,
    MissingStartExecutorError,
    UnreachableOutputError,
    WorkflowBuilder,
)


def _echo(payload: Any, ctx: Any) -> Any:
    return payload


def _builder(*ids: str, **types: Any) -> WorkflowBuilder:
    builder = WorkflowBuilder(settings=EngineSettings())
    for executor_id in ids:
        builder.add_executor(executor_id, _echo, **types)
    return builder


def test_linear_graph_builds_and_infers_start() -> None:
    wf = _builder("a", "b").add_edge("a", "b").with_output_from("b").build()

    assert wf.start_id == "a"
    assert wf.output_ids == frozenset({"b"})
    assert len(wf.edges) == 1


def test_duplicate_executor_id_is_rejected() -> None:
    builder = _builder("a")
    with pytest.raises(DuplicateExecutorError):
        builder.add_executor("a", _echo)


def test_empty_graph_is_rejected() -> None:
    with pytest.raises(MissingStartExecutorError):
        WorkflowBuilder().build()


def test_ambiguous_start_is_rejected() -> None:
    builder = _builder("a", "b", "c").add_edge("a", "c").add_edge("b", "c")
    with pytest.raises(MissingStartExecutorError):
        builder.with_output_from("c").build()


def test_start_with_incoming_edge_is_rejected() -> None:
    builder = (
        _builder("a", "b")
        .set_start_executor("a")
        .add_edge("a", "b")
        .add_edge("b", "a")
        .with_output_from("b")
    )
    with pytest.raises(MissingStartExecutorError):
        builder.build()


def test_dangling_edge_is_rejected() -> None:
    builder = _builder("a").add_edge("a", "ghost").with_output_from("a")
    with pytest.raises(DanglingEdgeError):
        builder.build()


def test_fan_in_aggregator_with_extra_incoming_edge_is_rejected() -> None:
    builder = (
        WorkflowBuilder()
        .add_executor("start", _echo)
        .add_executor("a", _echo)
        .add_executor("b", _echo)
        .add_executor("agg", _echo, input_types=FanInResults)
        .add_fan_out_edge("start", ["a", "b"])
        .add_fan_in_edge(["a"], "agg")
        .add_edge("b", "agg")
        .with_output_from("agg")
    )
    with pytest.raises(FanInSourceMismatchError):
        builder.build()


def test_fan_in_aggregator_must_accept_results() -> None:
    builder = (
        WorkflowBuilder()
        .add_executor("start", _echo)
        .add_executor("a", _echo)
        .add_executor("agg", _echo, input_types=int)
        .add_fan_out_edge("start", ["a"])
        .add_fan_in_edge(["a"], "agg")
        .with_output_from("agg")
    )
    with pytest.raises(EdgeTypeMismatchError):
        builder.build()


def test_fan_out_listing_a_target_twice_is_rejected() -> None:
    builder = _builder("start", "a").add_fan_out_edge("start", ["a", "a"]).with_output_from("a")
    with pytest.raises(GraphValidationError):
        builder.build()


def test_conditional_without_default_requires_droppable() -> None:
    def make() -> WorkflowBuilder:
        return _builder("start", "yes").with_output_from("yes")

    with pytest.raises(MissingDefaultRouteError):
        make().add_conditional("start", [(lambda p: bool(p), "yes")]).build()

    wf = make().add_conditional("start", [(lambda p: bool(p), "yes")], droppable=True).build()
    assert wf.start_id == "start"


def test_unreachable_output_is_rejected() -> None:
    builder = _builder("a", "b").with_output_from("b").set_start_executor("a")
    with pytest.raises(UnreachableOutputError):
        builder.build()


def test_missing_output_is_rejected() -> None:
    with pytest.raises(UnreachableOutputError):
        _builder("a", "b").add_edge("a", "b").build()


def test_edge_type_mismatch_is_rejected() -> None:
    builder = (
        WorkflowBuilder()
        .add_executor("a", _echo, output_types=str)
        .add_executor("b", _echo, input_types=int)
        .add_edge("a", "b")
        .with_output_from("b")
    )
    with pytest.raises(EdgeTypeMismatchError):
        builder.build()


def test_sum_type_input_accepts_either_producer() -> None:
    wf = (
        WorkflowBuilder()
        .add_executor("start", _echo, output_types=str)
        .add_executor("sink", _echo, input_types=(int, str))
        .add_edge("start", "sink")
        .with_output_from("sink")
        .build()
    )
    assert wf.executors["sink"].accepts("x")
    assert wf.executors["sink"].accepts(1)
    assert not wf.executors["sink"].accepts(1.5)


def test_fan_out_path_is_read_only() -> None:
    wf = (
        WorkflowBuilder()
        .add_executor("start", _echo)
        .add_executor("a", _echo)
        .add_executor("b", _echo)
        .add_executor("agg", _echo, input_types=FanInResults)
        .add_executor("out", _echo)
        .add_fan_out_edge("start", ["a", "b"])
        .add_fan_in_edge(["a", "b"], "agg")
        .add_edge("agg", "out")
        .with_output_from("out")
        .build()
    )

    assert wf.read_only_ids == frozenset({"start", "a", "b"})
    assert wf.outgoing_edges("a") == ()
    assert len(wf.fan_in_edges_from("a")) == 1


def test_workflow_is_reusable_and_immutable() -> None:
    wf = _builder("a", "b").add_edge("a", "b").with_output_from("b").build()

    with pytest.raises(TypeError):
        wf.executors["c"] = wf.executors["a"]  # type: ignore[index]
