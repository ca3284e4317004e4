"""Ready-made workflows used by the CLI, the server and the tests.

- ``fan-in``: start -> fan-out over one branch per input key -> fan-in -> output
- ``review``: score-based review with a capped revision loop
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, replace

from agent_workflow.config import EngineSettings
from agent_workflow.workflow import (
    FanInResults,
    ReadOnlyWorkflowContext,
    Workflow,
    WorkflowBuilder,
    WorkflowContext,
)

APPROVAL_THRESHOLD = 80


# --- fan-in ---------------------------------------------------------------------


def build_fan_in_workflow(
    branches: tuple[str, ...] = ("A", "B", "C"), *, settings: EngineSettings | None = None
) -> Workflow:
    """Broadcast a mapping to one branch per key and collect every branch's value.

    The aggregator is the only executor that writes state.
    """

    def start(values: Mapping[str, int], ctx: ReadOnlyWorkflowContext) -> dict[str, int]:
        return dict(values)

    def make_branch(
        name: str,
    ) -> Callable[[Mapping[str, int], ReadOnlyWorkflowContext], int | None]:
        def branch(values: Mapping[str, int], ctx: ReadOnlyWorkflowContext) -> int | None:
            return values.get(name)

        return branch

    def aggregate(results: FanInResults, ctx: WorkflowContext) -> dict[str, int]:
        collected = results.produced()
        ctx.write_state("collected", collected, scope="fan_in")
        return collected

    def output(collected: dict[str, int], ctx: WorkflowContext) -> dict[str, int]:
        return collected

    builder = WorkflowBuilder(name="fan-in", settings=settings)
    builder.add_executor("start", start, input_types=Mapping, output_types=dict)
    for name in branches:
        builder.add_executor(name, make_branch(name), input_types=Mapping, output_types=int)
    builder.add_executor("aggregate", aggregate, input_types=FanInResults, output_types=dict)
    builder.add_executor("output", output, input_types=dict, output_types=dict)
    return (
        builder.set_start_executor("start")
        .add_fan_out_edge("start", list(branches))
        .add_fan_in_edge(list(branches), "aggregate")
        .add_edge("aggregate", "output")
        .with_output_from("output")
        .build()
    )


# --- review loop ----------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Submission:
    score: int
    revisions: int = 0


@dataclass(frozen=True, slots=True)
class Decision:
    score: int
    revisions: int
    forced: bool


def build_review_workflow(
    *,
    max_revisions: int = 3,
    revision_bonus: int = 0,
    settings: EngineSettings | None = None,
) -> Workflow:
    """intake -> review -> (approve | revise -> review ...).

    The revision count travels in the payload; once it reaches `max_revisions` the
    review switch forces approval, so `revise` runs at most `max_revisions` times.
    """

    if max_revisions < 0:
        raise ValueError("max_revisions must be >= 0")

    def intake(score: int, ctx: WorkflowContext) -> Submission:
        return Submission(score=score)

    def review(submission: Submission, ctx: WorkflowContext) -> Submission:
        history = ctx.read_state("scores", [], scope="review")
        ctx.write_state("scores", [*history, submission.score], scope="review")
        return submission

    def revise(submission: Submission, ctx: WorkflowContext) -> Submission:
        return replace(
            submission,
            score=submission.score + revision_bonus,
            revisions=submission.revisions + 1,
        )

    def approve(submission: Submission, ctx: WorkflowContext) -> Decision:
        return Decision(
            score=submission.score,
            revisions=submission.revisions,
            forced=submission.score < APPROVAL_THRESHOLD,
        )

    return (
        WorkflowBuilder(name="review", settings=settings)
        .add_executor("intake", intake, input_types=int, output_types=Submission)
        .add_executor("review", review, input_types=Submission, output_types=Submission)
        .add_executor("revise", revise, input_types=Submission, output_types=Submission)
        .add_executor("approve", approve, input_types=Submission, output_types=Decision)
        .set_start_executor("intake")
        .add_edge("intake", "review")
        .add_conditional(
            "review",
            [
                (lambda s: s.score >= APPROVAL_THRESHOLD, "approve"),
                (lambda s: s.revisions >= max_revisions, "approve"),
            ],
            default="revise",
        )
        .add_edge("revise", "review")
        .with_output_from("approve")
        .build()
    )


SAMPLES = {
    "fan-in": build_fan_in_workflow,
    "review": build_review_workflow,
}
