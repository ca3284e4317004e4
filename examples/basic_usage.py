#!/usr/bin/env python3
"""Programmatic workflow example.

This demonstrates using the engine components directly:

* declare executors with the `@executor` decorator
* wire a fan-out, a fan-in barrier and a conditional edge
* stream the run's events while waiting for the result
"""

from __future__ import annotations

import argparse
import asyncio
from collections.abc import Mapping, Sequence

from agent_workflow.config import EngineSettings
from agent_workflow.logging import configure_logging
from agent_workflow.workflow import (
    FanInResults,
    ReadOnlyWorkflowContext,
    WorkflowBuilder,
    WorkflowContext,
    executor,
)


@executor(input_types=str, output_types=str)
def normalise(text: str, ctx: ReadOnlyWorkflowContext) -> str:
    return " ".join(text.split())


@executor(input_types=str, output_types=int)
def count_words(text: str, ctx: ReadOnlyWorkflowContext) -> int:
    return len(text.split())


@executor(input_types=str, output_types=int)
def count_chars(text: str, ctx: ReadOnlyWorkflowContext) -> int:
    return len(text)


@executor(input_types=FanInResults, output_types=dict)
def summarise(results: FanInResults, ctx: WorkflowContext) -> dict[str, int]:
    summary = results.produced()
    ctx.write_state("summary", summary)
    return summary


@executor(input_types=Mapping, output_types=str)
def short(summary: Mapping[str, int], ctx: WorkflowContext) -> str:
    return f"short text ({summary['count_words']} words)"


@executor(input_types=Mapping, output_types=str)
def long(summary: Mapping[str, int], ctx: WorkflowContext) -> str:
    return f"long text ({summary['count_words']} words, {summary['count_chars']} chars)"


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a small text-statistics workflow.")
    parser.add_argument("text", help="Text to analyse")
    parser.add_argument("--long-after", type=int, default=10, help="Word count threshold")
    return parser.parse_args(argv)


async def _run(text: str, long_after: int) -> int:
    workflow = (
        WorkflowBuilder(name="text-stats")
        .set_start_executor(normalise)
        .add_fan_out_edge(normalise, [count_words, count_chars])
        .add_fan_in_edge([count_words, count_chars], summarise)
        .add_conditional(
            summarise,
            [(lambda s: s["count_words"] > long_after, long)],
            default=short,
        )
        .with_output_from(short, long)
        .build()
    )

    handle = workflow.start(text)
    async for event in handle.events():
        print(f"#{event.sequence} {event.type}")
    result = await handle.result()
    print(f"{result.status.value}: {result.output}")
    return 0 if result.succeeded else 1


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    settings = EngineSettings()
    configure_logging(settings.log_level, json_output=settings.log_json)

    return asyncio.run(_run(args.text, args.long_after))


if __name__ == "__main__":
    raise SystemExit(main())
