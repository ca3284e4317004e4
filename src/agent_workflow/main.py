"""CLI entrypoint: run one of the bundled sample workflows and print its events.

Each event is written to stdout as one JSON line; logs go to stderr.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

from pydantic import ValidationError

from agent_workflow import __version__
from agent_workflow.config import EngineSettings
from agent_workflow.logging import configure_logging
from agent_workflow.samples import SAMPLES, build_fan_in_workflow, build_review_workflow
from agent_workflow.workflow import GraphValidationError, RunResult, Workflow

logger = logging.getLogger(__name__)


def _parse_value(value: str) -> tuple[str, int]:
    name, sep, raw = value.partition("=")
    name = name.strip()
    if not sep or not name:
        raise argparse.ArgumentTypeError(f"expected NAME=INT, got {value!r}")
    try:
        return name, int(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"value for {name!r} must be an integer") from None


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got {value!r}") from None
    if number < 1:
        raise argparse.ArgumentTypeError("must be >= 1")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agent-workflow",
        description="Run sample message-passing workflows and stream their events",
    )
    parser.add_argument("--version", action="version", version=f"agent-workflow {__version__}")
    parser.add_argument(
        "--max-steps",
        type=_positive_int,
        default=None,
        help="Override AGENT_WORKFLOW_MAX_STEPS for this run",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("list", help="List the bundled sample workflows")

    run = subparsers.add_parser("run", help="Run a sample workflow")
    samples = run.add_subparsers(dest="sample", required=True)

    fan_in = samples.add_parser(
        "fan-in", help="Fan out to one branch per value, then aggregate all of them"
    )
    fan_in.add_argument(
        "--values",
        nargs="+",
        type=_parse_value,
        required=True,
        metavar="NAME=INT",
        help="Branch values, e.g. 'A=10 B=20 C=30'",
    )

    review = samples.add_parser("review", help="Score-based review with a capped revision loop")
    review.add_argument("--score", type=int, required=True, help="Initial submission score")
    review.add_argument(
        "--max-revisions",
        type=int,
        default=3,
        help="Revisions allowed before approval is forced",
    )
    review.add_argument(
        "--revision-bonus",
        type=int,
        default=0,
        help="Points added to the score by each revision",
    )

    return parser


async def _run_and_print(workflow: Workflow, message: Any, max_steps: int | None) -> RunResult:
    handle = workflow.start(message, max_steps=max_steps)
    async for event in handle.events():
        print(json.dumps(event.to_json(), ensure_ascii=False, default=str), flush=True)
    return await handle.result()


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = EngineSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    configure_logging(settings.log_level, json_output=settings.log_json)

    if args.command == "list":
        for name in SAMPLES:
            print(name)
        return 0

    try:
        if args.sample == "fan-in":
            values = dict(args.values)
            workflow = build_fan_in_workflow(tuple(values), settings=settings)
            message: Any = values
        else:
            workflow = build_review_workflow(
                max_revisions=args.max_revisions,
                revision_bonus=args.revision_bonus,
                settings=settings,
            )
            message = args.score
    except (GraphValidationError, ValueError) as e:
        print(f"Invalid workflow: {e}", file=sys.stderr)
        return 2

    logger.info("Running sample workflow", extra={"sample": args.sample})
    result = asyncio.run(_run_and_print(workflow, message, args.max_steps))

    return 0 if result.succeeded else 1


if __name__ == "__main__":
    raise SystemExit(main())
