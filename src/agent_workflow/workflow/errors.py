"""Exception hierarchy for the workflow engine.

Graph errors are raised by :meth:`WorkflowBuilder.build` and never observed at run
time. Everything else is raised (or recorded) while a run is executing and ends up
in the terminal :class:`~agent_workflow.workflow.events.RunCompletedEvent`.
"""

from __future__ import annotations


class WorkflowError(Exception):
    """Base class for all engine errors."""


# --- build time -----------------------------------------------------------------


class GraphValidationError(WorkflowError, ValueError):
    """The graph violates a structural invariant."""


class DuplicateExecutorError(GraphValidationError):
    pass


class MissingStartExecutorError(GraphValidationError):
    pass


class DanglingEdgeError(GraphValidationError):
    pass


class FanInSourceMismatchError(GraphValidationError):
    pass


class MissingDefaultRouteError(GraphValidationError):
    pass


class UnreachableOutputError(GraphValidationError):
    pass


class EdgeTypeMismatchError(GraphValidationError):
    pass


# --- run time -------------------------------------------------------------------


class ExecutorFailedError(WorkflowError):
    """An executor body raised and no retry was left."""

    def __init__(self, executor_id: str, cause: BaseException, attempts: int = 1) -> None:
        self.executor_id = executor_id
        self.cause = cause
        self.attempts = attempts
        super().__init__(
            f"Executor '{executor_id}' failed after {attempts} attempt(s): "
            f"{type(cause).__name__}: {cause}"
        )


class PayloadTypeError(WorkflowError, TypeError):
    def __init__(self, executor_id: str, payload: object, expected: tuple[type, ...]) -> None:
        self.executor_id = executor_id
        self.expected = expected
        names = ", ".join(t.__name__ for t in expected)
        super().__init__(
            f"Executor '{executor_id}' accepts ({names}), got {type(payload).__name__}"
        )


class MultipleEmitError(WorkflowError):
    def __init__(self, executor_id: str) -> None:
        self.executor_id = executor_id
        super().__init__(
            f"Executor '{executor_id}' emitted more than one message but is not multi_emit"
        )


class StaleWriteError(WorkflowError):
    def __init__(self, scope: str, key: str, expected: int, actual: int) -> None:
        self.scope = scope
        self.key = key
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Stale write to {scope}/{key}: expected version {expected}, found {actual}"
        )


class NoRouteMatchedError(WorkflowError):
    def __init__(self, source_id: str) -> None:
        self.executor_id = source_id
        super().__init__(f"No conditional route matched for message from '{source_id}'")


class MaxStepsExceededError(WorkflowError):
    def __init__(self, max_steps: int) -> None:
        self.max_steps = max_steps
        super().__init__(f"Run exceeded the step cap of {max_steps} executor invocations")


class FanInStalledError(WorkflowError):
    def __init__(self, pending: dict[str, list[str]]) -> None:
        self.pending = pending
        detail = "; ".join(f"{agg} waiting on {', '.join(srcs)}" for agg, srcs in pending.items())
        super().__init__(f"Ready queue drained with incomplete fan-in barriers: {detail}")


class RunCancelledError(WorkflowError):
    pass


class RunFailedError(WorkflowError):
    """The scheduler raised outside any executor body."""

    def __init__(self, cause: BaseException) -> None:
        self.cause = cause
        super().__init__(f"Run failed: {type(cause).__name__}: {cause}")
