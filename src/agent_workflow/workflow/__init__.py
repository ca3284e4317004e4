"""Typed message-passing workflow engine.

This package provides first-class types for:
- Executors and the contexts handed to them
- Edges: direct, fan-out, fan-in, conditional (switch); loops are ordinary edges
- A validated, immutable workflow graph and its builder
- The asyncio runner, run-scoped state, and the per-run event stream
"""

from .agents import (
    ModelAnswer,
    ModelExecutor,
    ModelRequest,
    ToolExecutor,
    WorkflowAgent,
    WorkflowExecutor,
)
from .context import ReadOnlyWorkflowContext, WorkflowContext
from .edges import Case, Default, EdgeKind
from .errors import (
    DanglingEdgeError,
    DuplicateExecutorError,
    EdgeTypeMismatchError,
    ExecutorFailedError,
    FanInSourceMismatchError,
    FanInStalledError,
    GraphValidationError,
    MaxStepsExceededError,
    MissingDefaultRouteError,
    MissingStartExecutorError,
    MultipleEmitError,
    NoRouteMatchedError,
    PayloadTypeError,
    RunCancelledError,
    RunFailedError,
    StaleWriteError,
    UnreachableOutputError,
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
from .executor import (
    Executor,
    FunctionExecutor,
    RetryPolicy,
    RetryStrategy,
    bind_executor,
    executor,
)
from .graph import Workflow, WorkflowBuilder
from .messages import FanInResults, Message
from .runner import RunHandle, RunResult
from .state import DEFAULT_SCOPE, StateEntry, StateStore

__all__ = [
    "DEFAULT_SCOPE",
    "Case",
    "DanglingEdgeError",
    "Default",
    "DuplicateExecutorError",
    "EdgeKind",
    "EdgeTypeMismatchError",
    "ErrorDetail",
    "EventStream",
    "Executor",
    "ExecutorCompletedEvent",
    "ExecutorEvent",
    "ExecutorFailedError",
    "ExecutorFailedEvent",
    "ExecutorInvokedEvent",
    "FanInResults",
    "FanInSourceMismatchError",
    "FanInStalledError",
    "FunctionExecutor",
    "GraphValidationError",
    "MaxStepsExceededError",
    "Message",
    "MissingDefaultRouteError",
    "MissingStartExecutorError",
    "ModelAnswer",
    "ModelExecutor",
    "ModelRequest",
    "MultipleEmitError",
    "NoRouteMatchedError",
    "NoRouteMatchedEvent",
    "OutputProducedEvent",
    "PayloadTypeError",
    "ReadOnlyWorkflowContext",
    "RetryPolicy",
    "RetryStrategy",
    "RunCancelledError",
    "RunFailedError",
    "RunCompletedEvent",
    "RunHandle",
    "RunResult",
    "RunStartedEvent",
    "RunStatus",
    "StaleWriteError",
    "StateCommittedEvent",
    "StateEntry",
    "StateStore",
    "ToolExecutor",
    "UnreachableOutputError",
    "Workflow",
    "WorkflowAgent",
    "WorkflowBuilder",
    "WorkflowContext",
    "WorkflowError",
    "WorkflowEvent",
    "WorkflowExecutor",
    "bind_executor",
    "executor",
]
