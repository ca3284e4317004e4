from __future__ import annotations

import asyncio
import inspect
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol, TypeAlias

from .context import ReadOnlyWorkflowContext

TypeSpec: TypeAlias = type | tuple[type, ...]

Handler: TypeAlias = Callable[[Any, Any], Any | Awaitable[Any]]


def _as_types(spec: TypeSpec | None) -> tuple[type, ...]:
    if spec is None:
        return (object,)
    if isinstance(spec, tuple):
        if not spec:
            raise ValueError("Type declaration must not be empty")
        return spec
    return (spec,)


class RetryStrategy(Protocol):
    """Caller-supplied retry decision for node-local failures."""

    def next_delay(self, attempt: int, error: BaseException) -> float | None:
        """Seconds to wait before attempt `attempt + 1`, or None to give up."""
        ...


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Retry up to `max_attempts` total attempts with a fixed, caller-chosen delay.

    No backoff schedule is built in; pass your own strategy when you need one.
    """

    max_attempts: int
    delay: float = 0.0
    retry_on: tuple[type[BaseException], ...] = (Exception,)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.delay < 0:
            raise ValueError("delay must be >= 0")

    def next_delay(self, attempt: int, error: BaseException) -> float | None:
        if attempt >= self.max_attempts or not isinstance(error, self.retry_on):
            return None
        return self.delay


class Executor(ABC):
    """A named unit of computation.

    `handle` receives the message payload and a context. A non-None return value is
    sent as an outbound message, as is every ``ctx.send`` call. More than one
    outbound message per invocation requires ``multi_emit=True``.

    Args:
        id: Unique id within a graph.
        input_types: Payload types this executor accepts (a tuple acts as a sum type).
        output_types: Payload types it emits; used for build-time edge checks.
        multi_emit: Allow more than one outbound message per invocation.
        retry_policy: Opt-in retry of failed invocations.
    """

    def __init__(
        self,
        id: str,  # noqa: A002 (id)
        *,
        input_types: TypeSpec | None = None,
        output_types: TypeSpec | None = None,
        multi_emit: bool = False,
        retry_policy: RetryStrategy | None = None,
    ) -> None:
        if not id or not id.strip():
            raise ValueError("Executor id must be a non-empty string")
        self.id = id
        self.input_types = _as_types(input_types)
        self.output_types = _as_types(output_types)
        self.multi_emit = multi_emit
        self.retry_policy = retry_policy

    def accepts(self, payload: Any) -> bool:
        return isinstance(payload, self.input_types)

    def may_emit(self, target: Executor) -> bool:
        """Whether any declared output type could be accepted by `target`."""

        if object in self.output_types or object in target.input_types:
            return True
        return any(
            issubclass(out, inp) or issubclass(inp, out)
            for out in self.output_types
            for inp in target.input_types
        )

    @abstractmethod
    async def handle(self, payload: Any, ctx: ReadOnlyWorkflowContext) -> Any:
        """Process one message."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r})"


class FunctionExecutor(Executor):
    """Adapts a plain function ``fn(payload, ctx)``.

    Coroutine functions are awaited; regular functions run in a worker thread so a
    blocking body only holds up its own branch.
    """

    def __init__(self, id: str, fn: Handler, **kwargs: Any) -> None:  # noqa: A002 (id)
        super().__init__(id, **kwargs)
        self._fn = fn
        self._is_async = inspect.iscoroutinefunction(fn)

    async def handle(self, payload: Any, ctx: ReadOnlyWorkflowContext) -> Any:
        if self._is_async:
            return await self._fn(payload, ctx)
        return await asyncio.to_thread(self._fn, payload, ctx)


def bind_executor(
    fn: Handler, id: str | None = None, **kwargs: Any  # noqa: A002 (id)
) -> FunctionExecutor:
    """Wrap a function as an executor; the id defaults to the function name."""

    return FunctionExecutor(id or fn.__name__, fn, **kwargs)


def executor(
    id: str | None = None,  # noqa: A002 (id)
    *,
    input_types: TypeSpec | None = None,
    output_types: TypeSpec | None = None,
    multi_emit: bool = False,
    retry_policy: RetryStrategy | None = None,
) -> Callable[[Handler], FunctionExecutor]:
    """Decorator form of :func:`bind_executor`."""

    def wrap(fn: Handler) -> FunctionExecutor:
        return bind_executor(
            fn,
            id,
            input_types=input_types,
            output_types=output_types,
            multi_emit=multi_emit,
            retry_policy=retry_policy,
        )

    return wrap
