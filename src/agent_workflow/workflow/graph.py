"""Graph construction and validation.

:class:`WorkflowBuilder` collects executors and edges and :meth:`~WorkflowBuilder.build`
validates them into an immutable :class:`Workflow`. A workflow holds no per-run
data, so one instance can serve any number of runs, concurrently.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable, Mapping, Sequence
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Self

from agent_workflow.config import EngineSettings

from .edges import Case, Default, DirectEdge, Edge, FanInEdge, FanOutEdge, Predicate, SwitchEdge
from .errors import (
    DanglingEdgeError,
    DuplicateExecutorError,
    EdgeTypeMismatchError,
    FanInSourceMismatchError,
    GraphValidationError,
    MissingDefaultRouteError,
    MissingStartExecutorError,
    UnreachableOutputError,
)
from .executor import Executor, FunctionExecutor, Handler
from .messages import FanInResults

if TYPE_CHECKING:
    from .runner import RunHandle, RunResult

logger = logging.getLogger(__name__)

ExecutorRef = str | Executor

# Distinguishes "not passed" from an explicit None (unbounded).
_FROM_SETTINGS: Any = object()


class Workflow:
    """A validated, immutable workflow graph."""

    def __init__(
        self,
        *,
        executors: Mapping[str, Executor],
        edges: Sequence[Edge],
        start_id: str,
        output_ids: Iterable[str],
        settings: EngineSettings,
        name: str | None = None,
    ) -> None:
        self.name = name
        self.executors: Mapping[str, Executor] = MappingProxyType(dict(executors))
        self.edges: tuple[Edge, ...] = tuple(edges)
        self.start_id = start_id
        self.output_ids = frozenset(output_ids)
        self.settings = settings

        outgoing: dict[str, list[Edge]] = {eid: [] for eid in self.executors}
        fan_ins: dict[str, list[FanInEdge]] = {eid: [] for eid in self.executors}
        read_only: set[str] = set()
        for edge in self.edges:
            if isinstance(edge, FanInEdge):
                for source in edge.sources:
                    fan_ins[source].append(edge)
                continue
            outgoing[edge.source].append(edge)
            if isinstance(edge, FanOutEdge):
                read_only.add(edge.source)
                read_only.update(edge.targets)

        self._outgoing = {k: tuple(v) for k, v in outgoing.items()}
        self._fan_ins = {k: tuple(v) for k, v in fan_ins.items()}
        self.read_only_ids = frozenset(read_only)

    @property
    def start_executor(self) -> Executor:
        return self.executors[self.start_id]

    def outgoing_edges(self, executor_id: str) -> tuple[Edge, ...]:
        """Non fan-in edges leaving an executor, in declaration order."""

        return self._outgoing[executor_id]

    def fan_in_edges_from(self, executor_id: str) -> tuple[FanInEdge, ...]:
        return self._fan_ins[executor_id]

    @property
    def fan_in_edges(self) -> tuple[FanInEdge, ...]:
        return tuple(e for e in self.edges if isinstance(e, FanInEdge))

    def start(
        self,
        message: Any,
        *,
        max_steps: int | None = None,
        strict_routing: bool | None = None,
        max_concurrency: int | None = _FROM_SETTINGS,
    ) -> RunHandle:
        """Start a run on the current event loop and return its handle immediately.

        Unset options fall back to the workflow's :class:`EngineSettings`. Passing
        `max_concurrency=None` explicitly runs without a concurrency bound.
        """

        from .runner import start_run

        return start_run(
            self,
            message,
            max_steps=self.settings.max_steps if max_steps is None else max_steps,
            strict_routing=(
                self.settings.strict_routing if strict_routing is None else strict_routing
            ),
            max_concurrency=(
                self.settings.max_concurrency
                if max_concurrency is _FROM_SETTINGS
                else max_concurrency
            ),
        )

    async def run(self, message: Any, **options: Any) -> RunResult:
        """Start a run and wait for it to terminate."""

        return await self.start(message, **options).result()

    def __repr__(self) -> str:
        return (
            f"Workflow(name={self.name!r}, start={self.start_id!r}, "
            f"executors={len(self.executors)}, edges={len(self.edges)})"
        )


class WorkflowBuilder:
    """Fluent builder for :class:`Workflow`.

    Example:
        .. code-block:: python

            workflow = (
                WorkflowBuilder()
                .add_executor("start", start_fn)
                .add_executor("a", a_fn)
                .add_executor("b", b_fn)
                .add_executor("agg", agg_fn)
                .add_fan_out_edge("start", ["a", "b"])
                .add_fan_in_edge(["a", "b"], "agg")
                .with_output_from("agg")
                .build()
            )
            result = await workflow.run("go")
    """

    def __init__(self, *, name: str | None = None, settings: EngineSettings | None = None) -> None:
        self._name = name
        self._settings = settings
        self._executors: dict[str, Executor] = {}
        self._edges: list[Edge] = []
        self._start_id: str | None = None
        self._output_ids: list[str] = []

    # --- executors ------------------------------------------------------------------

    def add_executor(
        self, executor: ExecutorRef, handler: Handler | None = None, **kwargs: Any
    ) -> Self:
        """Register an :class:`Executor`, or an id plus a handler function."""

        if isinstance(executor, Executor):
            if handler is not None or kwargs:
                raise TypeError("Pass either an Executor instance or an id with a handler")
            instance = executor
        else:
            if handler is None:
                raise TypeError(f"Executor '{executor}' needs a handler")
            instance = FunctionExecutor(executor, handler, **kwargs)

        existing = self._executors.get(instance.id)
        if existing is not None and existing is not instance:
            raise DuplicateExecutorError(f"Duplicate executor id '{instance.id}'")
        self._executors[instance.id] = instance
        return self

    def set_start_executor(self, executor: ExecutorRef) -> Self:
        self._start_id = self._ref(executor)
        return self

    def with_output_from(self, *executors: ExecutorRef) -> Self:
        for executor in executors:
            executor_id = self._ref(executor)
            if executor_id not in self._output_ids:
                self._output_ids.append(executor_id)
        return self

    # --- edges ----------------------------------------------------------------------

    def add_edge(
        self, source: ExecutorRef, target: ExecutorRef, condition: Predicate | None = None
    ) -> Self:
        """Direct edge; with `condition`, only payloads satisfying it are forwarded."""

        self._edges.append(DirectEdge(self._ref(source), self._ref(target), condition))
        return self

    def add_fan_out_edge(self, source: ExecutorRef, targets: Sequence[ExecutorRef]) -> Self:
        self._edges.append(FanOutEdge(self._ref(source), tuple(self._ref(t) for t in targets)))
        return self

    def add_fan_in_edge(self, sources: Sequence[ExecutorRef], target: ExecutorRef) -> Self:
        self._edges.append(FanInEdge(tuple(self._ref(s) for s in sources), self._ref(target)))
        return self

    def add_conditional(
        self,
        source: ExecutorRef,
        routes: Sequence[tuple[Predicate, ExecutorRef]],
        *,
        default: ExecutorRef | None = None,
        droppable: bool = False,
    ) -> Self:
        """Ordered (predicate, target) routing; the first true predicate wins."""

        cases: list[Case | Default] = [Case(pred, self._ref(t)) for pred, t in routes]
        if default is not None:
            cases.append(Default(self._ref(default)))
        return self.add_switch(source, cases, droppable=droppable)

    def add_switch(
        self, source: ExecutorRef, cases: Sequence[Case | Default], *, droppable: bool = False
    ) -> Self:
        self._edges.append(SwitchEdge.from_cases(self._ref(source), cases, droppable=droppable))
        return self

    # --- build ----------------------------------------------------------------------

    def build(self) -> Workflow:
        """Validate the graph and freeze it.

        Raises:
            GraphValidationError: (a subclass of) for any malformed graph.
        """

        self._check_references()
        start_id = self._resolve_start()
        self._check_fan_ins()
        self._check_switches()
        self._check_types()
        self._check_outputs(start_id)

        workflow = Workflow(
            executors=self._executors,
            edges=self._edges,
            start_id=start_id,
            output_ids=self._output_ids,
            settings=self._settings or EngineSettings(),
            name=self._name,
        )
        logger.debug(
            "Workflow built",
            extra={
                "workflow": self._name,
                "executors": len(self._executors),
                "edges": len(self._edges),
            },
        )
        return workflow

    def _ref(self, executor: ExecutorRef) -> str:
        if isinstance(executor, Executor):
            self.add_executor(executor)
            return executor.id
        return executor

    def _check_references(self) -> None:
        if not self._executors:
            raise MissingStartExecutorError("Workflow has no executors")
        known = self._executors.keys()
        for edge in self._edges:
            for ref in (*edge.sources, *edge.targets):
                if ref not in known:
                    raise DanglingEdgeError(f"Edge {edge.kind.value} references unknown '{ref}'")
            if isinstance(edge, FanOutEdge | FanInEdge):
                ends = edge.targets if isinstance(edge, FanOutEdge) else edge.sources
                if not ends:
                    raise GraphValidationError(f"{edge.kind.value} edge has no endpoints")
                if len(set(ends)) != len(ends):
                    raise GraphValidationError(
                        f"{edge.kind.value} edge lists an executor twice: {list(ends)}"
                    )
        for ref in [*self._output_ids, *([self._start_id] if self._start_id else [])]:
            if ref not in known:
                raise DanglingEdgeError(f"Unknown executor '{ref}'")

    def _incoming(self) -> dict[str, list[Edge]]:
        incoming: dict[str, list[Edge]] = {eid: [] for eid in self._executors}
        for edge in self._edges:
            for target in edge.targets:
                incoming[target].append(edge)
        return incoming

    def _resolve_start(self) -> str:
        incoming = self._incoming()
        if self._start_id is None:
            roots = [eid for eid, edges in incoming.items() if not edges]
            if len(roots) != 1:
                raise MissingStartExecutorError(
                    f"Cannot infer a single start executor, candidates: {roots}"
                )
            return roots[0]
        if incoming[self._start_id]:
            raise MissingStartExecutorError(
                f"Start executor '{self._start_id}' must not have incoming edges"
            )
        return self._start_id

    def _check_fan_ins(self) -> None:
        incoming = self._incoming()
        seen: set[str] = set()
        for edge in self._edges:
            if not isinstance(edge, FanInEdge):
                continue
            if edge.target in seen:
                raise FanInSourceMismatchError(
                    f"Aggregator '{edge.target}' has more than one fan-in edge"
                )
            seen.add(edge.target)
            # The fan-in edge must be the aggregator's only incoming edge.
            others = [e for e in incoming[edge.target] if e is not edge]
            if others:
                extra = sorted({s for e in others for s in e.sources})
                raise FanInSourceMismatchError(
                    f"Aggregator '{edge.target}' declares sources {sorted(edge.sources)} "
                    f"but is also targeted by {extra}"
                )
            aggregator = self._executors[edge.target]
            if not any(issubclass(FanInResults, t) for t in aggregator.input_types):
                raise EdgeTypeMismatchError(
                    f"Aggregator '{edge.target}' must accept FanInResults"
                )

    def _check_switches(self) -> None:
        for edge in self._edges:
            if isinstance(edge, SwitchEdge) and edge.default is None and not edge.droppable:
                raise MissingDefaultRouteError(
                    f"Conditional edge from '{edge.source}' has no default route; "
                    "add one or mark it droppable"
                )

    def _check_types(self) -> None:
        for edge in self._edges:
            if isinstance(edge, FanInEdge):
                continue
            source = self._executors[edge.source]
            for target_id in edge.targets:
                target = self._executors[target_id]
                if not source.may_emit(target):
                    raise EdgeTypeMismatchError(
                        f"'{source.id}' emits {[t.__name__ for t in source.output_types]} "
                        f"but '{target.id}' accepts {[t.__name__ for t in target.input_types]}"
                    )

    def _check_outputs(self, start_id: str) -> None:
        if not self._output_ids:
            raise UnreachableOutputError("Workflow declares no output executor")
        successors: dict[str, set[str]] = {eid: set() for eid in self._executors}
        for edge in self._edges:
            for source in edge.sources:
                successors[source].update(edge.targets)
        reachable = {start_id}
        queue = deque([start_id])
        while queue:
            for nxt in successors[queue.popleft()]:
                if nxt not in reachable:
                    reachable.add(nxt)
                    queue.append(nxt)
        for output_id in self._output_ids:
            if output_id not in reachable:
                raise UnreachableOutputError(
                    f"Output executor '{output_id}' is not reachable from '{start_id}'"
                )
