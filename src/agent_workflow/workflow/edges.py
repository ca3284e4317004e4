"""Routing rules between executors.

Loop-back is not a separate kind: it is a direct edge (or a switch case) whose
target was already visited. Iteration limits are the caller's responsibility,
typically a counter in the payload plus a switch that forces the exit.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeAlias

Predicate: TypeAlias = Callable[[Any], bool]


class EdgeKind(str, Enum):
    DIRECT = "direct"
    FAN_OUT = "fan_out"
    FAN_IN = "fan_in"
    SWITCH = "switch"


@dataclass(frozen=True, slots=True)
class Case:
    predicate: Predicate
    target: str


@dataclass(frozen=True, slots=True)
class Default:
    target: str


@dataclass(frozen=True, slots=True)
class DirectEdge:
    source: str
    target: str
    condition: Predicate | None = None

    kind = EdgeKind.DIRECT

    @property
    def sources(self) -> tuple[str, ...]:
        return (self.source,)

    @property
    def targets(self) -> tuple[str, ...]:
        return (self.target,)

    def route(self, payload: Any) -> list[str]:
        if self.condition is not None and not self.condition(payload):
            return []
        return [self.target]


@dataclass(frozen=True, slots=True)
class FanOutEdge:
    source: str
    targets: tuple[str, ...]

    kind = EdgeKind.FAN_OUT

    @property
    def sources(self) -> tuple[str, ...]:
        return (self.source,)

    def route(self, payload: Any) -> list[str]:
        return list(self.targets)


@dataclass(frozen=True, slots=True)
class FanInEdge:
    """N declared sources feeding one aggregator.

    Routing for this kind is done by the runner's barrier, not by `route`.
    """

    sources: tuple[str, ...]
    target: str

    kind = EdgeKind.FAN_IN

    @property
    def targets(self) -> tuple[str, ...]:
        return (self.target,)


@dataclass(frozen=True, slots=True)
class SwitchEdge:
    """Ordered cases; first matching predicate wins, else the default.

    `droppable` marks a switch that may legitimately have no default: unmatched
    messages are dropped (or fail the run under strict routing).
    """

    source: str
    cases: tuple[Case, ...]
    default: str | None = None
    droppable: bool = False

    kind = EdgeKind.SWITCH

    @property
    def sources(self) -> tuple[str, ...]:
        return (self.source,)

    @property
    def targets(self) -> tuple[str, ...]:
        out = [case.target for case in self.cases]
        if self.default is not None:
            out.append(self.default)
        return tuple(dict.fromkeys(out))

    def route(self, payload: Any) -> list[str]:
        for case in self.cases:
            if case.predicate(payload):
                return [case.target]
        if self.default is not None:
            return [self.default]
        return []

    @staticmethod
    def from_cases(
        source: str, cases: Sequence[Case | Default], *, droppable: bool = False
    ) -> SwitchEdge:
        ordered: list[Case] = []
        default: str | None = None
        for item in cases:
            if isinstance(item, Default):
                if default is not None:
                    raise ValueError(f"Switch from '{source}' declares more than one default")
                default = item.target
            else:
                ordered.append(item)
        return SwitchEdge(source=source, cases=tuple(ordered), default=default, droppable=droppable)


Edge: TypeAlias = DirectEdge | FanOutEdge | FanInEdge | SwitchEdge
