from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any


@dataclass(frozen=True, slots=True)
class Message:
    """A payload travelling between executors, tagged with where it came from.

    `origin_executor_id` is None only for the initial message of a run.
    """

    payload: Any
    origin_executor_id: str | None = None


class FanInResults(Mapping[str, Any]):
    """What a fan-in aggregator receives: one payload per declared source.

    Iteration follows the declared source order, not arrival order, so the content
    handed to the aggregator never depends on scheduling. Sources that completed
    without sending anything map to None and are listed in `silent`.
    """

    __slots__ = ("_data", "_silent")

    def __init__(self, arrivals: Mapping[str, Any], silent: frozenset[str] = frozenset()) -> None:
        self._data = MappingProxyType(dict(arrivals))
        self._silent = silent

    def __getitem__(self, source_id: str) -> Any:
        return self._data[source_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    @property
    def silent(self) -> frozenset[str]:
        return self._silent

    def produced(self) -> dict[str, Any]:
        """Only the sources that actually sent a message."""

        return {k: v for k, v in self._data.items() if k not in self._silent}

    def __repr__(self) -> str:
        return f"FanInResults({dict(self._data)!r})"
