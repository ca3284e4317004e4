from __future__ import annotations

import logging
from collections import deque
from typing import Any

from .edges import FanInEdge
from .messages import FanInResults

logger = logging.getLogger(__name__)

_SILENT = object()


class FanInBarrier:
    """Arrival accumulator for one fan-in aggregator.

    Each declared source has its own FIFO of pending arrivals. The barrier fires
    when every source has at least one, taking exactly one from each, so a source
    is counted once per round and anything extra waits for the next round.

    Not thread-safe; only the runner coroutine touches it.
    """

    def __init__(self, edge: FanInEdge) -> None:
        self.target = edge.target
        self.sources = edge.sources
        self._pending: dict[str, deque[Any]] = {s: deque() for s in edge.sources}
        self.rounds_fired = 0

    def arrive(self, source_id: str, payload: Any) -> FanInResults | None:
        """Record one arrival; return the full result set if this completes a round."""

        self._pending[source_id].append(payload)
        return self._try_fire()

    def arrive_silent(self, source_id: str) -> FanInResults | None:
        """Record that a source completed without sending anything."""

        self._pending[source_id].append(_SILENT)
        return self._try_fire()

    def _try_fire(self) -> FanInResults | None:
        if any(not queue for queue in self._pending.values()):
            return None
        arrivals: dict[str, Any] = {}
        silent: set[str] = set()
        for source in self.sources:
            value = self._pending[source].popleft()
            if value is _SILENT:
                silent.add(source)
                value = None
            arrivals[source] = value
        self.rounds_fired += 1
        logger.debug(
            "Fan-in barrier fired",
            extra={"aggregator": self.target, "round": self.rounds_fired},
        )
        return FanInResults(arrivals, frozenset(silent))

    @property
    def partially_filled(self) -> bool:
        return any(self._pending.values())

    def missing_sources(self) -> list[str]:
        return [s for s, queue in self._pending.items() if not queue]

    def discard(self) -> None:
        for queue in self._pending.values():
            queue.clear()
