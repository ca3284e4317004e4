"""Run-scoped key/value state.

One :class:`StateStore` exists per run and is dropped with it. Executors never
touch the store directly: they stage writes through their context and the runner
commits the batch when the invocation finishes.
"""

from __future__ import annotations

import copy
import logging
import threading
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from .errors import StaleWriteError

logger = logging.getLogger(__name__)

DEFAULT_SCOPE = "shared"

_DELETED = object()


@dataclass(frozen=True, slots=True)
class StateEntry:
    scope: str
    key: str
    value: Any
    version: int


@dataclass(slots=True)
class StagedWrite:
    scope: str
    key: str
    value: Any
    if_version: int | None = None

    @property
    def is_delete(self) -> bool:
        return self.value is _DELETED


@dataclass(slots=True)
class StagedWrites:
    """Writes made during one executor invocation, not yet visible to anyone else."""

    _writes: dict[tuple[str, str], StagedWrite] = field(default_factory=dict)

    def put(self, scope: str, key: str, value: Any, if_version: int | None = None) -> None:
        previous = self._writes.get((scope, key))
        # Keep the first precondition seen for the key within this invocation.
        if previous is not None and if_version is None:
            if_version = previous.if_version
        self._writes[(scope, key)] = StagedWrite(scope, key, value, if_version)

    def delete(self, scope: str, key: str) -> None:
        self.put(scope, key, _DELETED)

    def get(self, scope: str, key: str) -> StagedWrite | None:
        return self._writes.get((scope, key))

    def __len__(self) -> int:
        return len(self._writes)

    def __iter__(self) -> Iterator[StagedWrite]:
        return iter(self._writes.values())


class StateStore:
    """Scoped key/value map with per-key versions.

    Thread-safe: synchronous executor bodies run in worker threads and may read
    while the runner commits.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[tuple[str, str], StateEntry] = {}

    def get(self, key: str, default: Any = None, *, scope: str = DEFAULT_SCOPE) -> Any:
        entry = self.entry(key, scope=scope)
        return default if entry is None else entry.value

    def entry(self, key: str, *, scope: str = DEFAULT_SCOPE) -> StateEntry | None:
        with self._lock:
            entry = self._entries.get((scope, key))
        if entry is None or entry.value is _DELETED:
            return None
        return entry

    def version(self, key: str, *, scope: str = DEFAULT_SCOPE) -> int:
        """Committed version of a key; 0 if it was never written.

        Deleted keys keep their version (tombstone) so it keeps increasing.
        """

        with self._lock:
            entry = self._entries.get((scope, key))
        return 0 if entry is None else entry.version

    def commit(self, writes: StagedWrites, *, executor_id: str | None = None) -> list[StateEntry]:
        """Apply a staged batch atomically.

        Preconditions (`if_version`) are all checked before anything is applied, so a
        stale batch leaves the store untouched. Without preconditions concurrent
        writers to the same key resolve last-commit-wins.
        """

        committed: list[StateEntry] = []
        with self._lock:
            for staged in writes:
                if staged.if_version is None:
                    continue
                current = self._entries.get((staged.scope, staged.key))
                actual = 0 if current is None else current.version
                if actual != staged.if_version:
                    raise StaleWriteError(staged.scope, staged.key, staged.if_version, actual)

            for staged in writes:
                slot = (staged.scope, staged.key)
                current = self._entries.get(slot)
                version = 1 if current is None else current.version + 1
                if current is not None:
                    logger.debug(
                        "Overwriting state entry",
                        extra={
                            "scope": staged.scope,
                            "key": staged.key,
                            "version": version,
                            "executor_id": executor_id,
                        },
                    )
                self._entries[slot] = StateEntry(staged.scope, staged.key, staged.value, version)
                committed.append(
                    StateEntry(
                        staged.scope,
                        staged.key,
                        None if staged.is_delete else staged.value,
                        version,
                    )
                )
        return committed

    def snapshot(self, scope: str | None = None) -> dict[str, Any]:
        """Deep copy of committed values, keyed "scope/key" (or just key for one scope)."""

        with self._lock:
            items = [e for e in self._entries.values() if e.value is not _DELETED]
        if scope is not None:
            return {e.key: copy.deepcopy(e.value) for e in items if e.scope == scope}
        return {f"{e.scope}/{e.key}": copy.deepcopy(e.value) for e in items}

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
