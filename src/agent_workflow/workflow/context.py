"""Capability objects handed to executor bodies.

Two variants exist. :class:`ReadOnlyWorkflowContext` is given to executors on a
fan-out path (the broadcasting source and every parallel branch); it has no write
methods at all. :class:`WorkflowContext` adds staged writes and is given to every
other executor, fan-in aggregators included.

A context lives for exactly one invocation attempt.
"""

from __future__ import annotations

import threading
from typing import Any

from .state import DEFAULT_SCOPE, StagedWrites, StateStore


class ReadOnlyWorkflowContext:
    def __init__(
        self,
        *,
        run_id: str,
        executor_id: str,
        store: StateStore,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self._run_id = run_id
        self._executor_id = executor_id
        self._store = store
        self._cancel_event = cancel_event or threading.Event()
        self._staged = StagedWrites()
        self._outbox: list[Any] = []
        self._custom_events: list[Any] = []

    @property
    def run_id(self) -> str:
        return self._run_id

    @property
    def executor_id(self) -> str:
        return self._executor_id

    @property
    def cancelled(self) -> bool:
        """True once the run was cancelled; long synchronous bodies may poll this."""

        return self._cancel_event.is_set()

    def send(self, payload: Any) -> None:
        """Queue an outbound message along this executor's outgoing edges."""

        self._outbox.append(payload)

    def add_event(self, data: Any) -> None:
        """Attach a custom event, published before this invocation's completion event."""

        self._custom_events.append(data)

    def read_state(self, key: str, default: Any = None, *, scope: str = DEFAULT_SCOPE) -> Any:
        staged = self._staged.get(scope, key)
        if staged is not None:
            return default if staged.is_delete else staged.value
        return self._store.get(key, default, scope=scope)

    def state_version(self, key: str, *, scope: str = DEFAULT_SCOPE) -> int:
        """Committed version of a key, for use with ``write_state(if_version=...)``."""

        return self._store.version(key, scope=scope)

    # Runner-side accessors; not part of the executor-facing surface.

    def _drain_outbox(self) -> list[Any]:
        out, self._outbox = self._outbox, []
        return out

    def _drain_custom_events(self) -> list[Any]:
        out, self._custom_events = self._custom_events, []
        return out

    def _staged_writes(self) -> StagedWrites:
        return self._staged


class WorkflowContext(ReadOnlyWorkflowContext):
    def write_state(
        self,
        key: str,
        value: Any,
        *,
        scope: str = DEFAULT_SCOPE,
        if_version: int | None = None,
    ) -> None:
        """Stage a write; it commits when this invocation completes successfully.

        Visible to this invocation immediately and to everybody else only after the
        commit. With `if_version`, the commit fails with StaleWriteError unless the
        committed version still matches.
        """

        self._staged.put(scope, key, value, if_version)

    def delete_state(self, key: str, *, scope: str = DEFAULT_SCOPE) -> None:
        self._staged.delete(scope, key)
