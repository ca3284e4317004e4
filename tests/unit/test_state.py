"""Unit tests for the run-scoped state store."""

from __future__ import annotations

import pytest

from agent_workflow.workflow import StaleWriteError, StateStore, WorkflowContext
from agent_workflow.workflow.state import StagedWrites


def _batch(*writes: tuple[str, str, object]) -> StagedWrites:
    staged = StagedWrites()
    for scope, key, value in writes:
        staged.put(scope, key, value)
    return staged


def test_commit_assigns_increasing_versions() -> None:
    store = StateStore()

    store.commit(_batch(("shared", "k", 1)))
    store.commit(_batch(("shared", "k", 2)))

    entry = store.entry("k")
    assert entry is not None
    assert entry.value == 2
    assert entry.version == 2
    assert store.version("missing") == 0


def test_scopes_are_independent() -> None:
    store = StateStore()
    store.commit(_batch(("a", "k", "in-a"), ("b", "k", "in-b")))

    assert store.get("k", scope="a") == "in-a"
    assert store.get("k", scope="b") == "in-b"
    assert store.get("k") is None
    assert store.snapshot() == {"a/k": "in-a", "b/k": "in-b"}
    assert store.snapshot("a") == {"k": "in-a"}


def test_stale_write_leaves_store_untouched() -> None:
    store = StateStore()
    store.commit(_batch(("shared", "counter", 1)))

    staged = StagedWrites()
    staged.put("shared", "other", "x")
    staged.put("shared", "counter", 2, if_version=0)

    with pytest.raises(StaleWriteError) as exc_info:
        store.commit(staged)

    assert exc_info.value.expected == 0
    assert exc_info.value.actual == 1
    assert store.get("other") is None
    assert store.get("counter") == 1


def test_conditional_write_succeeds_on_matching_version() -> None:
    store = StateStore()
    store.commit(_batch(("shared", "counter", 1)))

    staged = StagedWrites()
    staged.put("shared", "counter", 2, if_version=store.version("counter"))
    committed = store.commit(staged)

    assert [(e.key, e.value, e.version) for e in committed] == [("counter", 2, 2)]


def test_delete_keeps_version_increasing() -> None:
    store = StateStore()
    store.commit(_batch(("shared", "k", "v")))

    staged = StagedWrites()
    staged.delete("shared", "k")
    store.commit(staged)

    assert store.get("k", "gone") == "gone"
    assert store.entry("k") is None
    assert store.version("k") == 2

    store.commit(_batch(("shared", "k", "again")))
    assert store.version("k") == 3


def test_snapshot_is_a_copy() -> None:
    store = StateStore()
    store.commit(_batch(("shared", "items", [1, 2])))

    snap = store.snapshot()
    snap["shared/items"].append(3)

    assert store.get("items") == [1, 2]


def test_context_reads_its_own_staged_writes() -> None:
    store = StateStore()
    store.commit(_batch(("shared", "k", "committed")))
    ctx = WorkflowContext(run_id="r", executor_id="e", store=store)

    ctx.write_state("k", "staged")
    assert ctx.read_state("k") == "staged"
    assert store.get("k") == "committed"

    ctx.delete_state("k")
    assert ctx.read_state("k", "default") == "default"
    assert store.get("k") == "committed"


def test_first_precondition_within_an_invocation_is_kept() -> None:
    staged = StagedWrites()
    staged.put("shared", "k", 1, if_version=0)
    staged.put("shared", "k", 2)

    write = staged.get("shared", "k")
    assert write is not None
    assert write.value == 2
    assert write.if_version == 0
