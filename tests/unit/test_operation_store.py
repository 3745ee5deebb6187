"""Tests for the operation store."""

import logging

import pytest

from opsflow.contracts import Status
from opsflow.errors import OperationNotFoundError
from opsflow.operations import OperationStore, get_overall_progress


def test_add_creates_pending_operation_at_front():
    store = OperationStore()
    first = store.add("Build", "compile assets", category="build")
    second = store.add("Deploy", category="deploy")

    ops = store.operations
    assert [op.id for op in ops] == [second, first]

    op = store.get(first)
    assert op.status == Status.PENDING
    assert op.progress == 0
    assert op.category == "build"
    assert op.completed_at is None
    assert len(op.logs) == 1
    assert op.logs[0].endswith("Operation started: Build")
    assert op.logs[0].startswith("[")


def test_ids_are_unique():
    store = OperationStore()
    ids = {store.add(f"op {i}") for i in range(50)}
    assert len(ids) == 50


@pytest.mark.parametrize(
    "value, expected",
    [(-5, 0), (150, 100), (42, 42), (33.6, 34), (float("nan"), 0), (float("inf"), 100)],
)
def test_set_progress_clamps_and_marks_running(value, expected):
    store = OperationStore()
    op_id = store.add("Sync")

    store.set_progress(op_id, value)
    op = store.get(op_id)
    assert op.progress == expected
    assert op.status == Status.RUNNING


def test_complete_is_idempotent():
    store = OperationStore()
    op_id = store.add("Build")
    store.set_progress(op_id, 70)

    store.complete(op_id, {"artifact": "dist.zip"})
    first = store.get(op_id)
    store.complete(op_id, {"artifact": "dist.zip"})
    second = store.get(op_id)

    assert first.status == Status.COMPLETED
    assert first.progress == 100
    assert first.result == {"artifact": "dist.zip"}
    assert first.completed_at is not None
    assert first.logs[-1].endswith("Operation completed successfully")
    assert second == first


def test_fail_keeps_progress_and_records_error():
    store = OperationStore()
    op_id = store.add("Deploy")
    store.set_progress(op_id, 40)

    store.fail(op_id, "disk full")
    op = store.get(op_id)
    assert op.status == Status.FAILED
    assert op.progress == 40
    assert op.error == "disk full"
    assert op.completed_at is not None
    assert op.logs[-1].endswith("ERROR: disk full")


def test_terminal_operations_ignore_transitions():
    store = OperationStore()
    op_id = store.add("Deploy")
    store.complete(op_id, "ok")
    before = store.get(op_id)
    received = []
    store.subscribe(received.append)

    store.cancel(op_id)
    store.fail(op_id, "late failure")
    store.set_progress(op_id, 10)
    store.complete(op_id, "again")

    assert store.get(op_id) == before
    assert received == []


def test_cancel_from_running():
    store = OperationStore()
    op_id = store.add("Sync")
    store.set_progress(op_id, 25)

    store.cancel(op_id)
    op = store.get(op_id)
    assert op.status == Status.CANCELLED
    assert op.progress == 25
    assert op.completed_at is not None
    assert op.logs[-1].endswith("Operation cancelled")


def test_append_log_is_append_only_and_allowed_after_terminal():
    store = OperationStore()
    op_id = store.add("Agent run")
    store.append_log(op_id, "fetching context")
    store.complete(op_id)
    store.append_log(op_id, "cleanup done")

    logs = store.get(op_id).logs
    assert len(logs) == 4
    assert logs[1].endswith("fetching context")
    assert logs[-1].endswith("cleanup done")


def test_unknown_ids_are_silent_noops():
    store = OperationStore()
    received = []
    store.subscribe(received.append)

    store.update("missing", name="x")
    store.append_log("missing", "x")
    store.set_progress("missing", 50)
    store.complete("missing")
    store.fail("missing", "x")
    store.cancel("missing")
    store.remove("missing")

    assert received == []
    assert store.get("missing") is None
    with pytest.raises(OperationNotFoundError):
        store.require("missing")


def test_update_rejects_lifecycle_fields():
    store = OperationStore()
    op_id = store.add("Build")

    store.update(op_id, name="Rebuild", description="second try")
    assert store.get(op_id).name == "Rebuild"

    with pytest.raises(ValueError):
        store.update(op_id, status="completed")
    with pytest.raises(ValueError):
        store.update(op_id, nonsense=True)
    assert store.get(op_id).status == Status.PENDING


def test_remove_and_clear_terminal():
    store = OperationStore()
    done = store.add("done")
    failed = store.add("failed")
    cancelled = store.add("cancelled")
    active = store.add("active")
    removed = store.add("removed")
    store.complete(done)
    store.fail(failed, "x")
    store.cancel(cancelled)

    store.remove(removed)
    assert len(store) == 4

    store.clear_terminal()
    assert [op.id for op in store.operations] == [active]


def test_snapshots_do_not_leak_internal_state():
    store = OperationStore()
    op_id = store.add("Build")

    snapshot = store.get(op_id)
    snapshot.status = Status.COMPLETED
    snapshot.logs.append("tampered")

    op = store.get(op_id)
    assert op.status == Status.PENDING
    assert len(op.logs) == 1


def test_subscribers_receive_full_state_after_each_mutation():
    store = OperationStore()
    snapshots = []
    unsubscribe = store.subscribe(snapshots.append)

    op_id = store.add("Build")
    store.set_progress(op_id, 50)
    store.complete(op_id)
    unsubscribe()
    store.remove(op_id)

    assert len(snapshots) == 3
    assert [ops[0].status for ops in snapshots] == [
        Status.PENDING,
        Status.RUNNING,
        Status.COMPLETED,
    ]


def test_failing_subscriber_does_not_corrupt_store(caplog):
    store = OperationStore()
    received = []

    def broken(ops):
        raise RuntimeError("render failed")

    store.subscribe(broken)
    store.subscribe(received.append)

    with caplog.at_level(logging.ERROR):
        op_id = store.add("Build")
        store.set_progress(op_id, 30)

    assert len(received) == 2
    assert store.get(op_id).progress == 30
    assert "render failed" in caplog.text


def test_overall_progress():
    store = OperationStore()
    assert store.overall_progress == 100

    a = store.add("a")
    b = store.add("b")
    store.set_progress(a, 20)
    store.set_progress(b, 60)
    assert store.overall_progress == 40

    store.complete(a)
    store.fail(b, "x")
    assert store.overall_progress == 100


def test_overall_progress_rounds_half_up():
    store = OperationStore()
    a = store.add("a")
    b = store.add("b")
    store.set_progress(a, 1)
    store.set_progress(b, 2)
    assert get_overall_progress(store.operations) == 2
    assert get_overall_progress([]) == 100


@pytest.mark.asyncio
async def test_track_completes_on_success():
    store = OperationStore()
    async with store.track("Sync", category="sync") as op_id:
        store.set_progress(op_id, 50)
        store.update(op_id, result={"synced": 3})

    op = store.get(op_id)
    assert op.status == Status.COMPLETED
    assert op.result == {"synced": 3}


@pytest.mark.asyncio
async def test_track_fails_and_reraises():
    store = OperationStore()
    with pytest.raises(RuntimeError):
        async with store.track("Sync") as op_id:
            raise RuntimeError("remote unavailable")

    op = store.get(op_id)
    assert op.status == Status.FAILED
    assert op.error == "remote unavailable"
