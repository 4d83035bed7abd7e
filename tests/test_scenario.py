"""End-to-end planning scenarios over a real project directory."""

import threading

import pytest

from planstore.lib.errors import CircularDependency, ConflictOverlap
from planstore.pm import (
    close_epic,
    complete_task,
    create_epic,
    create_prd,
    create_task,
    epic_status,
    load_epic,
    load_prd,
    set_prd_status,
    start_epic,
    start_task,
    update_task,
)


def _epic_dir_snapshot(ctx, epic_id):
    epic_dir = ctx.store.epics_dir / epic_id
    return {p.name: p.read_text() for p in sorted(epic_dir.iterdir()) if p.suffix == ".md"}


class TestCheckoutFlow:
    """A PRD becomes an epic with a three-task dependency chain."""

    def test_full_lifecycle(self, ctx):
        create_prd(ctx, "Checkout Flow", body="Let customers pay.\n")
        set_prd_status(ctx, "checkout-flow", "approved")
        create_epic(ctx, "checkout-flow", prd="checkout-flow")
        start_epic(ctx, "checkout-flow")

        create_task(ctx, "checkout-flow", "Cart page")
        create_task(ctx, "checkout-flow", "Payment form", depends_on=["001"])
        create_task(ctx, "checkout-flow", "Receipt email", depends_on=["002"])

        summary = epic_status(ctx, "checkout-flow")
        assert summary.ready == ["001"]
        assert summary.waiting == {"002": ["001"], "003": ["002"]}

        start_task(ctx, "checkout-flow", "001")
        complete_task(ctx, "checkout-flow", "001")
        assert epic_status(ctx, "checkout-flow").ready == ["002"]

        start_task(ctx, "checkout-flow", "002")
        complete_task(ctx, "checkout-flow", "002")
        summary = epic_status(ctx, "checkout-flow")
        assert summary.ready == ["003"]
        assert summary.progress == 67
        assert load_epic(ctx, "checkout-flow").progress == 67

        complete_task(ctx, "checkout-flow", "003")
        summary = epic_status(ctx, "checkout-flow")
        assert summary.progress == 100
        assert summary.eligible_for_closure

        epic = close_epic(ctx, "checkout-flow")
        assert epic.status == "completed"
        assert load_prd(ctx, "checkout-flow").status == "implemented"

    def test_cycle_rejection_leaves_files_unchanged(self, ctx):
        create_epic(ctx, "checkout-flow")
        create_task(ctx, "checkout-flow", "Cart page")
        create_task(ctx, "checkout-flow", "Payment form", depends_on=["001"])
        before = _epic_dir_snapshot(ctx, "checkout-flow")

        with pytest.raises(CircularDependency) as exc:
            update_task(ctx, "checkout-flow", "001", updates={"depends_on": ["002"]})
        assert exc.value.cycle == ["001", "002", "001"]
        assert _epic_dir_snapshot(ctx, "checkout-flow") == before

    def test_conflict_overlap_rejected(self, ctx):
        create_epic(ctx, "checkout-flow")
        create_task(ctx, "checkout-flow", "Cart page")
        before = _epic_dir_snapshot(ctx, "checkout-flow")

        with pytest.raises(ConflictOverlap):
            create_task(ctx, "checkout-flow", "Payment form", depends_on=["001"], conflicts_with=["001"])
        assert _epic_dir_snapshot(ctx, "checkout-flow") == before


class TestAuditCompleteness:
    """Every mutating call leaves exactly one memory bank entry."""

    def test_one_entry_per_call(self, ctx):
        create_prd(ctx, "Checkout Flow")
        create_epic(ctx, "checkout-flow", prd="checkout-flow")
        create_task(ctx, "checkout-flow", "Cart page")
        start_task(ctx, "checkout-flow", "001")
        complete_task(ctx, "checkout-flow", "001")
        close_epic(ctx, "checkout-flow")
        with pytest.raises(CircularDependency):
            update_task(ctx, "checkout-flow", "001", updates={"depends_on": ["001"]})

        entries = ctx.bank.entries()
        assert [e.operation for e in entries] == [
            "prd_new", "epic_create", "task_create", "task_start", "task_complete", "epic_close", "task_edit",
        ]
        assert [e.success for e in entries] == [True] * 6 + [False]

        stats = ctx.bank.stats()
        assert stats.total_entries == 7
        assert stats.failed_operations == 1

    def test_reads_are_not_recorded(self, ctx):
        create_epic(ctx, "checkout-flow")
        epic_status(ctx, "checkout-flow")
        load_epic(ctx, "checkout-flow")
        assert len(ctx.bank.entries()) == 1


class TestConcurrentWriters:
    def test_parallel_task_creation(self, ctx):
        create_epic(ctx, "checkout-flow")
        errors = []

        def add(n):
            try:
                create_task(ctx, "checkout-flow", f"Task {n}")
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=add, args=(n,)) for n in range(6)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert ctx.store.list_children("checkout-flow") == ["001", "002", "003", "004", "005", "006"]
        epic = load_epic(ctx, "checkout-flow")
        assert epic.total_tasks == 6
        assert len(ctx.bank.entries()) == 7
