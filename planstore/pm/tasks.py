"""
Task operations.

Tasks are numbered 001..999 within their epic and stored beside it:
  .claude/epics/<slug>/<NNN>.md

Every task operation holds the epic lock for its whole read-validate-write
sequence, since numbering, cycle checks and progress all depend on the
epic's full task set. After each change the epic's counts and progress are
re-derived.
"""

import logging
from typing import Optional

from planstore.lib.constants import KIND_EPIC, KIND_TASK, MAX_TASK_NUMBER, STATUS_OPEN
from planstore.lib.errors import HasDependents, InvalidIdentifier, SchemaViolation
from planstore.lib.frontmatter import now_iso
from planstore.lib.memory_bank import Operation, audited
from planstore.lib.naming import format_task_number, parse_task_number, validate_status
from planstore.pm import records
from planstore.pm.context import PMContext
from planstore.pm.deps import ready_set, unmet_dependencies, validate_edges
from planstore.pm.lifecycle import apply_trigger
from planstore.pm.models import Task

logger = logging.getLogger(__name__)

EDGE_FIELDS = ("depends_on", "conflicts_with")


def next_task_number(tasks: list[Task]) -> str:
    """One past the highest existing number. Gaps left by deletions are not reused."""
    highest = max((parse_task_number(t.id) for t in tasks), default=0)
    return format_task_number(highest + 1)


@audited(Operation.TASK_CREATE, describe=lambda task: f"Created task {task.ident}")
def create_task(
    ctx: PMContext,
    epic_id: str,
    name: str,
    depends_on: Optional[list[str]] = None,
    conflicts_with: Optional[list[str]] = None,
    parallel: bool = True,
    effort: Optional[str] = None,
    assignee: Optional[str] = None,
    body: str = "",
) -> Task:
    """Create the next task of an epic in open status.

    Edges are validated against the epic's current tasks before anything
    is written: references must exist, depends_on and conflicts_with must
    not overlap, and the dependency graph must stay acyclic.

    Raises:
        NotFound: If the epic or a referenced task doesn't exist
        ConflictOverlap: If an id is both a dependency and a conflict
        CircularDependency: If the dependencies would form a cycle
        SchemaViolation: If a field is malformed
    """
    depends_on = list(depends_on or [])
    conflicts_with = list(conflicts_with or [])

    with ctx.store.lock(KIND_EPIC, epic_id):
        tasks = records.load_tasks(ctx.store, epic_id)
        try:
            task_id = next_task_number(tasks)
        except ValueError:
            raise InvalidIdentifier(
                KIND_TASK, epic_id, f"epic already uses task number {MAX_TASK_NUMBER}"
            ) from None

        validate_edges(epic_id, task_id, depends_on, conflicts_with, tasks)

        now = now_iso()
        task = Task(
            epic_id=epic_id,
            id=task_id,
            name=name.strip(),
            status=STATUS_OPEN,
            created=now,
            updated=now,
            depends_on=depends_on,
            conflicts_with=conflicts_with,
            parallel=parallel,
            effort=effort,
            assignee=assignee,
            body=body,
        )
        records.save(ctx.store, task, create=True)
        records.sync_progress(ctx.store, epic_id, tasks + [task])

    logger.info(f"Created task {task.ident}: {task.name}")
    return task


def load_task(ctx: PMContext, epic_id: str, task_id: str) -> Task:
    """Load a task by epic id and number. Raises NotFound."""
    return records.load(ctx.store, KIND_TASK, epic_id, task_id)


def list_tasks(ctx: PMContext, epic_id: str, status: Optional[str] = None) -> list[Task]:
    """Tasks of an epic in numeric order, optionally filtered by status.

    Unlike list_prds/list_epics, an invalid task file raises: the dependency
    engine needs the complete task set.
    """
    if status is not None:
        check = validate_status(status)
        if not check:
            raise SchemaViolation(KIND_TASK, epic_id, "status", check.error)
    tasks = records.load_tasks(ctx.store, epic_id)
    if status is None:
        return tasks
    return [t for t in tasks if t.status == status]


def ready_tasks(ctx: PMContext, epic_id: str) -> list[Task]:
    """Open tasks of an epic whose dependencies are all completed."""
    tasks = records.load_tasks(ctx.store, epic_id)
    ready = set(ready_set(tasks))
    return [t for t in tasks if t.id in ready]


@audited(Operation.TASK_EDIT, describe=lambda task: f"Updated task {task.ident}")
def update_task(ctx: PMContext, epic_id: str, task_id: str, updates: Optional[dict] = None,
                body: Optional[str] = None) -> Task:
    """Patch task fields and/or replace the body.

    Status changes go through start/complete/block/reopen. Changed edges
    are re-validated against the rest of the epic before the write.
    """
    updates = dict(updates or {})
    records.check_patch(KIND_TASK, f"{epic_id}/{task_id}", updates)

    with ctx.store.lock(KIND_EPIC, epic_id):
        tasks = records.load_tasks(ctx.store, epic_id)
        current = _lookup(ctx, tasks, epic_id, task_id)

        if any(f in updates for f in EDGE_FIELDS):
            depends_on = list(updates.get("depends_on") or [])
            if "depends_on" not in updates:
                depends_on = list(current.depends_on)
            conflicts_with = list(updates.get("conflicts_with") or [])
            if "conflicts_with" not in updates:
                conflicts_with = list(current.conflicts_with)

            others = [t for t in tasks if t.id != task_id]
            validate_edges(epic_id, task_id, depends_on, conflicts_with, others)
            updates["depends_on"] = depends_on
            updates["conflicts_with"] = conflicts_with

        return records.patch(ctx.store, KIND_TASK, epic_id, task_id, updates=updates, body=body)


def _lookup(ctx: PMContext, tasks: list[Task], epic_id: str, task_id: str) -> Task:
    for task in tasks:
        if task.id == task_id:
            return task
    return load_task(ctx, epic_id, task_id)


def _transition(ctx: PMContext, epic_id: str, task_id: str, trigger_name: str) -> Task:
    tasks = records.load_tasks(ctx.store, epic_id)
    task = _lookup(ctx, tasks, epic_id, task_id)

    unmet = unmet_dependencies(task, tasks)
    if unmet:
        logger.debug(f"Task {task.ident} waits on {', '.join(unmet)}")

    new_status = apply_trigger(KIND_TASK, task.ident, task.status, trigger_name, deps_met=not unmet)
    updated = records.patch(ctx.store, KIND_TASK, epic_id, task_id, updates={"status": new_status})

    records.sync_progress(ctx.store, epic_id, [updated if t.id == task_id else t for t in tasks])
    return updated


@audited(Operation.TASK_START, describe=lambda task: f"Started task {task.ident}")
def start_task(ctx: PMContext, epic_id: str, task_id: str) -> Task:
    """Move a task to in-progress. Rejected while any dependency is not completed."""
    with ctx.store.lock(KIND_EPIC, epic_id):
        return _transition(ctx, epic_id, task_id, "start")


@audited(Operation.TASK_COMPLETE, describe=lambda task: f"Completed task {task.ident}")
def complete_task(ctx: PMContext, epic_id: str, task_id: str) -> Task:
    """Mark a task completed and refresh the epic's progress."""
    with ctx.store.lock(KIND_EPIC, epic_id):
        return _transition(ctx, epic_id, task_id, "complete")


@audited(Operation.TASK_BLOCK, describe=lambda task: f"Blocked task {task.ident}")
def block_task(ctx: PMContext, epic_id: str, task_id: str) -> Task:
    with ctx.store.lock(KIND_EPIC, epic_id):
        return _transition(ctx, epic_id, task_id, "block")


@audited(Operation.TASK_EDIT, describe=lambda task: f"Reopened task {task.ident}")
def reopen_task(ctx: PMContext, epic_id: str, task_id: str) -> Task:
    with ctx.store.lock(KIND_EPIC, epic_id):
        return _transition(ctx, epic_id, task_id, "reopen")


@audited(Operation.TASK_DELETE, describe=lambda ident: f"Deleted task {ident}")
def delete_task(ctx: PMContext, epic_id: str, task_id: str) -> str:
    """Remove a task file.

    Refused while another task depends on it. Other tasks' conflicts_with
    entries pointing at it are dropped.

    Raises:
        HasDependents: If another task lists it in depends_on
        NotFound: If the task doesn't exist
    """
    with ctx.store.lock(KIND_EPIC, epic_id):
        tasks = records.load_tasks(ctx.store, epic_id)
        _lookup(ctx, tasks, epic_id, task_id)

        dependents = [t.id for t in tasks if task_id in t.depends_on]
        if dependents:
            raise HasDependents(epic_id, task_id, dependents)

        ctx.store.delete(KIND_TASK, epic_id, task_id)

        remaining = []
        for t in tasks:
            if t.id == task_id:
                continue
            if task_id in t.conflicts_with:
                cleaned = [c for c in t.conflicts_with if c != task_id]
                t = records.patch(ctx.store, KIND_TASK, epic_id, t.id, updates={"conflicts_with": cleaned})
                logger.info(f"Dropped conflict with {task_id} from task {t.ident}")
            remaining.append(t)

        records.sync_progress(ctx.store, epic_id, remaining)

    return f"{epic_id}/{task_id}"
