"""
Epic operations.

Epics are stored as a directory per epic:
  .claude/epics/<slug>/epic.md
  .claude/epics/<slug>/<NNN>.md   (tasks, see planstore.pm.tasks)

progress, total_tasks and completed_tasks are never set by callers; they
are re-derived from the task files whenever a task changes.
"""

import logging
from typing import Optional

from planstore.lib.constants import KIND_EPIC, KIND_PRD, STATUS_COMPLETED, STATUS_OPEN
from planstore.lib.errors import ClosureNotAllowed, NotFound, PMError, SchemaViolation
from planstore.lib.frontmatter import now_iso
from planstore.lib.memory_bank import Operation, audited
from planstore.lib.naming import require_valid, sanitize, validate_status
from planstore.pm import records
from planstore.pm.context import PMContext
from planstore.pm.deps import EpicSummary, is_eligible_for_closure, summarize
from planstore.pm.lifecycle import apply_trigger
from planstore.pm.models import Epic

logger = logging.getLogger(__name__)


@audited(Operation.EPIC_CREATE, describe=lambda epic: f"Created epic {epic.id}")
def create_epic(ctx: PMContext, name: str, body: str = "", prd: Optional[str] = None) -> Epic:
    """Create an open epic with no tasks.

    Args:
        ctx: Project context
        name: Human name; its sanitized form becomes the epic id
        body: Markdown body
        prd: Optional source PRD slug, which must exist

    Raises:
        InvalidIdentifier: If the name doesn't sanitize to a valid slug or prd isn't one
        NotFound: If prd is given but doesn't exist
        AlreadyExists: If an epic with that slug exists
    """
    epic_id = require_valid(sanitize(name), KIND_EPIC)
    if prd is not None and not ctx.store.exists(KIND_PRD, require_valid(prd, KIND_PRD)):
        raise NotFound(KIND_PRD, prd, "Create the PRD first or omit prd")

    now = now_iso()
    epic = Epic(
        id=epic_id,
        name=name.strip(),
        status=STATUS_OPEN,
        created=now,
        updated=now,
        prd=prd,
        body=body,
    )

    with ctx.store.lock(KIND_EPIC, epic_id):
        records.save(ctx.store, epic, create=True)

    logger.info(f"Created epic {epic_id}" + (f" from PRD {prd}" if prd else ""))
    return epic


def load_epic(ctx: PMContext, epic_id: str) -> Epic:
    """Load an epic by id. Raises NotFound."""
    return records.load(ctx.store, KIND_EPIC, epic_id)


def list_epics(ctx: PMContext, status: Optional[str] = None) -> list[Epic]:
    """List epics, optionally filtered by status. Unreadable epics are skipped."""
    if status is not None:
        check = validate_status(status)
        if not check:
            raise SchemaViolation(KIND_EPIC, "", "status", check.error)

    epics = []
    for epic_id in ctx.store.list_ids(KIND_EPIC):
        try:
            epic = records.load(ctx.store, KIND_EPIC, epic_id)
        except PMError as e:
            logger.warning(f"Skipping epic {epic_id}: {e}")
            continue
        if status is None or epic.status == status:
            epics.append(epic)
    return epics


@audited(Operation.EPIC_EDIT, describe=lambda epic: f"Updated epic {epic.id}")
def update_epic(ctx: PMContext, epic_id: str, updates: Optional[dict] = None,
                body: Optional[str] = None) -> Epic:
    """Patch name/prd and/or replace the body. Status and counts are managed."""
    updates = dict(updates or {})
    records.check_patch(KIND_EPIC, epic_id, updates)
    if updates.get("prd") and not ctx.store.exists(KIND_PRD, require_valid(updates["prd"], KIND_PRD)):
        raise NotFound(KIND_PRD, updates["prd"], "Create the PRD first or leave prd unchanged")

    with ctx.store.lock(KIND_EPIC, epic_id):
        return records.patch(ctx.store, KIND_EPIC, epic_id, updates=updates, body=body)


def _transition(ctx: PMContext, epic_id: str, trigger_name: str, closable: bool = True) -> Epic:
    epic = records.load(ctx.store, KIND_EPIC, epic_id)
    new_status = apply_trigger(KIND_EPIC, epic_id, epic.status, trigger_name, closable=closable)
    return records.patch(ctx.store, KIND_EPIC, epic_id, updates={"status": new_status})


@audited(Operation.EPIC_START, describe=lambda epic: f"Started epic {epic.id}")
def start_epic(ctx: PMContext, epic_id: str) -> Epic:
    with ctx.store.lock(KIND_EPIC, epic_id):
        return _transition(ctx, epic_id, "start")


@audited(Operation.EPIC_EDIT, describe=lambda epic: f"Blocked epic {epic.id}")
def block_epic(ctx: PMContext, epic_id: str) -> Epic:
    with ctx.store.lock(KIND_EPIC, epic_id):
        return _transition(ctx, epic_id, "block")


@audited(Operation.EPIC_EDIT, describe=lambda epic: f"Reopened epic {epic.id} ({epic.status})")
def reopen_epic(ctx: PMContext, epic_id: str) -> Epic:
    with ctx.store.lock(KIND_EPIC, epic_id):
        return _transition(ctx, epic_id, "reopen")


@audited(Operation.EPIC_CLOSE, describe=lambda epic: f"Closed epic {epic.id}")
def close_epic(ctx: PMContext, epic_id: str) -> Epic:
    """Mark an epic completed.

    Requires at least one task and every task completed. When the epic was
    created from a PRD that still exists, the PRD is marked implemented.

    Raises:
        ClosureNotAllowed: If the epic is not eligible
        InvalidTransition: If the epic is already completed
    """
    with ctx.store.lock(KIND_EPIC, epic_id):
        tasks = records.load_tasks(ctx.store, epic_id)
        if not is_eligible_for_closure(tasks):
            remaining = [t.id for t in tasks if t.status != STATUS_COMPLETED]
            raise ClosureNotAllowed(epic_id, remaining)

        records.sync_progress(ctx.store, epic_id, tasks)
        epic = _transition(ctx, epic_id, "close", closable=True)

    if epic.prd:
        if ctx.store.exists(KIND_PRD, epic.prd):
            with ctx.store.lock(KIND_PRD, epic.prd):
                records.patch(ctx.store, KIND_PRD, epic.prd, updates={"status": "implemented"})
            logger.info(f"Marked PRD {epic.prd} implemented")
        else:
            logger.warning(f"Epic {epic_id} references missing PRD {epic.prd}")

    return epic


@audited(Operation.EPIC_DELETE, describe=lambda epic_id: f"Deleted epic {epic_id} and its tasks")
def delete_epic(ctx: PMContext, epic_id: str) -> str:
    """Remove an epic directory, tasks included."""
    with ctx.store.lock(KIND_EPIC, epic_id):
        ctx.store.delete(KIND_EPIC, epic_id)
    return epic_id


def epic_status(ctx: PMContext, epic_id: str) -> EpicSummary:
    """Derived status of an epic: counts, progress, ready set, waiting and blocked tasks.

    Read-only; computed fresh from the task files on every call.
    """
    tasks = records.load_tasks(ctx.store, epic_id)
    return summarize(epic_id, tasks)


@audited(Operation.EPIC_EDIT, describe=lambda epic: f"Refreshed progress of epic {epic.id} ({epic.progress}%)")
def refresh_epic_progress(ctx: PMContext, epic_id: str) -> Epic:
    """Re-derive counts and progress from the task files.

    Needed only after task files were edited by hand; task operations keep
    the epic in sync themselves.
    """
    with ctx.store.lock(KIND_EPIC, epic_id):
        return records.sync_progress(ctx.store, epic_id)
