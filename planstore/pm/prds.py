"""
PRD operations and project initialization.

PRDs are stored as markdown with a YAML header in:
  .claude/prds/<slug>.md
"""

import logging
from typing import Optional

from planstore.lib.constants import KIND_PRD
from planstore.lib.errors import PMError
from planstore.lib.frontmatter import now_iso
from planstore.lib.memory_bank import Operation, audited
from planstore.lib.naming import require_valid, sanitize
from planstore.pm import records
from planstore.pm.context import PMContext
from planstore.pm.models import Prd

logger = logging.getLogger(__name__)


@audited(Operation.PM_INIT, describe=lambda path: f"Initialized project layout at {path}")
def init_project(ctx: PMContext):
    """Create the .claude layout and the memory bank. Safe to call repeatedly."""
    claude_dir = ctx.store.initialize_project()
    ctx.bank.initialize()
    return claude_dir


@audited(Operation.PRD_NEW, describe=lambda prd: f"Created PRD {prd.id}")
def create_prd(ctx: PMContext, name: str, body: str = "", author: Optional[str] = None,
               version: Optional[str] = None) -> Prd:
    """Create a PRD in draft status.

    Args:
        ctx: Project context
        name: Human name; its sanitized form becomes the PRD id
        body: Markdown body
        author: Optional author
        version: Optional document version

    Returns:
        Created Prd

    Raises:
        InvalidIdentifier: If the name doesn't sanitize to a valid slug
        AlreadyExists: If a PRD with that slug exists
    """
    prd_id = require_valid(sanitize(name), KIND_PRD)
    now = now_iso()
    prd = Prd(
        id=prd_id,
        name=name.strip(),
        status="draft",
        created=now,
        updated=now,
        author=author,
        version=version,
        body=body,
    )

    with ctx.store.lock(KIND_PRD, prd_id):
        records.save(ctx.store, prd, create=True)

    logger.info(f"Created PRD {prd_id}")
    return prd


def load_prd(ctx: PMContext, prd_id: str) -> Prd:
    """Load a PRD by id. Raises NotFound."""
    return records.load(ctx.store, KIND_PRD, prd_id)


def list_prds(ctx: PMContext, status: Optional[str] = None) -> list[Prd]:
    """List PRDs, optionally filtered by status. Unreadable files are skipped."""
    prds = []
    for prd_id in ctx.store.list_ids(KIND_PRD):
        try:
            prd = records.load(ctx.store, KIND_PRD, prd_id)
        except PMError as e:
            logger.warning(f"Skipping PRD {prd_id}: {e}")
            continue
        if status is None or prd.status == status:
            prds.append(prd)
    return prds


@audited(Operation.PRD_EDIT, describe=lambda prd: f"Updated PRD {prd.id}")
def update_prd(ctx: PMContext, prd_id: str, updates: Optional[dict] = None,
               body: Optional[str] = None) -> Prd:
    """Patch header fields and/or replace the body of a PRD.

    A None value in updates removes an optional field.
    """
    updates = dict(updates or {})
    records.check_patch(KIND_PRD, prd_id, updates)

    with ctx.store.lock(KIND_PRD, prd_id):
        return records.patch(ctx.store, KIND_PRD, prd_id, updates=updates, body=body)


def set_prd_status(ctx: PMContext, prd_id: str, status: str) -> Prd:
    """Move a PRD to another status (recorded as a prd_edit).

    PRD statuses have no lifecycle graph; any of draft, review, approved or
    implemented may follow any other.
    """
    return update_prd(ctx, prd_id, updates={"status": status})


@audited(Operation.PRD_DELETE, describe=lambda prd_id: f"Deleted PRD {prd_id}")
def delete_prd(ctx: PMContext, prd_id: str) -> str:
    """Remove a PRD file. Epics referencing it keep their prd field."""
    with ctx.store.lock(KIND_PRD, prd_id):
        ctx.store.delete(KIND_PRD, prd_id)
    return prd_id
