"""
Typed load/save for PM entities on top of the entity store.

Every read goes through schema validation; every write is validated before
anything touches disk. Untyped header dicts stay inside this module.
"""

import logging
from typing import Optional

from planstore.lib import frontmatter
from planstore.lib.constants import KIND_EPIC, KIND_PRD, KIND_TASK
from planstore.lib.errors import NotFound, SchemaViolation
from planstore.lib.validate import validate_before_write
from planstore.pm.deps import calculate_progress, completed_ids
from planstore.pm.models import Entity, Epic, Prd, Task
from planstore.store.repository import EntityStore

logger = logging.getLogger(__name__)

# Fields no caller may patch directly
MANAGED_FIELDS = {
    KIND_PRD: {"created", "updated"},
    KIND_EPIC: {"created", "updated", "progress", "total_tasks", "completed_tasks", "status"},
    KIND_TASK: {"created", "updated", "status"},
}


def _display(ident: str, child_id: Optional[str]) -> str:
    return f"{ident}/{child_id}" if child_id else ident


def _store_key(entity: Entity) -> tuple[str, Optional[str]]:
    if isinstance(entity, Task):
        return entity.epic_id, entity.id
    return entity.id, None


def load(store: EntityStore, kind: str, ident: str, child_id: Optional[str] = None) -> Entity:
    """Read and validate one entity.

    Raises:
        NotFound: If the file is missing
        SchemaViolation: If the header is invalid
    """
    raw = store.read(kind, ident, child_id)
    header, body = frontmatter.validate_and_decode(raw, kind, _display(ident, child_id))

    if kind == KIND_PRD:
        return Prd.from_header(ident, header, body)
    if kind == KIND_EPIC:
        return Epic.from_header(ident, header, body)
    return Task.from_header(ident, child_id, header, body)


def save(store: EntityStore, entity: Entity, create: bool = False) -> None:
    """Validate and write a whole entity. create=True refuses to overwrite."""
    ident, child_id = _store_key(entity)
    header = entity.to_header()
    path = store.locate(entity.KIND, ident, child_id)
    validate_before_write(header, entity.KIND, path, entity.ident)

    text = frontmatter.encode(header, entity.body)
    if create:
        store.create(entity.KIND, ident, text, child_id)
    else:
        store.write(entity.KIND, ident, text, child_id)


def check_patch(kind: str, ident: str, patch: dict, allow: frozenset = frozenset()) -> None:
    """Reject patches that touch managed fields."""
    for key in patch:
        if key in MANAGED_FIELDS[kind] and key not in allow:
            raise SchemaViolation(kind, ident, key, "is managed by planstore and cannot be set directly")


def patch(store: EntityStore, kind: str, ident: str, child_id: Optional[str] = None,
          updates: Optional[dict] = None, body: Optional[str] = None) -> Entity:
    """Merge updates into the stored header, optionally replace the body, rewrite.

    The merged header is validated before the write; on failure the stored
    file is left untouched.
    """
    display = _display(ident, child_id)
    raw = store.read(kind, ident, child_id)
    new_raw = frontmatter.update(raw, updates or {}, kind, display)

    if body is not None:
        header, _ = frontmatter.decode(new_raw, kind, display)
        new_raw = frontmatter.encode(header, body)

    store.write(kind, ident, new_raw, child_id)
    return load(store, kind, ident, child_id)


def load_tasks(store: EntityStore, epic_id: str) -> list[Task]:
    """All tasks of an epic, in numeric order.

    Raises:
        NotFound: If the epic doesn't exist
    """
    if not store.exists(KIND_EPIC, epic_id):
        raise NotFound(KIND_EPIC, epic_id)
    return [load(store, KIND_TASK, epic_id, task_id) for task_id in store.list_children(epic_id)]


def sync_progress(store: EntityStore, epic_id: str, tasks: Optional[list[Task]] = None) -> Epic:
    """Re-derive the epic's task counts and progress, rewriting only on change.

    Callers hold the epic lock.
    """
    if tasks is None:
        tasks = load_tasks(store, epic_id)
    epic = load(store, KIND_EPIC, epic_id)

    total = len(tasks)
    completed = len(completed_ids(tasks))
    derived = {
        "total_tasks": total,
        "completed_tasks": completed,
        "progress": calculate_progress(total, completed),
    }

    current = {
        "total_tasks": epic.total_tasks,
        "completed_tasks": epic.completed_tasks,
        "progress": epic.progress,
    }
    if current == derived:
        return epic

    logger.debug(f"[PROGRESS] {epic_id}: {current} -> {derived}")
    return patch(store, KIND_EPIC, epic_id, updates=derived)
