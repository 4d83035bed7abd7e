"""
Dependency and status engine for the tasks of one epic.

Everything here is a pure function over the epic's full task list, loaded
fresh by the caller. Nothing is cached: the ready set and summaries are
recomputed on every query.

Edge rules:
- depends_on ids must be completed before a task is actionable
- depends_on and conflicts_with never share an id
- the depends_on relation is acyclic

Cycle checks run a DFS from each direct dependency of the task being
changed, sharing one visited set across starts, so a check is O(V+E).
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from planstore.lib.constants import (
    KIND_TASK,
    STATUS_BLOCKED,
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
    STATUS_OPEN,
)
from planstore.lib.errors import CircularDependency, ConflictOverlap, NotFound, SchemaViolation
from planstore.lib.naming import validate_task_number
from planstore.pm.models import Task

logger = logging.getLogger(__name__)


@dataclass
class StatusBuckets:
    """Task ids partitioned by status, each sorted ascending."""
    completed: list[str] = field(default_factory=list)
    in_progress: list[str] = field(default_factory=list)
    blocked: list[str] = field(default_factory=list)
    open: list[str] = field(default_factory=list)


@dataclass
class EpicSummary:
    """Derived status of an epic."""
    epic_id: str
    total: int
    completed: int
    in_progress: int
    blocked: int
    open: int
    progress: int
    ready: list[str]                           # Open tasks whose dependencies are all completed
    waiting: dict[str, list[str]]              # Open task -> unmet dependency ids
    blocked_ids: list[str]
    eligible_for_closure: bool

    def to_dict(self) -> dict:
        return {
            "epic_id": self.epic_id,
            "total": self.total,
            "completed": self.completed,
            "in_progress": self.in_progress,
            "blocked": self.blocked,
            "open": self.open,
            "progress": self.progress,
            "ready": list(self.ready),
            "waiting": {k: list(v) for k, v in self.waiting.items()},
            "blocked_ids": list(self.blocked_ids),
            "eligible_for_closure": self.eligible_for_closure,
        }


def _sorted_ids(ids: Iterable[str]) -> list[str]:
    return sorted(ids, key=lambda i: (len(i), i))


def categorize(tasks: list[Task]) -> StatusBuckets:
    """Partition tasks by status. Unknown statuses count as open."""
    buckets = StatusBuckets()
    for task in tasks:
        if task.status == STATUS_COMPLETED:
            buckets.completed.append(task.id)
        elif task.status == STATUS_IN_PROGRESS:
            buckets.in_progress.append(task.id)
        elif task.status == STATUS_BLOCKED:
            buckets.blocked.append(task.id)
        else:
            if task.status != STATUS_OPEN:
                logger.warning(f"Task {task.ident} has unknown status '{task.status}', treating as open")
            buckets.open.append(task.id)

    buckets.completed = _sorted_ids(buckets.completed)
    buckets.in_progress = _sorted_ids(buckets.in_progress)
    buckets.blocked = _sorted_ids(buckets.blocked)
    buckets.open = _sorted_ids(buckets.open)
    return buckets


def completed_ids(tasks: list[Task]) -> set[str]:
    return {t.id for t in tasks if t.status == STATUS_COMPLETED}


def unmet_dependencies(task: Task, tasks: list[Task]) -> list[str]:
    """Dependencies of task that are not completed (including unknown ids)."""
    done = completed_ids(tasks)
    return [dep for dep in task.depends_on if dep not in done]


def ready_set(tasks: list[Task]) -> list[str]:
    """Open tasks whose every dependency is completed, sorted by id."""
    done = completed_ids(tasks)
    ready = [
        t.id for t in tasks
        if t.status == STATUS_OPEN and all(dep in done for dep in t.depends_on)
    ]
    return _sorted_ids(ready)


def waiting_tasks(tasks: list[Task]) -> dict[str, list[str]]:
    """Open tasks held back by unmet dependencies, mapped to those dependencies."""
    done = completed_ids(tasks)
    waiting = {}
    for t in sorted(tasks, key=lambda t: (len(t.id), t.id)):
        if t.status != STATUS_OPEN:
            continue
        unmet = [dep for dep in t.depends_on if dep not in done]
        if unmet:
            waiting[t.id] = unmet
    return waiting


def build_graph(tasks: list[Task]) -> dict[str, list[str]]:
    """task id -> depends_on ids."""
    return {t.id: list(t.depends_on) for t in tasks}


def find_cycle(task_id: str, depends_on: list[str], graph: dict[str, list[str]]) -> Optional[list[str]]:
    """Return the cycle that depends_on would close through task_id, or None.

    The returned path starts and ends with task_id, e.g. ["003", "001", "002", "003"].
    The graph entry for task_id itself is ignored; depends_on replaces it.
    """
    visited: set[str] = set()

    for start in depends_on:
        if start == task_id:
            return [task_id, task_id]
        if start in visited:
            continue

        visited.add(start)
        path = [start]
        stack = [iter(graph.get(start, ()))]

        while stack:
            nxt = next(stack[-1], None)
            if nxt is None:
                stack.pop()
                path.pop()
                continue
            if nxt == task_id:
                return [task_id, *path, task_id]
            if nxt in visited:
                continue
            visited.add(nxt)
            path.append(nxt)
            stack.append(iter(graph.get(nxt, ())))

    return None


def check_no_cycle(epic_id: str, task_id: str, depends_on: list[str], graph: dict[str, list[str]]) -> None:
    """Raise CircularDependency if depends_on would create a cycle."""
    cycle = find_cycle(task_id, depends_on, graph)
    if cycle:
        raise CircularDependency(epic_id, task_id, cycle)


def check_conflicts(epic_id: str, task_id: str, depends_on: list[str], conflicts_with: list[str]) -> None:
    """Raise ConflictOverlap if an id is both a dependency and a conflict."""
    conflicts = set(conflicts_with)
    for dep in depends_on:
        if dep in conflicts:
            raise ConflictOverlap(epic_id, task_id, dep)


def check_references(epic_id: str, task_id: str, ids: list[str], known: set[str], field_name: str) -> None:
    """Edge ids must be well-formed, distinct, not self, and exist in the epic."""
    ident = f"{epic_id}/{task_id}"
    seen = set()
    for ref in ids:
        check = validate_task_number(ref)
        if not check:
            raise SchemaViolation(KIND_TASK, ident, field_name, f"'{ref}': {check.error}")
        if ref in seen:
            raise SchemaViolation(KIND_TASK, ident, field_name, f"'{ref}' is listed twice")
        seen.add(ref)
        if ref == task_id:
            if field_name == "depends_on":
                raise CircularDependency(epic_id, task_id, [task_id, task_id])
            raise SchemaViolation(KIND_TASK, ident, field_name, "a task cannot conflict with itself")
        if ref not in known:
            raise NotFound(
                KIND_TASK, f"{epic_id}/{ref}",
                f"Create task {ref} first or remove it from {field_name}",
            )


def validate_edges(
    epic_id: str,
    task_id: str,
    depends_on: list[str],
    conflicts_with: list[str],
    tasks: list[Task],
) -> None:
    """Full edge validation for a new or modified task. Runs before any write.

    tasks is the epic's current task list; the entry for task_id (if any) is
    replaced by the proposed edges.
    """
    known = {t.id for t in tasks} | {task_id}
    check_references(epic_id, task_id, depends_on, known, "depends_on")
    check_references(epic_id, task_id, conflicts_with, known, "conflicts_with")
    check_conflicts(epic_id, task_id, depends_on, conflicts_with)

    graph = build_graph(tasks)
    graph[task_id] = list(depends_on)
    check_no_cycle(epic_id, task_id, depends_on, graph)


def calculate_progress(total: int, completed: int) -> int:
    """Percentage of completed tasks, rounded half up. 0 when there are no tasks."""
    if total <= 0:
        return 0
    return (200 * completed + total) // (2 * total)


def is_eligible_for_closure(tasks: list[Task]) -> bool:
    """At least one task and every task completed."""
    return bool(tasks) and all(t.status == STATUS_COMPLETED for t in tasks)


def summarize(epic_id: str, tasks: list[Task]) -> EpicSummary:
    """Derive the epic's status view from its tasks."""
    buckets = categorize(tasks)
    total = len(tasks)
    completed = len(buckets.completed)
    return EpicSummary(
        epic_id=epic_id,
        total=total,
        completed=completed,
        in_progress=len(buckets.in_progress),
        blocked=len(buckets.blocked),
        open=len(buckets.open),
        progress=calculate_progress(total, completed),
        ready=ready_set(tasks),
        waiting=waiting_tasks(tasks),
        blocked_ids=buckets.blocked,
        eligible_for_closure=is_eligible_for_closure(tasks),
    )
