"""
PM (Project Management) module for planstore.

Handles PRDs, epics and tasks stored as markdown files with YAML headers,
derives epic status from the task dependency graph, and records every
mutating operation in the memory bank.
"""

from planstore.pm.context import PMContext
from planstore.pm.models import Epic, Prd, Task
from planstore.pm.prds import (
    init_project,
    create_prd,
    load_prd,
    list_prds,
    update_prd,
    set_prd_status,
    delete_prd,
)
from planstore.pm.epics import (
    create_epic,
    load_epic,
    list_epics,
    update_epic,
    start_epic,
    block_epic,
    reopen_epic,
    close_epic,
    delete_epic,
    epic_status,
    refresh_epic_progress,
)
from planstore.pm.tasks import (
    create_task,
    load_task,
    list_tasks,
    ready_tasks,
    update_task,
    start_task,
    complete_task,
    block_task,
    reopen_task,
    delete_task,
)

__all__ = [
    "PMContext",
    "Prd",
    "Epic",
    "Task",
    "init_project",
    "create_prd",
    "load_prd",
    "list_prds",
    "update_prd",
    "set_prd_status",
    "delete_prd",
    "create_epic",
    "load_epic",
    "list_epics",
    "update_epic",
    "start_epic",
    "block_epic",
    "reopen_epic",
    "close_epic",
    "delete_epic",
    "epic_status",
    "refresh_epic_progress",
    "create_task",
    "load_task",
    "list_tasks",
    "ready_tasks",
    "update_task",
    "start_task",
    "complete_task",
    "block_task",
    "reopen_task",
    "delete_task",
]
