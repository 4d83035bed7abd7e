"""
Tool catalog: registers the PM operations on a ToolRegistry.

Each tool wraps one planstore.pm operation bound to a project context.
Handlers take the validated params dict and return plain JSON-friendly
data.
"""

import logging
from dataclasses import asdict
from typing import Optional

from planstore.lib.constants import EFFORTS, PRD_STATUSES, WORK_STATUSES
from planstore.pm import epics, prds, tasks
from planstore.pm.context import PMContext
from planstore.tools.registry import DocResolver, ToolCategory, ToolDescriptor, ToolExample, ToolRegistry

logger = logging.getLogger(__name__)

VERSION = "0.1.0"

SLUG_SCHEMA = {"type": "string", "pattern": "^[a-z0-9]+(-[a-z0-9]+)*$", "minLength": 3, "maxLength": 50}
TASK_ID_SCHEMA = {"type": "string", "pattern": "^\\d{3}$"}
TASK_LIST_SCHEMA = {"type": "array", "items": TASK_ID_SCHEMA, "uniqueItems": True}

EPIC_SORT_KEYS = ("name", "progress", "created", "updated")

PM_REF_TOPICS = ("agile", "project-management")


def _object(properties: dict, required: Optional[list[str]] = None) -> dict:
    schema = {"type": "object", "properties": properties, "additionalProperties": False}
    if required:
        schema["required"] = required
    return schema


def _as_dict(entity, include_body: bool = True) -> dict:
    data = asdict(entity)
    if not include_body:
        data.pop("body", None)
    return data


# ─────────────────────────────────────────────────────────────────────────────
# Handlers
# ─────────────────────────────────────────────────────────────────────────────

def _epic_show(ctx: PMContext, params: dict) -> dict:
    verbose = params.get("verbose", False)
    epic = epics.load_epic(ctx, params["epic_name"])
    return {
        "epic": _as_dict(epic),
        "tasks": [_as_dict(t, include_body=verbose) for t in tasks.list_tasks(ctx, epic.id)],
    }


def _epic_list(ctx: PMContext, params: dict) -> dict:
    status = params.get("status", "all")
    found = epics.list_epics(ctx, status=None if status == "all" else status)

    sort_by = params.get("sort_by", "name")
    found.sort(key=lambda e: getattr(e, sort_by), reverse=sort_by == "progress")

    by_status = {s: 0 for s in WORK_STATUSES}
    for epic in found:
        by_status[epic.status] = by_status.get(epic.status, 0) + 1

    return {
        "epics": [_as_dict(e, include_body=False) for e in found],
        "total": len(found),
        "by_status": by_status,
    }


def _task_create(ctx: PMContext, params: dict) -> dict:
    args = {k: v for k, v in params.items() if k != "epic_name"}
    return _as_dict(tasks.create_task(ctx, params["epic_name"], **args))


def _memory_query(ctx: PMContext, params: dict) -> dict:
    entries = ctx.bank.query(operation=params.get("operation"), limit=params.get("limit"))
    return {"entries": [asdict(e) for e in entries]}


# ─────────────────────────────────────────────────────────────────────────────
# Descriptors
# ─────────────────────────────────────────────────────────────────────────────

def pm_descriptors(ctx: PMContext) -> list[ToolDescriptor]:
    """Descriptors for every PM tool, handlers bound to ctx."""
    epic_name = {"epic_name": SLUG_SCHEMA}
    epic_task = _object({"epic_name": SLUG_SCHEMA, "task": TASK_ID_SCHEMA}, ["epic_name", "task"])

    return [
        ToolDescriptor(
            name="pm_init",
            category=ToolCategory.PM,
            description="Create the .claude project layout and memory bank (safe to repeat)",
            input_schema=_object({}),
            doc_refs=["mcp://context7/project-management/project-setup"],
            examples=[ToolExample("Initialize a project", {}, "Path of the .claude directory")],
            version=VERSION,
            handler=lambda p: {"claude_dir": str(prds.init_project(ctx))},
        ),
        ToolDescriptor(
            name="prd_new",
            category=ToolCategory.PM,
            description="Create a product requirements document in draft status",
            input_schema=_object({
                "name": {"type": "string", "minLength": 1},
                "body": {"type": "string"},
                "author": {"type": "string"},
                "version": {"type": "string"},
            }, ["name"]),
            doc_refs=[
                "mcp://context7/project-management/requirements",
                "mcp://context7/agile/product-discovery",
            ],
            examples=[ToolExample("New PRD", {"name": "Checkout Flow"}, "PRD checkout-flow in draft")],
            version=VERSION,
            handler=lambda p: _as_dict(prds.create_prd(ctx, **p)),
        ),
        ToolDescriptor(
            name="prd_list",
            category=ToolCategory.PM,
            description="List PRDs, optionally filtered by status",
            input_schema=_object({"status": {"enum": list(PRD_STATUSES)}}),
            doc_refs=["mcp://context7/project-management/requirements"],
            version=VERSION,
            handler=lambda p: {
                "prds": [_as_dict(x, include_body=False) for x in prds.list_prds(ctx, p.get("status"))],
            },
        ),
        ToolDescriptor(
            name="prd_status",
            category=ToolCategory.PM,
            description="Move a PRD to draft, review, approved or implemented",
            input_schema=_object(
                {"prd_name": SLUG_SCHEMA, "status": {"enum": list(PRD_STATUSES)}},
                ["prd_name", "status"],
            ),
            doc_refs=["mcp://context7/project-management/requirements"],
            version=VERSION,
            handler=lambda p: _as_dict(prds.set_prd_status(ctx, p["prd_name"], p["status"])),
        ),
        ToolDescriptor(
            name="epic_create",
            category=ToolCategory.PM,
            description="Create an epic, optionally linked to the PRD it implements",
            input_schema=_object({
                "name": {"type": "string", "minLength": 1},
                "body": {"type": "string"},
                "prd": SLUG_SCHEMA,
            }, ["name"]),
            doc_refs=["mcp://context7/agile/epic-management"],
            examples=[ToolExample(
                "Epic from a PRD", {"name": "checkout-flow", "prd": "checkout-flow"}, "Open epic with no tasks",
            )],
            version=VERSION,
            handler=lambda p: _as_dict(epics.create_epic(ctx, **p)),
        ),
        ToolDescriptor(
            name="epic_show",
            category=ToolCategory.PM,
            description="Display detailed information about an epic including tasks, progress, and metadata",
            input_schema=_object({**epic_name, "verbose": {"type": "boolean"}}, ["epic_name"]),
            doc_refs=[
                "mcp://context7/agile/epic-management",
                "mcp://context7/project-management/status-reporting",
            ],
            examples=[ToolExample(
                "Show basic epic information", {"epic_name": "user-authentication"},
                "Epic details with task list and progress",
            )],
            version=VERSION,
            handler=lambda p: _epic_show(ctx, p),
        ),
        ToolDescriptor(
            name="epic_list",
            category=ToolCategory.PM,
            description="List all epics in the project with summary information (status, progress, task count)",
            input_schema=_object({
                "status": {"enum": ["all", *WORK_STATUSES]},
                "sort_by": {"enum": list(EPIC_SORT_KEYS)},
            }),
            doc_refs=[
                "mcp://context7/agile/epic-management",
                "mcp://context7/project-management/portfolio-view",
            ],
            examples=[
                ToolExample("List all epics", {}, "List of all epics with status and progress"),
                ToolExample("List only open epics", {"status": "open"}, "Filtered list of open epics"),
            ],
            version=VERSION,
            handler=lambda p: _epic_list(ctx, p),
        ),
        ToolDescriptor(
            name="epic_status",
            category=ToolCategory.PM,
            description="Show quick status overview of an epic (progress, blocked tasks, next actions)",
            input_schema=_object(epic_name, ["epic_name"]),
            doc_refs=[
                "mcp://context7/agile/epic-management",
                "mcp://context7/project-management/status-reporting",
                "mcp://context7/agile/task-tracking",
            ],
            examples=[ToolExample(
                "Check epic status", {"epic_name": "user-authentication"},
                "Quick status overview with progress and next actions",
            )],
            version=VERSION,
            handler=lambda p: epics.epic_status(ctx, p["epic_name"]).to_dict(),
        ),
        ToolDescriptor(
            name="epic_start",
            category=ToolCategory.PM,
            description="Move an epic to in-progress",
            input_schema=_object(epic_name, ["epic_name"]),
            doc_refs=["mcp://context7/agile/epic-management"],
            version=VERSION,
            handler=lambda p: _as_dict(epics.start_epic(ctx, p["epic_name"]), include_body=False),
        ),
        ToolDescriptor(
            name="epic_close",
            category=ToolCategory.PM,
            description="Close an epic once every task is completed; marks its PRD implemented",
            input_schema=_object(epic_name, ["epic_name"]),
            doc_refs=["mcp://context7/agile/epic-management", "mcp://context7/agile/definition-of-done"],
            version=VERSION,
            handler=lambda p: _as_dict(epics.close_epic(ctx, p["epic_name"]), include_body=False),
        ),
        ToolDescriptor(
            name="task_create",
            category=ToolCategory.PM,
            description="Add the next numbered task to an epic, with dependency and conflict edges",
            input_schema=_object({
                **epic_name,
                "name": {"type": "string", "minLength": 1},
                "depends_on": TASK_LIST_SCHEMA,
                "conflicts_with": TASK_LIST_SCHEMA,
                "parallel": {"type": "boolean"},
                "effort": {"enum": list(EFFORTS)},
                "assignee": {"type": "string"},
                "body": {"type": "string"},
            }, ["epic_name", "name"]),
            doc_refs=["mcp://context7/agile/task-sizing", "mcp://context7/project-management/task-breakdown"],
            examples=[ToolExample(
                "Task depending on 001", {"epic_name": "checkout-flow", "name": "Payment form", "depends_on": ["001"]},
                "Task 002 in open status",
            )],
            version=VERSION,
            handler=lambda p: _task_create(ctx, p),
        ),
        ToolDescriptor(
            name="task_start",
            category=ToolCategory.PM,
            description="Move a task to in-progress once its dependencies are completed",
            input_schema=epic_task,
            doc_refs=["mcp://context7/agile/task-tracking"],
            version=VERSION,
            handler=lambda p: _as_dict(tasks.start_task(ctx, p["epic_name"], p["task"]), include_body=False),
        ),
        ToolDescriptor(
            name="task_complete",
            category=ToolCategory.PM,
            description="Mark a task completed and refresh the epic's progress",
            input_schema=epic_task,
            doc_refs=["mcp://context7/agile/task-tracking"],
            version=VERSION,
            handler=lambda p: _as_dict(tasks.complete_task(ctx, p["epic_name"], p["task"]), include_body=False),
        ),
        ToolDescriptor(
            name="task_block",
            category=ToolCategory.PM,
            description="Mark a task blocked",
            input_schema=epic_task,
            doc_refs=["mcp://context7/agile/task-tracking"],
            version=VERSION,
            handler=lambda p: _as_dict(tasks.block_task(ctx, p["epic_name"], p["task"]), include_body=False),
        ),
        ToolDescriptor(
            name="task_next",
            category=ToolCategory.PM,
            description="List the open tasks of an epic whose dependencies are all completed",
            input_schema=_object(epic_name, ["epic_name"]),
            doc_refs=["mcp://context7/agile/task-tracking", "mcp://context7/agile/backlog-refinement"],
            version=VERSION,
            handler=lambda p: {
                "ready": [_as_dict(t, include_body=False) for t in tasks.ready_tasks(ctx, p["epic_name"])],
            },
        ),
        ToolDescriptor(
            name="memory_query",
            category=ToolCategory.DOCUMENTATION,
            description="Query the memory bank audit trail, newest first",
            input_schema=_object({
                "operation": {"type": "string"},
                "limit": {"type": "integer", "minimum": 1},
            }),
            doc_refs=["mcp://context7/project-management/audit-trail"],
            version=VERSION,
            handler=lambda p: _memory_query(ctx, p),
        ),
    ]


def _check_pm_refs(descriptor: ToolDescriptor) -> None:
    if descriptor.category != ToolCategory.PM:
        return
    if not any(topic in ref for ref in descriptor.doc_refs for topic in PM_REF_TOPICS):
        logger.warning(f"PM tool {descriptor.name} should include agile or project-management references")


def build_registry(ctx: PMContext, resolver: Optional[DocResolver] = None) -> ToolRegistry:
    """Create a registry with every PM tool bound to ctx."""
    registry = ToolRegistry(doc_ref_scheme=ctx.config.doc_ref_scheme, resolver=resolver)
    for descriptor in pm_descriptors(ctx):
        _check_pm_refs(descriptor)
        registry.register(descriptor.name, descriptor)
    logger.debug(f"Registered {len(registry)} PM tools")
    return registry
