"""
pm epic - Epic commands.

`pm epic status` is the quick overview: progress, what's ready to start,
what's waiting on dependencies, and what's blocked.
"""

import json

from planstore.lib.constants import KIND_EPIC
from planstore.pm import (
    PMContext,
    close_epic,
    create_epic,
    delete_epic,
    epic_status,
    list_epics,
    list_tasks,
    load_epic,
    refresh_epic_progress,
    start_epic,
)
from planstore.pm.lifecycle import available_triggers


def _progress_bar(progress: int, width: int = 20) -> str:
    filled = progress * width // 100
    return "[" + "#" * filled + "-" * (width - filled) + "]"


def cmd_epic_new(args, ctx: PMContext) -> int:
    epic = create_epic(ctx, args.name, body=args.body or "", prd=args.prd)
    print(f"Created epic: {epic.id}")
    if epic.prd:
        print(f"From PRD:     {epic.prd}")
    print()
    print("Next steps:")
    print(f"  pm task new {epic.id} <name>")
    return 0


def cmd_epic_list(args, ctx: PMContext) -> int:
    epics = list_epics(ctx, status=args.status)
    if not epics:
        print("No epics found.")
        return 0

    for epic in epics:
        print(
            f"  {epic.id:<30} {epic.status:<12} {_progress_bar(epic.progress)} "
            f"{epic.progress:>3}% ({epic.completed_tasks}/{epic.total_tasks})"
        )
    return 0


def cmd_epic_show(args, ctx: PMContext) -> int:
    epic = load_epic(ctx, args.epic)
    tasks = list_tasks(ctx, epic.id)

    print(f"Epic: {epic.id}")
    print("=" * 60)
    print(f"Name:     {epic.name}")
    print(f"Status:   {epic.status}")
    print(f"Progress: {_progress_bar(epic.progress)} {epic.progress}%")
    if epic.prd:
        print(f"PRD:      {epic.prd}")
    print(f"Actions:  {', '.join(available_triggers(KIND_EPIC, epic.status)) or 'none'}")
    print()

    if tasks:
        print("Tasks:")
        for task in tasks:
            deps = f"  (after {', '.join(task.depends_on)})" if task.depends_on else ""
            print(f"  {task.id}  {task.status:<12} {task.name}{deps}")
    else:
        print("No tasks yet.")

    if epic.body:
        print()
        print(epic.body.rstrip())
    return 0


def cmd_epic_status(args, ctx: PMContext) -> int:
    summary = epic_status(ctx, args.epic)

    if args.json:
        print(json.dumps(summary.to_dict(), indent=2))
        return 0

    print(f"Epic Status: {summary.epic_id}")
    print("=" * 60)
    print(f"Progress: {_progress_bar(summary.progress)} {summary.progress}%")
    print()
    print("Tasks:")
    print(f"  Total:       {summary.total}")
    print(f"  Completed:   {summary.completed}")
    print(f"  In Progress: {summary.in_progress}")
    print(f"  Blocked:     {summary.blocked}")
    print(f"  Open:        {summary.open}")
    print()

    if summary.ready:
        print(f"Ready to start: {', '.join(summary.ready)}")
    for task_id, unmet in summary.waiting.items():
        print(f"Waiting: {task_id} on {', '.join(unmet)}")
    if summary.blocked_ids:
        print(f"Blocked: {', '.join(summary.blocked_ids)}")

    if summary.eligible_for_closure:
        print()
        print(f"All tasks completed. Close with: pm epic close {summary.epic_id}")
    return 0


def cmd_epic_start(args, ctx: PMContext) -> int:
    epic = start_epic(ctx, args.epic)
    print(f"Epic {epic.id} is now {epic.status}")
    return 0


def cmd_epic_close(args, ctx: PMContext) -> int:
    epic = close_epic(ctx, args.epic)
    print(f"Closed epic: {epic.id}")
    if epic.prd:
        print(f"PRD {epic.prd} marked implemented")
    return 0


def cmd_epic_refresh(args, ctx: PMContext) -> int:
    epic = refresh_epic_progress(ctx, args.epic)
    print(f"Epic {epic.id}: {epic.completed_tasks}/{epic.total_tasks} tasks, {epic.progress}%")
    return 0


def cmd_epic_delete(args, ctx: PMContext) -> int:
    delete_epic(ctx, args.epic)
    print(f"Deleted epic: {args.epic}")
    return 0
