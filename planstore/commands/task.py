"""
pm task - Task commands.
"""

from planstore.pm import (
    PMContext,
    block_task,
    complete_task,
    create_task,
    delete_task,
    list_tasks,
    ready_tasks,
    reopen_task,
    start_task,
)


def _split_ids(value) -> list[str]:
    if not value:
        return []
    return [v.strip() for v in value.split(",") if v.strip()]


def cmd_task_new(args, ctx: PMContext) -> int:
    task = create_task(
        ctx,
        args.epic,
        args.name,
        depends_on=_split_ids(args.depends_on),
        conflicts_with=_split_ids(args.conflicts_with),
        parallel=not args.serial,
        effort=args.effort,
        assignee=args.assignee,
        body=args.body or "",
    )
    print(f"Created task: {task.ident}")
    if task.depends_on:
        print(f"Depends on:   {', '.join(task.depends_on)}")
    return 0


def cmd_task_list(args, ctx: PMContext) -> int:
    tasks = list_tasks(ctx, args.epic, status=args.status)
    if not tasks:
        print("No tasks found.")
        return 0

    for task in tasks:
        deps = f"  (after {', '.join(task.depends_on)})" if task.depends_on else ""
        print(f"  {task.id}  {task.status:<12} {task.name}{deps}")
    return 0


def cmd_task_next(args, ctx: PMContext) -> int:
    ready = ready_tasks(ctx, args.epic)
    if not ready:
        print("No tasks ready to start.")
        return 0

    print("Ready to start:")
    for task in ready:
        print(f"  {task.id}  {task.name}")
    return 0


_TRANSITIONS = {
    "start": start_task,
    "done": complete_task,
    "block": block_task,
    "reopen": reopen_task,
}


def cmd_task_transition(args, ctx: PMContext) -> int:
    task = _TRANSITIONS[args.task_cmd](ctx, args.epic, args.task)
    print(f"Task {task.ident} is now {task.status}")
    return 0


def cmd_task_delete(args, ctx: PMContext) -> int:
    ident = delete_task(ctx, args.epic, args.task)
    print(f"Deleted task: {ident}")
    return 0
