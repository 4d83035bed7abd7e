#!/usr/bin/env python3
"""planstore CLI entrypoint."""

import sys
import json
import argparse
import logging

from planstore.lib.config import load_config, resolve_root
from planstore.lib.constants import EFFORTS, PRD_STATUSES, WORK_STATUSES
from planstore.lib.errors import PMError
from planstore.pm import PMContext, init_project
from planstore.store.locking import LockTimeout
from planstore.tools.catalog import build_registry
from planstore.commands import epic as cmd_epic_module
from planstore.commands import log as cmd_log_module
from planstore.commands import prd as cmd_prd_module
from planstore.commands import task as cmd_task_module


def get_context(args) -> PMContext:
    """Build the project context from --root, PM_WORKSPACE/AUTOPM_WORKSPACE or cwd."""
    root = resolve_root(args.root)
    config = load_config(root)
    level = "DEBUG" if args.verbose else config.log_level
    logging.basicConfig(level=getattr(logging, level), format="%(levelname)s %(name)s: %(message)s")
    return PMContext.open(root, config)


def cmd_init(args, ctx: PMContext) -> int:
    claude_dir = init_project(ctx)
    print(f"Initialized: {claude_dir}")
    return 0


def cmd_tools_docs(args, ctx: PMContext) -> int:
    print(build_registry(ctx).generate_docs())
    return 0


def cmd_tools_list(args, ctx: PMContext) -> int:
    registry = build_registry(ctx)
    for tool in sorted(registry.all(), key=lambda t: t.name):
        print(f"  {tool.name:<16} {tool.description}")
    return 0


def cmd_tools_call(args, ctx: PMContext) -> int:
    try:
        params = json.loads(args.params) if args.params else {}
    except json.JSONDecodeError as e:
        print(f"ERROR: --params is not valid JSON: {e}")
        return 2

    result = build_registry(ctx).invoke(args.name, params)
    print(json.dumps(result, indent=2, default=str))
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(prog='pm', description='Project planning store: PRDs, epics and tasks')
    parser.add_argument('--root', '-r', help='Project root (default: $PM_WORKSPACE or cwd)')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    subparsers = parser.add_subparsers(dest='command', required=True)

    # pm init
    p_init = subparsers.add_parser('init', help='Create the .claude layout and memory bank')
    p_init.set_defaults(func=cmd_init)

    # pm prd
    p_prd = subparsers.add_parser('prd', help='Product requirement documents')
    p_prd.set_defaults(func=cmd_prd_module.cmd_prd_list, status=None)
    prd_sub = p_prd.add_subparsers(dest='prd_cmd')

    p_prd_new = prd_sub.add_parser('new', help='Create a PRD in draft status')
    p_prd_new.add_argument('name', help='PRD name (sanitized into its id)')
    p_prd_new.add_argument('--body', '-b', help='Markdown body')
    p_prd_new.add_argument('--author', help='Author')
    p_prd_new.add_argument('--version', help='Document version')
    p_prd_new.set_defaults(func=cmd_prd_module.cmd_prd_new)

    p_prd_list = prd_sub.add_parser('list', help='List PRDs')
    p_prd_list.add_argument('--status', '-s', choices=PRD_STATUSES, help='Filter by status')
    p_prd_list.set_defaults(func=cmd_prd_module.cmd_prd_list)

    p_prd_show = prd_sub.add_parser('show', help='Show a PRD')
    p_prd_show.add_argument('prd', help='PRD id')
    p_prd_show.set_defaults(func=cmd_prd_module.cmd_prd_show)

    p_prd_status = prd_sub.add_parser('status', help='Set PRD status')
    p_prd_status.add_argument('prd', help='PRD id')
    p_prd_status.add_argument('status', choices=PRD_STATUSES)
    p_prd_status.set_defaults(func=cmd_prd_module.cmd_prd_status)

    p_prd_delete = prd_sub.add_parser('delete', help='Delete a PRD')
    p_prd_delete.add_argument('prd', help='PRD id')
    p_prd_delete.set_defaults(func=cmd_prd_module.cmd_prd_delete)

    # pm epic
    p_epic = subparsers.add_parser('epic', help='Epics')
    p_epic.set_defaults(func=cmd_epic_module.cmd_epic_list, status=None)
    epic_sub = p_epic.add_subparsers(dest='epic_cmd')

    p_epic_new = epic_sub.add_parser('new', help='Create an epic')
    p_epic_new.add_argument('name', help='Epic name (sanitized into its id)')
    p_epic_new.add_argument('--body', '-b', help='Markdown body')
    p_epic_new.add_argument('--prd', help='Source PRD id')
    p_epic_new.set_defaults(func=cmd_epic_module.cmd_epic_new)

    p_epic_list = epic_sub.add_parser('list', help='List epics')
    p_epic_list.add_argument('--status', '-s', choices=WORK_STATUSES, help='Filter by status')
    p_epic_list.set_defaults(func=cmd_epic_module.cmd_epic_list)

    p_epic_show = epic_sub.add_parser('show', help='Show an epic and its tasks')
    p_epic_show.add_argument('epic', help='Epic id')
    p_epic_show.set_defaults(func=cmd_epic_module.cmd_epic_show)

    p_epic_status = epic_sub.add_parser('status', help='Progress, ready and blocked tasks')
    p_epic_status.add_argument('epic', help='Epic id')
    p_epic_status.add_argument('--json', action='store_true', help='Print the summary as JSON')
    p_epic_status.set_defaults(func=cmd_epic_module.cmd_epic_status)

    p_epic_start = epic_sub.add_parser('start', help='Move an epic to in-progress')
    p_epic_start.add_argument('epic', help='Epic id')
    p_epic_start.set_defaults(func=cmd_epic_module.cmd_epic_start)

    p_epic_close = epic_sub.add_parser('close', help='Close an epic whose tasks are all completed')
    p_epic_close.add_argument('epic', help='Epic id')
    p_epic_close.set_defaults(func=cmd_epic_module.cmd_epic_close)

    p_epic_refresh = epic_sub.add_parser('refresh', help='Re-derive progress from task files')
    p_epic_refresh.add_argument('epic', help='Epic id')
    p_epic_refresh.set_defaults(func=cmd_epic_module.cmd_epic_refresh)

    p_epic_delete = epic_sub.add_parser('delete', help='Delete an epic and its tasks')
    p_epic_delete.add_argument('epic', help='Epic id')
    p_epic_delete.add_argument('--confirm', action='store_true', required=True, help='Confirm deletion')
    p_epic_delete.set_defaults(func=cmd_epic_module.cmd_epic_delete)

    # pm task
    p_task = subparsers.add_parser('task', help='Tasks')
    task_sub = p_task.add_subparsers(dest='task_cmd', required=True)

    p_task_new = task_sub.add_parser('new', help='Add the next task to an epic')
    p_task_new.add_argument('epic', help='Epic id')
    p_task_new.add_argument('name', help='Task name')
    p_task_new.add_argument('--depends-on', '-d', help='Comma-separated task numbers (e.g. 001,002)')
    p_task_new.add_argument('--conflicts-with', '-c', help='Comma-separated task numbers')
    p_task_new.add_argument('--serial', action='store_true', help='Mark as not parallelizable')
    p_task_new.add_argument('--effort', '-e', choices=EFFORTS)
    p_task_new.add_argument('--assignee', '-a')
    p_task_new.add_argument('--body', '-b', help='Markdown body')
    p_task_new.set_defaults(func=cmd_task_module.cmd_task_new)

    p_task_list = task_sub.add_parser('list', help='List tasks of an epic')
    p_task_list.add_argument('epic', help='Epic id')
    p_task_list.add_argument('--status', '-s', choices=WORK_STATUSES, help='Filter by status')
    p_task_list.set_defaults(func=cmd_task_module.cmd_task_list)

    p_task_next = task_sub.add_parser('next', help='Tasks ready to start')
    p_task_next.add_argument('epic', help='Epic id')
    p_task_next.set_defaults(func=cmd_task_module.cmd_task_next)

    for name, help_text in (
        ('start', 'Move a task to in-progress'),
        ('done', 'Mark a task completed'),
        ('block', 'Mark a task blocked'),
        ('reopen', 'Move a task back to open'),
    ):
        p = task_sub.add_parser(name, help=help_text)
        p.add_argument('epic', help='Epic id')
        p.add_argument('task', help='Task number (e.g. 001)')
        p.set_defaults(func=cmd_task_module.cmd_task_transition)

    p_task_delete = task_sub.add_parser('delete', help='Delete a task')
    p_task_delete.add_argument('epic', help='Epic id')
    p_task_delete.add_argument('task', help='Task number')
    p_task_delete.set_defaults(func=cmd_task_module.cmd_task_delete)

    # pm log / pm stats
    p_log = subparsers.add_parser('log', help='Show the memory bank, newest first')
    p_log.add_argument('--operation', '-o', help='Filter by operation name (e.g. task_)')
    p_log.add_argument('--limit', '-n', type=int, default=20, help='Max entries')
    p_log.set_defaults(func=cmd_log_module.cmd_log)

    p_stats = subparsers.add_parser('stats', help='Memory bank statistics')
    p_stats.set_defaults(func=cmd_log_module.cmd_stats)

    # pm tools
    p_tools = subparsers.add_parser('tools', help='Tool registry')
    p_tools.set_defaults(func=cmd_tools_list)
    tools_sub = p_tools.add_subparsers(dest='tools_cmd')

    p_tools_list = tools_sub.add_parser('list', help='List registered tools')
    p_tools_list.set_defaults(func=cmd_tools_list)

    p_tools_docs = tools_sub.add_parser('docs', help='Print tool documentation as markdown')
    p_tools_docs.set_defaults(func=cmd_tools_docs)

    p_tools_call = tools_sub.add_parser('call', help='Invoke a tool through the validation gate')
    p_tools_call.add_argument('name', help='Tool name')
    p_tools_call.add_argument('--params', '-p', help='JSON object of parameters')
    p_tools_call.set_defaults(func=cmd_tools_call)

    args = parser.parse_args(argv)
    ctx = get_context(args)

    try:
        return args.func(args, ctx)
    except (PMError, LockTimeout) as e:
        print(f"ERROR: {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
