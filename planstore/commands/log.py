"""
pm log - Show the memory bank.

Newest entries first, one line each, similar to `git log --oneline`.
"""

from planstore.lib.memory_bank import FAILURE_MARK, SUCCESS_MARK
from planstore.pm import PMContext


def cmd_log(args, ctx: PMContext) -> int:
    entries = ctx.bank.query(operation=args.operation, limit=args.limit)
    if not entries:
        print("No operations recorded.")
        return 0

    for entry in entries:
        mark = SUCCESS_MARK if entry.success else FAILURE_MARK
        print(f"{entry.timestamp}  {mark} {entry.operation:<14} {entry.details}")
        if entry.error:
            print(f"    {entry.error}")
    return 0


def cmd_stats(args, ctx: PMContext) -> int:
    stats = ctx.bank.stats()
    print(f"Total operations: {stats.total_entries}")
    print(f"  Successful:     {stats.successful_operations}")
    print(f"  Failed:         {stats.failed_operations}")
    if stats.recent_operations:
        print()
        print("Recent:")
        for op in stats.recent_operations:
            print(f"  {op}")
    return 0
