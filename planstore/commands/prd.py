"""
pm prd - PRD commands.
"""

from planstore.pm import PMContext, create_prd, delete_prd, list_prds, load_prd, set_prd_status


def cmd_prd_new(args, ctx: PMContext) -> int:
    body = args.body or ""
    prd = create_prd(ctx, args.name, body=body, author=args.author, version=args.version)

    print(f"Created PRD: {prd.id}")
    print(f"Status:      {prd.status}")
    print()
    print("Next steps:")
    print(f"  pm prd status {prd.id} review")
    print(f"  pm epic new {prd.id} --prd {prd.id}")
    return 0


def cmd_prd_list(args, ctx: PMContext) -> int:
    prds = list_prds(ctx, status=args.status)
    if not prds:
        print("No PRDs found.")
        return 0

    for prd in prds:
        print(f"  {prd.id:<30} {prd.status:<12} {prd.name}")
    return 0


def cmd_prd_show(args, ctx: PMContext) -> int:
    prd = load_prd(ctx, args.prd)
    print(f"PRD: {prd.id}")
    print("=" * 60)
    print(f"Name:    {prd.name}")
    print(f"Status:  {prd.status}")
    if prd.author:
        print(f"Author:  {prd.author}")
    if prd.version:
        print(f"Version: {prd.version}")
    print(f"Created: {prd.created}")
    print(f"Updated: {prd.updated}")
    if prd.body:
        print()
        print(prd.body.rstrip())
    return 0


def cmd_prd_status(args, ctx: PMContext) -> int:
    prd = set_prd_status(ctx, args.prd, args.status)
    print(f"PRD {prd.id} is now {prd.status}")
    return 0


def cmd_prd_delete(args, ctx: PMContext) -> int:
    delete_prd(ctx, args.prd)
    print(f"Deleted PRD: {args.prd}")
    return 0
