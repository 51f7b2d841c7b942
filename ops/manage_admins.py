from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from phone_market.core.db import SessionLocal, engine
from phone_market.services.admins import add_admins, list_admins, remove_admin


async def _run(args: argparse.Namespace) -> int:
    async with SessionLocal() as db:
        if args.command == "list":
            for admin in await list_admins(db):
                added_by = admin.added_by if admin.added_by is not None else "-"
                print(f"{admin.telegram_user_id}\tadded_by={added_by}\t{admin.created_at:%Y-%m-%d %H:%M}")
            return 0

        if args.command == "add":
            added = await add_admins(db, args.user_ids, added_by=args.added_by)
            skipped = sorted(set(args.user_ids) - set(added))
            for uid in added:
                print(f"added {uid}")
            for uid in skipped:
                print(f"already admin {uid}")
            return 0

        if args.command == "remove":
            if not await remove_admin(db, args.user_id):
                print(f"{args.user_id} is not in the admins table", file=sys.stderr)
                return 1
            print(f"removed {args.user_id}")
            return 0

    print(f"Unknown command: {args.command}", file=sys.stderr)
    return 2


async def _main(args: argparse.Namespace) -> int:
    try:
        return await _run(args)
    finally:
        await engine.dispose()


def main() -> int:
    p = argparse.ArgumentParser(description="Manage persisted admins (bootstrap admins come from BOOTSTRAP_ADMINS).")
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="print persisted admins")

    add = sub.add_parser("add", help="grant admin to telegram user ids")
    add.add_argument("user_ids", nargs="+", type=int)
    add.add_argument("--added-by", type=int, default=None, help="telegram id of the granting admin")

    rm = sub.add_parser("remove", help="revoke admin from a telegram user id")
    rm.add_argument("user_id", type=int)

    args = p.parse_args()

    logging.basicConfig(level=logging.INFO)
    return asyncio.run(_main(args))


if __name__ == "__main__":
    raise SystemExit(main())
