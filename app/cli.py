"""CLI for Job Points — initialise the DB, top up balances, inspect the ledger."""

from __future__ import annotations

import argparse
import asyncio
import sys


async def cmd_init_db(args):
    """Create all tables."""
    from app.db.engine import create_tables

    await create_tables()
    print("Tables created")


async def cmd_charge(args):
    """Simulated top-up of an account's point balance."""
    from app.db.engine import create_tables, async_session_factory
    from app.errors import CoreError
    from app.services import ledger

    await create_tables()
    async with async_session_factory() as db:
        try:
            tx = await ledger.charge(db, args.account_id, args.role, args.amount)
        except CoreError as e:
            print(f"Charge failed: {e.message}")
            sys.exit(1)
    print(f"Charged {tx.amount:,} points to {args.role}:{args.account_id} (balance {tx.balance_after:,})")


async def cmd_balance(args):
    from app.db.engine import create_tables, async_session_factory
    from app.services import ledger

    await create_tables()
    async with async_session_factory() as db:
        bal = await ledger.get_balance(db, args.account_id, args.role)
    print(f"{args.role}:{args.account_id}")
    print(f"  balance:         {bal.balance:,}")
    print(f"  total charged:   {bal.total_charged:,}")
    print(f"  total withdrawn: {bal.total_withdrawn:,}")


async def cmd_history(args):
    from app.db.engine import create_tables, async_session_factory
    from app.services import ledger

    await create_tables()
    async with async_session_factory() as db:
        txs = await ledger.get_transaction_history(db, args.account_id, args.role, limit=args.limit)
    if not txs:
        print("No transactions")
        return
    for tx in txs:
        sign = "+" if tx.signed_amount > 0 else "-"
        job = f" job={tx.related_job_id}" if tx.related_job_id else ""
        print(f"{tx.created_at:%Y-%m-%d %H:%M:%S}  {tx.type:<10} {sign}{tx.amount:>10,}  -> {tx.balance_after:>10,}{job}")


async def cmd_pending_cancellations(args):
    """List cancellation requests awaiting an administrator."""
    from app.db.engine import create_tables, async_session_factory
    from app.models.cancellation import REQUEST_PENDING
    from app.services import cancellation_policy

    await create_tables()
    async with async_session_factory() as db:
        reqs = await cancellation_policy.list_cancellation_requests(db, status=REQUEST_PENDING)
    if not reqs:
        print("No pending cancellation requests")
        return
    for r in reqs:
        print(f"{r.id}  order={r.work_order_id}  contractor={r.contractor_id}  reason={r.reason!r}")


def main():
    parser = argparse.ArgumentParser(description="Job Points CLI")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("init-db", help="Create database tables")

    ch = subparsers.add_parser("charge", help="Charge points to an account")
    ch.add_argument("account_id")
    ch.add_argument("role", choices=["seller", "contractor"])
    ch.add_argument("amount", type=int)

    bl = subparsers.add_parser("balance", help="Show an account's balance")
    bl.add_argument("account_id")
    bl.add_argument("role", choices=["seller", "contractor"])

    hs = subparsers.add_parser("history", help="Show an account's transactions")
    hs.add_argument("account_id")
    hs.add_argument("role", choices=["seller", "contractor"])
    hs.add_argument("--limit", type=int, default=20)

    subparsers.add_parser("pending-cancellations", help="List cancellation requests awaiting review")

    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == "init-db":
        asyncio.run(cmd_init_db(args))
    elif args.command == "charge":
        asyncio.run(cmd_charge(args))
    elif args.command == "balance":
        asyncio.run(cmd_balance(args))
    elif args.command == "history":
        asyncio.run(cmd_history(args))
    elif args.command == "pending-cancellations":
        asyncio.run(cmd_pending_cancellations(args))


if __name__ == "__main__":
    main()
