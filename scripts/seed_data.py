"""Seed the database with demo sellers, balances and open work orders."""

import asyncio

from app.db.engine import create_tables, async_session_factory
from app.services import ledger, lifecycle


async def seed():
    await create_tables()

    async with async_session_factory() as db:
        # Check if the demo seller already has orders
        existing = await lifecycle.list_work_orders(db, payer_id="demo-seller")
        if existing:
            print("Demo work orders already exist, skipping seed.")
            return

        tx = await ledger.charge(db, "demo-seller", "seller", 300_000)
        print(f"Charged demo-seller: balance {tx.balance_after:,}")

        wo = await lifecycle.create_work_order(
            db, "demo-seller", 80_000, is_urgent=False,
            title="Blind installation - living room", address="12 Oak Street",
        )
        print(f"Created work order: {wo.id} ({wo.title})")

        wo2 = await lifecycle.create_work_order(
            db, "demo-seller", 50_000, is_urgent=True,
            title="Curtain rail replacement", address="4B Pine Road",
        )
        print(f"Created urgent work order: {wo2.id} ({wo2.title})")

        bal = await ledger.get_balance(db, "demo-seller", "seller")
        print(f"Remaining balance: {bal.balance:,}")

    print("\nSeed complete. Start the server with: uvicorn app.main:app --reload")


if __name__ == "__main__":
    asyncio.run(seed())
