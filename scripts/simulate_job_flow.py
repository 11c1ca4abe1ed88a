"""Simulate a complete job flow against a running server.

Charges a seller, creates an urgent and a normal work order, has a
contractor accept both, runs one through to completion and cancels the
other inside the urgency window, then prints the seller's ledger.

Usage:
    uvicorn app.main:app &
    python scripts/simulate_job_flow.py [--base-url http://localhost:8000]
"""

import argparse
import asyncio

import httpx
from ulid import ULID

PROGRESS = ["product_preparing", "product_ready", "pickup_completed", "in_progress", "completed"]


def headers(account_id: str, role: str) -> dict[str, str]:
    return {"X-Account-Id": account_id, "X-Account-Role": role}


async def main(base_url: str):
    suffix = str(ULID())[-6:]
    seller = headers(f"seller-{suffix}", "seller")
    contractor = headers(f"contractor-{suffix}", "contractor")

    async with httpx.AsyncClient(base_url=base_url, timeout=30) as client:
        print("1. Charging seller with 150,000 points...")
        r = await client.post("/api/points/charge", json={"amount": 150_000}, headers=seller)
        r.raise_for_status()
        print(f"   Balance: {r.json()['balance_after']:,}")

        print("\n2. Creating work orders...")
        r = await client.post("/api/work-orders", headers=seller, json={
            "budget_amount": 80_000, "title": "Blind installation", "address": "12 Oak Street",
        })
        r.raise_for_status()
        normal = r.json()
        r = await client.post("/api/work-orders", headers=seller, json={
            "budget_amount": 50_000, "is_urgent": True, "title": "Urgent curtain rail",
        })
        r.raise_for_status()
        urgent = r.json()
        print(f"   Normal: {normal['id']}  Urgent: {urgent['id']}")

        r = await client.post("/api/work-orders", headers=seller, json={"budget_amount": 30_000})
        print(f"   Third order rejected: {r.status_code} {r.json()['error']}")

        print("\n3. Contractor accepts both...")
        for order in (normal, urgent):
            r = await client.post(f"/api/work-orders/{order['id']}/accept", headers=contractor)
            r.raise_for_status()
            print(f"   {order['id']}: {r.json()['status']}")

        print("\n4. Running the normal order to completion...")
        for step in PROGRESS:
            r = await client.post(
                f"/api/work-orders/{normal['id']}/status", json={"next_status": step}, headers=contractor,
            )
            r.raise_for_status()
            print(f"   -> {r.json()['status']}")

        print("\n5. Contractor cancels the urgent order inside the window...")
        r = await client.post(
            f"/api/work-orders/{urgent['id']}/cancellation-requests",
            json={"reason": "Schedule conflict"}, headers=contractor,
        )
        r.raise_for_status()
        req = r.json()
        print(f"   Request {req['id']}: {req['status']} (auto={req['auto_approved']})")

        print("\n6. Seller ledger:")
        r = await client.get("/api/points/transactions", headers=seller)
        r.raise_for_status()
        for tx in reversed(r.json()):
            print(f"   {tx['type']:<10} {tx['amount']:>10,}  -> {tx['balance_after']:>10,}")

    print("\n=== Simulation Complete ===")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Simulate a job flow")
    parser.add_argument("--base-url", default="http://localhost:8000")
    asyncio.run(main(parser.parse_args().base_url))
