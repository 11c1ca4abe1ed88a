"""Integration tests for API endpoints."""

from __future__ import annotations

import json

import pytest
import pytest_asyncio
from fastapi import WebSocketDisconnect
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from app.main import app, lifespan
from app.db.engine import get_db
from app.services.events import event_bus
from app.services.ws_manager import ws_manager

SELLER = {"X-Account-Id": "seller-1", "X-Account-Role": "seller"}
OTHER_SELLER = {"X-Account-Id": "seller-2", "X-Account-Role": "seller"}
CONTRACTOR = {"X-Account-Id": "contractor-1", "X-Account-Role": "contractor"}
OTHER_CONTRACTOR = {"X-Account-Id": "contractor-2", "X-Account-Role": "contractor"}
ADMIN = {"X-Account-Id": "admin-1", "X-Account-Role": "admin"}


@pytest_asyncio.fixture
async def client(session_factory):
    """Test client backed by a throwaway SQLite database."""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _charge(client, amount, headers=SELLER):
    r = await client.post("/api/points/charge", json={"amount": amount}, headers=headers)
    assert r.status_code == 201
    return r.json()


async def _create_order(client, budget=80_000, **extra):
    r = await client.post("/api/work-orders", json={"budget_amount": budget, **extra}, headers=SELLER)
    assert r.status_code == 201, r.text
    return r.json()


@pytest.mark.asyncio
async def test_health(client):
    r = await client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"ok": True}


@pytest.mark.asyncio
async def test_missing_identity_is_unauthorized(client):
    r = await client.get("/api/points/balance")
    assert r.status_code == 401

    r = await client.get("/api/points/balance", headers={"X-Account-Id": "x", "X-Account-Role": "guest"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_charge_and_balance(client):
    r = await client.get("/api/points/balance", headers=SELLER)
    assert r.status_code == 200
    assert r.json()["balance"] == 0

    tx = await _charge(client, 100_000)
    assert tx["type"] == "charge"
    assert tx["balance_after"] == 100_000

    r = await client.get("/api/points/balance", headers=SELLER)
    assert r.json()["balance"] == 100_000
    assert r.json()["total_charged"] == 100_000


@pytest.mark.asyncio
async def test_charge_rejects_non_positive(client):
    r = await client.post("/api/points/charge", json={"amount": 0}, headers=SELLER)
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "invalid_amount"


@pytest.mark.asyncio
async def test_admin_holds_no_balance(client):
    r = await client.get("/api/points/balance", headers=ADMIN)
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_validate_reports_shortage(client):
    await _charge(client, 20_000)
    r = await client.post("/api/points/validate", json={"required_amount": 30_000}, headers=SELLER)
    assert r.status_code == 200
    data = r.json()
    assert data["is_valid"] is False
    assert data["shortage"] == 10_000


@pytest.mark.asyncio
async def test_create_order_debits_and_insufficient_returns_shortage(client):
    await _charge(client, 100_000)
    order = await _create_order(client, 80_000, title="Blind install")
    assert order["status"] == "pending"
    assert len(order["id"]) == 6

    r = await client.post("/api/work-orders", json={"budget_amount": 30_000}, headers=SELLER)
    assert r.status_code == 402
    err = r.json()["error"]
    assert err["code"] == "insufficient_balance"
    assert err["shortage"] == 10_000
    assert err["current_balance"] == 20_000

    r = await client.get("/api/points/transactions", headers=SELLER)
    assert [t["type"] for t in r.json()] == ["payment", "charge"]


@pytest.mark.asyncio
async def test_only_sellers_create_orders(client):
    r = await client.post("/api/work-orders", json={"budget_amount": 0}, headers=CONTRACTOR)
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_accept_and_progress_to_completion(client):
    await _charge(client, 100_000)
    order = await _create_order(client)

    r = await client.post(f"/api/work-orders/{order['id']}/accept", headers=CONTRACTOR)
    assert r.status_code == 200
    assert r.json()["status"] == "assigned"
    assert r.json()["contractor_id"] == "contractor-1"

    r = await client.post(f"/api/work-orders/{order['id']}/accept", headers=OTHER_CONTRACTOR)
    assert r.status_code == 409
    assert r.json()["error"]["code"] == "already_assigned"

    for step in ("product_preparing", "product_ready", "pickup_completed", "in_progress", "completed"):
        r = await client.post(
            f"/api/work-orders/{order['id']}/status", json={"next_status": step}, headers=CONTRACTOR,
        )
        assert r.status_code == 200, r.text
        assert r.json()["status"] == step

    r = await client.get(f"/api/work-orders/{order['id']}/history", headers=SELLER)
    assert r.status_code == 200
    assert [h["to_status"] for h in r.json()][-1] == "completed"

    r = await client.get("/api/work-orders/counts", headers=ADMIN)
    assert r.json()["completed"] == 1


@pytest.mark.asyncio
async def test_skipping_a_step_conflicts(client):
    await _charge(client, 100_000)
    order = await _create_order(client)
    await client.post(f"/api/work-orders/{order['id']}/accept", headers=CONTRACTOR)

    r = await client.post(
        f"/api/work-orders/{order['id']}/status", json={"next_status": "in_progress"}, headers=CONTRACTOR,
    )
    assert r.status_code == 409
    assert r.json()["error"]["code"] == "invalid_transition"

    r = await client.post(
        f"/api/work-orders/{order['id']}/status", json={"next_status": "cancelled"}, headers=CONTRACTOR,
    )
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_unknown_order_is_404(client):
    r = await client.get("/api/work-orders/ZZZZZZ", headers=SELLER)
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "work_order_not_found"


@pytest.mark.asyncio
async def test_payer_cancel_and_reupload(client):
    await _charge(client, 100_000)
    order = await _create_order(client, title="Curtains")

    r = await client.post(f"/api/work-orders/{order['id']}/cancel", headers=OTHER_SELLER)
    assert r.status_code == 403

    r = await client.post(f"/api/work-orders/{order['id']}/cancel", headers=SELLER)
    assert r.status_code == 200
    assert r.json()["status"] == "cancelled"
    r = await client.get("/api/points/balance", headers=SELLER)
    assert r.json()["balance"] == 100_000

    r = await client.post(f"/api/work-orders/{order['id']}/reupload", headers=SELLER)
    assert r.status_code == 201
    new = r.json()
    assert new["original_work_order_id"] == order["id"]
    assert new["title"] == "Curtains"
    r = await client.get("/api/points/balance", headers=SELLER)
    assert r.json()["balance"] == 20_000


@pytest.mark.asyncio
async def test_urgent_cancellation_inside_window(client):
    await _charge(client, 100_000)
    order = await _create_order(client, 50_000, is_urgent=True)
    await client.post(f"/api/work-orders/{order['id']}/accept", headers=CONTRACTOR)

    r = await client.get(f"/api/work-orders/{order['id']}/cancellation-window", headers=CONTRACTOR)
    assert r.status_code == 200
    window = r.json()
    assert window["window_seconds"] == 300
    assert window["auto_approvable"] is True
    assert 0 < window["remaining_seconds"] <= 300

    r = await client.post(
        f"/api/work-orders/{order['id']}/cancellation-requests",
        json={"reason": "Schedule conflict"}, headers=OTHER_CONTRACTOR,
    )
    assert r.status_code == 403

    r = await client.post(
        f"/api/work-orders/{order['id']}/cancellation-requests",
        json={"reason": "Schedule conflict"}, headers=CONTRACTOR,
    )
    assert r.status_code == 201
    req = r.json()
    assert req["status"] == "approved"
    assert req["auto_approved"] is True

    r = await client.get(f"/api/work-orders/{order['id']}", headers=SELLER)
    assert r.json()["status"] == "cancelled"
    r = await client.get("/api/points/balance", headers=SELLER)
    assert r.json()["balance"] == 100_000


@pytest.mark.asyncio
async def test_admin_review_flow(client, monkeypatch):
    from app.services import cancellation_policy

    await _charge(client, 100_000)
    order = await _create_order(client, 50_000)
    await client.post(f"/api/work-orders/{order['id']}/accept", headers=CONTRACTOR)

    # pretend the window has already elapsed
    monkeypatch.setattr(cancellation_policy, "is_auto_approvable", lambda *a, **k: False)
    r = await client.post(
        f"/api/work-orders/{order['id']}/cancellation-requests",
        json={"reason": "Customer unreachable"}, headers=CONTRACTOR,
    )
    assert r.status_code == 201
    req = r.json()
    assert req["status"] == "pending"

    r = await client.post(
        f"/api/work-orders/{order['id']}/cancellation-requests", json={}, headers=CONTRACTOR,
    )
    assert r.status_code == 409
    assert r.json()["error"]["code"] == "cancellation_already_pending"

    r = await client.get("/api/admin/cancellation-requests", headers=CONTRACTOR)
    assert r.status_code == 403

    r = await client.get("/api/admin/cancellation-requests", headers=ADMIN)
    assert [x["id"] for x in r.json()] == [req["id"]]

    r = await client.post(
        f"/api/admin/cancellation-requests/{req['id']}/decision", json={"approve": True}, headers=ADMIN,
    )
    assert r.status_code == 200
    assert r.json()["status"] == "approved"
    assert r.json()["decided_by"] == "admin-1"

    r = await client.post(
        f"/api/admin/cancellation-requests/{req['id']}/decision", json={"approve": False}, headers=ADMIN,
    )
    assert r.status_code == 409
    assert r.json()["error"]["code"] == "already_decided"

    r = await client.get("/api/points/balance", headers=SELLER)
    assert r.json()["balance"] == 100_000

    r = await client.get("/api/admin/cancellation-requests/stats", headers=ADMIN)
    stats = r.json()
    assert stats["total"] == 1
    assert stats["top_contractors"] == [{"contractor_id": "contractor-1", "count": 1}]


# ── WebSocket ─────────────────────────────────────────────

def _ws_close_code(path, headers=None):
    ws_client = TestClient(app)
    with pytest.raises(WebSocketDisconnect) as exc:
        with ws_client.websocket_connect(path, headers=headers or {}):
            pass
    return exc.value.code


def test_ws_requires_identity():
    assert _ws_close_code("/api/ws/account:seller:seller-1") == 4001
    assert _ws_close_code(
        "/api/ws/order:ABC123", {"X-Account-Id": "x", "X-Account-Role": "guest"},
    ) == 4001


def test_ws_account_channel_belongs_to_its_owner():
    assert _ws_close_code("/api/ws/account:seller:seller-2", SELLER) == 4003
    assert _ws_close_code("/api/ws/account:contractor:seller-1", SELLER) == 4003
    assert _ws_close_code("/api/ws/somewhere-else", CONTRACTOR) == 4003


@pytest.mark.parametrize("channel,headers", [
    ("account:seller:seller-1", SELLER),
    ("account:seller:seller-1", ADMIN),
    ("order:ABC123", CONTRACTOR),
])
def test_ws_allowed_subscriptions(channel, headers):
    ws_client = TestClient(app)
    with ws_client.websocket_connect(f"/api/ws/{channel}", headers=headers):
        pass


class RecordingSocket:
    """Stands in for a connected WebSocket and keeps what it was sent."""

    def __init__(self):
        self.sent = []

    async def accept(self):
        pass

    async def send_text(self, text):
        self.sent.append(json.loads(text))


@pytest.mark.asyncio
async def test_status_change_reaches_order_subscribers(client, monkeypatch):
    async def no_tables():
        pass

    monkeypatch.setattr("app.main.create_tables", no_tables)
    await _charge(client, 100_000)
    order = await _create_order(client)
    channel = f"order:{order['id']}"
    sock = RecordingSocket()

    async with lifespan(app):
        assert ws_manager.handle_event in event_bus._handlers
        await ws_manager.connect(channel, sock)
        try:
            r = await client.post(f"/api/work-orders/{order['id']}/accept", headers=CONTRACTOR)
            assert r.status_code == 200
        finally:
            ws_manager.disconnect(channel, sock)
    assert ws_manager.handle_event not in event_bus._handlers

    assert len(sock.sent) == 1
    msg = sock.sent[0]
    assert msg["event"] == "order_status_changed"
    assert msg["channel"] == channel
    assert msg["data"]["from_status"] == "pending"
    assert msg["data"]["to_status"] == "assigned"
    assert msg["data"]["actor_id"] == "contractor-1"
