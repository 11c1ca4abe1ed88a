"""Work order API — create, accept, advance, cancel, re-upload."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.engine import get_db
from app.dependencies import require_auth, require_role
from app.models.base import utcnow
from app.models.work_order import ALL_STATUSES
from app.schemas import (
    WorkOrderCreate, WorkOrderRead, StatusAdvance, StatusChangeRead,
    CancellationWindowRead, CancellationRequestCreate, CancellationRequestRead,
)
from app.services import lifecycle, cancellation_policy
from app.services.auth import AuthContext

router = APIRouter(prefix="/api/work-orders", tags=["work_orders"])

_seller_dep = require_role("seller")
_contractor_dep = require_role("contractor")


@router.post("", response_model=WorkOrderRead, status_code=201)
async def create_work_order(
    body: WorkOrderCreate,
    auth: AuthContext = Depends(_seller_dep),
    db: AsyncSession = Depends(get_db),
):
    return await lifecycle.create_work_order(
        db,
        payer_id=auth.account_id,
        budget_amount=body.budget_amount,
        is_urgent=body.is_urgent,
        title=body.title,
        address=body.address,
        customer_name=body.customer_name,
        customer_phone=body.customer_phone,
        details=body.details,
    )


@router.get("", response_model=list[WorkOrderRead])
async def list_work_orders(
    status: str | None = None,
    payer_id: str | None = None,
    contractor_id: str | None = None,
    limit: int | None = None,
    auth: AuthContext = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    if status and status not in ALL_STATUSES:
        raise HTTPException(400, f"Unknown status: {status}")
    return await lifecycle.list_work_orders(
        db, status=status, payer_id=payer_id, contractor_id=contractor_id, limit=limit,
    )


@router.get("/counts")
async def count_work_orders(
    auth: AuthContext = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    return await lifecycle.count_by_status(db)


@router.get("/{order_id}", response_model=WorkOrderRead)
async def get_work_order(
    order_id: str,
    auth: AuthContext = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    return await lifecycle.get_work_order(db, order_id)


@router.get("/{order_id}/history", response_model=list[StatusChangeRead])
async def get_status_history(
    order_id: str,
    auth: AuthContext = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    return await lifecycle.get_status_history(db, order_id)


@router.post("/{order_id}/accept", response_model=WorkOrderRead)
async def accept_work_order(
    order_id: str,
    auth: AuthContext = Depends(_contractor_dep),
    db: AsyncSession = Depends(get_db),
):
    return await lifecycle.accept_work_order(db, order_id, auth.account_id)


@router.post("/{order_id}/status", response_model=WorkOrderRead)
async def advance_status(
    order_id: str,
    body: StatusAdvance,
    auth: AuthContext = Depends(require_role("seller", "contractor")),
    db: AsyncSession = Depends(get_db),
):
    return await lifecycle.advance_status(
        db, order_id, body.next_status, actor_id=auth.account_id, note=body.note,
    )


@router.post("/{order_id}/cancel", response_model=WorkOrderRead)
async def cancel_unassigned_order(
    order_id: str,
    auth: AuthContext = Depends(_seller_dep),
    db: AsyncSession = Depends(get_db),
):
    """Payer cancels an order no contractor has accepted yet."""
    return await lifecycle.cancel_unassigned_order(db, order_id, auth.account_id)


@router.post("/{order_id}/reupload", response_model=WorkOrderRead, status_code=201)
async def reupload_work_order(
    order_id: str,
    auth: AuthContext = Depends(_seller_dep),
    db: AsyncSession = Depends(get_db),
):
    return await lifecycle.reupload_work_order(db, order_id, auth.account_id)


@router.get("/{order_id}/cancellation-window", response_model=CancellationWindowRead)
async def get_cancellation_window(
    order_id: str,
    auth: AuthContext = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    """Display-only countdown; the decision is recomputed at request time."""
    wo = await lifecycle.get_work_order(db, order_id)
    now = utcnow()
    window = cancellation_policy.cancellation_window(wo.is_urgent)
    remaining = cancellation_policy.get_time_remaining(wo.assigned_at, now, wo.is_urgent)
    return CancellationWindowRead(
        order_id=wo.id,
        is_urgent=wo.is_urgent,
        window_seconds=int(window.total_seconds()),
        remaining_seconds=int(remaining.total_seconds()),
        auto_approvable=cancellation_policy.is_auto_approvable(wo.assigned_at, now, wo.is_urgent),
    )


@router.post("/{order_id}/cancellation-requests", response_model=CancellationRequestRead, status_code=201)
async def request_cancellation(
    order_id: str,
    body: CancellationRequestCreate,
    auth: AuthContext = Depends(_contractor_dep),
    db: AsyncSession = Depends(get_db),
):
    return await cancellation_policy.request_cancellation(
        db, order_id, auth.account_id, reason=body.reason, additional_info=body.additional_info,
    )
