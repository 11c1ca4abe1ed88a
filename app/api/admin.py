"""Admin API: cancellation request review queue and statistics."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.engine import get_db
from app.dependencies import require_role
from app.models.cancellation import REQUEST_PENDING, REQUEST_APPROVED, REQUEST_REJECTED
from app.schemas import (
    CancellationDecision, CancellationRequestRead, CancellationStatsRead, ContractorCancellationCount,
)
from app.services import cancellation_policy
from app.services.auth import AuthContext

router = APIRouter(prefix="/api/admin", tags=["admin"])

_admin_dep = require_role("admin")


@router.get("/cancellation-requests", response_model=list[CancellationRequestRead])
async def list_cancellation_requests(
    status: str | None = REQUEST_PENDING,
    work_order_id: str | None = None,
    contractor_id: str | None = None,
    auth: AuthContext = Depends(_admin_dep),
    db: AsyncSession = Depends(get_db),
):
    if status and status not in (REQUEST_PENDING, REQUEST_APPROVED, REQUEST_REJECTED):
        raise HTTPException(400, f"Unknown status: {status}")
    return await cancellation_policy.list_cancellation_requests(
        db, status=status or None, work_order_id=work_order_id, contractor_id=contractor_id,
    )


@router.get("/cancellation-requests/stats", response_model=CancellationStatsRead)
async def cancellation_stats(
    auth: AuthContext = Depends(_admin_dep),
    db: AsyncSession = Depends(get_db),
):
    stats = await cancellation_policy.get_cancellation_stats(db)
    return CancellationStatsRead(
        total=stats.total,
        today=stats.today,
        top_contractors=[
            ContractorCancellationCount(contractor_id=cid, count=n) for cid, n in stats.top_contractors
        ],
    )


@router.get("/cancellation-requests/{request_id}", response_model=CancellationRequestRead)
async def get_cancellation_request(
    request_id: str,
    auth: AuthContext = Depends(_admin_dep),
    db: AsyncSession = Depends(get_db),
):
    return await cancellation_policy.get_cancellation_request(db, request_id)


@router.post("/cancellation-requests/{request_id}/decision", response_model=CancellationRequestRead)
async def decide_cancellation(
    request_id: str,
    body: CancellationDecision,
    auth: AuthContext = Depends(_admin_dep),
    db: AsyncSession = Depends(get_db),
):
    return await cancellation_policy.decide_cancellation(
        db, request_id, approve=body.approve, decided_by=auth.account_id,
    )
