"""Contractor cancellation: urgency windows and the request/decision flow.

A contractor who cancels soon enough after accepting (5 minutes for urgent
orders, 60 otherwise) is approved on the spot. Later requests queue for an
administrator. The window is evaluated from timestamps at request time;
``get_time_remaining`` is display-only and carries no authority.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.errors import (
    AlreadyDecided, CancellationAlreadyPending, CancellationRequestNotFound,
    InvalidTransition, NotOrderParticipant,
)
from app.models.base import as_utc, utcnow
from app.models.cancellation import (
    CancellationRequest, REQUEST_PENDING, REQUEST_APPROVED, REQUEST_REJECTED, SYSTEM_DECIDER,
)
from app.models.work_order import ASSIGNED, CANCELLED, CANCELLABLE_STATUSES
from app.services import lifecycle
from app.services.events import event_bus
from app.services.retry import run_transaction

logger = logging.getLogger(__name__)


def cancellation_window(is_urgent: bool) -> timedelta:
    cfg = get_settings().cancellation
    minutes = cfg.urgent_window_minutes if is_urgent else cfg.normal_window_minutes
    return timedelta(minutes=minutes)


def is_auto_approvable(assigned_at: datetime | None, requested_at: datetime, is_urgent: bool) -> bool:
    if assigned_at is None:
        return False
    elapsed = as_utc(requested_at) - as_utc(assigned_at)
    return elapsed <= cancellation_window(is_urgent)


def get_time_remaining(assigned_at: datetime | None, now: datetime, is_urgent: bool) -> timedelta:
    if assigned_at is None:
        return timedelta(0)
    remaining = cancellation_window(is_urgent) - (as_utc(now) - as_utc(assigned_at))
    return max(remaining, timedelta(0))


@dataclass
class CancellationStats:
    total: int = 0
    today: int = 0
    top_contractors: list[tuple[str, int]] = field(default_factory=list)


async def _load_request(db: AsyncSession, request_id: str) -> CancellationRequest:
    req = await db.get(CancellationRequest, request_id, populate_existing=True)
    if req is None:
        raise CancellationRequestNotFound(request_id)
    return req


async def _pending_request_for(db: AsyncSession, order_id: str) -> CancellationRequest | None:
    result = await db.execute(
        select(CancellationRequest).where(
            CancellationRequest.work_order_id == order_id,
            CancellationRequest.status == REQUEST_PENDING,
        )
    )
    return result.scalars().first()


async def request_cancellation(
    db: AsyncSession,
    order_id: str,
    contractor_id: str,
    reason: str = "",
    additional_info: str = "",
    requested_at: datetime | None = None,
) -> CancellationRequest:
    """Cancel immediately inside the urgency window, otherwise queue for review."""
    at = requested_at or utcnow()

    async def work(events):
        wo = await lifecycle.get_work_order(db, order_id)
        if wo.contractor_id != contractor_id:
            raise NotOrderParticipant(order_id, contractor_id)
        if wo.status != ASSIGNED:
            raise InvalidTransition(wo.status, CANCELLED)
        if await _pending_request_for(db, order_id) is not None:
            raise CancellationAlreadyPending(order_id)

        req = CancellationRequest(
            work_order_id=order_id,
            contractor_id=contractor_id,
            reason=reason,
            additional_info=additional_info,
            status=REQUEST_PENDING,
            created_at=at,
        )
        if is_auto_approvable(wo.assigned_at, at, wo.is_urgent):
            await lifecycle.cancel_work_order(db, wo, ASSIGNED, contractor_id, events, note=reason, now=at)
            req.status = REQUEST_APPROVED
            req.auto_approved = True
            req.decided_at = at
            req.decided_by = SYSTEM_DECIDER
        db.add(req)
        await db.flush()
        return req

    req, events = await run_transaction(db, "request_cancellation", work)
    if req.auto_approved:
        logger.info("Cancellation of %s by %s auto-approved", order_id, contractor_id)
    else:
        logger.info("Cancellation of %s by %s queued for review (%s)", order_id, contractor_id, req.id)
    await event_bus.publish_all(events)
    return req


async def decide_cancellation(
    db: AsyncSession,
    request_id: str,
    approve: bool,
    decided_by: str,
    now: datetime | None = None,
) -> CancellationRequest:
    """Approve (cancel + refund) or reject a pending request exactly once."""
    async def work(events):
        at = now or utcnow()
        req = await _load_request(db, request_id)
        if req.status != REQUEST_PENDING:
            raise AlreadyDecided(request_id, req.status)

        result = await db.execute(
            update(CancellationRequest)
            .where(CancellationRequest.id == request_id, CancellationRequest.status == REQUEST_PENDING)
            .values(
                status=REQUEST_APPROVED if approve else REQUEST_REJECTED,
                decided_at=at,
                decided_by=decided_by,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            current = await _load_request(db, request_id)
            raise AlreadyDecided(request_id, current.status)

        if approve:
            wo = await lifecycle.get_work_order(db, req.work_order_id)
            if wo.status not in CANCELLABLE_STATUSES:
                raise InvalidTransition(wo.status, CANCELLED)
            await lifecycle.cancel_work_order(
                db, wo, wo.status, decided_by, events, note=req.reason, now=at,
            )
        return await _load_request(db, request_id)

    req, events = await run_transaction(db, "decide_cancellation", work)
    logger.info("Cancellation request %s %s by %s", request_id, req.status, decided_by)
    await event_bus.publish_all(events)
    return req


# ── Queries ───────────────────────────────────────────────

async def get_cancellation_request(db: AsyncSession, request_id: str) -> CancellationRequest:
    return await _load_request(db, request_id)


async def list_cancellation_requests(
    db: AsyncSession,
    status: str | None = None,
    work_order_id: str | None = None,
    contractor_id: str | None = None,
) -> list[CancellationRequest]:
    stmt = select(CancellationRequest).order_by(CancellationRequest.created_at.desc())
    if status:
        stmt = stmt.where(CancellationRequest.status == status)
    if work_order_id:
        stmt = stmt.where(CancellationRequest.work_order_id == work_order_id)
    if contractor_id:
        stmt = stmt.where(CancellationRequest.contractor_id == contractor_id)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_cancellation_stats(db: AsyncSession, now: datetime | None = None, top: int = 10) -> CancellationStats:
    """Totals for the admin dashboard; "today" is the current UTC day."""
    now = as_utc(now or utcnow())
    day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    day_end = day_start + timedelta(days=1)

    total = (await db.execute(
        select(func.count()).select_from(CancellationRequest)
    )).scalar_one()
    today = (await db.execute(
        select(func.count()).select_from(CancellationRequest).where(
            CancellationRequest.created_at >= day_start,
            CancellationRequest.created_at < day_end,
        )
    )).scalar_one()

    count_col = func.count(CancellationRequest.id)
    result = await db.execute(
        select(CancellationRequest.contractor_id, count_col)
        .group_by(CancellationRequest.contractor_id)
        .order_by(count_col.desc(), CancellationRequest.contractor_id)
        .limit(top)
    )
    return CancellationStats(
        total=total,
        today=today,
        top_contractors=[(cid, n) for cid, n in result.all()],
    )
