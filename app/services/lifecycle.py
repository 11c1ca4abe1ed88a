"""Work order lifecycle: funded creation, acceptance, progress, cancellation.

Every transition is a compare-and-swap UPDATE conditioned on the status the
caller expects, so two actors racing on the same order get exactly one
winner. Creation debits the payer inside the same transaction that inserts
the order; an order row never exists without its payment transaction.
"""

from __future__ import annotations

import logging
import secrets
import string
from datetime import datetime

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.errors import (
    InvalidAmount, InvalidTransition, AlreadyAssigned,
    WorkOrderNotFound, NotOrderParticipant, ConflictRetryExhausted,
)
from app.models.base import utcnow
from app.models.point import ROLE_SELLER, TX_PAYMENT, TX_REFUND
from app.models.work_order import (
    WorkOrder, WorkOrderStatusChange, STATUS_FLOW, ALL_STATUSES,
    PENDING, ASSIGNED, IN_PROGRESS, COMPLETED, CANCELLED, CANCELLABLE_STATUSES,
)
from app.services import ledger
from app.services.events import OrderStatusChanged, event_bus
from app.services.retry import run_transaction

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_uppercase + string.digits

# next_status -> the only status it may be reached from via advance_status
_ADVANCE_FROM = {
    STATUS_FLOW[i + 1]: STATUS_FLOW[i]
    for i in range(1, len(STATUS_FLOW) - 1)
}
_CONTRACTOR_ONLY = frozenset({IN_PROGRESS, COMPLETED})


# ── Helpers (no commit) ───────────────────────────────────

async def _generate_order_id(db: AsyncSession) -> str:
    """Short upper-case code, checked against existing orders."""
    cfg = get_settings().work_order
    for _ in range(cfg.id_max_attempts):
        candidate = "".join(secrets.choice(_ID_ALPHABET) for _ in range(cfg.id_length))
        if await db.get(WorkOrder, candidate) is None:
            return candidate
    raise ConflictRetryExhausted("generate_work_order_id", cfg.id_max_attempts)


async def _load(db: AsyncSession, order_id: str) -> WorkOrder:
    wo = await db.get(WorkOrder, order_id, populate_existing=True)
    if wo is None:
        raise WorkOrderNotFound(order_id)
    return wo


async def _record_change(
    db: AsyncSession,
    order_id: str,
    from_status: str | None,
    to_status: str,
    actor_id: str,
    events: list,
    note: str = "",
) -> None:
    result = await db.execute(
        select(func.count()).select_from(WorkOrderStatusChange)
        .where(WorkOrderStatusChange.work_order_id == order_id)
    )
    seq = result.scalar_one() + 1
    db.add(WorkOrderStatusChange(
        work_order_id=order_id,
        seq=seq,
        from_status=from_status,
        to_status=to_status,
        actor_id=actor_id or "",
        note=note or "",
    ))
    await db.flush()
    events.append(OrderStatusChanged(
        order_id=order_id, from_status=from_status, to_status=to_status, actor_id=actor_id or "",
    ))


async def _swap_status(db: AsyncSession, order_id: str, expected: str, values: dict) -> bool:
    result = await db.execute(
        update(WorkOrder)
        .where(WorkOrder.id == order_id, WorkOrder.status == expected)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def cancel_work_order(
    db: AsyncSession,
    wo: WorkOrder,
    expected_status: str,
    actor_id: str,
    events: list,
    note: str = "",
    now: datetime | None = None,
) -> WorkOrder:
    """Move an order from ``expected_status`` to cancelled and refund the payer.

    Shared by payer cancellation and the cancellation request flow; does not
    commit.
    """
    if expected_status not in CANCELLABLE_STATUSES:
        raise InvalidTransition(expected_status, CANCELLED)
    at = now or utcnow()
    swapped = await _swap_status(db, wo.id, expected_status, {
        "status": CANCELLED, "cancelled_at": at, "updated_at": at,
    })
    if not swapped:
        current = await _load(db, wo.id)
        raise InvalidTransition(current.status, CANCELLED)

    if wo.budget_amount > 0:
        await ledger.apply_credit(
            db, wo.payer_id, ROLE_SELLER, wo.budget_amount, TX_REFUND, events, related_job_id=wo.id,
        )
    await _record_change(db, wo.id, expected_status, CANCELLED, actor_id, events, note)
    return await _load(db, wo.id)


# ── Operations ────────────────────────────────────────────

async def create_work_order(
    db: AsyncSession,
    payer_id: str,
    budget_amount: int,
    is_urgent: bool = False,
    title: str = "",
    address: str = "",
    customer_name: str = "",
    customer_phone: str = "",
    details: dict | None = None,
    original_work_order_id: str | None = None,
) -> WorkOrder:
    """Debit the payer and create a pending order in one transaction.

    Raises InsufficientBalance (with the shortage) when the payer cannot fund
    ``budget_amount``; nothing is written in that case.
    """
    if isinstance(budget_amount, bool) or not isinstance(budget_amount, int) or budget_amount < 0:
        raise InvalidAmount(budget_amount)

    async def work(events):
        order_id = await _generate_order_id(db)
        if budget_amount > 0:
            await ledger.apply_debit(
                db, payer_id, ROLE_SELLER, budget_amount, TX_PAYMENT, events, related_job_id=order_id,
            )
        now = utcnow()
        wo = WorkOrder(
            id=order_id,
            payer_id=payer_id,
            status=PENDING,
            is_urgent=is_urgent,
            budget_amount=budget_amount,
            title=title,
            address=address,
            customer_name=customer_name,
            customer_phone=customer_phone,
            details=details or {},
            original_work_order_id=original_work_order_id,
            created_at=now,
            updated_at=now,
        )
        db.add(wo)
        await db.flush()
        await _record_change(db, order_id, None, PENDING, payer_id, events)
        return wo

    wo, events = await run_transaction(db, "create_work_order", work)
    logger.info("Work order %s created by %s (budget %d, urgent=%s)", wo.id, payer_id, budget_amount, is_urgent)
    await event_bus.publish_all(events)
    return wo


async def accept_work_order(
    db: AsyncSession, order_id: str, contractor_id: str, now: datetime | None = None,
) -> WorkOrder:
    """Assign a pending order to ``contractor_id``; only one caller can win."""
    async def work(events):
        at = now or utcnow()
        result = await db.execute(
            update(WorkOrder)
            .where(
                WorkOrder.id == order_id,
                WorkOrder.status == PENDING,
                WorkOrder.assigned_at.is_(None),
            )
            .values(status=ASSIGNED, contractor_id=contractor_id, assigned_at=at, updated_at=at)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            current = await _load(db, order_id)
            if current.contractor_id is not None and current.status != CANCELLED:
                raise AlreadyAssigned(order_id)
            raise InvalidTransition(current.status, ASSIGNED)
        await _record_change(db, order_id, PENDING, ASSIGNED, contractor_id, events)
        return await _load(db, order_id)

    wo, events = await run_transaction(db, "accept_work_order", work)
    logger.info("Work order %s accepted by %s", order_id, contractor_id)
    await event_bus.publish_all(events)
    return wo


async def advance_status(
    db: AsyncSession,
    order_id: str,
    next_status: str,
    actor_id: str | None = None,
    note: str = "",
) -> WorkOrder:
    """Move an assigned order one step forward along the progress chain."""
    async def work(events):
        wo = await _load(db, order_id)
        expected = _ADVANCE_FROM.get(next_status)
        if expected is None or wo.status != expected:
            raise InvalidTransition(wo.status, next_status)
        if actor_id is not None:
            allowed = {wo.contractor_id} if next_status in _CONTRACTOR_ONLY else {wo.payer_id, wo.contractor_id}
            if actor_id not in allowed:
                raise NotOrderParticipant(order_id, actor_id)

        at = utcnow()
        values = {"status": next_status, "updated_at": at}
        if next_status == COMPLETED:
            values["completed_at"] = at
        if not await _swap_status(db, order_id, expected, values):
            current = await _load(db, order_id)
            raise InvalidTransition(current.status, next_status)
        await _record_change(db, order_id, expected, next_status, actor_id or "", events, note)
        return await _load(db, order_id)

    wo, events = await run_transaction(db, "advance_status", work)
    logger.info("Work order %s moved to %s", order_id, next_status)
    await event_bus.publish_all(events)
    return wo


async def cancel_unassigned_order(db: AsyncSession, order_id: str, payer_id: str) -> WorkOrder:
    """Payer withdraws an order nobody has accepted yet; always refunded."""
    async def work(events):
        wo = await _load(db, order_id)
        if wo.payer_id != payer_id:
            raise NotOrderParticipant(order_id, payer_id)
        if wo.status != PENDING:
            raise InvalidTransition(wo.status, CANCELLED)
        return await cancel_work_order(db, wo, PENDING, payer_id, events, note="cancelled by payer")

    wo, events = await run_transaction(db, "cancel_unassigned_order", work)
    logger.info("Work order %s cancelled by payer %s, %d points refunded", order_id, payer_id, wo.budget_amount)
    await event_bus.publish_all(events)
    return wo


async def reupload_work_order(db: AsyncSession, original_id: str, payer_id: str) -> WorkOrder:
    """Re-list a cancelled order as a new, independently funded order."""
    original = await _load(db, original_id)
    if original.payer_id != payer_id:
        raise NotOrderParticipant(original_id, payer_id)
    if original.status != CANCELLED:
        raise InvalidTransition(original.status, PENDING)
    return await create_work_order(
        db,
        payer_id=payer_id,
        budget_amount=original.budget_amount,
        is_urgent=original.is_urgent,
        title=original.title,
        address=original.address,
        customer_name=original.customer_name,
        customer_phone=original.customer_phone,
        details=dict(original.details or {}),
        original_work_order_id=original.id,
    )


# ── Queries ───────────────────────────────────────────────

async def get_work_order(db: AsyncSession, order_id: str) -> WorkOrder:
    return await _load(db, order_id)


async def list_work_orders(
    db: AsyncSession,
    status: str | None = None,
    payer_id: str | None = None,
    contractor_id: str | None = None,
    limit: int | None = None,
) -> list[WorkOrder]:
    stmt = select(WorkOrder).order_by(WorkOrder.created_at.desc())
    if status:
        stmt = stmt.where(WorkOrder.status == status)
    if payer_id:
        stmt = stmt.where(WorkOrder.payer_id == payer_id)
    if contractor_id:
        stmt = stmt.where(WorkOrder.contractor_id == contractor_id)
    if limit:
        stmt = stmt.limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def count_by_status(db: AsyncSession) -> dict[str, int]:
    counts = {s: 0 for s in ALL_STATUSES}
    result = await db.execute(
        select(WorkOrder.status, func.count()).group_by(WorkOrder.status)
    )
    for status, n in result.all():
        counts[status] = n
    return counts


async def get_status_history(db: AsyncSession, order_id: str) -> list[WorkOrderStatusChange]:
    await _load(db, order_id)
    result = await db.execute(
        select(WorkOrderStatusChange)
        .where(WorkOrderStatusChange.work_order_id == order_id)
        .order_by(WorkOrderStatusChange.seq)
    )
    return list(result.scalars().all())
