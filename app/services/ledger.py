"""Point ledger: balances, atomic charge/debit/refund/withdraw, history.

Every balance change is a single conditional UPDATE on the balance row
followed by exactly one appended PointTransaction, both inside the caller's
transaction. Debits carry their sufficiency check in the UPDATE's WHERE
clause, so two concurrent debits can never both pass against the same funds.

The ``apply_*`` helpers do not commit; they are shared with the work order
lifecycle, which funds and refunds orders inside its own transactions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import InvalidAccountRole, InvalidAmount, InsufficientBalance
from app.models.base import utcnow
from app.models.point import (
    PointBalance, PointTransaction, ACCOUNT_ROLES,
    TX_CHARGE, TX_PAYMENT, TX_WITHDRAWAL, TX_REFUND,
)
from app.services.events import BalanceChanged, event_bus
from app.services.retry import run_transaction

logger = logging.getLogger(__name__)

_DESCRIPTIONS = {
    TX_CHARGE: "{amount:,} points charged",
    TX_PAYMENT: "{amount:,} points paid for work order {job}",
    TX_REFUND: "{amount:,} points refunded for work order {job}",
    TX_WITHDRAWAL: "{amount:,} points withdrawn",
}


@dataclass(frozen=True)
class BalanceValidation:
    is_valid: bool
    current_balance: int
    required_amount: int
    shortage: int


def _check_role(role: str) -> None:
    if role not in ACCOUNT_ROLES:
        raise InvalidAccountRole(role)


def _check_amount(amount: int) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmount(amount)


def _account_filter(account_id: str, role: str):
    return (PointBalance.account_id == account_id, PointBalance.account_role == role)


async def _read_balance(db: AsyncSession, account_id: str, role: str) -> PointBalance | None:
    result = await db.execute(
        select(PointBalance)
        .where(*_account_filter(account_id, role))
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def _append(
    db: AsyncSession,
    account_id: str,
    role: str,
    tx_type: str,
    amount: int,
    related_job_id: str | None,
    events: list,
) -> PointTransaction:
    bal = await _read_balance(db, account_id, role)
    tx = PointTransaction(
        account_id=account_id,
        account_role=role,
        type=tx_type,
        amount=amount,
        balance_after=bal.balance,
        related_job_id=related_job_id,
        status="completed",
        description=_DESCRIPTIONS[tx_type].format(amount=amount, job=related_job_id or "-"),
    )
    db.add(tx)
    await db.flush()
    events.append(BalanceChanged(
        account_id=account_id,
        account_role=role,
        balance=bal.balance,
        transaction_id=tx.id,
        transaction_type=tx_type,
        amount=amount,
        related_job_id=related_job_id,
    ))
    return tx


async def apply_credit(
    db: AsyncSession,
    account_id: str,
    role: str,
    amount: int,
    tx_type: str,
    events: list,
    related_job_id: str | None = None,
) -> PointTransaction:
    """Increase a balance (charge or refund) without committing."""
    _check_role(role)
    _check_amount(amount)
    values = {"balance": PointBalance.balance + amount, "updated_at": utcnow()}
    if tx_type == TX_CHARGE:
        values["total_charged"] = PointBalance.total_charged + amount

    result = await db.execute(
        update(PointBalance)
        .where(*_account_filter(account_id, role))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        # First credit for this account; a concurrent insert raises
        # IntegrityError here and the whole transaction is retried.
        db.add(PointBalance(
            account_id=account_id,
            account_role=role,
            balance=amount,
            total_charged=amount if tx_type == TX_CHARGE else 0,
            total_withdrawn=0,
            updated_at=utcnow(),
        ))
        await db.flush()

    return await _append(db, account_id, role, tx_type, amount, related_job_id, events)


async def apply_debit(
    db: AsyncSession,
    account_id: str,
    role: str,
    amount: int,
    tx_type: str,
    events: list,
    related_job_id: str | None = None,
) -> PointTransaction:
    """Decrease a balance (payment or withdrawal) without committing.

    Raises InsufficientBalance, leaving the row untouched, when the stored
    balance is below ``amount`` at write time.
    """
    _check_role(role)
    _check_amount(amount)
    values = {"balance": PointBalance.balance - amount, "updated_at": utcnow()}
    if tx_type == TX_WITHDRAWAL:
        values["total_withdrawn"] = PointBalance.total_withdrawn + amount

    result = await db.execute(
        update(PointBalance)
        .where(*_account_filter(account_id, role), PointBalance.balance >= amount)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        bal = await _read_balance(db, account_id, role)
        raise InsufficientBalance(bal.balance if bal else 0, amount)

    return await _append(db, account_id, role, tx_type, amount, related_job_id, events)


# ── Queries ───────────────────────────────────────────────

async def get_balance(db: AsyncSession, account_id: str, role: str) -> PointBalance:
    """Current balance row; accounts that never charged read as zero."""
    _check_role(role)
    bal = await _read_balance(db, account_id, role)
    if bal is None:
        return PointBalance(
            account_id=account_id,
            account_role=role,
            balance=0,
            total_charged=0,
            total_withdrawn=0,
            updated_at=None,
        )
    return bal


async def validate(db: AsyncSession, account_id: str, role: str, required_amount: int) -> BalanceValidation:
    """Advisory check only; debit re-checks at write time."""
    bal = await get_balance(db, account_id, role)
    shortage = max(0, required_amount - bal.balance)
    return BalanceValidation(
        is_valid=shortage == 0,
        current_balance=bal.balance,
        required_amount=required_amount,
        shortage=shortage,
    )


async def get_transaction_history(
    db: AsyncSession, account_id: str, role: str, limit: int | None = None,
) -> list[PointTransaction]:
    stmt = (
        select(PointTransaction)
        .where(PointTransaction.account_id == account_id, PointTransaction.account_role == role)
        .order_by(PointTransaction.created_at.desc(), PointTransaction.id.desc())
    )
    if limit:
        stmt = stmt.limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())


# ── Committed operations ──────────────────────────────────

async def charge(db: AsyncSession, account_id: str, role: str, amount: int) -> PointTransaction:
    async def work(events):
        return await apply_credit(db, account_id, role, amount, TX_CHARGE, events)

    tx, events = await run_transaction(db, "charge", work)
    logger.info("Charged %d points to %s:%s (balance %d)", amount, role, account_id, tx.balance_after)
    await event_bus.publish_all(events)
    return tx


async def debit(
    db: AsyncSession, account_id: str, role: str, amount: int, related_job_id: str | None = None,
) -> PointTransaction:
    async def work(events):
        return await apply_debit(db, account_id, role, amount, TX_PAYMENT, events, related_job_id)

    tx, events = await run_transaction(db, "debit", work)
    logger.info("Debited %d points from %s:%s (balance %d)", amount, role, account_id, tx.balance_after)
    await event_bus.publish_all(events)
    return tx


async def refund(
    db: AsyncSession, account_id: str, role: str, amount: int, related_job_id: str | None = None,
) -> PointTransaction:
    async def work(events):
        return await apply_credit(db, account_id, role, amount, TX_REFUND, events, related_job_id)

    tx, events = await run_transaction(db, "refund", work)
    logger.info("Refunded %d points to %s:%s (balance %d)", amount, role, account_id, tx.balance_after)
    await event_bus.publish_all(events)
    return tx


async def withdraw(db: AsyncSession, account_id: str, role: str, amount: int) -> PointTransaction:
    async def work(events):
        return await apply_debit(db, account_id, role, amount, TX_WITHDRAWAL, events)

    tx, events = await run_transaction(db, "withdraw", work)
    logger.info("Withdrew %d points from %s:%s (balance %d)", amount, role, account_id, tx.balance_after)
    await event_bus.publish_all(events)
    return tx
