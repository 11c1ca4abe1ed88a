"""Point API — balance, validation, charge, withdrawal, history."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.engine import get_db
from app.dependencies import require_ledger_account
from app.schemas import (
    PointBalanceRead, PointAmount, BalanceValidate, BalanceValidationRead, PointTransactionRead,
)
from app.services import ledger
from app.services.auth import AuthContext

router = APIRouter(prefix="/api/points", tags=["points"])


@router.get("/balance", response_model=PointBalanceRead)
async def get_balance(
    auth: AuthContext = Depends(require_ledger_account),
    db: AsyncSession = Depends(get_db),
):
    return await ledger.get_balance(db, auth.account_id, auth.role)


@router.post("/validate", response_model=BalanceValidationRead)
async def validate_balance(
    body: BalanceValidate,
    auth: AuthContext = Depends(require_ledger_account),
    db: AsyncSession = Depends(get_db),
):
    return await ledger.validate(db, auth.account_id, auth.role, body.required_amount)


@router.post("/charge", response_model=PointTransactionRead, status_code=201)
async def charge_balance(
    body: PointAmount,
    auth: AuthContext = Depends(require_ledger_account),
    db: AsyncSession = Depends(get_db),
):
    """Simulated top-up; no payment gateway is involved."""
    return await ledger.charge(db, auth.account_id, auth.role, body.amount)


@router.post("/withdraw", response_model=PointTransactionRead, status_code=201)
async def withdraw_balance(
    body: PointAmount,
    auth: AuthContext = Depends(require_ledger_account),
    db: AsyncSession = Depends(get_db),
):
    return await ledger.withdraw(db, auth.account_id, auth.role, body.amount)


@router.get("/transactions", response_model=list[PointTransactionRead])
async def list_transactions(
    limit: int | None = None,
    auth: AuthContext = Depends(require_ledger_account),
    db: AsyncSession = Depends(get_db),
):
    return await ledger.get_transaction_history(db, auth.account_id, auth.role, limit=limit)
