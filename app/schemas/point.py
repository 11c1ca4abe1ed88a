from __future__ import annotations
from datetime import datetime
from pydantic import BaseModel, Field


class PointBalanceRead(BaseModel):
    account_id: str
    account_role: str
    balance: int
    total_charged: int
    total_withdrawn: int
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class PointAmount(BaseModel):
    # Non-positive values reach the ledger and come back as invalid_amount
    amount: int


class BalanceValidate(BaseModel):
    required_amount: int = Field(ge=0)


class BalanceValidationRead(BaseModel):
    is_valid: bool
    current_balance: int
    required_amount: int
    shortage: int

    model_config = {"from_attributes": True}


class PointTransactionRead(BaseModel):
    id: str
    account_id: str
    account_role: str
    type: str  # charge | payment | withdrawal | refund
    amount: int
    balance_after: int
    related_job_id: str | None = None
    status: str
    description: str = ""
    created_at: datetime

    model_config = {"from_attributes": True}
