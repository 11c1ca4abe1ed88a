from __future__ import annotations
from datetime import datetime
from typing import Any, Literal
from pydantic import BaseModel, Field

ProgressStatus = Literal[
    "product_preparing", "product_ready", "pickup_completed", "in_progress", "completed",
]


class WorkOrderCreate(BaseModel):
    budget_amount: int = Field(ge=0)
    is_urgent: bool = False
    title: str = ""
    address: str = ""
    customer_name: str = ""
    customer_phone: str = ""
    details: dict[str, Any] = {}


class WorkOrderRead(BaseModel):
    id: str
    payer_id: str
    contractor_id: str | None = None
    status: str
    is_urgent: bool
    budget_amount: int
    assigned_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    original_work_order_id: str | None = None
    title: str = ""
    address: str = ""
    customer_name: str = ""
    customer_phone: str = ""
    details: dict[str, Any] = {}
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class StatusAdvance(BaseModel):
    next_status: ProgressStatus
    note: str = ""


class StatusChangeRead(BaseModel):
    seq: int
    from_status: str | None = None
    to_status: str
    actor_id: str = ""
    note: str = ""
    created_at: datetime

    model_config = {"from_attributes": True}


class CancellationWindowRead(BaseModel):
    order_id: str
    is_urgent: bool
    window_seconds: int
    remaining_seconds: int
    auto_approvable: bool
