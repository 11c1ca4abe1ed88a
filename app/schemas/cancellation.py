from __future__ import annotations
from datetime import datetime
from pydantic import BaseModel


class CancellationRequestCreate(BaseModel):
    reason: str = ""
    additional_info: str = ""


class CancellationDecision(BaseModel):
    approve: bool


class CancellationRequestRead(BaseModel):
    id: str
    work_order_id: str
    contractor_id: str
    reason: str = ""
    additional_info: str = ""
    status: str  # pending | approved | rejected
    auto_approved: bool = False
    created_at: datetime
    decided_at: datetime | None = None
    decided_by: str | None = None

    model_config = {"from_attributes": True}


class ContractorCancellationCount(BaseModel):
    contractor_id: str
    count: int


class CancellationStatsRead(BaseModel):
    total: int
    today: int
    top_contractors: list[ContractorCancellationCount] = []
