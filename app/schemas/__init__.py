"""Pydantic request/response schemas."""

from app.schemas.work_order import (
    WorkOrderCreate, WorkOrderRead, StatusAdvance, StatusChangeRead, CancellationWindowRead,
)
from app.schemas.point import (
    PointBalanceRead, PointAmount, BalanceValidate, BalanceValidationRead, PointTransactionRead,
)
from app.schemas.cancellation import (
    CancellationRequestCreate, CancellationDecision, CancellationRequestRead,
    ContractorCancellationCount, CancellationStatsRead,
)
from app.schemas.ws_messages import WSMessage

__all__ = [
    "WorkOrderCreate", "WorkOrderRead", "StatusAdvance", "StatusChangeRead", "CancellationWindowRead",
    "PointBalanceRead", "PointAmount", "BalanceValidate", "BalanceValidationRead", "PointTransactionRead",
    "CancellationRequestCreate", "CancellationDecision", "CancellationRequestRead",
    "ContractorCancellationCount", "CancellationStatsRead",
    "WSMessage",
]
