"""SQLAlchemy ORM models."""

from app.models.base import Base
from app.models.work_order import WorkOrder, WorkOrderStatusChange
from app.models.point import PointBalance, PointTransaction
from app.models.cancellation import CancellationRequest

__all__ = [
    "Base",
    "WorkOrder", "WorkOrderStatusChange",
    "PointBalance", "PointTransaction",
    "CancellationRequest",
]
