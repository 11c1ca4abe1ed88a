"""Work order model — an installation job funded from the payer's points."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import String, Integer, Boolean, ForeignKey, JSON, DateTime, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, ULIDMixin, utcnow

PENDING = "pending"
ASSIGNED = "assigned"
PRODUCT_PREPARING = "product_preparing"
PRODUCT_READY = "product_ready"
PICKUP_COMPLETED = "pickup_completed"
IN_PROGRESS = "in_progress"
COMPLETED = "completed"
CANCELLED = "cancelled"

# Forward progress chain; cancellation is handled separately.
STATUS_FLOW = (
    PENDING,
    ASSIGNED,
    PRODUCT_PREPARING,
    PRODUCT_READY,
    PICKUP_COMPLETED,
    IN_PROGRESS,
    COMPLETED,
)
ALL_STATUSES = STATUS_FLOW + (CANCELLED,)
CANCELLABLE_STATUSES = (PENDING, ASSIGNED)


class WorkOrder(Base):
    __tablename__ = "work_orders"
    __table_args__ = (
        CheckConstraint("budget_amount >= 0", name="ck_work_orders_budget_non_negative"),
    )

    id: Mapped[str] = mapped_column(String(12), primary_key=True)
    payer_id: Mapped[str] = mapped_column(String(64), index=True)
    contractor_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True, default=None)
    status: Mapped[str] = mapped_column(String(20), default=PENDING, index=True)
    is_urgent: Mapped[bool] = mapped_column(Boolean, default=False)
    budget_amount: Mapped[int] = mapped_column(Integer)
    assigned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, default=None)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, default=None)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, default=None)
    original_work_order_id: Mapped[str | None] = mapped_column(
        String(12), ForeignKey("work_orders.id"), nullable=True, default=None
    )

    # Collaborator-owned fields, stored but not interpreted here
    title: Mapped[str] = mapped_column(String(200), default="")
    address: Mapped[str] = mapped_column(String(500), default="")
    customer_name: Mapped[str] = mapped_column(String(200), default="")
    customer_phone: Mapped[str] = mapped_column(String(50), default="")
    details: Mapped[dict] = mapped_column(JSON, default=dict)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class WorkOrderStatusChange(Base, ULIDMixin):
    __tablename__ = "work_order_status_changes"

    work_order_id: Mapped[str] = mapped_column(String(12), ForeignKey("work_orders.id"), index=True)
    seq: Mapped[int] = mapped_column(Integer)
    from_status: Mapped[str | None] = mapped_column(String(20), nullable=True, default=None)
    to_status: Mapped[str] = mapped_column(String(20))
    actor_id: Mapped[str] = mapped_column(String(64), default="")
    note: Mapped[str] = mapped_column(String(500), default="")
