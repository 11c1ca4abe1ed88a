"""Cancellation requests raised by contractors on assigned work orders."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Index, text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, ULIDMixin

REQUEST_PENDING = "pending"
REQUEST_APPROVED = "approved"
REQUEST_REJECTED = "rejected"

SYSTEM_DECIDER = "system"


class CancellationRequest(Base, ULIDMixin):
    __tablename__ = "cancellation_requests"
    __table_args__ = (
        # At most one outstanding request per order
        Index(
            "uq_cancellation_requests_pending_order",
            "work_order_id",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
    )

    work_order_id: Mapped[str] = mapped_column(String(12), ForeignKey("work_orders.id"), index=True)
    contractor_id: Mapped[str] = mapped_column(String(64), index=True)
    reason: Mapped[str] = mapped_column(String(500), default="")
    additional_info: Mapped[str] = mapped_column(String(2000), default="")
    status: Mapped[str] = mapped_column(String(20), default=REQUEST_PENDING)  # pending | approved | rejected
    auto_approved: Mapped[bool] = mapped_column(Boolean, default=False)
    decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, default=None)
    decided_by: Mapped[str | None] = mapped_column(String(64), nullable=True, default=None)
