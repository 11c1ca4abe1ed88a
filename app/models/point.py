"""Point ledger models: per-account balance + append-only transactions."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import String, Integer, DateTime, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, ULIDMixin, utcnow

ROLE_SELLER = "seller"
ROLE_CONTRACTOR = "contractor"
ACCOUNT_ROLES = (ROLE_SELLER, ROLE_CONTRACTOR)

TX_CHARGE = "charge"
TX_PAYMENT = "payment"
TX_WITHDRAWAL = "withdrawal"
TX_REFUND = "refund"

# Sign applied to the stored (always positive) amount
TX_SIGN = {TX_CHARGE: 1, TX_REFUND: 1, TX_PAYMENT: -1, TX_WITHDRAWAL: -1}


class PointBalance(Base, ULIDMixin):
    __tablename__ = "point_balances"
    __table_args__ = (
        UniqueConstraint("account_id", "account_role", name="uq_point_balances_account"),
        CheckConstraint("balance >= 0", name="ck_point_balances_non_negative"),
    )

    account_id: Mapped[str] = mapped_column(String(64))
    account_role: Mapped[str] = mapped_column(String(20))  # seller | contractor
    balance: Mapped[int] = mapped_column(Integer, default=0)
    total_charged: Mapped[int] = mapped_column(Integer, default=0)
    total_withdrawn: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class PointTransaction(Base, ULIDMixin):
    __tablename__ = "point_transactions"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_point_transactions_positive"),
    )

    account_id: Mapped[str] = mapped_column(String(64), index=True)
    account_role: Mapped[str] = mapped_column(String(20))
    type: Mapped[str] = mapped_column(String(20))  # charge | payment | withdrawal | refund
    amount: Mapped[int] = mapped_column(Integer)
    balance_after: Mapped[int] = mapped_column(Integer)
    related_job_id: Mapped[str | None] = mapped_column(String(12), nullable=True, default=None, index=True)
    status: Mapped[str] = mapped_column(String(20), default="completed")  # pending | completed | failed | cancelled
    description: Mapped[str] = mapped_column(String(200), default="")

    @property
    def signed_amount(self) -> int:
        return TX_SIGN[self.type] * self.amount
