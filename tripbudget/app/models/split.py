"""
models/split.py — ExpenseSplit table definition.

Key design points:
  - `amount_cents` is integer minor units, never Float.
  - `percentage` is only set for percentage-method expenses. It is kept so an
    amount-only edit can reallocate the new amount by the original shares.
  - UNIQUE(expense_id, user_id): a user appears at most once per expense.

sum(splits.amount_cents) == expense.amount_cents is enforced by the split
engine, re-checked in models/guards.py before flush, and on PostgreSQL by
the deferred trigger from migration 002.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    ForeignKey,
    Integer,
    Numeric,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tripbudget.app.extensions import db


class ExpenseSplit(db.Model):
    __tablename__ = "expense_splits"

    __table_args__ = (
        UniqueConstraint("expense_id", "user_id", name="uq_expense_splits_expense_user"),
        CheckConstraint("amount_cents >= 0", name="ck_expense_splits_amount_non_negative"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    expense_id: Mapped[int] = mapped_column(
        ForeignKey("expenses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)

    percentage: Mapped[Decimal | None] = mapped_column(Numeric(7, 4), nullable=True)

    expense: Mapped["Expense"] = relationship(  # noqa: F821
        "Expense",
        back_populates="splits",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<ExpenseSplit id={self.id} "
            f"expense_id={self.expense_id} "
            f"user_id={self.user_id} "
            f"amount_cents={self.amount_cents}>"
        )
