"""
models/expense.py — Expense table definition.

No business logic. No imports from services or routes.

Key design points:
  - `amount_cents` is an integer count of minor units, never Float.
  - `currency` always equals the owning budget's base currency; it is
    stored per row so the ledger reads correctly on its own.
  - split_method, created_by, paid_by and trip_id never change after insert.
  - Expenses are hard-deleted; splits cascade with them.
  - SplitMethod is a Python enum so schemas and services share one set of
    literals.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tripbudget.app.extensions import db


# ── Enum Definitions ───────────────────────────────────────────────────────
# Do not duplicate these as plain string constants anywhere else.

class SplitMethod(str, enum.Enum):
    EQUAL      = "equal"
    CUSTOM     = "custom"
    PERCENTAGE = "percentage"


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Ensure SQLAlchemy stores enum values (e.g., 'custom'), not names ('CUSTOM')."""
    return [member.value for member in enum_cls]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Model ──────────────────────────────────────────────────────────────────

class Expense(db.Model):
    __tablename__ = "expenses"

    __table_args__ = (
        CheckConstraint("amount_cents >= 0", name="ck_expenses_amount_non_negative"),
        Index("idx_expenses_trip_date", "trip_id", "date"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    trip_id: Mapped[int] = mapped_column(
        ForeignKey("trips.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    title: Mapped[str | None] = mapped_column(String(255), nullable=True)

    amount_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    category: Mapped[str | None] = mapped_column(String(64), nullable=True)

    paid_by: Mapped[int] = mapped_column(Integer, nullable=False)

    created_by: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    split_method: Mapped[SplitMethod] = mapped_column(
        Enum(
            SplitMethod,
            name="split_method_enum",
            native_enum=False,
            length=20,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=SplitMethod.EQUAL,
    )

    # When the money was spent (caller-supplied); defaults to insert time.
    date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )

    # ── Relationships ──────────────────────────────────────────────────────

    splits: Mapped[list["ExpenseSplit"]] = relationship(  # noqa: F821
        "ExpenseSplit",
        back_populates="expense",
        order_by="ExpenseSplit.position",
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Expense id={self.id} "
            f"trip_id={self.trip_id} "
            f"amount_cents={self.amount_cents} "
            f"method={self.split_method}>"
        )
