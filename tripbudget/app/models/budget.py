"""
models/budget.py — Budget and BudgetMember table definitions.

One budget per trip (UNIQUE trip_id). Members are an ordered list: the
order matters because equal splits push the rounding remainder onto the
LAST active member, so `position` is maintained by ordering_list.

Key design points:
  - Money columns are integer cents (BigInteger), never Float, never Numeric.
  - The three permission rules are plain boolean columns defaulting to True;
    the snapshot groups them under "rules".
  - The single-creator invariant is enforced in models/guards.py before
    every flush, not here.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
)
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tripbudget.app.extensions import db


# ── Enum Definitions ───────────────────────────────────────────────────────

class MemberRole(str, enum.Enum):
    CREATOR = "creator"
    MEMBER  = "member"


class CloneMode(str, enum.Enum):
    """How much of a budget is carried into a new trip."""
    TEMPLATE     = "TEMPLATE"      # roster + rules, contributions reset to 0
    PLANNING     = "PLANNING"      # roster + rules + planned contributions
    FULL_HISTORY = "FULL_HISTORY"  # PLANNING + every expense


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Ensure SQLAlchemy stores enum values (e.g., 'creator'), not names ('CREATOR')."""
    return [member.value for member in enum_cls]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Models ─────────────────────────────────────────────────────────────────

class Budget(db.Model):
    __tablename__ = "budgets"

    __table_args__ = (
        CheckConstraint("LENGTH(base_currency) = 3", name="ck_budgets_currency_len"),
        CheckConstraint(
            "base_budget_cents IS NULL OR base_budget_cents >= 0",
            name="ck_budgets_base_non_negative",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    trip_id: Mapped[int] = mapped_column(
        ForeignKey("trips.id", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
        index=True,
    )

    # Fixed for the budget's lifetime; expenses are recorded in this currency.
    base_currency: Mapped[str] = mapped_column(String(3), nullable=False)

    # Creator-set target, independent of the sum of planned contributions.
    base_budget_cents: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    created_by: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    allow_member_contribution_edits: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True,
    )
    allow_member_expense_creation: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True,
    )
    allow_member_expense_edits: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True,
    )

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

    members: Mapped[list["BudgetMember"]] = relationship(
        "BudgetMember",
        back_populates="budget",
        order_by="BudgetMember.position",
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Budget id={self.id} "
            f"trip_id={self.trip_id} "
            f"currency={self.base_currency}>"
        )


class BudgetMember(db.Model):
    __tablename__ = "budget_members"

    __table_args__ = (
        CheckConstraint(
            "planned_contribution_cents >= 0",
            name="ck_budget_members_contribution_non_negative",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    budget_id: Mapped[int] = mapped_column(
        ForeignKey("budgets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    planned_contribution_cents: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )

    role: Mapped[MemberRole] = mapped_column(
        Enum(
            MemberRole,
            name="budget_member_role_enum",
            native_enum=False,
            length=20,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=MemberRole.MEMBER,
    )

    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    # Past members keep read access and history, but cannot mutate or be
    # assigned new splits.
    is_past_member: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    budget: Mapped["Budget"] = relationship("Budget", back_populates="members")

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<BudgetMember budget_id={self.budget_id} "
            f"user_id={self.user_id} "
            f"role={self.role}>"
        )
