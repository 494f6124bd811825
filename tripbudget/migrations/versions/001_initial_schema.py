"""Initial schema — trips, budgets, expenses and their child tables.

Revision: 001_initial_schema
Created:  2026-10-18

Append-only:
  This file must NEVER be edited after it has been applied to any database.
  If a schema change is required, create a NEW migration file.

Creation order (FK dependencies):
  trips → trip_members
  trips → budgets → budget_members
  trips → expenses → expense_splits

Enums are stored as VARCHAR + CHECK (native_enum=False in the models), so
no PostgreSQL types need creating first and the same schema works on SQLite.

Money columns are BIGINT cents throughout.

ON DELETE policies:
  trip_members.trip_id     → CASCADE   (roster owned by trip)
  budgets.trip_id          → RESTRICT  (cannot delete a trip with a budget)
  budget_members.budget_id → CASCADE   (members owned by budget)
  expenses.trip_id         → RESTRICT  (cannot delete a trip with expenses)
  expense_splits.expense_id → CASCADE  (splits owned by expense)
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "001_initial_schema"
down_revision: str | None = None      # first migration, no parent
branch_labels: tuple | None = None
depends_on: tuple | None = None


def upgrade() -> None:

    # ── trips / trip_members (mapped from the trip service) ───────────────
    op.create_table(
        "trips",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("created_by", sa.Integer(), nullable=False),
        sa.Column("budget_summary_total", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("budget_summary_spent", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_trips_created_by", "trips", ["created_by"])

    op.create_table(
        "trip_members",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "trip_id",
            sa.Integer(),
            sa.ForeignKey("trips.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default="member"),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("trip_id", "user_id", name="uq_trip_members_trip_user"),
    )
    op.create_index("ix_trip_members_trip_id", "trip_members", ["trip_id"])
    op.create_index("ix_trip_members_user_id", "trip_members", ["user_id"])

    # ── budgets / budget_members ──────────────────────────────────────────
    op.create_table(
        "budgets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "trip_id",
            sa.Integer(),
            sa.ForeignKey("trips.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("base_currency", sa.String(3), nullable=False),
        sa.Column("base_budget_cents", sa.BigInteger(), nullable=True),
        sa.Column("created_by", sa.Integer(), nullable=False),
        sa.Column("allow_member_contribution_edits", sa.Boolean(), nullable=False),
        sa.Column("allow_member_expense_creation", sa.Boolean(), nullable=False),
        sa.Column("allow_member_expense_edits", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("LENGTH(base_currency) = 3", name="ck_budgets_currency_len"),
        sa.CheckConstraint(
            "base_budget_cents IS NULL OR base_budget_cents >= 0",
            name="ck_budgets_base_non_negative",
        ),
    )
    op.create_index("ix_budgets_trip_id", "budgets", ["trip_id"], unique=True)
    op.create_index("ix_budgets_created_by", "budgets", ["created_by"])

    op.create_table(
        "budget_members",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "budget_id",
            sa.Integer(),
            sa.ForeignKey("budgets.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("planned_contribution_cents", sa.BigInteger(), nullable=False),
        sa.Column(
            "role",
            sa.Enum(
                "creator", "member",
                name="budget_member_role_enum",
                native_enum=False,
                length=20,
            ),
            nullable=False,
        ),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_past_member", sa.Boolean(), nullable=False),
        sa.CheckConstraint(
            "planned_contribution_cents >= 0",
            name="ck_budget_members_contribution_non_negative",
        ),
    )
    op.create_index("ix_budget_members_budget_id", "budget_members", ["budget_id"])
    op.create_index("ix_budget_members_user_id", "budget_members", ["user_id"])

    # ── expenses / expense_splits ─────────────────────────────────────────
    op.create_table(
        "expenses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "trip_id",
            sa.Integer(),
            sa.ForeignKey("trips.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("title", sa.String(255), nullable=True),
        sa.Column("amount_cents", sa.BigInteger(), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("category", sa.String(64), nullable=True),
        sa.Column("paid_by", sa.Integer(), nullable=False),
        sa.Column("created_by", sa.Integer(), nullable=False),
        sa.Column(
            "split_method",
            sa.Enum(
                "equal", "custom", "percentage",
                name="split_method_enum",
                native_enum=False,
                length=20,
            ),
            nullable=False,
        ),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("amount_cents >= 0", name="ck_expenses_amount_non_negative"),
    )
    op.create_index("ix_expenses_trip_id", "expenses", ["trip_id"])
    op.create_index("ix_expenses_created_by", "expenses", ["created_by"])
    op.create_index("idx_expenses_trip_date", "expenses", ["trip_id", "date"])

    op.create_table(
        "expense_splits",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "expense_id",
            sa.Integer(),
            sa.ForeignKey("expenses.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("amount_cents", sa.BigInteger(), nullable=False),
        sa.Column("percentage", sa.Numeric(7, 4), nullable=True),
        sa.UniqueConstraint("expense_id", "user_id", name="uq_expense_splits_expense_user"),
        sa.CheckConstraint("amount_cents >= 0", name="ck_expense_splits_amount_non_negative"),
    )
    op.create_index("ix_expense_splits_expense_id", "expense_splits", ["expense_id"])
    op.create_index("ix_expense_splits_user_id", "expense_splits", ["user_id"])


def downgrade() -> None:
    """Drops everything in reverse FK order."""
    op.drop_table("expense_splits")
    op.drop_table("expenses")
    op.drop_table("budget_members")
    op.drop_table("budgets")
    op.drop_table("trip_members")
    op.drop_table("trips")
