"""Add split sum integrity trigger (PostgreSQL only).

Revision: 002_add_split_sum_trigger
Created:  2026-10-18

The split engine and the before_flush guard both check
sum(expense_splits.amount_cents) == expenses.amount_cents. This trigger is
the database's own check, so a write that bypasses the ORM still cannot
commit an expense whose splits do not add up.

Why a trigger and not a CHECK constraint:
  CHECK constraints see one row in isolation. Summing sibling rows against
  a parent column needs a trigger.

Trigger design:
  Function : fn_check_expense_split_sum()
    - Picks the affected expense_id from NEW (INSERT/UPDATE) or OLD (DELETE).
    - Compares SUM(amount_cents) of its splits with expenses.amount_cents.
    - Raises SQLSTATE 23514 (check_violation) if they differ.
    - A deleted parent (amount NULL) passes: the splits are going with it.

  Triggers : trg_expense_splits_sum_check on expense_splits
             trg_expenses_sum_check on expenses (amount-only updates)
    - CONSTRAINT TRIGGER ... DEFERRABLE INITIALLY DEFERRED, so the check runs
      at COMMIT, after the expense row and all of its splits are written.

Skipped on non-PostgreSQL databases (the test suite's SQLite has no plpgsql);
there the ORM guard is the last line.

Append-only: never edit after it has been applied; add a new migration.
"""

from __future__ import annotations

from alembic import op

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "002_add_split_sum_trigger"
down_revision: str | None = "001_initial_schema"
branch_labels: tuple | None = None
depends_on: tuple | None = None


# ── SQL definitions ────────────────────────────────────────────────────────

_CREATE_FUNCTION = """
CREATE OR REPLACE FUNCTION fn_check_expense_split_sum()
RETURNS TRIGGER
LANGUAGE plpgsql
AS $$
DECLARE
    v_expense_id  INTEGER;
    v_split_sum   BIGINT;
    v_expense_amt BIGINT;
BEGIN
    IF TG_TABLE_NAME = 'expenses' THEN
        v_expense_id := NEW.id;
    ELSIF TG_OP = 'DELETE' THEN
        v_expense_id := OLD.expense_id;
    ELSE
        v_expense_id := NEW.expense_id;
    END IF;

    SELECT COALESCE(SUM(amount_cents), 0)
      INTO v_split_sum
      FROM expense_splits
     WHERE expense_id = v_expense_id;

    SELECT amount_cents
      INTO v_expense_amt
      FROM expenses
     WHERE id = v_expense_id;

    IF v_expense_amt IS NOT NULL AND v_split_sum <> v_expense_amt THEN
        RAISE EXCEPTION
            'split sum (%) does not equal expense amount (%) for expense id=%',
            v_split_sum, v_expense_amt, v_expense_id
            USING ERRCODE = '23514';
    END IF;

    IF TG_OP = 'DELETE' THEN
        RETURN OLD;
    END IF;
    RETURN NEW;
END;
$$;
"""

_CREATE_SPLIT_TRIGGER = """
CREATE CONSTRAINT TRIGGER trg_expense_splits_sum_check
    AFTER INSERT OR UPDATE OR DELETE
    ON expense_splits
    DEFERRABLE INITIALLY DEFERRED
    FOR EACH ROW
    EXECUTE FUNCTION fn_check_expense_split_sum();
"""

_CREATE_EXPENSE_TRIGGER = """
CREATE CONSTRAINT TRIGGER trg_expenses_sum_check
    AFTER UPDATE OF amount_cents
    ON expenses
    DEFERRABLE INITIALLY DEFERRED
    FOR EACH ROW
    EXECUTE FUNCTION fn_check_expense_split_sum();
"""

_DROP_EXPENSE_TRIGGER = "DROP TRIGGER IF EXISTS trg_expenses_sum_check ON expenses;"
_DROP_SPLIT_TRIGGER = "DROP TRIGGER IF EXISTS trg_expense_splits_sum_check ON expense_splits;"
_DROP_FUNCTION = "DROP FUNCTION IF EXISTS fn_check_expense_split_sum();"


def _is_postgresql() -> bool:
    return op.get_bind().dialect.name == "postgresql"


def upgrade() -> None:
    if not _is_postgresql():
        return
    op.execute(_CREATE_FUNCTION)
    op.execute(_CREATE_SPLIT_TRIGGER)
    op.execute(_CREATE_EXPENSE_TRIGGER)


def downgrade() -> None:
    """Drops the triggers first (they reference the function)."""
    if not _is_postgresql():
        return
    op.execute(_DROP_EXPENSE_TRIGGER)
    op.execute(_DROP_SPLIT_TRIGGER)
    op.execute(_DROP_FUNCTION)
