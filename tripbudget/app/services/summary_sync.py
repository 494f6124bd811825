"""
services/summary_sync.py — Keeps trips.budget_summary_* in line with the ledger.

The trip row caches two numbers for list views:
  budget_summary_total  sum of every budget member's planned contribution
  budget_summary_spent  sum of every expense amount recorded for the trip

Both are recomputed from scratch (never incremented) inside ONE statement:

  UPDATE trips
     SET budget_summary_total = (SELECT SUM(...) FROM budget_members ...),
         budget_summary_spent = (SELECT SUM(...) FROM expenses ...)
   WHERE id = :trip_id

The database evaluates the sub-selects and the write together, so there is no
window in which another request's insert can be read-then-overwritten by ours.

Call this after any mutation that changes planned or spent totals. It flushes
first so the sub-selects see this request's pending rows. It never commits.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session
from sqlalchemy.orm.util import identity_key

from tripbudget.app.models.budget import Budget, BudgetMember
from tripbudget.app.models.expense import Expense
from tripbudget.app.models.trip import Trip

logger = logging.getLogger(__name__)

_SUMMARY_COLUMNS = ["budget_summary_total", "budget_summary_spent"]


def build_summary_update(trip_id: int):
    """The UPDATE statement that recomputes one trip's cached summary."""
    planned = (
        select(func.coalesce(func.sum(BudgetMember.planned_contribution_cents), 0))
        .select_from(BudgetMember)
        .join(Budget, Budget.id == BudgetMember.budget_id)
        .where(Budget.trip_id == trip_id)
        .scalar_subquery()
    )
    spent = (
        select(func.coalesce(func.sum(Expense.amount_cents), 0))
        .where(Expense.trip_id == trip_id)
        .scalar_subquery()
    )
    return (
        update(Trip)
        .where(Trip.id == trip_id)
        .values(budget_summary_total=planned, budget_summary_spent=spent)
        .execution_options(synchronize_session=False)
    )


def sync_trip_budget_summary(trip_id: int, session: Session) -> bool:
    """
    Recomputes and writes the trip's cached budget summary.

    Returns False (and logs a warning) when the trip row does not exist;
    a missing trip is not an error for the mutation that triggered the sync.
    """
    session.flush()

    result = session.execute(build_summary_update(trip_id))
    if not result.rowcount:
        logger.warning("Budget summary sync skipped: trip %s not found", trip_id)
        return False

    # The UPDATE bypassed the ORM; drop any stale cached values.
    trip = session.identity_map.get(identity_key(Trip, trip_id))
    if trip is not None:
        session.expire(trip, _SUMMARY_COLUMNS)

    logger.debug("Budget summary synced for trip %s", trip_id)
    return True
