"""
models/guards.py — Last-resort invariant checks run before every flush.

The services validate everything up front. These listeners exist so a code
path that bypasses the services (a script, a future endpoint, a bug) still
cannot write a budget without exactly one creator, or an expense whose splits
do not add up to its amount.

Registered once on the Session class at import time; app/__init__.py imports
this module alongside the models.
"""

from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.orm import Session

from tripbudget.app.errors import Conflict, ErrorCode, ValidationFailed
from tripbudget.app.models.budget import Budget, BudgetMember, MemberRole
from tripbudget.app.models.expense import Expense
from tripbudget.app.models.split import ExpenseSplit


def ensure_single_creator(members) -> None:
    creators = [m for m in members if m.role == MemberRole.CREATOR]
    if len(creators) != 1:
        raise Conflict(
            ErrorCode.CREATOR_INVARIANT,
            f"A budget must have exactly one creator (found {len(creators)}).",
        )


def ensure_split_total(expense) -> None:
    splits = list(expense.splits)
    if not splits:
        raise ValidationFailed(
            ErrorCode.SPLITS_REQUIRED,
            "An expense must have at least one split.",
            field="splits",
        )
    total = sum(s.amount_cents for s in splits)
    if total != expense.amount_cents:
        raise ValidationFailed(
            ErrorCode.SPLIT_SUM_MISMATCH,
            f"Split amounts sum to {total} cents but the expense amount is "
            f"{expense.amount_cents} cents.",
            field="splits",
        )


@event.listens_for(Session, "before_flush")
def _check_budget_invariants(session, flush_context, instances) -> None:
    budgets: set = set()
    expenses: set = set()

    for obj in list(session.new) + list(session.dirty):
        if isinstance(obj, Budget):
            budgets.add(obj)
        elif isinstance(obj, BudgetMember) and obj.budget is not None:
            budgets.add(obj.budget)
        elif isinstance(obj, Expense):
            expenses.add(obj)
        elif isinstance(obj, ExpenseSplit) and obj.expense is not None:
            expenses.add(obj.expense)

    for budget in budgets:
        if budget in session.deleted:
            continue
        ensure_single_creator(budget.members)

    for expense in expenses:
        if expense in session.deleted:
            continue
        ensure_split_total(expense)
