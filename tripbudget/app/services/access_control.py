"""
services/access_control.py — Who may read a budget and who may touch an expense.

Budget creator: always allowed.
Active member:  allowed, subject to the budget's rules and (for edit/delete)
                ownership of the expense.
Past member:    read-only. Never allowed to mutate.

These helpers raise PermissionDenied; they never return False to a caller
that would then have to remember to check it.
"""

from __future__ import annotations

import enum

from tripbudget.app.errors import ErrorCode, PermissionDenied


class ExpenseAction(str, enum.Enum):
    CREATE = "create"
    EDIT   = "edit"
    DELETE = "delete"


def get_budget_member_ids(budget) -> set[int]:
    return {m.user_id for m in budget.members}


def find_member(budget, user_id: int):
    """Returns the BudgetMember for user_id, or None."""
    return next((m for m in budget.members if m.user_id == user_id), None)


def is_budget_creator(budget, user_id: int) -> bool:
    return budget.created_by == user_id


def ensure_member_access(budget, user_id: int) -> None:
    if find_member(budget, user_id) is None:
        raise PermissionDenied(
            ErrorCode.NOT_BUDGET_MEMBER,
            "You are not a member of this budget.",
        )


def ensure_active_member(budget, user_id: int):
    """Returns the caller's BudgetMember when they may mutate the budget."""
    member = find_member(budget, user_id)
    if member is None:
        raise PermissionDenied(
            ErrorCode.NOT_BUDGET_MEMBER,
            "You are not a member of this budget.",
        )
    if member.is_past_member:
        raise PermissionDenied(
            ErrorCode.PAST_MEMBER_READ_ONLY,
            "Past members have read-only access to this budget.",
        )
    return member


def enforce_expense_permission(
        action: ExpenseAction,
        is_creator: bool,
        caller_id: int,
        expense_owner_id: int | None,
        budget,
) -> None:
    """
    Raises PermissionDenied unless the caller may perform `action`.

    create:        creator, or any member while allow_member_expense_creation.
    edit / delete: creator, or the member who recorded the expense while
                   allow_member_expense_edits.
    """
    if is_creator:
        return

    if action == ExpenseAction.CREATE:
        if not budget.allow_member_expense_creation:
            raise PermissionDenied(
                ErrorCode.MEMBER_RULE_DISABLED,
                "Members are not allowed to create expenses in this budget.",
            )
        return

    if expense_owner_id is None or expense_owner_id != caller_id:
        raise PermissionDenied(
            ErrorCode.NOT_EXPENSE_OWNER,
            "Members can only manage expenses they created.",
        )

    if not budget.allow_member_expense_edits:
        raise PermissionDenied(
            ErrorCode.MEMBER_RULE_DISABLED,
            "Members are not allowed to edit or delete expenses in this budget.",
        )
