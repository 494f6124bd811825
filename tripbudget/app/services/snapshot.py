"""
services/snapshot.py — Budget snapshot: the only read model callers see.

Pure transforms from ORM rows (or anything with the same attributes) to
plain dicts:

  map_budget_member / map_budget / map_expense
      ids → str, datetimes → ISO-8601 text, cents → two-decimal Decimal.
      Keys are camelCase because they are sent as-is to the client.

  compute_summary / compute_member_summaries
      Aggregate over the mapped dicts. Every value leaves as Decimal("x.yy"),
      which the app's JSON provider serialises as a string.

  build_snapshot
      {budget, expenses, summary, memberSummaries}

No session, no Flask. Safe to call repeatedly; the output depends only on
the inputs.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from tripbudget.app.utils.money import as_decimal, from_cents, round_money


def _iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    # SQLite hands back naive datetimes; everything is stored as UTC.
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def _enum_value(value):
    return getattr(value, "value", value)


def map_budget_member(member) -> dict:
    return {
        "userId":              str(member.user_id),
        "plannedContribution": from_cents(member.planned_contribution_cents),
        "role":                _enum_value(member.role),
        "joinedAt":            _iso(member.joined_at),
        "isPastMember":        bool(member.is_past_member),
    }


def map_budget(budget, members: list[dict] | None = None) -> dict:
    if members is None:
        members = [map_budget_member(m) for m in budget.members]
    return {
        "id":               str(budget.id),
        "tripId":           str(budget.trip_id),
        "baseCurrency":     budget.base_currency,
        "baseBudgetAmount": (
            from_cents(budget.base_budget_cents)
            if budget.base_budget_cents is not None
            else None
        ),
        "createdBy":        str(budget.created_by),
        "members":          members,
        "rules": {
            "allowMemberContributionEdits": bool(budget.allow_member_contribution_edits),
            "allowMemberExpenseCreation":   bool(budget.allow_member_expense_creation),
            "allowMemberExpenseEdits":      bool(budget.allow_member_expense_edits),
        },
        "createdAt":        _iso(budget.created_at),
        "updatedAt":        _iso(budget.updated_at),
    }


def _map_split(split) -> dict:
    mapped = {
        "userId": str(split.user_id),
        "amount": from_cents(split.amount_cents),
    }
    if split.percentage is not None:
        mapped["percentage"] = as_decimal(split.percentage)
    return mapped


def map_expense(expense) -> dict:
    return {
        "id":          str(expense.id),
        "tripId":      str(expense.trip_id),
        "title":       expense.title,
        "amount":      from_cents(expense.amount_cents),
        "currency":    expense.currency,
        "category":    expense.category,
        "paidBy":      str(expense.paid_by),
        "createdBy":   str(expense.created_by),
        "splitMethod": _enum_value(expense.split_method),
        "splits":      [_map_split(s) for s in expense.splits],
        "date":        _iso(expense.date),
        "notes":       expense.notes,
        "createdAt":   _iso(expense.created_at),
        "updatedAt":   _iso(expense.updated_at),
    }


def compute_summary(members: list[dict], expenses: list[dict]) -> dict:
    total_planned = round_money(sum((m["plannedContribution"] for m in members), Decimal("0")))
    total_spent = round_money(sum((e["amount"] for e in expenses), Decimal("0")))
    return {
        "totalPlanned": total_planned,
        "totalSpent":   total_spent,
        "remaining":    round_money(total_planned - total_spent),
    }


def compute_member_summaries(members: list[dict], expenses: list[dict]) -> list[dict]:
    spent_by_member: dict[str, Decimal] = {}
    for expense in expenses:
        for split in expense["splits"]:
            spent_by_member[split["userId"]] = (
                spent_by_member.get(split["userId"], Decimal("0")) + split["amount"]
            )

    summaries = []
    for member in members:
        planned = round_money(member["plannedContribution"])
        spent = round_money(spent_by_member.get(member["userId"], Decimal("0")))
        summaries.append({
            "userId":    member["userId"],
            "planned":   planned,
            "spent":     spent,
            "remaining": round_money(planned - spent),
        })
    return summaries


def build_snapshot(budget, expenses) -> dict:
    members = [map_budget_member(m) for m in budget.members]
    mapped_expenses = [map_expense(e) for e in expenses]
    return {
        "budget":          map_budget(budget, members),
        "expenses":        mapped_expenses,
        "summary":         compute_summary(members, mapped_expenses),
        "memberSummaries": compute_member_summaries(members, mapped_expenses),
    }
