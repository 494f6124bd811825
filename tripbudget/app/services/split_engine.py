"""
services/split_engine.py — Turns an expense amount into per-member shares.

Three strategies:

  equal       amount / (number of ACTIVE members), each share rounded half-up
              to the cent. amount - sum(shares) is added to the LAST active
              member, so the shares always add up exactly.
  custom      caller-supplied amounts, rounded to the cent, passed through.
  percentage  caller-supplied percentages; they must sum to 100 (±0.01) before
              anything is computed. Each share is amount * pct / 100 rounded
              half-up; the remainder goes to the LAST entry.

The remainder may be negative (e.g. 0.02 over three people rounds every
share UP to 0.01), in which case the last share shrinks. For very small
amounts that can push it below zero; validate_splits() rejects that.

Amounts are integer cents on both sides. Caller inputs (custom amounts,
percentages) arrive as Decimal and are converted here.

No DB access, no Flask. Pure functions only, so the unit tests need no
fixtures.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from tripbudget.app.errors import ErrorCode, ValidationFailed
from tripbudget.app.models.expense import SplitMethod
from tripbudget.app.utils.money import amounts_match, as_decimal, round_cents, to_cents
from tripbudget.app.utils.validation import is_valid_id

PERCENT_TOTAL = Decimal("100")
PERCENT_TOLERANCE = Decimal("0.01")


def divide_equally(amount_cents: int, user_ids: list[int]) -> list[dict]:
    """
    Divides amount_cents across user_ids in order; the last id absorbs the
    rounding remainder.

    Example: 10000 across [1, 2, 3] → 3333, 3333, 3334
    """
    if not user_ids:
        raise ValidationFailed(
            ErrorCode.NO_ACTIVE_MEMBERS,
            "There are no active members to split this amount between.",
        )

    share = round_cents(Decimal(amount_cents) / len(user_ids))
    result = [{"user_id": uid, "amount_cents": share} for uid in user_ids]
    result[-1]["amount_cents"] += amount_cents - share * len(user_ids)
    return result


def compute_splits(
        amount_cents: int,
        split_method: SplitMethod,
        splits: list[dict] | None,
        budget_members: Iterable,
) -> list[dict]:
    """
    Computes the persisted split rows for an expense.

    Args:
        amount_cents:   Expense amount in cents (>= 0).
        split_method:   SplitMethod.
        splits:         Caller input, list of {"user_id", "amount"?, "percentage"?}.
                        Ignored for equal splits.
        budget_members: Objects with .user_id and .is_past_member, in budget order.

    Returns:
        [{"user_id": int, "amount_cents": int, "percentage": Decimal | None}, ...]
    """
    if amount_cents < 0:
        raise ValidationFailed(
            ErrorCode.INVALID_AMOUNT,
            "Expense amount cannot be negative.",
            field="amount",
        )

    if split_method == SplitMethod.EQUAL:
        active = [m.user_id for m in budget_members if not m.is_past_member]
        return [
            {**row, "percentage": None}
            for row in divide_equally(amount_cents, active)
        ]

    if not splits:
        raise ValidationFailed(
            ErrorCode.SPLITS_REQUIRED,
            f"splits are required when splitMethod is '{split_method.value}'.",
            field="splits",
        )

    if split_method == SplitMethod.CUSTOM:
        return [
            {
                "user_id":      s.get("user_id"),
                "amount_cents": to_cents(_require_number(s.get("amount"), "amount")),
                "percentage":   None,
            }
            for s in splits
        ]

    return _compute_percentage_splits(amount_cents, splits)


def _compute_percentage_splits(amount_cents: int, splits: list[dict]) -> list[dict]:
    percentages = [split_percentage(s) for s in splits]

    total_pct = sum(percentages, Decimal("0"))
    if not amounts_match(total_pct, PERCENT_TOTAL, PERCENT_TOLERANCE):
        raise ValidationFailed(
            ErrorCode.PERCENTAGE_SUM_INVALID,
            f"Split percentages must sum to 100 (got {total_pct}).",
            field="splits",
        )

    computed = [
        {
            "user_id":      s.get("user_id"),
            "amount_cents": round_cents(Decimal(amount_cents) * pct / PERCENT_TOTAL),
            "percentage":   pct,
        }
        for s, pct in zip(splits, percentages)
    ]
    computed[-1]["amount_cents"] += amount_cents - sum(c["amount_cents"] for c in computed)
    return computed


def split_percentage(split: dict) -> Decimal:
    """
    Percentage carried by a caller split entry. `percentage` wins; `amount` is
    accepted as the percentage when the caller sends the older shape.
    """
    raw = split.get("percentage")
    if raw is None:
        raw = split.get("amount")
    pct = _require_number(raw, "percentage")
    if pct < 0:
        raise ValidationFailed(
            ErrorCode.INVALID_AMOUNT,
            "Split percentages cannot be negative.",
            field="splits",
        )
    return pct


def _require_number(value, name: str) -> Decimal:
    if value is None or isinstance(value, bool):
        raise ValidationFailed(
            ErrorCode.INVALID_AMOUNT,
            f"Every split entry needs a numeric {name}.",
            field="splits",
        )
    return as_decimal(value)


def validate_splits(splits: list[dict], amount_cents: int, member_ids: set[int]) -> None:
    """
    Checks computed splits before they are persisted.

    Rules:
      1. At least one entry.
      2. Every user_id is a valid id and a budget member, at most once.
      3. Every amount is >= 0.
      4. sum(amount_cents) == amount_cents exactly. Cents make this exact;
         no tolerance is needed.

    Raises ValidationFailed with the first rule broken.
    """
    if not splits:
        raise ValidationFailed(
            ErrorCode.SPLITS_REQUIRED,
            "At least one split entry is required.",
            field="splits",
        )

    seen: set[int] = set()
    for split in splits:
        user_id = split.get("user_id")
        if not is_valid_id(user_id):
            raise ValidationFailed(
                ErrorCode.INVALID_ID,
                "Every split needs a valid userId.",
                field="splits",
            )
        if user_id not in member_ids:
            raise ValidationFailed(
                ErrorCode.SPLIT_USER_NOT_MEMBER,
                f"User {user_id} in splits is not a member of this budget.",
                field="splits",
            )
        if user_id in seen:
            raise ValidationFailed(
                ErrorCode.DUPLICATE_SPLIT_USER,
                f"User {user_id} appears more than once in splits.",
                field="splits",
            )
        seen.add(user_id)
        if split["amount_cents"] < 0:
            raise ValidationFailed(
                ErrorCode.INVALID_AMOUNT,
                "Split amounts cannot be negative.",
                field="splits",
            )

    total = sum(s["amount_cents"] for s in splits)
    if total != amount_cents:
        raise ValidationFailed(
            ErrorCode.SPLIT_SUM_MISMATCH,
            f"Split amounts sum to {total} cents but the expense amount is "
            f"{amount_cents} cents.",
            field="splits",
        )
