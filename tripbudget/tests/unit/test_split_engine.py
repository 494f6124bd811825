"""
tests/unit/test_split_engine.py — services/split_engine.py.

What this file proves:
  - Equal splits go over ACTIVE members only; the last one absorbs the
    rounding remainder, so sum(shares) == amount for every case.
  - Percentage splits must sum to 100 (±0.01) and round half-up, with the
    remainder on the last entry.
  - Custom splits pass through, and validate_splits() rejects bad totals,
    unknown users, duplicates and negative shares.

Pure functions; members are SimpleNamespace stand-ins.
"""

from __future__ import annotations

from decimal import Decimal
from types import SimpleNamespace

import pytest

from tripbudget.app.errors import ErrorCode, ValidationFailed
from tripbudget.app.models.expense import SplitMethod
from tripbudget.app.services.split_engine import (
    compute_splits,
    divide_equally,
    split_percentage,
    validate_splits,
)


def _member(user_id: int, past: bool = False) -> SimpleNamespace:
    return SimpleNamespace(user_id=user_id, is_past_member=past)


def _amounts(rows: list[dict]) -> list[int]:
    return [r["amount_cents"] for r in rows]


def _assert_conserved(rows: list[dict], amount_cents: int) -> None:
    total = sum(_amounts(rows))
    assert total == amount_cents, f"split sum {total} != amount {amount_cents}"


# ── divide_equally ─────────────────────────────────────────────────────────

def test_divide_equally_even():
    rows = divide_equally(9000, [1, 2, 3])
    assert _amounts(rows) == [3000, 3000, 3000]


def test_divide_equally_remainder_goes_to_last():
    rows = divide_equally(10000, [1, 2, 3])
    assert _amounts(rows) == [3333, 3333, 3334]
    assert rows[-1]["user_id"] == 3


def test_divide_equally_rounds_half_up_and_last_shrinks():
    # 2 cents / 3 = 0.667 → each share rounds up to 1, last one gives one back.
    rows = divide_equally(2, [1, 2, 3])
    assert _amounts(rows) == [1, 1, 0]


def test_divide_equally_tiny_amount_can_leave_last_share_negative():
    # 2 cents / 4 = 0.5 → each share rounds up to 1; the last one goes to -1.
    rows = divide_equally(2, [1, 2, 3, 4])
    assert _amounts(rows) == [1, 1, 1, -1]
    _assert_conserved(rows, 2)


def test_equal_split_with_negative_last_share_is_rejected():
    members = [_member(1), _member(2), _member(3), _member(4)]
    rows = compute_splits(2, SplitMethod.EQUAL, None, members)

    with pytest.raises(ValidationFailed) as exc_info:
        validate_splits(rows, 2, {1, 2, 3, 4})
    assert exc_info.value.code == ErrorCode.INVALID_AMOUNT


def test_divide_equally_single_member_gets_everything():
    assert _amounts(divide_equally(1234, [7])) == [1234]


def test_divide_equally_requires_members():
    with pytest.raises(ValidationFailed) as exc_info:
        divide_equally(100, [])
    assert exc_info.value.code == ErrorCode.NO_ACTIVE_MEMBERS


@pytest.mark.parametrize("amount_cents", [0, 1, 99, 100, 9999, 10001, 123457])
@pytest.mark.parametrize("count", [1, 2, 3, 6, 7])
def test_divide_equally_conserves_amount(amount_cents, count):
    _assert_conserved(divide_equally(amount_cents, list(range(1, count + 1))), amount_cents)


# ── compute_splits: equal ──────────────────────────────────────────────────

def test_equal_split_one_hundred_over_three():
    members = [_member(1), _member(2), _member(3)]
    rows = compute_splits(10000, SplitMethod.EQUAL, None, members)

    assert [r["user_id"] for r in rows] == [1, 2, 3]
    assert _amounts(rows) == [3333, 3333, 3334]
    assert all(r["percentage"] is None for r in rows)


def test_equal_split_skips_past_members():
    members = [_member(1), _member(2, past=True), _member(3)]
    rows = compute_splits(10000, SplitMethod.EQUAL, None, members)

    assert [r["user_id"] for r in rows] == [1, 3]
    assert _amounts(rows) == [5000, 5000]


def test_equal_split_ignores_caller_splits():
    members = [_member(1), _member(2)]
    rows = compute_splits(
        1000, SplitMethod.EQUAL, [{"user_id": 1, "amount": Decimal("10")}], members,
    )
    assert _amounts(rows) == [500, 500]


def test_equal_split_with_only_past_members_fails():
    with pytest.raises(ValidationFailed) as exc_info:
        compute_splits(1000, SplitMethod.EQUAL, None, [_member(1, past=True)])
    assert exc_info.value.code == ErrorCode.NO_ACTIVE_MEMBERS


def test_negative_amount_rejected():
    with pytest.raises(ValidationFailed) as exc_info:
        compute_splits(-1, SplitMethod.EQUAL, None, [_member(1)])
    assert exc_info.value.code == ErrorCode.INVALID_AMOUNT


# ── compute_splits: custom ─────────────────────────────────────────────────

def test_custom_split_passes_amounts_through():
    rows = compute_splits(
        10000,
        SplitMethod.CUSTOM,
        [
            {"user_id": 1, "amount": Decimal("60")},
            {"user_id": 2, "amount": Decimal("40.00")},
        ],
        [_member(1), _member(2)],
    )
    assert rows == [
        {"user_id": 1, "amount_cents": 6000, "percentage": None},
        {"user_id": 2, "amount_cents": 4000, "percentage": None},
    ]


@pytest.mark.parametrize("method", [SplitMethod.CUSTOM, SplitMethod.PERCENTAGE])
def test_custom_and_percentage_need_splits(method):
    with pytest.raises(ValidationFailed) as exc_info:
        compute_splits(1000, method, [], [_member(1)])
    assert exc_info.value.code == ErrorCode.SPLITS_REQUIRED


def test_custom_split_entry_without_amount_rejected():
    with pytest.raises(ValidationFailed) as exc_info:
        compute_splits(1000, SplitMethod.CUSTOM, [{"user_id": 1}], [_member(1)])
    assert exc_info.value.code == ErrorCode.INVALID_AMOUNT


# ── compute_splits: percentage ─────────────────────────────────────────────

def test_percentage_split_rounds_and_conserves():
    rows = compute_splits(
        9999,
        SplitMethod.PERCENTAGE,
        [
            {"user_id": 1, "percentage": Decimal("60")},
            {"user_id": 2, "percentage": Decimal("40")},
        ],
        [_member(1), _member(2)],
    )
    assert _amounts(rows) == [5999, 4000]
    assert rows[0]["percentage"] == Decimal("60")
    _assert_conserved(rows, 9999)


def test_percentage_split_thirds_remainder_on_last():
    pct = Decimal("33.333")
    rows = compute_splits(
        10000,
        SplitMethod.PERCENTAGE,
        [
            {"user_id": 1, "percentage": pct},
            {"user_id": 2, "percentage": pct},
            {"user_id": 3, "percentage": Decimal("33.334")},
        ],
        [_member(1), _member(2), _member(3)],
    )
    assert _amounts(rows) == [3333, 3333, 3334]


def test_percentage_sum_within_tolerance_accepted():
    rows = compute_splits(
        10000,
        SplitMethod.PERCENTAGE,
        [
            {"user_id": 1, "percentage": Decimal("50")},
            {"user_id": 2, "percentage": Decimal("49.99")},
        ],
        [_member(1), _member(2)],
    )
    _assert_conserved(rows, 10000)


@pytest.mark.parametrize("second", [Decimal("49.98"), Decimal("60")])
def test_percentage_sum_outside_tolerance_rejected(second):
    with pytest.raises(ValidationFailed) as exc_info:
        compute_splits(
            10000,
            SplitMethod.PERCENTAGE,
            [
                {"user_id": 1, "percentage": Decimal("50")},
                {"user_id": 2, "percentage": second},
            ],
            [_member(1), _member(2)],
        )
    assert exc_info.value.code == ErrorCode.PERCENTAGE_SUM_INVALID


def test_split_percentage_falls_back_to_amount():
    assert split_percentage({"user_id": 1, "amount": Decimal("25")}) == Decimal("25")
    assert split_percentage(
        {"user_id": 1, "percentage": Decimal("30"), "amount": Decimal("25")}
    ) == Decimal("30")


def test_split_percentage_rejects_negative():
    with pytest.raises(ValidationFailed) as exc_info:
        split_percentage({"user_id": 1, "percentage": Decimal("-5")})
    assert exc_info.value.code == ErrorCode.INVALID_AMOUNT


# ── validate_splits ────────────────────────────────────────────────────────

def _row(user_id, cents):
    return {"user_id": user_id, "amount_cents": cents, "percentage": None}


def test_validate_splits_accepts_exact_total():
    validate_splits([_row(1, 6000), _row(2, 4000)], 10000, {1, 2})


def test_validate_splits_rejects_total_mismatch():
    with pytest.raises(ValidationFailed) as exc_info:
        validate_splits([_row(1, 4000), _row(2, 5000)], 10000, {1, 2})
    assert exc_info.value.code == ErrorCode.SPLIT_SUM_MISMATCH


def test_validate_splits_rejects_one_cent_over():
    with pytest.raises(ValidationFailed) as exc_info:
        validate_splits([_row(1, 5001), _row(2, 5000)], 10000, {1, 2})
    assert exc_info.value.code == ErrorCode.SPLIT_SUM_MISMATCH


def test_validate_splits_rejects_empty():
    with pytest.raises(ValidationFailed) as exc_info:
        validate_splits([], 0, {1})
    assert exc_info.value.code == ErrorCode.SPLITS_REQUIRED


def test_validate_splits_rejects_non_member():
    with pytest.raises(ValidationFailed) as exc_info:
        validate_splits([_row(1, 500), _row(9, 500)], 1000, {1, 2})
    assert exc_info.value.code == ErrorCode.SPLIT_USER_NOT_MEMBER


def test_validate_splits_rejects_duplicates():
    with pytest.raises(ValidationFailed) as exc_info:
        validate_splits([_row(1, 500), _row(1, 500)], 1000, {1, 2})
    assert exc_info.value.code == ErrorCode.DUPLICATE_SPLIT_USER


@pytest.mark.parametrize("user_id", [None, 0, True, "1"])
def test_validate_splits_rejects_bad_user_id(user_id):
    with pytest.raises(ValidationFailed) as exc_info:
        validate_splits([_row(user_id, 1000)], 1000, {1})
    assert exc_info.value.code == ErrorCode.INVALID_ID


def test_validate_splits_rejects_negative_share():
    with pytest.raises(ValidationFailed) as exc_info:
        validate_splits([_row(1, 1100), _row(2, -100)], 1000, {1, 2})
    assert exc_info.value.code == ErrorCode.INVALID_AMOUNT
