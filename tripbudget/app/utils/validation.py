"""
utils/validation.py — Domain input guards used by the service layer.

Marshmallow schemas check request *shape*. These functions check the values
the services actually act on, so a service called from anywhere (a script, a
test, another service) gets the same guarantees as an HTTP request.

Every guard either returns the normalised value or raises ValidationFailed.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation

from tripbudget.app.errors import ErrorCode, ValidationFailed
from tripbudget.app.models.budget import CloneMode
from tripbudget.app.models.expense import SplitMethod


def is_valid_id(value) -> bool:
    """True for positive integers (bools excluded)."""
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def validate_id(value, field_name: str = "id") -> int:
    if not is_valid_id(value):
        raise ValidationFailed(
            ErrorCode.INVALID_ID,
            f"{field_name} must be a positive integer id.",
            field=field_name,
        )
    return value


def validate_amount(value, field_name: str = "amount") -> Decimal:
    """
    Accepts int, float or Decimal >= 0 and returns it as Decimal.

    Strings and bools are rejected even when they look numeric; the schema
    layer is where wire strings become numbers.
    """
    if value is None or isinstance(value, (bool, str)):
        raise ValidationFailed(
            ErrorCode.INVALID_AMOUNT,
            f"{field_name} must be a number.",
            field=field_name,
        )
    if isinstance(value, float) and not math.isfinite(value):
        raise ValidationFailed(
            ErrorCode.INVALID_AMOUNT,
            f"{field_name} must be a finite number.",
            field=field_name,
        )
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationFailed(
            ErrorCode.INVALID_AMOUNT,
            f"{field_name} must be a number.",
            field=field_name,
        )
    if not amount.is_finite():
        raise ValidationFailed(
            ErrorCode.INVALID_AMOUNT,
            f"{field_name} must be a finite number.",
            field=field_name,
        )
    if amount < 0:
        raise ValidationFailed(
            ErrorCode.INVALID_AMOUNT,
            f"{field_name} cannot be negative.",
            field=field_name,
        )
    return amount


def validate_contribution(value, field_name: str = "plannedContribution") -> Decimal:
    return validate_amount(value, field_name)


def validate_currency(value, field_name: str = "baseCurrency") -> str:
    """Normalises to an upper-case three-letter code, e.g. ' usd ' → 'USD'."""
    if not isinstance(value, str):
        raise ValidationFailed(
            ErrorCode.INVALID_CURRENCY,
            f"{field_name} must be a 3-letter currency code.",
            field=field_name,
        )
    code = value.strip().upper()
    if len(code) != 3 or not code.isascii() or not code.isalpha():
        raise ValidationFailed(
            ErrorCode.INVALID_CURRENCY,
            f"{field_name} must be a 3-letter currency code.",
            field=field_name,
        )
    return code


def parse_iso_date(value, field_name: str = "date") -> datetime:
    """
    Parses ISO-8601 text (date or datetime) into an aware UTC datetime.
    Naive values are taken as UTC; offsets are converted.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            raise ValidationFailed(
                ErrorCode.INVALID_DATE,
                f"{field_name} must be an ISO-8601 date.",
                field=field_name,
            )
    else:
        raise ValidationFailed(
            ErrorCode.INVALID_DATE,
            f"{field_name} must be an ISO-8601 date.",
            field=field_name,
        )

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def validate_split_method(value, field_name: str = "splitMethod") -> SplitMethod:
    try:
        return SplitMethod(value)
    except ValueError:
        raise ValidationFailed(
            ErrorCode.INVALID_SPLIT_METHOD,
            f"{field_name} must be one of: equal, custom, percentage.",
            field=field_name,
        )


def validate_clone_mode(value, field_name: str = "mode") -> CloneMode:
    if value is None:
        return CloneMode.PLANNING
    try:
        return CloneMode(value)
    except ValueError:
        raise ValidationFailed(
            ErrorCode.INVALID_CLONE_MODE,
            f"{field_name} must be one of: TEMPLATE, PLANNING, FULL_HISTORY.",
            field=field_name,
        )
