"""
schemas/expense_schema.py — Marshmallow schemas for expense endpoints.

Validation responsibility:
  - This file:
      - Field types and lengths, non-negative amounts
      - splitMethod values (INVALID_SPLIT_METHOD)
      - splits required for custom/percentage (SPLITS_REQUIRED)
      - DUPLICATE_SPLIT_USER within one request
  - services/budget_service.py and services/split_engine.py:
      - PAYER_NOT_MEMBER, SPLIT_USER_NOT_MEMBER, SPLIT_USER_PAST_MEMBER
      - PERCENTAGE_SUM_INVALID, SPLIT_SUM_MISMATCH (need the amount in cents)
      - CURRENCY_MISMATCH (needs the budget)
      - IMMUTABLE_FIELD on PATCH (needs the caller's permission checked first)

For equal splits a `splits` array is accepted and ignored; the server always
divides across the active members.

IMPORTANT: Inherits from marshmallow.Schema directly. See extensions.py.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate, validates_schema

from tripbudget.app.errors import ErrorCode
from tripbudget.app.models.expense import SplitMethod

_non_negative = validate.Range(min=0, error=ErrorCode.INVALID_AMOUNT)


def _check_duplicate_users(splits: list[dict] | None) -> None:
    if not splits:
        return
    user_ids = [s["user_id"] for s in splits]
    if len(user_ids) != len(set(user_ids)):
        raise ValidationError({"splits": [ErrorCode.DUPLICATE_SPLIT_USER]})


# ── Sub-schema: one entry in the `splits` array ───────────────────────────

class SplitInputSchema(Schema):
    """
    custom:     {userId, amount}
    percentage: {userId, percentage}. {userId, amount} is also read as a
                percentage for older clients.
    """

    user_id = fields.Int(
        data_key="userId",
        required=True,
        strict=False,
        validate=validate.Range(min=1, error=ErrorCode.INVALID_ID),
    )

    amount = fields.Decimal(allow_nan=False, validate=_non_negative)

    percentage = fields.Decimal(allow_nan=False, validate=_non_negative)

    @validates_schema
    def validate_has_value(self, data: dict, **kwargs) -> None:
        if "amount" not in data and "percentage" not in data:
            raise ValidationError(
                {"amount": ["Each split needs an amount or a percentage."]}
            )


# ── Create expense ─────────────────────────────────────────────────────────

class CreateExpenseSchema(Schema):
    """POST /trips/:id/expenses"""

    title = fields.Str(allow_none=True, validate=validate.Length(max=255))

    amount = fields.Decimal(required=True, allow_nan=False, validate=_non_negative)

    # Optional; must equal the budget's base currency (checked in the service).
    currency = fields.Str(allow_none=True)

    category = fields.Str(allow_none=True, validate=validate.Length(max=64))

    paid_by = fields.Int(
        data_key="paidBy",
        required=True,
        strict=False,
        validate=validate.Range(min=1, error=ErrorCode.INVALID_ID),
    )

    split_method = fields.Enum(
        SplitMethod,
        data_key="splitMethod",
        required=True,
        by_value=True,
        error_messages={"unknown": ErrorCode.INVALID_SPLIT_METHOD},
    )

    splits = fields.List(fields.Nested(SplitInputSchema), allow_none=True)

    # ISO-8601 text; parsed in the service so the error carries INVALID_DATE.
    date = fields.Str(allow_none=True)

    notes = fields.Str(allow_none=True)

    @validates_schema
    def validate_splits_for_method(self, data: dict, **kwargs) -> None:
        split_method = data.get("split_method")
        splits = data.get("splits")

        if split_method in (SplitMethod.CUSTOM, SplitMethod.PERCENTAGE) and not splits:
            raise ValidationError({"splits": [ErrorCode.SPLITS_REQUIRED]})

        if split_method == SplitMethod.CUSTOM and any("amount" not in s for s in splits or []):
            raise ValidationError(
                {"splits": ["Every split needs an amount when splitMethod is 'custom'."]}
            )

        if split_method != SplitMethod.EQUAL:
            _check_duplicate_users(splits)


# ── Patch expense ──────────────────────────────────────────────────────────

class PatchExpenseSchema(Schema):
    """
    PATCH /expenses/:id

    All fields optional; only provided fields change. splitMethod, paidBy,
    createdBy and tripId are declared as raw pass-through fields so that the
    service can reject them with IMMUTABLE_FIELD (after the permission check)
    instead of the generic unknown-field error.
    """

    title = fields.Str(allow_none=True, validate=validate.Length(max=255))

    amount = fields.Decimal(allow_nan=False, validate=_non_negative)

    category = fields.Str(allow_none=True, validate=validate.Length(max=64))

    splits = fields.List(fields.Nested(SplitInputSchema))

    date = fields.Str()

    notes = fields.Str(allow_none=True)

    # Immutable after creation.
    split_method = fields.Raw(data_key="splitMethod", allow_none=True)
    paid_by = fields.Raw(data_key="paidBy", allow_none=True)
    created_by = fields.Raw(data_key="createdBy", allow_none=True)
    trip_id = fields.Raw(data_key="tripId", allow_none=True)

    @validates_schema
    def validate_splits(self, data: dict, **kwargs) -> None:
        if "splits" in data and not data["splits"]:
            raise ValidationError({"splits": [ErrorCode.SPLITS_REQUIRED]})
        _check_duplicate_users(data.get("splits"))
