"""
schemas/budget_schema.py — Marshmallow schemas for budget endpoints.

Wire keys are camelCase (data_key); loaded dicts use snake_case so services
never see client naming.

Validation responsibility:
  - This file: field types, non-negative amounts, currency shape,
    totalBudgetAmount/members exclusivity, clone mode values.
  - services/budget_service.py: everything that needs the trip or budget
    (trip membership of contributors, permissions, spent floor).

IMPORTANT: Inherits from marshmallow.Schema directly, never a
           Flask-bound schema. See extensions.py.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate, validates_schema

from tripbudget.app.errors import ErrorCode
from tripbudget.app.models.budget import CloneMode


def _validate_currency_code(value: str) -> None:
    code = value.strip()
    if len(code) != 3 or not code.isascii() or not code.isalpha():
        raise ValidationError(ErrorCode.INVALID_CURRENCY)


_non_negative = validate.Range(min=0, error=ErrorCode.INVALID_AMOUNT)


class MemberContributionSchema(Schema):
    """One entry of CreateBudget.members."""

    # ids are rendered as strings in snapshots; accept them back either way.
    user_id = fields.Int(
        data_key="userId",
        required=True,
        strict=False,
        validate=validate.Range(min=1, error=ErrorCode.INVALID_ID),
    )

    planned_contribution = fields.Decimal(
        data_key="plannedContribution",
        required=True,
        allow_nan=False,
        validate=_non_negative,
    )


class BudgetRulesSchema(Schema):
    allow_member_contribution_edits = fields.Bool(data_key="allowMemberContributionEdits")
    allow_member_expense_creation = fields.Bool(data_key="allowMemberExpenseCreation")
    allow_member_expense_edits = fields.Bool(data_key="allowMemberExpenseEdits")


class CreateBudgetSchema(Schema):
    """
    POST /trips/:id/budget

    totalBudgetAmount and members are mutually exclusive; sending neither
    creates the budget with every contribution at 0.
    """

    base_currency = fields.Str(
        data_key="baseCurrency",
        required=True,
        validate=_validate_currency_code,
    )

    total_budget_amount = fields.Decimal(
        data_key="totalBudgetAmount",
        allow_nan=False,
        validate=_non_negative,
    )

    members = fields.List(
        fields.Nested(MemberContributionSchema),
        data_key="members",
    )

    rules = fields.Nested(BudgetRulesSchema, data_key="rules")

    @validates_schema
    def validate_single_source(self, data: dict, **kwargs) -> None:
        if "total_budget_amount" in data and "members" in data:
            raise ValidationError(ErrorCode.CONFLICTING_BUDGET_INPUT)


class UpdateBudgetSchema(Schema):
    """
    PATCH /trips/:id/budget

    baseBudgetAmount: number sets it, null clears it, absent leaves it alone.
    """

    base_budget_amount = fields.Decimal(
        data_key="baseBudgetAmount",
        allow_none=True,
        allow_nan=False,
        validate=_non_negative,
    )

    rules = fields.Nested(BudgetRulesSchema, data_key="rules")


class UpdateBudgetMemberSchema(Schema):
    """PATCH /trips/:id/budget/members/:userId"""

    planned_contribution = fields.Decimal(
        data_key="plannedContribution",
        required=True,
        allow_nan=False,
        validate=_non_negative,
    )


class CloneBudgetSchema(Schema):
    """POST /trips/:id/budget/clone — :id is the trip receiving the copy."""

    source_trip_id = fields.Int(
        data_key="sourceTripId",
        required=True,
        strict=False,
        validate=validate.Range(min=1, error=ErrorCode.INVALID_ID),
    )

    mode = fields.Enum(
        CloneMode,
        by_value=True,
        load_default=CloneMode.PLANNING,
        error_messages={"unknown": ErrorCode.INVALID_CLONE_MODE},
    )
