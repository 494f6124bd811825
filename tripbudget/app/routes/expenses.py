"""
routes/expenses.py — Expense route handlers.

Registered at url_prefix=/api/v1 (not /api/v1/expenses) because this blueprint
owns BOTH the trip-scoped path (/trips/:id/expenses) and the expense-ID paths
(/expenses/:id).

Every handler returns the full budget snapshot of the expense's trip.

Endpoints:
  POST   /trips/:id/expenses   → 201  create expense
  PATCH  /expenses/:id         → 200  partial update
  DELETE /expenses/:id         → 200  hard delete
"""

from __future__ import annotations

from flask import Blueprint, g, request

from tripbudget.app.extensions import db
from tripbudget.app.middleware.auth_middleware import require_auth
from tripbudget.app.schemas.expense_schema import CreateExpenseSchema, PatchExpenseSchema
from tripbudget.app.services import budget_service
from tripbudget.app.utils.responses import snapshot_response

expenses_bp = Blueprint("expenses", __name__)


@expenses_bp.route("/trips/<int:trip_id>/expenses", methods=["POST"])
@require_auth
def create_expense(trip_id: int):
    """
    POST /trips/:id/expenses — Record a new expense.
    Equal splits are computed server-side; custom and percentage need splits.
    """
    data = CreateExpenseSchema().load(request.get_json(force=True) or {})
    snapshot = budget_service.create_expense(
        trip_id=trip_id,
        caller_id=g.user_id,
        data=data,
        session=db.session,
    )
    db.session.commit()
    return snapshot_response(snapshot, 201, "Expense added.")


@expenses_bp.route("/expenses/<int:expense_id>", methods=["PATCH"])
@require_auth
def update_expense(expense_id: int):
    data = PatchExpenseSchema().load(request.get_json(force=True) or {})
    snapshot = budget_service.update_expense(
        expense_id=expense_id,
        caller_id=g.user_id,
        data=data,
        session=db.session,
    )
    db.session.commit()
    return snapshot_response(snapshot, 200, "Expense updated.")


@expenses_bp.route("/expenses/<int:expense_id>", methods=["DELETE"])
@require_auth
def delete_expense(expense_id: int):
    snapshot = budget_service.delete_expense(
        expense_id=expense_id,
        caller_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return snapshot_response(snapshot, 200, "Expense deleted.")
