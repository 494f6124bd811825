"""
routes/budget.py — Budget route handlers.

Registered at url_prefix=/api/v1/trips. Every handler returns the full
budget snapshot.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries.

Endpoints:
  POST   /trips/:id/budget                  → 201  create budget
  GET    /trips/:id/budget                  → 200  snapshot
  PATCH  /trips/:id/budget                  → 200  base amount / rules
  PATCH  /trips/:id/budget/members/:userId  → 200  planned contribution
  DELETE /trips/:id/budget/members/:userId  → 200  mark member as past
  POST   /trips/:id/budget/clone            → 201  clone another trip's budget here
"""

from __future__ import annotations

from flask import Blueprint, g, request

from tripbudget.app.extensions import db
from tripbudget.app.middleware.auth_middleware import require_auth
from tripbudget.app.schemas.budget_schema import (
    CloneBudgetSchema,
    CreateBudgetSchema,
    UpdateBudgetMemberSchema,
    UpdateBudgetSchema,
)
from tripbudget.app.services import budget_service
from tripbudget.app.utils.responses import snapshot_response

budget_bp = Blueprint("budget", __name__)


@budget_bp.route("/<int:trip_id>/budget", methods=["POST"])
@require_auth
def create_budget(trip_id: int):
    """POST /trips/:id/budget — Create the trip's budget (trip creator only)."""
    data = CreateBudgetSchema().load(request.get_json(force=True) or {})
    snapshot = budget_service.create_budget(
        trip_id=trip_id,
        caller_id=g.user_id,
        data=data,
        session=db.session,
    )
    db.session.commit()
    return snapshot_response(snapshot, 201, "Budget created.")


@budget_bp.route("/<int:trip_id>/budget", methods=["GET"])
@require_auth
def get_budget(trip_id: int):
    snapshot = budget_service.get_budget_snapshot(
        trip_id=trip_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return snapshot_response(snapshot)


@budget_bp.route("/<int:trip_id>/budget", methods=["PATCH"])
@require_auth
def update_budget(trip_id: int):
    """PATCH /trips/:id/budget — Set/clear baseBudgetAmount, change rules."""
    data = UpdateBudgetSchema().load(request.get_json(force=True) or {})
    snapshot = budget_service.update_base_budget(
        trip_id=trip_id,
        caller_id=g.user_id,
        data=data,
        session=db.session,
    )
    db.session.commit()
    return snapshot_response(snapshot, 200, "Budget updated.")


@budget_bp.route("/<int:trip_id>/budget/members/<int:user_id>", methods=["PATCH"])
@require_auth
def update_member_contribution(trip_id: int, user_id: int):
    data = UpdateBudgetMemberSchema().load(request.get_json(force=True) or {})
    snapshot = budget_service.update_member_contribution(
        trip_id=trip_id,
        target_user_id=user_id,
        caller_id=g.user_id,
        data=data,
        session=db.session,
    )
    db.session.commit()
    return snapshot_response(snapshot, 200, "Contribution updated.")


@budget_bp.route("/<int:trip_id>/budget/members/<int:user_id>", methods=["DELETE"])
@require_auth
def retire_member(trip_id: int, user_id: int):
    """
    DELETE /trips/:id/budget/members/:userId — The member becomes a past
    member; their history stays and they keep read access.
    """
    snapshot = budget_service.retire_budget_member(
        trip_id=trip_id,
        target_user_id=user_id,
        caller_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return snapshot_response(snapshot, 200, "Member moved to past members.")


@budget_bp.route("/<int:trip_id>/budget/clone", methods=["POST"])
@require_auth
def clone_budget(trip_id: int):
    """POST /trips/:id/budget/clone — Body: {sourceTripId, mode?}."""
    data = CloneBudgetSchema().load(request.get_json(force=True) or {})
    snapshot = budget_service.clone_budget(
        original_trip_id=data["source_trip_id"],
        new_trip_id=trip_id,
        cloning_user_id=g.user_id,
        mode=data["mode"],
        session=db.session,
    )
    db.session.commit()
    return snapshot_response(snapshot, 201, "Budget cloned.")
