"""
tests/integration/conftest.py — Fixtures and helpers for all integration tests.

Design:
  - The app is created once per session with create_app("testing"). The
    testing config uses in-memory SQLite unless TEST_DATABASE_URL points at
    a real database (e.g. PostgreSQL).
  - All tables are created once via db.create_all() at session start.
  - Between tests, all rows are deleted in FK-safe order so tests are isolated.

Trips and rosters belong to the trip service, which this app only reads, so
the helpers insert them directly instead of going through an endpoint.
Tokens are minted here with the testing secret, the same way the identity
service would sign them.

Helper functions (not fixtures):
  - make_token(user_id)          → signed HS256 bearer token
  - auth_headers(user_id)        → {"Authorization": "Bearer <token>"}
  - make_trip(app, creator, ...) → trip id, roster inserted
  - create_budget(client, ...)   → HTTP response
  - create_expense(client, ...)  → HTTP response
  - snapshot_of(resp)            → response data["snapshot"]
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt
import pytest
from sqlalchemy import text

from tripbudget.app import create_app
from tripbudget.app.extensions import db as _db
from tripbudget.app.models.trip import Trip, TripMember

TEST_JWT_SECRET = "testing-secret"


# ═══════════════════════════════════════════════════════════════════════════
# Session-scoped app fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(scope="session")
def app():
    """
    Creates the Flask application in 'testing' mode once for the entire
    test session, creates every table, and drops them at teardown.
    """
    flask_app = create_app("testing")

    with flask_app.app_context():
        _db.create_all()

    yield flask_app

    with flask_app.app_context():
        _db.drop_all()


# ═══════════════════════════════════════════════════════════════════════════
# Function-scoped test isolation
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(autouse=True)
def clean_tables(app):
    """
    Deletes all rows after every test, children before parents.
    """
    yield

    with app.app_context():
        _db.session.rollback()
        for table in (
            "expense_splits",
            "expenses",
            "budget_members",
            "budgets",
            "trip_members",
            "trips",
        ):
            _db.session.execute(text(f"DELETE FROM {table}"))
        _db.session.commit()


@pytest.fixture
def client(app):
    """Flask test client. Each test gets a fresh client (function-scoped)."""
    return app.test_client()


# ═══════════════════════════════════════════════════════════════════════════
# Shared helper functions (not fixtures)
# ═══════════════════════════════════════════════════════════════════════════

def make_token(user_id, expires_in: timedelta = timedelta(minutes=15), **claims) -> str:
    now = datetime.now(timezone.utc)
    payload = {"sub": str(user_id), "iat": now, "exp": now + expires_in}
    payload.update(claims)
    return jwt.encode(payload, TEST_JWT_SECRET, algorithm="HS256")


def auth_headers(user_id) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


def make_trip(app, created_by: int, members: list[int] | None = None) -> int:
    """
    Inserts a trip and its roster; returns the trip id.

    `members` is the roster in order. The creator is NOT added implicitly,
    so tests can model a roster that omits them.
    """
    with app.app_context():
        trip = Trip(created_by=created_by)
        for user_id in members if members is not None else [created_by]:
            trip.members.append(TripMember(
                user_id=user_id,
                role="creator" if user_id == created_by else "member",
            ))
        _db.session.add(trip)
        _db.session.commit()
        return trip.id


def get_trip_summary(app, trip_id: int) -> tuple[int, int]:
    """(budget_summary_total, budget_summary_spent) in cents, read fresh."""
    with app.app_context():
        trip = _db.session.get(Trip, trip_id)
        return trip.budget_summary_total, trip.budget_summary_spent


def create_budget(client, trip_id: int, user_id: int, **payload):
    payload.setdefault("baseCurrency", "USD")
    return client.post(
        f"/api/v1/trips/{trip_id}/budget",
        json=payload,
        headers=auth_headers(user_id),
    )


def create_expense(
        client,
        trip_id: int,
        user_id: int,
        amount,
        split_method: str = "equal",
        paid_by: int | None = None,
        splits: list[dict] | None = None,
        **extra,
):
    payload: dict = {
        "amount": amount,
        "paidBy": paid_by if paid_by is not None else user_id,
        "splitMethod": split_method,
    }
    if splits is not None:
        payload["splits"] = splits
    payload.update(extra)
    return client.post(
        f"/api/v1/trips/{trip_id}/expenses",
        json=payload,
        headers=auth_headers(user_id),
    )


def snapshot_of(resp) -> dict:
    body = resp.get_json()
    assert body["success"] is True, body
    return body["data"]["snapshot"]


def error_code(resp) -> str:
    body = resp.get_json()
    assert body["success"] is False, body
    return body["error"]["code"]


def only_expense_id(snapshot: dict) -> int:
    (expense,) = snapshot["expenses"]
    return int(expense["id"])
