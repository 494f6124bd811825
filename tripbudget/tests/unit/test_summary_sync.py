"""
tests/unit/test_summary_sync.py — services/summary_sync.py with a mocked session.

The SQL itself is exercised against a real database in
tests/integration/test_summary_sync.py; here we check the control flow:
flush first, one UPDATE, expire the cached trip, report missing trips.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock, call

from sqlalchemy.orm.util import identity_key

from tripbudget.app.models.trip import Trip
from tripbudget.app.services import summary_sync


def _session(rowcount: int, identity_map: dict | None = None) -> MagicMock:
    session = MagicMock()
    session.execute.return_value.rowcount = rowcount
    session.identity_map = identity_map if identity_map is not None else {}
    return session


def test_build_summary_update_targets_one_trip():
    sql = str(summary_sync.build_summary_update(10))

    assert sql.startswith("UPDATE trips SET")
    assert "budget_summary_total" in sql
    assert "budget_summary_spent" in sql
    assert "budget_members" in sql
    assert "expenses" in sql
    assert "WHERE trips.id" in sql


def test_sync_flushes_before_update():
    session = _session(rowcount=1)

    assert summary_sync.sync_trip_budget_summary(10, session) is True

    assert session.method_calls[0] == call.flush()
    session.execute.assert_called_once()


def test_sync_expires_cached_trip():
    trip = SimpleNamespace(id=10)
    session = _session(rowcount=1, identity_map={identity_key(Trip, 10): trip})

    summary_sync.sync_trip_budget_summary(10, session)

    session.expire.assert_called_once_with(
        trip, ["budget_summary_total", "budget_summary_spent"],
    )


def test_sync_without_cached_trip_does_not_expire():
    session = _session(rowcount=1)

    summary_sync.sync_trip_budget_summary(10, session)

    session.expire.assert_not_called()


def test_sync_missing_trip_returns_false_and_warns(caplog):
    session = _session(rowcount=0)

    with caplog.at_level("WARNING", logger="tripbudget.app.services.summary_sync"):
        result = summary_sync.sync_trip_budget_summary(404, session)

    assert result is False
    session.expire.assert_not_called()
    assert "trip 404 not found" in caplog.text
