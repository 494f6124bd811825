"""
tests/integration/test_budget.py — Budget creation, reads and updates.

Endpoints covered:
  POST  /trips/:id/budget  → 201 (create)
  GET   /trips/:id/budget  → 200 (snapshot)
  PATCH /trips/:id/budget  → 200 (base amount, rules)

Money leaves the API as two-decimal strings, ids as strings.
"""

from __future__ import annotations

from .conftest import (
    auth_headers,
    create_budget,
    error_code,
    get_trip_summary,
    make_trip,
    snapshot_of,
)

CREATOR, BOB, CAROL, STRANGER = 1, 2, 3, 99


def _members_by_id(snapshot: dict) -> dict:
    return {m["userId"]: m for m in snapshot["budget"]["members"]}


# ═══════════════════════════════════════════════════════════════════════════
# POST /trips/:id/budget
# ═══════════════════════════════════════════════════════════════════════════

class TestCreateBudget:

    def test_total_is_divided_equally_remainder_to_last(self, app, client):
        trip_id = make_trip(app, CREATOR, [CREATOR, BOB, CAROL])

        resp = create_budget(client, trip_id, CREATOR, totalBudgetAmount="100")

        assert resp.status_code == 201
        body = resp.get_json()
        assert body["message"] == "Budget created."
        snapshot = body["data"]["snapshot"]
        budget = snapshot["budget"]
        assert budget["tripId"] == str(trip_id)
        assert budget["baseCurrency"] == "USD"
        assert budget["baseBudgetAmount"] == "100.00"
        assert budget["createdBy"] == "1"
        assert [m["userId"] for m in budget["members"]] == ["1", "2", "3"]
        assert [m["plannedContribution"] for m in budget["members"]] == [
            "33.33", "33.33", "33.34",
        ]
        assert [m["role"] for m in budget["members"]] == ["creator", "member", "member"]
        assert all(m["isPastMember"] is False for m in budget["members"])
        assert snapshot["summary"] == {
            "totalPlanned": "100.00",
            "totalSpent": "0.00",
            "remaining": "100.00",
        }
        assert snapshot["expenses"] == []

    def test_default_rules_are_permissive(self, app, client):
        trip_id = make_trip(app, CREATOR)
        snapshot = snapshot_of(create_budget(client, trip_id, CREATOR))

        assert snapshot["budget"]["rules"] == {
            "allowMemberContributionEdits": True,
            "allowMemberExpenseCreation": True,
            "allowMemberExpenseEdits": True,
        }

    def test_rules_and_currency_are_normalised(self, app, client):
        trip_id = make_trip(app, CREATOR)
        snapshot = snapshot_of(create_budget(
            client, trip_id, CREATOR,
            baseCurrency="eur",
            rules={"allowMemberExpenseEdits": False},
        ))

        assert snapshot["budget"]["baseCurrency"] == "EUR"
        assert snapshot["budget"]["rules"]["allowMemberExpenseEdits"] is False
        assert snapshot["budget"]["rules"]["allowMemberExpenseCreation"] is True

    def test_creator_missing_from_roster_is_added_first(self, app, client):
        trip_id = make_trip(app, CREATOR, [BOB, CAROL])

        snapshot = snapshot_of(
            create_budget(client, trip_id, CREATOR, totalBudgetAmount="90.00")
        )

        members = snapshot["budget"]["members"]
        assert [m["userId"] for m in members] == ["1", "2", "3"]
        assert members[0]["role"] == "creator"
        assert [m["plannedContribution"] for m in members] == ["30.00", "30.00", "30.00"]

    def test_explicit_contributions(self, app, client):
        trip_id = make_trip(app, CREATOR, [CREATOR, BOB, CAROL])

        snapshot = snapshot_of(create_budget(
            client, trip_id, CREATOR,
            members=[
                {"userId": CREATOR, "plannedContribution": 50},
                {"userId": str(BOB), "plannedContribution": "20.5"},
            ],
        ))

        members = _members_by_id(snapshot)
        assert members["1"]["plannedContribution"] == "50.00"
        assert members["2"]["plannedContribution"] == "20.50"
        assert members["3"]["plannedContribution"] == "0.00"
        assert snapshot["budget"]["baseBudgetAmount"] is None
        assert snapshot["summary"]["totalPlanned"] == "70.50"

    def test_no_amounts_starts_everyone_at_zero(self, app, client):
        trip_id = make_trip(app, CREATOR, [CREATOR, BOB])
        snapshot = snapshot_of(create_budget(client, trip_id, CREATOR))

        assert snapshot["summary"]["totalPlanned"] == "0.00"
        assert snapshot["budget"]["baseBudgetAmount"] is None

    def test_updates_trip_summary_cache(self, app, client):
        trip_id = make_trip(app, CREATOR, [CREATOR, BOB])
        create_budget(client, trip_id, CREATOR, totalBudgetAmount="250.00")

        assert get_trip_summary(app, trip_id) == (25000, 0)

    def test_contributor_outside_trip_rejected(self, app, client):
        trip_id = make_trip(app, CREATOR, [CREATOR, BOB])

        resp = create_budget(
            client, trip_id, CREATOR,
            members=[{"userId": STRANGER, "plannedContribution": 10}],
        )

        assert resp.status_code == 400
        assert error_code(resp) == "BUDGET_MEMBER_NOT_IN_TRIP"

    def test_only_trip_creator_may_create(self, app, client):
        trip_id = make_trip(app, CREATOR, [CREATOR, BOB])

        resp = create_budget(client, trip_id, BOB)

        assert resp.status_code == 403
        assert error_code(resp) == "NOT_TRIP_CREATOR"

    def test_second_budget_conflicts(self, app, client):
        trip_id = make_trip(app, CREATOR)
        create_budget(client, trip_id, CREATOR)

        resp = create_budget(client, trip_id, CREATOR)

        assert resp.status_code == 409
        assert error_code(resp) == "BUDGET_EXISTS"

    def test_unknown_trip(self, client):
        resp = create_budget(client, 12345, CREATOR)

        assert resp.status_code == 404
        assert error_code(resp) == "TRIP_NOT_FOUND"

    def test_total_and_members_together_rejected(self, app, client):
        trip_id = make_trip(app, CREATOR)

        resp = create_budget(
            client, trip_id, CREATOR,
            totalBudgetAmount=10,
            members=[{"userId": CREATOR, "plannedContribution": 10}],
        )

        assert resp.status_code == 400
        assert error_code(resp) == "CONFLICTING_BUDGET_INPUT"

    def test_bad_currency(self, app, client):
        trip_id = make_trip(app, CREATOR)

        resp = create_budget(client, trip_id, CREATOR, baseCurrency="DOLLARS")

        assert resp.status_code == 400
        body = resp.get_json()
        assert body["error"]["code"] == "INVALID_CURRENCY"
        assert body["error"]["field"] == "baseCurrency"

    def test_negative_total(self, app, client):
        trip_id = make_trip(app, CREATOR)

        resp = create_budget(client, trip_id, CREATOR, totalBudgetAmount=-5)

        assert resp.status_code == 400
        assert error_code(resp) == "INVALID_AMOUNT"

    def test_missing_currency(self, app, client):
        trip_id = make_trip(app, CREATOR)

        resp = client.post(
            f"/api/v1/trips/{trip_id}/budget",
            json={"totalBudgetAmount": 10},
            headers=auth_headers(CREATOR),
        )

        assert resp.status_code == 400
        assert error_code(resp) == "MISSING_FIELD"


# ═══════════════════════════════════════════════════════════════════════════
# GET /trips/:id/budget
# ═══════════════════════════════════════════════════════════════════════════

class TestGetBudget:

    def test_trip_member_reads_snapshot(self, app, client):
        trip_id = make_trip(app, CREATOR, [CREATOR, BOB])
        create_budget(client, trip_id, CREATOR, totalBudgetAmount="20")

        resp = client.get(f"/api/v1/trips/{trip_id}/budget", headers=auth_headers(BOB))

        assert resp.status_code == 200
        snapshot = snapshot_of(resp)
        assert set(snapshot) == {"budget", "expenses", "summary", "memberSummaries"}
        assert snapshot["memberSummaries"] == [
            {"userId": "1", "planned": "10.00", "spent": "0.00", "remaining": "10.00"},
            {"userId": "2", "planned": "10.00", "spent": "0.00", "remaining": "10.00"},
        ]

    def test_stranger_forbidden(self, app, client):
        trip_id = make_trip(app, CREATOR)
        create_budget(client, trip_id, CREATOR)

        resp = client.get(f"/api/v1/trips/{trip_id}/budget", headers=auth_headers(STRANGER))

        assert resp.status_code == 403
        assert error_code(resp) == "FORBIDDEN"

    def test_no_budget_yet(self, app, client):
        trip_id = make_trip(app, CREATOR)

        resp = client.get(f"/api/v1/trips/{trip_id}/budget", headers=auth_headers(CREATOR))

        assert resp.status_code == 404
        assert error_code(resp) == "BUDGET_NOT_FOUND"

    def test_reads_are_repeatable(self, app, client):
        trip_id = make_trip(app, CREATOR, [CREATOR, BOB])
        create_budget(client, trip_id, CREATOR, totalBudgetAmount="10")

        first = client.get(f"/api/v1/trips/{trip_id}/budget", headers=auth_headers(CREATOR))
        second = client.get(f"/api/v1/trips/{trip_id}/budget", headers=auth_headers(CREATOR))

        assert first.get_json() == second.get_json()


# ═══════════════════════════════════════════════════════════════════════════
# PATCH /trips/:id/budget
# ═══════════════════════════════════════════════════════════════════════════

class TestUpdateBudget:

    def _patch(self, client, trip_id, user_id, payload):
        return client.patch(
            f"/api/v1/trips/{trip_id}/budget",
            json=payload,
            headers=auth_headers(user_id),
        )

    def test_set_and_clear_base_amount(self, app, client):
        trip_id = make_trip(app, CREATOR)
        create_budget(client, trip_id, CREATOR)

        resp = self._patch(client, trip_id, CREATOR, {"baseBudgetAmount": "250.5"})
        assert resp.status_code == 200
        assert resp.get_json()["message"] == "Budget updated."
        assert snapshot_of(resp)["budget"]["baseBudgetAmount"] == "250.50"

        resp = self._patch(client, trip_id, CREATOR, {"baseBudgetAmount": None})
        assert snapshot_of(resp)["budget"]["baseBudgetAmount"] is None

    def test_absent_base_amount_left_alone(self, app, client):
        trip_id = make_trip(app, CREATOR)
        create_budget(client, trip_id, CREATOR, totalBudgetAmount="40")

        resp = self._patch(client, trip_id, CREATOR, {"rules": {"allowMemberExpenseCreation": False}})

        budget = snapshot_of(resp)["budget"]
        assert budget["baseBudgetAmount"] == "40.00"
        assert budget["rules"]["allowMemberExpenseCreation"] is False

    def test_base_amount_does_not_change_planned_total(self, app, client):
        trip_id = make_trip(app, CREATOR)
        create_budget(client, trip_id, CREATOR, totalBudgetAmount="40")

        snapshot = snapshot_of(self._patch(client, trip_id, CREATOR, {"baseBudgetAmount": 1000}))

        assert snapshot["summary"]["totalPlanned"] == "40.00"

    def test_member_cannot_update(self, app, client):
        trip_id = make_trip(app, CREATOR, [CREATOR, BOB])
        create_budget(client, trip_id, CREATOR)

        resp = self._patch(client, trip_id, BOB, {"baseBudgetAmount": 1})

        assert resp.status_code == 403
        assert error_code(resp) == "NOT_TRIP_CREATOR"

    def test_negative_amount_rejected(self, app, client):
        trip_id = make_trip(app, CREATOR)
        create_budget(client, trip_id, CREATOR)

        resp = self._patch(client, trip_id, CREATOR, {"baseBudgetAmount": -1})

        assert resp.status_code == 400
        assert error_code(resp) == "INVALID_AMOUNT"
