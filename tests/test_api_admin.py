"""
Tests for the /v1/admin endpoints.
"""

import pytest

from conftest import credit


@pytest.fixture
def submission(client, state, resident_headers):
    state.waste.add_type("Plastic", 10)
    return client.post("/v1/submissions", json={"type": "Plastic", "weight": 3}, headers=resident_headers).json()


class TestAccess:
    @pytest.mark.parametrize(
        "method, path",
        [
            ("get", "/v1/admin/users"),
            ("get", "/v1/admin/submissions"),
            ("post", "/v1/admin/submissions/x/confirm"),
            ("get", "/v1/admin/redemptions/stats"),
            ("delete", "/v1/admin/reports/x"),
            ("get", "/v1/admin/schedules"),
        ],
    )
    def test_requires_identity(self, client, method, path):
        assert getattr(client, method)(path).status_code == 401

    def test_role_is_read_from_store(self, client, state, resident_headers):
        assert client.get("/v1/admin/users", headers=resident_headers).status_code == 403
        state.users.set_role("resident-1", "admin")
        assert client.get("/v1/admin/users", headers=resident_headers).status_code == 200


class TestUsersAndPoints:
    def test_list_users_search_and_sort(self, client, state, admin_headers, resident_headers):
        credit(state.db, "resident-1", 50)
        response = client.get("/v1/admin/users", params={"search": "ana"}, headers=admin_headers)
        assert response.status_code == 200
        assert [(u["id"], u["rank"]) for u in response.json()] == [("resident-1", 1)]

        by_email = client.get("/v1/admin/users", params={"sort": "email"}, headers=admin_headers).json()
        assert [u["email"] for u in by_email] == ["admin@example.org", "ana@example.org"]

    def test_bad_sort(self, client, admin_headers):
        assert client.get("/v1/admin/users", params={"sort": "name"}, headers=admin_headers).status_code == 422

    def test_change_role(self, client, admin_headers, resident_headers):
        response = client.put("/v1/admin/users/resident-1/role", json={"role": "admin"}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["role"] == "admin"

        bad = client.put("/v1/admin/users/resident-1/role", json={"role": "owner"}, headers=admin_headers)
        assert bad.status_code == 422

    def test_award_points(self, client, state, admin_headers, resident_headers):
        response = client.post(
            "/v1/admin/users/resident-1/points",
            json={"amount": 25, "reason": "Coastal cleanup"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["total_points"] == 25
        assert body["transaction_id"]

        ledger = client.get("/v1/admin/transactions", headers=admin_headers).json()
        assert ledger[0]["description"] == "Coastal cleanup"
        assert ledger[0]["user_email"] == "ana@example.org"

    def test_award_points_validation(self, client, admin_headers, resident_headers):
        response = client.post(
            "/v1/admin/users/resident-1/points",
            json={"amount": 0, "reason": "nothing"},
            headers=admin_headers,
        )
        assert response.status_code == 422

    def test_award_unknown_user(self, client, admin_headers):
        response = client.post(
            "/v1/admin/users/ghost/points",
            json={"amount": 5, "reason": "typo"},
            headers=admin_headers,
        )
        assert response.status_code == 404


class TestSubmissionReview:
    def test_confirm(self, client, state, admin_headers, submission):
        response = client.post(f"/v1/admin/submissions/{submission['id']}/confirm", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["awarded_points"] == 30
        assert state.users.get("resident-1")["total_points"] == 30

        again = client.post(f"/v1/admin/submissions/{submission['id']}/confirm", headers=admin_headers)
        assert again.status_code == 409
        assert again.json()["error"] == "invalid_state"

    def test_reject_with_and_without_body(self, client, state, admin_headers, resident_headers, submission):
        response = client.post(
            f"/v1/admin/submissions/{submission['id']}/reject",
            json={"reason": "Contaminated"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["rejection_reason"] == "Contaminated"

        other = client.post("/v1/submissions", json={"type": "Plastic", "weight": 1}, headers=resident_headers).json()
        response = client.post(f"/v1/admin/submissions/{other['id']}/reject", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["rejection_reason"] is None

    def test_listing_and_stats(self, client, admin_headers, submission):
        pending = client.get("/v1/admin/submissions", params={"status": "pending"}, headers=admin_headers).json()
        assert [s["id"] for s in pending] == [submission["id"]]

        client.post(f"/v1/admin/submissions/{submission['id']}/confirm", headers=admin_headers)
        stats = client.get("/v1/admin/submissions/stats", headers=admin_headers).json()
        assert stats["confirmed"] == 1
        assert stats["success_rate"] == 100.0
        assert stats["total_points_awarded"] == 30

    def test_unknown_submission(self, client, admin_headers):
        assert client.post("/v1/admin/submissions/missing/confirm", headers=admin_headers).status_code == 404


class TestCatalogAdmin:
    def test_waste_type_crud(self, client, admin_headers):
        created = client.post(
            "/v1/admin/waste-types", json={"name": "Metal", "points_per_kilo": 8}, headers=admin_headers
        )
        assert created.status_code == 201
        type_id = created.json()["id"]

        duplicate = client.post(
            "/v1/admin/waste-types", json={"name": "metal", "points_per_kilo": 2}, headers=admin_headers
        )
        assert duplicate.status_code == 409

        updated = client.put(
            f"/v1/admin/waste-types/{type_id}", json={"name": "Metals", "points_per_kilo": 9}, headers=admin_headers
        )
        assert updated.json()["points_per_kilo"] == 9

        assert client.delete(f"/v1/admin/waste-types/{type_id}", headers=admin_headers).status_code == 204
        assert client.get("/v1/waste-types").json() == []

    def test_reward_crud(self, client, admin_headers, sample_reward):
        created = client.post("/v1/admin/rewards", json=sample_reward, headers=admin_headers)
        assert created.status_code == 201
        reward_id = created.json()["id"]

        updated = client.put(f"/v1/admin/rewards/{reward_id}", json={**sample_reward, "stock": 7}, headers=admin_headers)
        assert updated.json()["stock"] == 7

        assert client.delete(f"/v1/admin/rewards/{reward_id}", headers=admin_headers).status_code == 204
        assert client.get(f"/v1/rewards/{reward_id}").status_code == 404

    def test_negative_cost_rejected(self, client, admin_headers, sample_reward):
        response = client.post("/v1/admin/rewards", json={**sample_reward, "cost": -1}, headers=admin_headers)
        assert response.status_code == 422


class TestRedemptionAdmin:
    @pytest.fixture
    def redemption(self, client, state, resident_headers, sample_reward):
        reward = state.rewards.create(sample_reward)
        credit(state.db, "resident-1", 100)
        return client.post(f"/v1/rewards/{reward['id']}/redeem", headers=resident_headers).json()

    def test_claim(self, client, admin_headers, redemption):
        response = client.post(f"/v1/admin/redemptions/{redemption['id']}/claim", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "claimed"

        stats = client.get("/v1/admin/redemptions/stats", headers=admin_headers).json()
        assert stats["claimed"] == 1
        assert stats["total_points_redeemed"] == 100

    def test_admin_cancel_refunds_owner(self, client, state, admin_headers, redemption):
        response = client.post(f"/v1/admin/redemptions/{redemption['id']}/cancel", headers=admin_headers)
        assert response.status_code == 200
        assert state.users.get("resident-1")["total_points"] == 100

    def test_list_by_status(self, client, admin_headers, redemption):
        items = client.get("/v1/admin/redemptions", params={"status": "pending"}, headers=admin_headers).json()
        assert [r["id"] for r in items] == [redemption["id"]]
        assert items[0]["username"] == "ana"


class TestReportAdmin:
    @pytest.fixture
    def report(self, client, resident_headers):
        payload = {"description": "Dumped tires", "location": "Riverside", "severity": "high"}
        return client.post("/v1/reports", json=payload, headers=resident_headers).json()

    def test_status_notes_and_counts(self, client, admin_headers, report):
        response = client.put(
            f"/v1/admin/reports/{report['id']}/status", json={"status": "resolved"}, headers=admin_headers
        )
        assert response.json()["resolved"] is True

        notes = client.put(
            f"/v1/admin/reports/{report['id']}/notes", json={"admin_notes": "Hauled away"}, headers=admin_headers
        )
        assert notes.json()["admin_notes"] == "Hauled away"

        counts = client.get("/v1/admin/reports/status-counts", headers=admin_headers).json()
        assert counts["resolved"] == 1
        assert counts["all"] == 1

        resolved = client.get("/v1/admin/reports", params={"status": "resolved"}, headers=admin_headers).json()
        assert [r["id"] for r in resolved] == [report["id"]]

    def test_invalid_status(self, client, admin_headers, report):
        response = client.put(f"/v1/admin/reports/{report['id']}/status", json={"status": "done"}, headers=admin_headers)
        assert response.status_code == 422

    def test_delete(self, client, admin_headers, report):
        assert client.delete(f"/v1/admin/reports/{report['id']}", headers=admin_headers).status_code == 204
        assert client.delete(f"/v1/admin/reports/{report['id']}", headers=admin_headers).status_code == 404

    def test_save_config(self, client, admin_headers, resident_headers):
        response = client.put(
            "/v1/admin/report-config",
            json={"categories": [{"id": "burning", "label": "Open Burning"}]},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert [c["id"] for c in response.json()["forum_categories"]] == ["all", "burning"]

        # Category becomes mandatory for new reports
        payload = {"description": "Smoke", "location": "Lot 5", "severity": "low"}
        assert client.post("/v1/reports", json=payload, headers=resident_headers).status_code == 400
        payload["category"] = "burning"
        assert client.post("/v1/reports", json=payload, headers=resident_headers).status_code == 201

    def test_duplicate_category(self, client, admin_headers):
        item = {"id": "burning", "label": "Open Burning"}
        response = client.put("/v1/admin/report-config", json={"categories": [item, item]}, headers=admin_headers)
        assert response.status_code == 409


class TestScheduleAdmin:
    PAYLOAD = {
        "area": "Zone 3",
        "barangay": "Poblacion",
        "day": "wednesday",
        "start_time": "08:00",
        "end_time": "11:00",
        "frequency": "weekly",
        "waste_types": ["Recyclable"],
    }

    def test_crud_and_toggle(self, client, admin_headers):
        created = client.post("/v1/admin/schedules", json=self.PAYLOAD, headers=admin_headers)
        assert created.status_code == 201
        schedule_id = created.json()["id"]

        updated = client.put(
            f"/v1/admin/schedules/{schedule_id}", json={**self.PAYLOAD, "notes": "Bring bins out early"}, headers=admin_headers
        )
        assert updated.json()["notes"] == "Bring bins out early"

        toggled = client.post(f"/v1/admin/schedules/{schedule_id}/toggle", headers=admin_headers)
        assert toggled.json()["is_active"] is False
        assert client.get("/v1/schedules").json() == []
        assert len(client.get("/v1/admin/schedules", headers=admin_headers).json()) == 1

        assert client.delete(f"/v1/admin/schedules/{schedule_id}", headers=admin_headers).status_code == 204

    def test_end_before_start(self, client, admin_headers):
        payload = {**self.PAYLOAD, "start_time": "11:00", "end_time": "08:00"}
        assert client.post("/v1/admin/schedules", json=payload, headers=admin_headers).status_code == 400
