"""
Tests for the resident-facing FastAPI endpoints.

Covers:
- Health check and response headers
- Caller identity via X-User-ID
- Profile, achievements and leaderboard
- Submissions, rewards and redemptions
- Reports, schedules and notifications
- Rate limiting
"""

import logging

import pytest

from ecosort.security.rate_limit import RateLimitConfig, SQLiteRateLimiter

from conftest import credit


@pytest.fixture
def plastic(state):
    return state.waste.add_type("Plastic", 10)


@pytest.fixture
def tote(state, sample_reward):
    return state.rewards.create(sample_reward)


class TestHealth:
    def test_health(self, client):
        response = client.get("/v1/health")
        assert response.status_code == 200
        assert response.json()["ok"] is True
        assert response.headers["Cache-Control"] == "no-store"

    def test_request_id_generated(self, client):
        assert client.get("/v1/health").headers.get("X-Request-ID")

    def test_request_id_echoed(self, client):
        response = client.get("/v1/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"

    def test_security_headers(self, client):
        response = client.get("/v1/health")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"


class TestRequestLogging:
    def test_domain_events_carry_request_context(self, client, plastic, resident_headers, caplog):
        headers = {**resident_headers, "X-Request-ID": "rid-456"}
        with caplog.at_level(logging.INFO):
            response = client.post("/v1/submissions", json={"type": "Plastic", "weight": 1}, headers=headers)
        assert response.status_code == 201

        created = next(r for r in caplog.records if r.getMessage() == "submission_created")
        assert created.log_context["request_id"] == "rid-456"
        assert created.log_context["user_id"] == "resident-1"

        completed = next(r for r in caplog.records if r.getMessage() == "request_completed")
        assert completed.log_context["user_id"] == "resident-1"

    def test_caller_not_carried_into_next_request(self, client, resident_headers, caplog):
        client.get("/v1/users/me", headers=resident_headers)
        with caplog.at_level(logging.INFO):
            client.get("/v1/health", headers={"X-Request-ID": "rid-789"})

        health_records = [r for r in caplog.records if getattr(r, "log_context", {}).get("request_id") == "rid-789"]
        assert health_records
        assert all("user_id" not in r.log_context for r in health_records)


class TestIdentity:
    def test_missing_header_is_401(self, client):
        response = client.get("/v1/users/me")
        assert response.status_code == 401
        body = response.json()
        assert body["error"] == "authentication_required"
        assert body["request_id"] == response.headers["X-Request-ID"]

    def test_malformed_user_id_is_400(self, client):
        response = client.get("/v1/users/me", headers={"X-User-ID": "bad id!"})
        assert response.status_code == 400

    def test_first_request_provisions_profile(self, client, state):
        response = client.get("/v1/users/me", headers={"X-User-ID": "newcomer"})
        assert response.status_code == 200
        body = response.json()
        assert body["role"] == "resident"
        assert body["total_points"] == 0
        assert body["rank"] == 1
        assert body["badge"]["name"] == "Newbie"
        assert response.headers["Cache-Control"] == "no-store"
        assert state.users.get("newcomer") is not None

    def test_resident_cannot_use_admin_routes(self, client, resident_headers):
        response = client.get("/v1/admin/users", headers=resident_headers)
        assert response.status_code == 403
        assert response.json()["error"] == "permission_denied"


class TestProfile:
    def test_update_profile(self, client, resident_headers):
        response = client.patch("/v1/users/me", json={"username": "  ana-r "}, headers=resident_headers)
        assert response.status_code == 200
        assert response.json()["username"] == "ana-r"
        assert response.json()["email"] == "ana@example.org"

    def test_achievements(self, client, resident_headers, state):
        credit(state.db, "resident-1", 600)
        response = client.get("/v1/users/me/achievements", headers=resident_headers)
        unlocked = [a["name"] for a in response.json() if a["unlocked"]]
        assert unlocked == ["First Steps", "Eco Advocate"]

    def test_transactions(self, client, resident_headers, state):
        credit(state.db, "resident-1", 20)
        response = client.get("/v1/users/me/transactions?kind=awarded", headers=resident_headers)
        assert response.status_code == 200
        assert [t["points"] for t in response.json()] == [20]

    def test_transactions_bad_kind(self, client, resident_headers):
        response = client.get("/v1/users/me/transactions?kind=spent", headers=resident_headers)
        assert response.status_code == 422

    def test_leaderboard(self, client, state, resident_headers):
        state.users.get_or_create("top")
        credit(state.db, "top", 100)

        response = client.get("/v1/leaderboard", headers=resident_headers)

        body = response.json()
        assert [row["id"] for row in body["items"]] == ["top", "resident-1"]
        assert body["my_rank"] == 2

    def test_leaderboard_anonymous(self, client):
        assert client.get("/v1/leaderboard").json() == {"items": [], "my_rank": 0}


class TestSubmissions:
    def test_estimate(self, client, plastic):
        response = client.get("/v1/waste-types/estimate", params={"type": "plastic", "weight": 1.25})
        assert response.json() == {"type": "plastic", "weight": 1.25, "points": 12}

    def test_estimate_unknown_type(self, client, plastic):
        response = client.get("/v1/waste-types/estimate", params={"type": "Styrofoam", "weight": 1})
        assert response.status_code == 404

    def test_list_waste_types(self, client, plastic):
        assert [t["name"] for t in client.get("/v1/waste-types").json()] == ["Plastic"]

    def test_submit_and_list_mine(self, client, resident_headers, plastic):
        response = client.post("/v1/submissions", json={"type": "PLASTIC", "weight": 2}, headers=resident_headers)
        assert response.status_code == 201
        submission = response.json()
        assert submission["type"] == "Plastic"
        assert submission["points"] == 20
        assert submission["status"] == "pending"

        mine = client.get("/v1/submissions/mine", headers=resident_headers).json()
        assert [s["id"] for s in mine] == [submission["id"]]

    def test_zero_weight_is_rejected(self, client, resident_headers, plastic):
        response = client.post("/v1/submissions", json={"type": "Plastic", "weight": 0}, headers=resident_headers)
        assert response.status_code == 422

    def test_unknown_type_is_400(self, client, resident_headers, plastic):
        response = client.post("/v1/submissions", json={"type": "Styrofoam", "weight": 1}, headers=resident_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"


class TestRewards:
    def test_paged_catalog(self, client, state, sample_reward):
        for i in range(3):
            state.rewards.create({**sample_reward, "name": f"Reward {i}"})

        first = client.get("/v1/rewards", params={"limit": 2}).json()
        assert first["has_more"] is True
        assert [r["name"] for r in first["items"]] == ["Reward 2", "Reward 1"]

        second = client.get("/v1/rewards", params={"limit": 2, "offset": 2}).json()
        assert second["has_more"] is False
        assert [r["name"] for r in second["items"]] == ["Reward 0"]

    def test_page_size_capped(self, client, admin_headers):
        assert client.get("/v1/rewards", params={"limit": 501}).status_code == 422
        assert client.get("/v1/admin/users", params={"limit": 501}, headers=admin_headers).status_code == 422
        assert client.get("/v1/admin/users", params={"limit": 500}, headers=admin_headers).status_code == 200

    def test_categories(self, client, tote):
        assert client.get("/v1/rewards/categories").json() == ["Merchandise"]

    def test_get_missing_reward(self, client):
        response = client.get("/v1/rewards/nope")
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_redeem_and_cancel(self, client, state, resident_headers, tote):
        credit(state.db, "resident-1", 120)

        response = client.post(f"/v1/rewards/{tote['id']}/redeem", headers=resident_headers)
        assert response.status_code == 201
        redemption = response.json()
        assert redemption["status"] == "pending"
        assert state.users.get("resident-1")["total_points"] == 20

        mine = client.get("/v1/redemptions/mine", headers=resident_headers).json()
        assert [r["id"] for r in mine] == [redemption["id"]]

        response = client.post(f"/v1/redemptions/{redemption['id']}/cancel", headers=resident_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"
        assert state.users.get("resident-1")["total_points"] == 120

    def test_redeem_insufficient_points(self, client, resident_headers, tote):
        response = client.post(f"/v1/rewards/{tote['id']}/redeem", headers=resident_headers)
        assert response.status_code == 409
        assert response.json()["error"] == "insufficient_points"

    def test_redeem_out_of_stock(self, client, state, resident_headers, sample_reward):
        credit(state.db, "resident-1", 500)
        reward = state.rewards.create({**sample_reward, "stock": 0})
        response = client.post(f"/v1/rewards/{reward['id']}/redeem", headers=resident_headers)
        assert response.status_code == 409
        assert response.json()["error"] == "out_of_stock"

    def test_cannot_cancel_someone_elses(self, client, state, resident_headers, tote):
        credit(state.db, "resident-1", 100)
        redemption = client.post(f"/v1/rewards/{tote['id']}/redeem", headers=resident_headers).json()

        response = client.post(f"/v1/redemptions/{redemption['id']}/cancel", headers={"X-User-ID": "intruder"})
        assert response.status_code == 403


class TestReports:
    def test_file_like_and_comment(self, client, resident_headers):
        payload = {"description": "Trash pile", "location": "Corner lot", "severity": "medium"}
        response = client.post("/v1/reports", json=payload, headers=resident_headers)
        assert response.status_code == 201
        report = response.json()

        like = client.post(f"/v1/reports/{report['id']}/like", headers=resident_headers).json()
        assert like == {"liked": True, "like_count": 1}

        response = client.post(
            f"/v1/reports/{report['id']}/comments",
            json={"text": "Still here today"},
            headers=resident_headers,
        )
        assert response.status_code == 201
        assert response.json()["author"] == "ana"

        feed = client.get("/v1/reports").json()
        assert feed[0]["like_count"] == 1
        assert feed[0]["comments"][0]["text"] == "Still here today"

    def test_unknown_severity(self, client, resident_headers):
        payload = {"description": "x", "location": "y", "severity": "apocalyptic"}
        assert client.post("/v1/reports", json=payload, headers=resident_headers).status_code == 400

    def test_search(self, client, resident_headers):
        for text in ("Burning tires", "Dumped sofa"):
            client.post(
                "/v1/reports",
                json={"description": text, "location": "Zone 4", "severity": "low"},
                headers=resident_headers,
            )
        assert [r["description"] for r in client.get("/v1/reports", params={"q": "sofa"}).json()] == ["Dumped sofa"]

    def test_report_config(self, client):
        body = client.get("/v1/report-config").json()
        assert body["forum_categories"][0]["id"] == "all"
        assert len(body["severity_levels"]) == 3


class TestSchedules:
    def test_active_and_by_date(self, client, state):
        weekly = {
            "area": "Zone 1",
            "day": "monday",
            "start_time": "07:00",
            "end_time": "09:00",
        }
        state.schedules.create(weekly)
        off = state.schedules.create({**weekly, "area": "Zone 2"})
        state.schedules.toggle_active(off["id"])

        assert [s["area"] for s in client.get("/v1/schedules").json()] == ["Zone 1"]
        assert [s["area"] for s in client.get("/v1/schedules/on/2024-01-01").json()] == ["Zone 1"]
        assert client.get("/v1/schedules/on/2024-01-02").json() == []

    def test_bad_date(self, client):
        assert client.get("/v1/schedules/on/someday").status_code == 422


class TestNotifications:
    def test_inbox_flow(self, client, state, resident_headers, plastic, admin_headers):
        submission = client.post(
            "/v1/submissions", json={"type": "Plastic", "weight": 1}, headers=resident_headers
        ).json()
        client.post(f"/v1/admin/submissions/{submission['id']}/confirm", headers=admin_headers)

        inbox = client.get("/v1/notifications", headers=resident_headers).json()
        assert inbox["unread_count"] == 1
        notification = inbox["items"][0]
        assert notification["type"] == "submission_confirmed"

        response = client.post(f"/v1/notifications/{notification['id']}/read", headers=resident_headers)
        assert response.json() == {"id": notification["id"], "read": True}
        assert client.get("/v1/notifications", headers=resident_headers).json()["unread_count"] == 0

    def test_read_all(self, client, state, resident_headers):
        state.notifications.add("resident-1", "one")
        state.notifications.add("resident-1", "two")
        assert client.post("/v1/notifications/read-all", headers=resident_headers).json() == {"updated": 2}

    def test_unknown_notification(self, client, resident_headers):
        assert client.post("/v1/notifications/missing/read", headers=resident_headers).status_code == 404


class TestRateLimiting:
    def test_write_endpoint_returns_429(self, app, client, resident_headers, plastic, tmp_path):
        app.state.rate_limiter = SQLiteRateLimiter(
            tmp_path / "tight.db", RateLimitConfig(requests_per_window=2, window_seconds=60)
        )
        payload = {"type": "Plastic", "weight": 1}

        statuses = [client.post("/v1/submissions", json=payload, headers=resident_headers).status_code for _ in range(3)]

        assert statuses == [201, 201, 429]
        limited = client.post("/v1/submissions", json=payload, headers=resident_headers)
        assert int(limited.headers["Retry-After"]) >= 1
        assert limited.json()["error"] == "rate_limited"

    def test_reads_are_not_limited(self, app, client, resident_headers, tmp_path):
        app.state.rate_limiter = SQLiteRateLimiter(tmp_path / "tight.db", RateLimitConfig(requests_per_window=1))
        statuses = {client.get("/v1/users/me", headers=resident_headers).status_code for _ in range(3)}
        assert statuses == {200}
