"""
Endpoint tests for cookie auth, progress snapshots and analytics,
run against the full application.
"""
import pytest
from fastapi.testclient import TestClient

from gamesjr.main import app


@pytest.fixture
def client():
    return TestClient(app)


def set_cookie_headers(response):
    return response.headers.get_list("set-cookie")


class TestRoot:

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json() == {"message": "Welcome to the Games Inc Jr API"}


class TestValidationErrors:

    def test_wrong_field_type_is_a_bad_request(self, client):
        response = client.post("/api/tables/attempt", json={"factId": 5, "answer": 10})

        assert response.status_code == 400
        data = response.json()
        assert data["detail"] == "Invalid request"
        assert data["errors"][0]["loc"] == ["body", "factId"]

    def test_missing_field_is_a_bad_request(self, client):
        assert client.post("/api/tables/coach/hint", json={"a": 7}).status_code == 400

    def test_query_out_of_range_is_a_bad_request(self, client):
        client.cookies.set("admin_session", "session-token")
        assert client.get("/api/admin/games/list", params={"limit": 0}).status_code == 400

    def test_numeric_leaderboard_name_is_saved(self, client):
        response = client.post("/api/scores/save", json={"slug": "gravity-lander", "score": 10, "name": 123})
        assert response.status_code == 200
        assert response.json() == {"ok": True, "stored": False}


class TestAuthAPI:

    def test_login_sets_cookies(self, client):
        response = client.post("/api/auth/login", json={"email": "parent@example.com", "tier": "explorer"})

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        cookies = set_cookie_headers(response)
        user_cookie = next(c for c in cookies if c.startswith("gi_user="))
        tier_cookie = next(c for c in cookies if c.startswith("gi_tier="))
        assert "explorer" in tier_cookie
        assert "HttpOnly" in user_cookie
        assert "max-age=2592000" in user_cookie.lower()
        assert "samesite=strict" in user_cookie.lower()

    def test_login_defaults_to_free_tier(self, client):
        response = client.post("/api/auth/login", json={})
        tier_cookie = next(c for c in set_cookie_headers(response) if c.startswith("gi_tier="))
        assert tier_cookie.startswith("gi_tier=free")

    def test_logout_clears_cookies(self, client):
        response = client.post("/api/auth/logout")

        assert response.status_code == 200
        cookies = set_cookie_headers(response)
        assert any(c.startswith("gi_user=") and "max-age=0" in c.lower() for c in cookies)
        assert any(c.startswith("gi_tier=") and "max-age=0" in c.lower() for c in cookies)

    def test_simple_login(self, client):
        response = client.post("/api/auth/simple-login", json={"username": "  Ava_the-Great!  "})

        assert response.status_code == 200
        assert response.json() == {"ok": True, "username": "Ava_the-Great"}
        user_cookie = next(c for c in set_cookie_headers(response) if c.startswith("gi_user="))
        assert "HttpOnly" not in user_cookie
        assert "samesite=lax" in user_cookie.lower()

    def test_simple_login_requires_username(self, client):
        response = client.post("/api/auth/simple-login", json={"username": "   "})
        assert response.status_code == 400
        assert response.json()["detail"] == "username required"


class TestProgressAPI:

    def test_defaults_to_free(self, client):
        data = client.get("/api/progress").json()
        assert data["tier"] == "free"
        assert data["level"] == 2
        assert [b["earned"] for b in data["badges"]] == [True, False, False]

    def test_reads_tier_cookie(self, client):
        client.cookies.set("gi_tier", "champion")
        data = client.get("/api/progress").json()
        assert data["tier"] == "champion"
        assert data["nextReward"] == "Unlock: Aurora Sound Packs"
        assert [a["completed"] for a in data["focusActivities"]] == [True, True, False]

    def test_unknown_tier_cookie(self, client):
        client.cookies.set("gi_tier", "platinum")
        assert client.get("/api/progress").json()["tier"] == "free"


class TestAnalyticsAPI:

    def test_track_and_read(self, client):
        events = [
            {"event": "game_play", "data": {"gameSlug": "gravity-lander"}},
            {"event": "game_play", "data": {"gameSlug": "gravity-lander"}},
            {"event": "page_view", "data": {"page": "/games"}},
            {"event": "api_usage", "data": {"sessionId": "s1", "cost": 0.02}},
            {"event": "api_usage", "data": {"sessionId": "s1", "cost": 0.03}},
            {"event": "mystery", "data": {"anything": 1}},
        ]
        for event in events:
            response = client.post("/api/analytics/track", json=event)
            assert response.status_code == 200
            assert response.json() == {"success": True}

        counters = client.get("/api/analytics/track").json()
        assert counters["gamePlays"] == {"gravity-lander": 2}
        assert counters["pageViews"] == {"/games": 1}
        assert counters["apiUsage"]["s1"]["calls"] == 2
        assert counters["apiUsage"]["s1"]["cost"] == pytest.approx(0.05)

    def test_empty_counters(self, client):
        assert client.get("/api/analytics/track").json() == {"gamePlays": {}, "pageViews": {}, "apiUsage": {}}
