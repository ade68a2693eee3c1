"""
Unit tests for the community wall, analytics counters and auth helpers.
"""
import json
from unittest.mock import patch

import pytest

from gamesjr.services import auth_service
from gamesjr.services.analytics_service import AnalyticsTracker
from gamesjr.services.community_service import (
    CommunityStore,
    RateLimiter,
    build_message,
    client_ip,
)


class TestCommunityMessages:

    def test_build_message(self):
        message = build_message("  Loved <b>Gravity Lander</b>!  ", "  <i>Ava</i> ")

        assert message["text"] == "Loved Gravity Lander!"
        assert message["name"] == "Ava"
        assert isinstance(message["ts"], int)
        assert len(message["id"]) == 36

    def test_name_defaults_and_is_capped(self):
        assert build_message("hi")["name"] == "Anon"
        assert len(build_message("hi", "x" * 80)["name"]) == 50

    def test_text_validation(self):
        with pytest.raises(ValueError, match="Text required"):
            build_message("   ")
        with pytest.raises(ValueError, match="too long"):
            build_message("x" * 501)
        assert len(build_message("x" * 500)["text"]) == 500

    def test_memory_store_is_newest_first_and_capped(self):
        for i in range(105):
            CommunityStore.add_message({"id": str(i), "name": "Anon", "text": f"msg {i}", "ts": i})

        messages = CommunityStore.get_messages()
        assert len(messages) == 100
        assert messages[0]["id"] == "104"
        assert messages[-1]["id"] == "5"

    def test_kv_store(self):
        stored = {"id": "1", "name": "Ava", "text": "hi", "ts": 1}
        with patch("gamesjr.services.community_service.kv_client.is_configured", return_value=True), \
                patch("gamesjr.services.community_service.kv_client.pipeline") as mock_pipeline, \
                patch("gamesjr.services.community_service.kv_client.command",
                      return_value=[json.dumps(stored)]) as mock_command:
            CommunityStore.add_message(stored)
            assert CommunityStore.get_messages() == [stored]

        assert mock_pipeline.call_args[0][0] == [
            ["LPUSH", "gi:feedback", json.dumps(stored)],
            ["LTRIM", "gi:feedback", "0", "99"],
        ]
        mock_command.assert_called_once_with(["LRANGE", "gi:feedback", "0", "99"])

    def test_kv_failure_falls_back_to_memory(self):
        from gamesjr.services.kv_client import KVError

        message = {"id": "1", "name": "Ava", "text": "hi", "ts": 1}
        with patch("gamesjr.services.community_service.kv_client.is_configured", return_value=True), \
                patch("gamesjr.services.community_service.kv_client.pipeline", side_effect=KVError("down")), \
                patch("gamesjr.services.community_service.kv_client.command", side_effect=KVError("down")):
            CommunityStore.add_message(message)
            assert CommunityStore.get_messages() == [message]


class TestRateLimiter:

    def test_five_per_window(self):
        limiter = RateLimiter(max_requests=5, window_seconds=60)

        assert all(limiter.allow("1.2.3.4", now=100.0 + i) for i in range(5))
        assert limiter.allow("1.2.3.4", now=110.0) is False
        assert limiter.allow("5.6.7.8", now=110.0) is True
        assert limiter.allow("1.2.3.4", now=161.0) is True

    def test_idle_clients_are_forgotten(self):
        limiter = RateLimiter(max_requests=5, window_seconds=60)
        for i in range(50):
            limiter.allow(f"10.0.0.{i}", now=100.0)
        assert limiter.tracked_keys() == 50

        limiter.allow("192.0.2.1", now=200.0)

        assert limiter.tracked_keys() == 1

    def test_client_ip_precedence(self):
        assert client_ip({"x-forwarded-for": "10.0.0.1, 10.0.0.2", "x-real-ip": "10.0.0.9"}) == "10.0.0.1"
        assert client_ip({"x-real-ip": "10.0.0.9"}) == "10.0.0.9"
        assert client_ip({}, "127.0.0.1") == "127.0.0.1"
        assert client_ip({}) == "unknown"


class TestAnalytics:

    def test_counters(self):
        tracker = AnalyticsTracker()
        tracker.track("game_play", {"gameSlug": "gravity-lander"})
        tracker.track("game_play", {"gameSlug": "gravity-lander"})
        tracker.track("page_view", {"page": "/games"})
        tracker.track("api_usage", {"sessionId": "s1", "cost": 0.25})
        tracker.track("api_usage", {"sessionId": "s1"})
        tracker.track("game_play", {})
        tracker.track("mystery", {"gameSlug": "x"})

        assert tracker.snapshot() == {
            "gamePlays": {"gravity-lander": 2},
            "pageViews": {"/games": 1},
            "apiUsage": {"s1": {"calls": 2, "cost": 0.25}},
        }

        tracker.reset()
        assert tracker.snapshot() == {"gamePlays": {}, "pageViews": {}, "apiUsage": {}}


class TestAuthHelpers:

    def test_admin_cookie(self):
        assert auth_service.is_admin({"admin_session": "abc"}) is True
        assert auth_service.is_admin({"admin_session": ""}) is False
        assert auth_service.is_admin({}) is False

    def test_username_sanitising(self):
        assert auth_service.sanitize_username("  Ava_the-Great!  ") == "Ava_the-Great"
        assert len(auth_service.sanitize_username("a" * 60)) == 40
        with pytest.raises(ValueError, match="username required"):
            auth_service.sanitize_username("   ")

    @pytest.mark.parametrize("tier,index,expected", [
        ("champion", 99, True),
        ("premium_ai", 5, True),
        ("explorer", 2, True),
        ("explorer", 3, False),
        ("starter", 0, True),
        ("starter", 1, False),
        ("free", 0, False),
        (None, 0, False),
    ])
    def test_game_access(self, tier, index, expected):
        assert auth_service.has_access_to_game(tier, index) is expected

    def test_progress_snapshot_free(self):
        snapshot = auth_service.progress_snapshot("free")

        assert snapshot["level"] == 2
        assert snapshot["stars"] == 120
        assert snapshot["dailyGoalPercent"] == 0.35
        assert snapshot["nextReward"] == "Unlock: Story Mode Stickers"
        assert [b["earned"] for b in snapshot["badges"]] == [True, False, False]
        assert [a["completed"] for a in snapshot["focusActivities"]] == [True, False, False]

    def test_progress_snapshot_champion(self):
        snapshot = auth_service.progress_snapshot("champion")

        assert snapshot["level"] == 9
        assert snapshot["nextReward"] == "Unlock: Aurora Sound Packs"
        assert [b["earned"] for b in snapshot["badges"]] == [True, True, False]
        assert [a["completed"] for a in snapshot["focusActivities"]] == [True, True, False]

    def test_unknown_tier_is_free(self):
        assert auth_service.progress_snapshot("platinum") == auth_service.progress_snapshot("free")
