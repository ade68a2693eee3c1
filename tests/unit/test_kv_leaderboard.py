"""
Unit tests for the REST KV client and the leaderboard service.
HTTP calls are intercepted at ``requests.post``.
"""
import json
from unittest.mock import MagicMock, patch

import pytest
import requests

from gamesjr.services import kv_client, leaderboard_service

KV_URL = "https://kv.example.test"


def kv_response(payload, ok=True, status_code=200):
    response = MagicMock()
    response.ok = ok
    response.status_code = status_code
    response.json.return_value = payload
    return response


@pytest.fixture
def kv_configured():
    with patch("gamesjr.services.kv_client.KV_REST_API_URL", KV_URL), \
            patch("gamesjr.services.kv_client.KV_REST_API_TOKEN", "secret-token"):
        yield


class TestKVClient:

    def test_unconfigured_store_is_a_no_op(self):
        with patch("gamesjr.services.kv_client.requests.post") as mock_post:
            assert kv_client.is_configured() is False
            assert kv_client.pipeline([["GET", "k"]]) is None
            assert kv_client.get_json("k") is None
            kv_client.set_json("k", {"a": 1})
            mock_post.assert_not_called()

    def test_pipeline_request_shape(self, kv_configured):
        with patch("gamesjr.services.kv_client.requests.post",
                   return_value=kv_response({"result": [{"result": "OK"}]})) as mock_post:
            result = kv_client.pipeline([["SET", "k", "v"]])

        assert result == [{"result": "OK"}]
        args, kwargs = mock_post.call_args
        assert args[0] == f"{KV_URL}/pipeline"
        assert kwargs["headers"]["Authorization"] == "Bearer secret-token"
        assert kwargs["json"] == {"commands": [["SET", "k", "v"]]}

    def test_bare_list_answers(self, kv_configured):
        with patch("gamesjr.services.kv_client.requests.post", return_value=kv_response([{"result": 3}])):
            assert kv_client.command(["ZCARD", "k"]) == 3

    def test_error_status_raises(self, kv_configured):
        with patch("gamesjr.services.kv_client.requests.post",
                   return_value=kv_response({}, ok=False, status_code=503)):
            with pytest.raises(kv_client.KVError):
                kv_client.pipeline([["GET", "k"]])

    def test_json_helpers_never_raise(self, kv_configured):
        with patch("gamesjr.services.kv_client.requests.post",
                   side_effect=requests.ConnectionError("down")):
            assert kv_client.get_json("k") is None
            kv_client.set_json("k", {"a": 1})
            assert kv_client.get_boolean("flag") is None

    def test_get_json_decodes(self, kv_configured):
        payload = {"result": [{"result": json.dumps({"hint": "cached"})}]}
        with patch("gamesjr.services.kv_client.requests.post", return_value=kv_response(payload)):
            assert kv_client.get_json("k") == {"hint": "cached"}

    def test_set_json_uses_setex(self, kv_configured):
        with patch("gamesjr.services.kv_client.requests.post",
                   return_value=kv_response({"result": [{"result": "OK"}]})) as mock_post:
            kv_client.set_json("k", {"a": 1}, ttl_seconds=60)
        assert mock_post.call_args.kwargs["json"] == {"commands": [["SETEX", "k", "60", '{"a": 1}']]}

    def test_get_boolean(self, kv_configured):
        with patch("gamesjr.services.kv_client.requests.post",
                   return_value=kv_response({"result": [{"result": "false"}]})):
            assert kv_client.get_boolean("flag") is False
        with patch("gamesjr.services.kv_client.requests.post",
                   return_value=kv_response({"result": [{"result": "true"}]})):
            assert kv_client.get_boolean("flag") is True


class TestLeaderboardHelpers:

    def test_key(self):
        assert leaderboard_service.leaderboard_key("gravity-lander") == "gi:scores:gravity-lander"

    def test_score_validation(self):
        assert leaderboard_service.is_valid_score(10)
        assert leaderboard_service.is_valid_score(12.5)
        assert not leaderboard_service.is_valid_score(True)
        assert not leaderboard_service.is_valid_score("10")
        assert not leaderboard_service.is_valid_score(None)
        assert not leaderboard_service.is_valid_score(float("inf"))
        assert not leaderboard_service.is_valid_score(float("nan"))
        assert not leaderboard_service.is_valid_score(10 ** 400)

    def test_clamp(self):
        assert leaderboard_service.clamp_score(-3) == 0
        assert leaderboard_service.clamp_score(12.9) == 12
        assert leaderboard_service.clamp_score(99_999_999) == leaderboard_service.MAX_SCORE
        assert leaderboard_service.clamp_score(10_000_001) == 10_000_000

    def test_name_sanitising(self):
        assert leaderboard_service.sanitize_name("Ava <script>") == "Ava script"
        assert leaderboard_service.sanitize_name("a_very-long.name with spaces") == "a_very-long.name"
        assert leaderboard_service.sanitize_name("   ") == "anon"
        assert leaderboard_service.sanitize_name("!!!") == "anon"


class TestLeaderboardStorage:

    def test_save_without_store(self):
        assert leaderboard_service.save_score("gravity-lander", 120, "Ava") == {"ok": True, "stored": False}

    def test_save_pipeline(self, kv_configured):
        with patch("gamesjr.services.kv_client.requests.post",
                   return_value=kv_response({"result": [{"result": 1}, {"result": 0}, {"result": 1}]})) as mock_post:
            assert leaderboard_service.save_score("gravity-lander", 120.7, "Ava!") == {"ok": True}

        commands = mock_post.call_args.kwargs["json"]["commands"]
        assert commands == [
            ["ZADD", "gi:scores:gravity-lander", 120, "Ava"],
            ["ZREMRANGEBYRANK", "gi:scores:gravity-lander", 0, -6],
            ["EXPIRE", "gi:scores:gravity-lander", 2592000],
        ]

    def test_save_propagates_store_failure(self, kv_configured):
        with patch("gamesjr.services.kv_client.requests.post",
                   return_value=kv_response({}, ok=False, status_code=500)):
            with pytest.raises(kv_client.KVError):
                leaderboard_service.save_score("gravity-lander", 1, "Ava")

    def test_top_scores_decoding(self, kv_configured):
        payload = {"result": [{"result": ["Ava", "300", "Leo", "120.5"]}]}
        with patch("gamesjr.services.kv_client.requests.post", return_value=kv_response(payload)) as mock_post:
            top = leaderboard_service.top_scores("gravity-lander")

        assert top == [{"name": "Ava", "score": 300}, {"name": "Leo", "score": 120.5}]
        assert mock_post.call_args.kwargs["json"]["commands"] == [
            ["ZRANGE", "gi:scores:gravity-lander", 0, 4, "REV", "WITHSCORES"]
        ]

    def test_top_scores_fail_open(self, kv_configured):
        with patch("gamesjr.services.kv_client.requests.post", side_effect=requests.Timeout("slow")):
            assert leaderboard_service.top_scores("gravity-lander") == []

    def test_top_scores_without_store(self):
        assert leaderboard_service.top_scores("gravity-lander") == []
