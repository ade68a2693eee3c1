"""
Endpoint tests for the times tables trainer.
Runs on the in-memory database; the AI gate and model callers are patched.
"""
import time
from unittest.mock import MagicMock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from gamesjr.api import tables
from gamesjr.tables.ai import coach

# Create a test FastAPI app
app = FastAPI()
app.include_router(tables.router, prefix="/api/tables")

BASE = "/api/tables"


@pytest.fixture
def client():
    return TestClient(app)


def start_session(client, **payload):
    response = client.post(f"{BASE}/session", json=payload)
    assert response.status_code == 200
    return response.json()


class TestSessions:

    def test_create_session(self, client):
        data = start_session(client, userId="ava", mode="BOSS", batchSize=6)

        assert data["sessionId"]
        assert data["mode"] == "BOSS"
        assert len(data["targets"]) == 6
        target = data["targets"][0]
        assert set(target) == {"id", "a", "b", "op"}
        assert target["op"] == "*"
        assert 1 <= target["a"] <= 12 and 1 <= target["b"] <= 12

    def test_unknown_mode_is_practice(self, client):
        assert start_session(client, mode="SPEEDRUN")["mode"] == "PRACTICE"

    def test_end_session(self, client):
        session_id = start_session(client, userId="ava")["sessionId"]

        data = start_session(client, end=True, sessionId=session_id)

        assert data["ok"] is True
        assert data["sessionId"] == session_id
        assert isinstance(data["endedAt"], int)
        assert abs(data["endedAt"] - time.time() * 1000) < 60_000

    def test_end_unknown_session(self, client):
        data = start_session(client, end=True, sessionId="no-such-session")
        assert data["ok"] is True
        assert data["sessionId"] == "no-such-session"
        assert isinstance(data["endedAt"], int)
        assert abs(data["endedAt"] - time.time() * 1000) < 60_000

    def test_scheduler_next(self, client):
        response = client.get(f"{BASE}/scheduler/next", params={"userId": "leo"})

        assert response.status_code == 200
        targets = response.json()["targets"]
        assert len(targets) == 10
        assert len({t["id"] for t in targets}) == 10


class TestAttempts:

    def test_correct_answer(self, client):
        data = start_session(client, userId="ava", batchSize=5)
        target = data["targets"][0]

        response = client.post(f"{BASE}/attempt", json={
            "factId": target["id"],
            "answer": target["a"] * target["b"],
            "userId": "ava",
            "sessionId": data["sessionId"],
            "latencyMs": 1834.6,
        })

        assert response.status_code == 200
        result = response.json()
        assert result["correct"] is True
        assert result["expected"] == target["a"] * target["b"]
        assert result["masteryLevel"] == 1
        assert result["streak"] == 1
        assert result["awarded"] == 200
        assert result["dueAt"]

    def test_wrong_answer(self, client):
        target = start_session(client, userId="ava", batchSize=5)["targets"][0]

        result = client.post(f"{BASE}/attempt", json={
            "factId": target["id"],
            "answer": "not a number",
            "userId": "ava",
        }).json()

        assert result["correct"] is False
        assert result["awarded"] == 0
        assert result["streak"] == 0

    def test_second_correct_answer_pays_review_coins(self, client):
        target = start_session(client, userId="mia", batchSize=5)["targets"][0]
        payload = {"factId": target["id"], "answer": target["a"] * target["b"], "userId": "mia"}

        client.post(f"{BASE}/attempt", json=payload)
        result = client.post(f"{BASE}/attempt", json=payload).json()

        assert result["awarded"] == 10
        assert result["streak"] == 2

    def test_unknown_fact(self, client):
        response = client.post(f"{BASE}/attempt", json={"factId": "missing", "answer": 4})
        assert response.status_code == 404
        assert response.json()["detail"] == "Fact not found"


class TestRewardsAndScore:

    @pytest.mark.parametrize("kind,coins", [
        ("FIRST_MASTERY", 200),
        ("REVIEW_CORRECT", 10),
        ("NO_REWARD", 0),
        ("JACKPOT", 0),
        (None, 0),
    ])
    def test_claim(self, client, kind, coins):
        assert client.post(f"{BASE}/rewards/claim", json={"kind": kind}).json() == {"coins": coins}

    def test_score(self, client):
        response = client.post(f"{BASE}/score", json={"accuracy": 0.9, "uniqueMastered": 4})
        assert response.json() == {"score": 162}

    def test_score_clamps_inputs(self, client):
        response = client.post(f"{BASE}/score", json={"accuracy": 1.5, "uniqueMastered": 0, "base": 50})
        assert response.json() == {"score": 50}


class TestCoach:

    def test_hint_fallback_is_cached(self, client):
        with patch("gamesjr.api.tables.kv_client.set_json") as mock_set:
            response = client.post(f"{BASE}/coach/hint", json={"a": 7, "b": 8})

        assert response.status_code == 200
        assert "five-six" in response.json()["hint"]
        key, value, ttl = mock_set.call_args[0]
        assert key == "tables:hint:7x8:none:none"
        assert value == response.json()
        assert ttl == 604800

    def test_hint_key_uses_clamped_operands(self, client):
        with patch("gamesjr.api.tables.kv_client.set_json") as mock_set:
            client.post(f"{BASE}/coach/hint", json={"a": 15.5, "b": -2, "theme": "space", "lastWrong": 24})
        assert mock_set.call_args[0][0] == "tables:hint:12x0:space:24"

    @patch("gamesjr.api.tables.make_json_caller")
    @patch("gamesjr.api.tables.kv_client.get_json", return_value={"hint": "From the cache"})
    def test_hint_cache_hit(self, mock_get, mock_caller, client):
        response = client.post(f"{BASE}/coach/hint", json={"a": 3, "b": 4})

        assert response.json() == {"hint": "From the cache"}
        mock_caller.assert_not_called()

    @patch("gamesjr.api.tables.make_json_caller")
    @patch("gamesjr.api.tables.is_ai_enabled", return_value=True)
    def test_hint_from_model(self, mock_enabled, mock_caller, client):
        mock_caller.return_value = MagicMock(return_value={"hint": "Count up in sevens."})

        response = client.post(f"{BASE}/coach/hint", json={"a": 7, "b": 6})

        assert response.json() == {"hint": "Count up in sevens."}
        assert mock_caller.call_args[0][1] == "hint"

    @patch("gamesjr.api.tables.make_json_caller")
    @patch("gamesjr.api.tables.is_ai_enabled", return_value=True)
    def test_invalid_model_hint_falls_back(self, mock_enabled, mock_caller, client):
        mock_caller.return_value = MagicMock(return_value={"tip": "wrong shape"})

        response = client.post(f"{BASE}/coach/hint", json={"a": 9, "b": 7})

        assert response.json()["hint"].startswith("For 9×N")

    def test_explain_disabled(self, client):
        with patch("gamesjr.api.tables.kv_client.set_json") as mock_set:
            response = client.post(f"{BASE}/coach/explain", json={"a": 7, "b": 8, "typed": "54"})

        assert response.json() == coach.EXPLAIN_DISABLED
        assert mock_set.call_args[0][0] == "tables:explain:7x8:54"

    def test_explain_key_without_typed(self, client):
        with patch("gamesjr.api.tables.kv_client.set_json") as mock_set:
            client.post(f"{BASE}/coach/explain", json={"a": 2, "b": 3})
        assert mock_set.call_args[0][0] == "tables:explain:2x3:none"

    @patch("gamesjr.api.tables.make_json_caller")
    @patch("gamesjr.api.tables.is_ai_enabled", return_value=True)
    def test_explain_from_model(self, mock_enabled, mock_caller, client):
        mock_caller.return_value = MagicMock(
            return_value={"message": "You may have swapped the digits.", "pattern": "reversal"}
        )

        response = client.post(f"{BASE}/coach/explain", json={"a": 7, "b": 8, "typed": "65"})

        assert response.json() == {"message": "You may have swapped the digits.", "pattern": "reversal"}

    def test_word_problem_fallback(self, client):
        with patch("gamesjr.api.tables.kv_client.set_json") as mock_set:
            response = client.post(f"{BASE}/content/wordproblem", json={"a": 3.7, "b": 4})

        data = response.json()
        assert data["operands"] == [3, 4]
        assert data["op"] == "*"
        assert data["problem"]
        assert mock_set.call_args[0][0] == "tables:wp:3x4:default:all"

    def test_word_problem_key(self, client):
        with patch("gamesjr.api.tables.kv_client.set_json") as mock_set:
            client.post(f"{BASE}/content/wordproblem", json={"a": 6, "b": 7, "theme": "space", "ageBand": "7-8"})
        assert mock_set.call_args[0][0] == "tables:wp:6x7:space:7-8"


class TestChallenge:

    @pytest.mark.parametrize("batch_size,expected", [
        (None, 10),
        (2, 5),
        (12.5, 13),
        (50, 20),
        ("lots", 10),
    ])
    def test_batch_size_is_clamped(self, client, batch_size, expected):
        response = client.post(f"{BASE}/challenge/questions", json={"userId": "ava", "batchSize": batch_size})

        assert response.status_code == 200
        data = response.json()
        assert data["userId"] == "ava"
        assert data["sessionId"]
        assert len(data["questions"]) == expected
        for question in data["questions"]:
            assert question["answer"] == question["a"] * question["b"]
            assert question["prompt"] == f"What is {question['a']} × {question['b']}?"

    def test_without_body(self, client):
        data = client.post(f"{BASE}/challenge/questions").json()
        assert data["userId"] == "student-demo"
        assert len(data["questions"]) == 10

    @patch("gamesjr.api.tables.make_json_caller")
    @patch("gamesjr.api.tables.is_ai_enabled", return_value=True)
    def test_model_questions(self, mock_enabled, mock_caller, client):
        def model(system, user):
            fact = user.split("Facts: ")[1].split(",")[0]
            fact_id, operands = fact.split(":")
            a, b = (int(x) for x in operands.split("x"))
            return {"questions": [{"factId": fact_id, "prompt": "Rockets! How much?", "answer": a * b}]}

        mock_caller.return_value = model

        data = client.post(f"{BASE}/challenge/questions", json={"batchSize": 5}).json()

        assert len(data["questions"]) == 5
        assert sum(q["prompt"] == "Rockets! How much?" for q in data["questions"]) == 1
        assert mock_caller.call_args[0][1] == "challenge_questions"


class TestDiagnostics:

    def test_ai_ping_disabled(self, client):
        assert client.get(f"{BASE}/ai/ping").json() == {"enabled": False}

    def test_ai_ping_respects_user_opt_out(self, client):
        with patch("gamesjr.tables.ai.feature_flags.AI_ENABLED", True):
            assert client.get(f"{BASE}/ai/ping").json() == {"enabled": True}
            client.cookies.set("gi_ai", "false")
            assert client.get(f"{BASE}/ai/ping").json() == {"enabled": False}

    def test_selftest(self, client):
        data = client.get(f"{BASE}/selftest").json()

        assert data["ok"] is True
        assert [r["name"] for r in data["results"]] == [
            "scheduler:correct_increments",
            "scheduler:wrong_resets",
            "hints:7x8_rhyme",
            "problems:structure",
        ]
