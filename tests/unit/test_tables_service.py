"""
Tests for the times tables service against an in-memory SQLite database.
"""
import pytest

from gamesjr.db.models import Attempt, Fact, Session, SessionMode, UserFact, get_session, utcnow
from gamesjr.tables import service


@pytest.fixture
def db():
    session = get_session()
    yield session
    session.close()


def fact_for(db, a, b):
    return db.query(Fact).filter(Fact.a == a, Fact.b == b).one()


class TestSeeding:

    def test_facts_are_seeded_once(self, db):
        service.ensure_facts(db)
        service.ensure_facts(db)
        assert db.query(Fact).count() == 144

    def test_user_facts_are_staggered_into_the_past(self, db):
        service.ensure_facts(db)
        service.ensure_user(db, "ava")
        service.ensure_user_facts(db, "ava")
        service.ensure_user_facts(db, "ava")

        records = db.query(UserFact).filter(UserFact.user_id == "ava").all()
        assert len(records) == 144
        now = utcnow()
        assert all(r.due_at <= now for r in records)
        assert all(r.mastery_level == 0 and r.easiness == 2.5 for r in records)

    def test_ensure_user_is_idempotent(self, db):
        first = service.ensure_user(db, "ava")
        second = service.ensure_user(db, "ava")
        assert first.id == second.id == "ava"
        assert first.role == "STUDENT"


class TestSessions:

    def test_blank_user_uses_default(self, db):
        created = service.create_session_with_targets(db, user_id="  ")

        assert created["user_id"] == service.DEFAULT_USER_ID
        assert created["session"].mode == SessionMode.PRACTICE
        assert len(created["targets"]) == 10
        assert set(created["targets"][0]) == {"id", "a", "b", "op"}

    def test_mode_and_batch_size(self, db):
        created = service.create_session_with_targets(db, user_id="ava", mode="BOSS", batch_size=5)
        assert created["session"].mode == SessionMode.BOSS
        assert len(created["targets"]) == 5

        unknown = service.create_session_with_targets(db, user_id="ava", mode="speedrun")
        assert unknown["session"].mode == SessionMode.PRACTICE

    def test_batch_size_is_at_least_one(self, db):
        assert len(service.get_next_facts_for_user(db, "ava", -3)) == 1
        assert len(service.create_session_with_targets(db, user_id="ava", batch_size=-140)["targets"]) == 1

    def test_targets_are_distinct_facts(self, db):
        targets = service.get_next_facts_for_user(db, "ava", 12)
        assert len({t["id"] for t in targets}) == 12
        assert all(t["masteryLevel"] == 0 for t in targets)

    def test_end_session(self, db):
        created = service.create_session_with_targets(db, user_id="ava")

        ended = service.end_session(db, created["session"].id)
        assert ended.ended_at is not None
        assert service.end_session(db, "no-such-session") is None


class TestRecordAttempt:

    def test_correct_answer_awards_first_mastery(self, db):
        created = service.create_session_with_targets(db, user_id="ava")
        fact = fact_for(db, 7, 8)

        result = service.record_attempt(db, fact.id, "56", user_id="ava",
                                        session_id=created["session"].id, latency_ms=2300.4)

        assert result.correct is True
        assert result.expected == 56
        assert result.awarded == 200
        assert result.mastery_level == 1
        assert result.streak == 1

        attempt = db.query(Attempt).one()
        assert attempt.latency_ms == 2300
        record = db.query(UserFact).filter(UserFact.user_id == "ava", UserFact.fact_id == fact.id).one()
        assert record.last_accuracy == 1
        assert record.due_at > utcnow()

    def test_second_correct_answer_pays_review_coins(self, db):
        service.ensure_facts(db)
        fact = fact_for(db, 3, 4)

        service.record_attempt(db, fact.id, 12, user_id="ava")
        result = service.record_attempt(db, fact.id, 12, user_id="ava")
        assert result.awarded == 10
        assert result.mastery_level == 2

    def test_wrong_answer(self, db):
        service.ensure_facts(db)
        fact = fact_for(db, 6, 7)

        result = service.record_attempt(db, fact.id, "forty-two", user_id="ava", latency_ms="bad")
        assert result.correct is False
        assert result.awarded == 0
        assert result.mastery_level == 0
        assert db.query(Attempt).one().latency_ms == 0

    def test_unknown_session_is_created(self, db):
        service.ensure_facts(db)
        fact = fact_for(db, 2, 2)

        service.record_attempt(db, fact.id, 4, user_id="ava", session_id="client-session-1")

        session = db.get(Session, "client-session-1")
        assert session is not None
        assert session.mode == SessionMode.PRACTICE
        assert session.user_id == "ava"

    def test_unknown_fact(self, db):
        with pytest.raises(ValueError, match="Fact not found"):
            service.record_attempt(db, "no-such-fact", 1, user_id="ava")

    def test_result_dict(self, db):
        service.ensure_facts(db)
        result = service.record_attempt(db, fact_for(db, 5, 5).id, 25)

        data = result.to_dict()
        assert data["correct"] is True
        assert data["masteryLevel"] == 1
        assert "dueAt" in data
