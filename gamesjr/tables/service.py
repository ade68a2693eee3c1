"""
Times Tables Service
Seeds facts and learner state, builds sessions and records attempts.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DbSession

from gamesjr.db.models import Attempt, Fact, Session, SessionMode, TablesUser, UserFact, utcnow
from gamesjr.tables.core.rewards import awarded_coins
from gamesjr.tables.core.scheduler import (
    DEFAULT_EASINESS,
    UserFactState,
    on_attempt_update,
    seeded_offset_minutes,
    select_next_batch,
)

logger = logging.getLogger(__name__)

DEFAULT_USER_ID = "student-demo"
FACT_COUNT = 12


@dataclass
class AttemptResult:
    correct: bool
    expected: int
    awarded: int
    mastery_level: int
    streak: int
    due_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "correct": self.correct,
            "expected": self.expected,
            "awarded": self.awarded,
            "masteryLevel": self.mastery_level,
            "streak": self.streak,
            "dueAt": self.due_at.isoformat(),
        }


def normalize_user_id(user_id: Optional[str]) -> str:
    return (user_id or "").strip() or DEFAULT_USER_ID


def to_state(record: UserFact) -> UserFactState:
    return UserFactState(
        id=record.id,
        user_id=record.user_id,
        fact_id=record.fact_id,
        mastery_level=record.mastery_level,
        streak=record.streak,
        easiness=record.easiness,
        interval_days=record.interval_days,
        due_at=record.due_at,
        last_latency_ms=record.last_latency_ms,
        last_accuracy=record.last_accuracy,
    )


def target_dict(fact: Fact) -> Dict[str, Any]:
    return {"id": fact.id, "a": fact.a, "b": fact.b, "op": fact.op}


def ensure_facts(db: DbSession) -> None:
    """Create the 12x12 multiplication facts once."""
    if db.query(Fact).count() >= FACT_COUNT * FACT_COUNT:
        return
    existing = {(f.a, f.b) for f in db.query(Fact.a, Fact.b).filter(Fact.op == "*")}
    for a in range(1, FACT_COUNT + 1):
        for b in range(1, FACT_COUNT + 1):
            if (a, b) not in existing:
                db.add(Fact(a=a, b=b, op="*"))
    db.commit()
    logger.info("Seeded multiplication facts")


def ensure_user(db: DbSession, user_id: str) -> TablesUser:
    user = db.get(TablesUser, user_id)
    if user is None:
        user = TablesUser(id=user_id, role="STUDENT", ai_allowed=False)
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            # Created concurrently by another request
            db.rollback()
            user = db.get(TablesUser, user_id)
    return user


def ensure_user_facts(db: DbSession, user_id: str) -> None:
    """Give the learner a state row for every fact, staggered over the last 6h."""
    fact_ids = [row.id for row in db.query(Fact.id)]
    if not fact_ids:
        return
    existing = {row.fact_id for row in db.query(UserFact.fact_id).filter(UserFact.user_id == user_id)}
    now = utcnow()
    missing = [fact_id for fact_id in fact_ids if fact_id not in existing]
    for fact_id in missing:
        offset = seeded_offset_minutes(user_id, fact_id)
        db.add(UserFact(
            user_id=user_id,
            fact_id=fact_id,
            mastery_level=0,
            streak=0,
            easiness=DEFAULT_EASINESS,
            interval_days=max(0, offset / (60 * 24)),
            due_at=now - timedelta(minutes=offset),
        ))
    if missing:
        db.commit()
        logger.debug(f"Created {len(missing)} user facts for {user_id}")


def _prepare_user(db: DbSession, user_id: str) -> None:
    ensure_facts(db)
    ensure_user(db, user_id)
    ensure_user_facts(db, user_id)


def get_next_facts_for_user(db: DbSession, user_id: str, batch_size: int = 10) -> List[Dict[str, Any]]:
    """Next batch of targets: weakest due facts first, then the backlog."""
    batch_size = max(1, batch_size)
    _prepare_user(db, user_id)
    now = utcnow()

    records = (
        db.query(UserFact)
        .filter(UserFact.user_id == user_id)
        .order_by(UserFact.due_at.asc())
        .all()
    )
    by_id = {record.id: record for record in records}
    due = [to_state(r) for r in records if r.due_at <= now]
    backlog = [to_state(r) for r in records if r.due_at > now]

    selected = [by_id[state.id] for state in select_next_batch(due, backlog, batch_size)]

    if not selected:
        facts = db.query(Fact).order_by(Fact.a.asc(), Fact.b.asc()).limit(batch_size).all()
        ufs = {
            uf.fact_id: uf
            for uf in db.query(UserFact).filter(
                UserFact.user_id == user_id, UserFact.fact_id.in_([f.id for f in facts])
            )
        }
        return [
            {
                **target_dict(fact),
                "userFactId": ufs[fact.id].id if fact.id in ufs else "",
                "masteryLevel": ufs[fact.id].mastery_level if fact.id in ufs else 0,
                "dueAt": (ufs[fact.id].due_at if fact.id in ufs else now).isoformat(),
            }
            for fact in facts
        ]

    return [
        {
            **target_dict(record.fact),
            "userFactId": record.id,
            "masteryLevel": record.mastery_level,
            "dueAt": record.due_at.isoformat(),
        }
        for record in selected
    ]


def create_session_with_targets(db: DbSession, user_id: Optional[str] = None, mode: Optional[str] = None,
                                batch_size: int = 10) -> Dict[str, Any]:
    """Open a session and hand back the facts to practise in it."""
    user_id = normalize_user_id(user_id)
    mode = mode if mode in SessionMode.ALL else SessionMode.PRACTICE

    _prepare_user(db, user_id)

    session = Session(user_id=user_id, mode=mode)
    db.add(session)
    db.commit()

    targets = get_next_facts_for_user(db, user_id, batch_size)
    logger.info(f"Session {session.id} ({mode}) started for {user_id} with {len(targets)} targets")

    return {
        "session": session,
        "user_id": user_id,
        "targets": [{key: t[key] for key in ("id", "a", "b", "op")} for t in targets],
    }


def end_session(db: DbSession, session_id: str) -> Optional[Session]:
    """Close a session. Unknown ids return None."""
    session = db.get(Session, session_id)
    if session is None:
        return None
    session.ended_at = utcnow()
    db.commit()
    return session


def record_attempt(db: DbSession, fact_id: str, answer: Any, user_id: Optional[str] = None,
                   session_id: Optional[str] = None, latency_ms: Any = None,
                   hint_used: bool = False) -> AttemptResult:
    """
    Grade an answer, store the attempt and update the learner's fact state.

    Raises:
        ValueError: If the fact (or the learner's state for it) does not exist
    """
    try:
        latency = max(0, round(float(latency_ms)))
    except (TypeError, ValueError, OverflowError):
        latency = 0
    user_id = normalize_user_id(user_id)

    _prepare_user(db, user_id)

    fact = db.get(Fact, fact_id)
    if fact is None:
        raise ValueError("Fact not found")

    expected = fact.a * fact.b
    try:
        correct = float(answer) == expected
    except (TypeError, ValueError):
        correct = False

    session = db.get(Session, session_id) if session_id else None
    if session is None:
        session = Session(user_id=user_id, mode=SessionMode.PRACTICE)
        if session_id:
            session.id = session_id
        db.add(session)
        db.flush()

    db.add(Attempt(
        session_id=session.id,
        fact_id=fact.id,
        correct=correct,
        latency_ms=latency,
        hint_used=bool(hint_used),
    ))

    record = (
        db.query(UserFact)
        .filter(UserFact.user_id == user_id, UserFact.fact_id == fact.id)
        .first()
    )
    if record is None:
        db.rollback()
        raise ValueError("User fact missing")

    previous_level = record.mastery_level
    updated = on_attempt_update(to_state(record), correct)

    record.mastery_level = updated.mastery_level
    record.streak = updated.streak
    record.easiness = updated.easiness
    record.interval_days = updated.interval_days
    record.due_at = updated.due_at
    record.last_latency_ms = latency
    record.last_accuracy = 1 if correct else 0
    db.commit()

    return AttemptResult(
        correct=correct,
        expected=expected,
        awarded=awarded_coins(correct, previous_level, record.mastery_level),
        mastery_level=record.mastery_level,
        streak=record.streak,
        due_at=record.due_at,
    )
