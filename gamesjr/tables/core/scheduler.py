"""
Spaced-repetition scheduling for multiplication facts.

Each learner/fact pair carries a mastery level (0-5), a streak, an
easiness factor and the next due date. Correct answers push the due date
out, wrong answers bring the fact back within the hour.
"""
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import List, Optional

from gamesjr.db.models import utcnow

MIN_EASINESS = 1.3
DEFAULT_EASINESS = 2.5
MAX_MASTERY = 5
MAX_INTERVAL_DAYS = 30
RETRY_INTERVAL_DAYS = 0.04  # ~1 hour
MAX_OFFSET_MINUTES = 6 * 60


@dataclass
class UserFactState:
    id: str
    user_id: str
    fact_id: str
    mastery_level: int = 0
    streak: int = 0
    easiness: float = DEFAULT_EASINESS
    interval_days: float = 0
    due_at: Optional[datetime] = None
    last_latency_ms: Optional[int] = None
    last_accuracy: Optional[float] = None


def on_attempt_update(uf: UserFactState, correct: bool, now: Optional[datetime] = None) -> UserFactState:
    """Return the new state of a fact after one attempt."""
    uf = replace(uf)
    if correct:
        uf.streak += 1
        uf.easiness = max(MIN_EASINESS, uf.easiness + 0.1)
        uf.mastery_level = min(MAX_MASTERY, uf.mastery_level + 1)
        if uf.streak == 1:
            base = 1
        elif uf.streak == 2:
            base = 3
        else:
            base = 2 ** uf.streak
        uf.interval_days = min(MAX_INTERVAL_DAYS, base * uf.easiness)
    else:
        uf.streak = 0
        uf.easiness = max(MIN_EASINESS, uf.easiness - 0.2)
        uf.mastery_level = max(0, uf.mastery_level - 1)
        uf.interval_days = RETRY_INTERVAL_DAYS
    uf.due_at = (now or utcnow()) + timedelta(days=uf.interval_days)
    return uf


def fnv1a_32(value: str) -> int:
    """32-bit FNV-1a hash, used for stable-yet-varied ordering."""
    h = 2166136261
    for ch in value:
        h ^= ord(ch)
        h = (h * 16777619) & 0xFFFFFFFF
    return h


def seeded_offset_minutes(user_id: str, fact_id: str) -> int:
    """Per user/fact stagger (in minutes, < 6h) for freshly created facts."""
    h = 0
    for ch in f"{user_id}:{fact_id}":
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    return h % MAX_OFFSET_MINUTES


def _weakness_key(uf: UserFactState):
    # Lower mastery first, then earliest due; the hash keeps new users from
    # seeing the tables in sequential order.
    return (uf.mastery_level, uf.due_at or datetime.min, fnv1a_32(uf.fact_id))


def select_next_batch(due_facts: List[UserFactState], backlog_facts: List[UserFactState],
                      k: int = 10) -> List[UserFactState]:
    """Pick the k weakest due facts, topping up from the backlog."""
    due = sorted(due_facts, key=_weakness_key)[:k]
    if len(due) >= k:
        return due
    fill = sorted(backlog_facts, key=_weakness_key)[:k - len(due)]
    return due + fill
