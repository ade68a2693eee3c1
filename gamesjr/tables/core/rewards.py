"""
Coin rewards for the times tables module.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Union


class RewardKind(str, Enum):
    FIRST_MASTERY = "FIRST_MASTERY"
    REVIEW_CORRECT = "REVIEW_CORRECT"
    NO_REWARD = "NO_REWARD"


class BadgeType(str, Enum):
    CONSISTENCY_7D = "CONSISTENCY_7D"
    ACCURACY_95 = "ACCURACY_95"
    PERSEVERANCE_WEAKSET = "PERSEVERANCE_WEAKSET"
    CLASS_GOAL_HELPER = "CLASS_GOAL_HELPER"


@dataclass(frozen=True)
class RewardEvent:
    kind: RewardKind


COINS = {
    RewardKind.FIRST_MASTERY: 200,
    RewardKind.REVIEW_CORRECT: 10,
    RewardKind.NO_REWARD: 0,
}


def reward_event_for(kind: Any) -> RewardEvent:
    """Normalise a kind string, mapping or event; unknown kinds become NO_REWARD."""
    if isinstance(kind, RewardEvent):
        return kind
    if isinstance(kind, Mapping):
        kind = kind.get("kind")
    if isinstance(kind, RewardKind):
        return RewardEvent(kind)
    try:
        return RewardEvent(RewardKind(str(kind)))
    except ValueError:
        return RewardEvent(RewardKind.NO_REWARD)


def coins_for(event: Union[RewardEvent, Mapping, str]) -> int:
    return COINS[reward_event_for(event).kind]


def awarded_coins(correct: bool, previous_level: int, new_level: int) -> int:
    """Coins for one attempt: first mastery pays 200, other correct answers 10."""
    if not correct:
        return coins_for(RewardEvent(RewardKind.NO_REWARD))
    if new_level > previous_level and previous_level == 0:
        return coins_for(RewardEvent(RewardKind.FIRST_MASTERY))
    return coins_for(RewardEvent(RewardKind.REVIEW_CORRECT))
