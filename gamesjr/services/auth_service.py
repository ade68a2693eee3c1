"""
Cookie auth helpers: admin session check, membership tiers and the
progress snapshot shown to each tier.
"""
import math
import re
from typing import Any, Dict, Mapping, Optional

ADMIN_COOKIE = "admin_session"
USER_COOKIE = "gi_user"
TIER_COOKIE = "gi_tier"

LOGIN_MAX_AGE = 60 * 60 * 24 * 30  # 30 days
SIMPLE_LOGIN_MAX_AGE = 60 * 60 * 24 * 365  # 1 year
USERNAME_MAX_LENGTH = 40

TIERS = ("free", "starter", "explorer", "champion", "premium_ai")
DEFAULT_TIER = "free"

TIER_SCALING = {
    "free": {"level": 2, "streak": 1, "stars": 120, "progress": 0.35},
    "starter": {"level": 4, "streak": 3, "stars": 260, "progress": 0.48},
    "explorer": {"level": 6, "streak": 5, "stars": 420, "progress": 0.62},
    "champion": {"level": 9, "streak": 8, "stars": 780, "progress": 0.82},
    "premium_ai": {"level": 11, "streak": 12, "stars": 980, "progress": 0.9},
}

BADGES = [
    {"name": "Curiosity Spark", "description": "Ask 3 “how” questions in a single session."},
    {"name": "Creative Burst", "description": "Generate a story or drawing prompt."},
    {"name": "Kindness Echo", "description": "Share a compliment with a character."},
]

FOCUS_ACTIVITIES = [
    "Play a co-op adventure for 10 minutes",
    "Imagine a new world with an AI friend",
    "Complete a calming breathing break",
]

_USERNAME_RE = re.compile(r"[^a-zA-Z0-9_\-\s]")


def is_admin(cookies: Mapping[str, str]) -> bool:
    return bool(cookies.get(ADMIN_COOKIE))


def normalize_tier(tier: Optional[str]) -> str:
    return tier if tier in TIER_SCALING else DEFAULT_TIER


def sanitize_username(username: Any) -> str:
    """
    Trim, cap at 40 characters and drop anything outside ``[A-Za-z0-9_- ]``.

    Raises:
        ValueError: If the username is empty
    """
    username = str(username or "").strip()
    if not username:
        raise ValueError("username required")
    return _USERNAME_RE.sub("", username[:USERNAME_MAX_LENGTH])


def has_access_to_game(tier: Optional[str], game_index: int) -> bool:
    """Which catalog positions a tier may play."""
    if tier in ("champion", "premium_ai"):
        return True
    if tier == "explorer":
        return game_index < 3
    if tier == "starter":
        return game_index < 1
    return False


def progress_snapshot(tier: Optional[str]) -> Dict[str, Any]:
    scaling = TIER_SCALING[normalize_tier(tier)]
    level = scaling["level"]
    earned_badges = math.floor(level / 4 + 0.5)

    return {
        "level": level,
        "streak": scaling["streak"],
        "stars": scaling["stars"],
        "dailyGoalPercent": min(1, max(0.1, scaling["progress"])),
        "nextReward": "Unlock: Aurora Sound Packs" if level >= 8 else "Unlock: Story Mode Stickers",
        "badges": [
            {**badge, "earned": index < earned_badges}
            for index, badge in enumerate(BADGES)
        ],
        "focusActivities": [
            {
                "label": label,
                "completed": index < 2 if scaling["progress"] > 0.5 else index == 0,
            }
            for index, label in enumerate(FOCUS_ACTIVITIES)
        ],
    }
