"""
Leaderboard Service
Per-game top-5 leaderboards kept in a KV sorted set.
"""
import logging
import math
import re
from typing import Any, Dict, List

from gamesjr.services import kv_client

logger = logging.getLogger(__name__)

MAX_SCORE = 10_000_000
TOP_SIZE = 5
NAME_MAX_LENGTH = 16
SCORE_TTL_SECONDS = 60 * 60 * 24 * 30  # 30 days

_NAME_DISALLOWED = re.compile(r"[^A-Za-z0-9 _.\-]")


def leaderboard_key(slug: str) -> str:
    return f"gi:scores:{slug}"


def is_valid_score(score: Any) -> bool:
    """Scores must be real, finite numbers (booleans are rejected)."""
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        return False
    try:
        return math.isfinite(score)
    except OverflowError:
        # Integers beyond float range count as infinite
        return False


def clamp_score(score: float) -> int:
    return int(max(0, min(MAX_SCORE, math.floor(score))))


def sanitize_name(name: str) -> str:
    """Keep letters, digits, space, underscore, dot and dash; cap at 16 chars."""
    clean = _NAME_DISALLOWED.sub("", name)[:NAME_MAX_LENGTH].strip()
    return clean or "anon"


def save_score(slug: str, score: float, name: str = "") -> Dict[str, Any]:
    """
    Store a score for a game.

    Args:
        slug: Game slug
        score: Raw score (validated by the caller)
        name: Player name as typed

    Returns:
        dict with ``ok`` and, when no KV store is configured, ``stored: False``

    Raises:
        kv_client.KVError / requests.RequestException: If the KV store fails
    """
    clamped = clamp_score(score)
    player = sanitize_name(str(name or ""))

    if not kv_client.is_configured():
        logger.debug(f"KV not configured; score for {slug} not persisted")
        return {"ok": True, "stored": False}

    key = leaderboard_key(slug)
    # Keep only the best TOP_SIZE members
    kv_client.pipeline([
        ["ZADD", key, clamped, player],
        ["ZREMRANGEBYRANK", key, 0, -(TOP_SIZE + 1)],
        ["EXPIRE", key, SCORE_TTL_SECONDS],
    ])
    logger.info(f"Score saved for {slug}: {player}={clamped}")
    return {"ok": True}


def top_scores(slug: str) -> List[Dict[str, Any]]:
    """
    Return the top five entries, best first.
    Fails open: an unconfigured or unreachable store yields an empty list.
    """
    if not kv_client.is_configured():
        return []

    try:
        raw = kv_client.command(["ZRANGE", leaderboard_key(slug), 0, TOP_SIZE - 1, "REV", "WITHSCORES"])
    except Exception as e:
        logger.error(f"Failed to load scores for {slug}: {e}")
        return []

    top = []
    if isinstance(raw, list):
        for i in range(0, len(raw), 2):
            name = str(raw[i] if raw[i] is not None else "anon")
            try:
                value = float(raw[i + 1]) if i + 1 < len(raw) else 0.0
            except (TypeError, ValueError):
                value = 0.0
            top.append({"name": name, "score": int(value) if value.is_integer() else value})
    return top
