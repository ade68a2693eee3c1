"""
Community Wall Service
Message storage (KV list with an in-memory fallback) and a per-IP rate limiter.
"""
import json
import logging
import re
import threading
import time
import uuid
from typing import Any, Dict, List, Optional

import requests

from gamesjr.services import kv_client

logger = logging.getLogger(__name__)

FEEDBACK_KEY = "gi:feedback"
MAX_MESSAGES = 100
MAX_TEXT_LENGTH = 500
MAX_NAME_LENGTH = 50

RATE_LIMIT_WINDOW_SECONDS = 60
RATE_LIMIT_MAX_POSTS = 5

_TAG_RE = re.compile(r"<[^>]*>")


def strip_tags(value: str) -> str:
    return _TAG_RE.sub("", value)


def build_message(text: Any, name: Any = None) -> Dict[str, Any]:
    """
    Validate and sanitise a post.

    Raises:
        ValueError: If the text is empty or longer than 500 characters
    """
    text = str(text or "").strip()
    if not text:
        raise ValueError("Text required")
    if len(text) > MAX_TEXT_LENGTH:
        raise ValueError(f"Text too long (max {MAX_TEXT_LENGTH} characters)")

    return {
        "id": str(uuid.uuid4()),
        "name": strip_tags(str(name or "Anon").strip())[:MAX_NAME_LENGTH],
        "text": strip_tags(text)[:MAX_TEXT_LENGTH],
        "ts": int(time.time() * 1000),
    }


class CommunityStore:
    """Newest-first message list kept in the KV store, or in memory when it is unavailable."""

    _memory: List[Dict[str, Any]] = []
    _lock = threading.Lock()

    @classmethod
    def get_messages(cls) -> List[Dict[str, Any]]:
        if kv_client.is_configured():
            try:
                raw = kv_client.command(["LRANGE", FEEDBACK_KEY, "0", str(MAX_MESSAGES - 1)])
                return [json.loads(str(item)) for item in (raw or []) if item]
            except (kv_client.KVError, requests.RequestException, ValueError) as e:
                logger.warning(f"KV get failed, falling back to memory: {e}")
        with cls._lock:
            return list(reversed(cls._memory))

    @classmethod
    def add_message(cls, message: Dict[str, Any]) -> None:
        if kv_client.is_configured():
            try:
                kv_client.pipeline([
                    ["LPUSH", FEEDBACK_KEY, json.dumps(message)],
                    ["LTRIM", FEEDBACK_KEY, "0", str(MAX_MESSAGES - 1)],
                ])
                return
            except (kv_client.KVError, requests.RequestException, ValueError) as e:
                logger.warning(f"KV push failed, writing to memory: {e}")
        with cls._lock:
            cls._memory.append(message)
            cls._memory = cls._memory[-MAX_MESSAGES:]

    @classmethod
    def clear(cls) -> None:
        with cls._lock:
            cls._memory = []


class RateLimiter:
    """Sliding-window limiter keyed by client IP."""

    def __init__(self, max_requests: int = RATE_LIMIT_MAX_POSTS,
                 window_seconds: float = RATE_LIMIT_WINDOW_SECONDS):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._hits: Dict[str, List[float]] = {}
        self._lock = threading.Lock()

    def allow(self, key: str, now: Optional[float] = None) -> bool:
        now = time.monotonic() if now is None else now
        with self._lock:
            self._drop_expired(now)
            recent = self._hits.pop(key, [])
            if len(recent) >= self.max_requests:
                self._hits[key] = recent
                return False
            recent.append(now)
            self._hits[key] = recent
            return True

    def _drop_expired(self, now: float) -> None:
        # Caller holds the lock; keys with an empty window are forgotten
        for key in list(self._hits):
            recent = [t for t in self._hits[key] if now - t < self.window_seconds]
            if recent:
                self._hits[key] = recent
            else:
                del self._hits[key]

    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._hits)

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


def client_ip(headers: Dict[str, str], fallback: Optional[str] = None) -> str:
    """First ``x-forwarded-for`` address, then ``x-real-ip``, then the socket peer."""
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return headers.get("x-real-ip") or fallback or "unknown"


post_limiter = RateLimiter()
