"""
KV Client
Thin client for the Redis-compatible REST KV store (Upstash style).

Every call goes through the ``/pipeline`` endpoint:

    POST {KV_REST_API_URL}/pipeline
    Authorization: Bearer {KV_REST_API_TOKEN}
    {"commands": [["ZADD", "key", 10, "member"], ...]}

and the store answers ``{"result": [{"result": ...}, ...]}`` (some
deployments answer with a bare list instead of the wrapping object).
"""
import json
import logging
from typing import Any, List, Optional

import requests

from gamesjr.config import KV_REST_API_URL, KV_REST_API_TOKEN, KV_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


class KVError(Exception):
    """Raised when the KV store answers with an error status."""


def is_configured() -> bool:
    """True when both the KV URL and token are set."""
    return bool(KV_REST_API_URL and KV_REST_API_TOKEN)


def pipeline(commands: List[list]) -> Optional[List[Any]]:
    """
    Run a batch of commands in one round trip.

    Args:
        commands: List of commands, each a list like ``["GET", "key"]``

    Returns:
        The per-command result list, or None when the store is not configured

    Raises:
        KVError: If the store answers with a non-2xx status
        requests.RequestException: On network failures
    """
    if not is_configured():
        return None

    response = requests.post(
        f"{KV_REST_API_URL.rstrip('/')}/pipeline",
        headers={
            "Authorization": f"Bearer {KV_REST_API_TOKEN}",
            "Content-Type": "application/json",
        },
        json={"commands": commands},
        timeout=KV_TIMEOUT_SECONDS,
    )
    if not response.ok:
        raise KVError(f"KV request failed with status {response.status_code}")

    data = response.json()
    if isinstance(data, dict):
        return data.get("result")
    return data


def command(cmd: list) -> Any:
    """Run a single command and return its unwrapped result."""
    results = pipeline([cmd])
    if not results:
        return None
    first = results[0]
    if isinstance(first, dict):
        return first.get("result")
    return first


def get_json(key: str) -> Optional[Any]:
    """Read a JSON value. Returns None when missing, unconfigured or unreachable."""
    if not is_configured():
        return None
    try:
        raw = command(["GET", key])
    except (KVError, requests.RequestException, ValueError) as e:
        logger.warning(f"KV get failed for {key}: {e}")
        return None
    if not raw:
        return None
    try:
        return json.loads(str(raw))
    except json.JSONDecodeError:
        return None


def set_json(key: str, value: Any, ttl_seconds: int = 604800) -> None:
    """Store a JSON value with an expiry. Failures are logged, never raised."""
    if not is_configured():
        return
    try:
        pipeline([["SETEX", key, str(ttl_seconds), json.dumps(value)]])
    except (KVError, requests.RequestException, ValueError) as e:
        logger.warning(f"KV set failed for {key}: {e}")


def get_boolean(key: str) -> Optional[bool]:
    """Read a flag stored as a string; anything but "false" counts as True."""
    if not is_configured():
        return None
    try:
        raw = command(["GET", key])
    except (KVError, requests.RequestException, ValueError) as e:
        logger.warning(f"KV flag lookup failed for {key}: {e}")
        return None
    if raw is None:
        return None
    return str(raw) != "false"
