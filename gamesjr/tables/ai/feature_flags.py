"""
AI feature gating for the times tables module.

AI is used only when the global switch is on, the learner's organisation
has not opted out (KV flag ``org:{id}:aiAllowed``) and the learner is
allowed AI help.
"""
import logging
from dataclasses import dataclass
from typing import Mapping, Optional

from gamesjr.config import AI_ENABLED
from gamesjr.services import kv_client

logger = logging.getLogger(__name__)


@dataclass
class AIUser:
    role: str = "STUDENT"
    org_id: Optional[str] = None
    ai_allowed: bool = True


def ai_user_from_cookies(cookies: Mapping[str, str]) -> AIUser:
    return AIUser(
        role=cookies.get("gi_role") or "STUDENT",
        org_id=cookies.get("gi_org") or None,
        ai_allowed=cookies.get("gi_ai") != "false",
    )


def is_ai_enabled(user: Optional[AIUser] = None) -> bool:
    if not AI_ENABLED:
        return False

    policy = kv_client.get_boolean(f"org:{user.org_id}:aiAllowed") if user and user.org_id else None
    org_allows = policy is not False
    user_allows = user is None or user.ai_allowed
    if not org_allows:
        logger.debug(f"AI disabled by organisation policy for {user.org_id}")
    return org_allows and user_allows
