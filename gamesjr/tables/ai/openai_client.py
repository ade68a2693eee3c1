"""
Shared OpenAI plumbing for the times tables AI helpers.
"""
import json
import logging
from typing import Any, Callable, Optional

from openai import OpenAI

from gamesjr.config import OPENAI_API_KEY, OPENAI_BASE_URL, AI_SAFE_MODE

logger = logging.getLogger(__name__)

ModelCaller = Callable[[str, str], Optional[Any]]

_client = None


def get_client() -> Optional[OpenAI]:
    """Lazily build the OpenAI client; None when no API key is configured."""
    global _client
    if not OPENAI_API_KEY:
        return None
    if _client is None:
        _client = OpenAI(api_key=OPENAI_API_KEY, base_url=OPENAI_BASE_URL)
    return _client


def make_json_caller(model: str, schema_name: str, schema: dict, max_tokens: int = 200,
                     temperature: Optional[float] = None) -> Optional[ModelCaller]:
    """
    Build a ``(system, user) -> parsed JSON`` callable for one model.

    In safe mode the response is constrained with a JSON schema. The caller
    returns None on any API or parsing failure so callers can fall back.
    """
    client = get_client()
    if client is None:
        return None

    def call(system: str, user: str) -> Optional[Any]:
        kwargs = {
            "model": model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            "max_tokens": max_tokens,
        }
        if temperature is not None:
            kwargs["temperature"] = temperature
        if AI_SAFE_MODE:
            kwargs["response_format"] = {
                "type": "json_schema",
                "json_schema": {"name": schema_name, "schema": schema},
            }
        else:
            kwargs["response_format"] = {"type": "json_object"}
        try:
            completion = client.chat.completions.create(**kwargs)
            text = completion.choices[0].message.content
            if not text:
                return None
            return json.loads(text)
        except Exception as e:
            logger.warning(f"{schema_name} model call failed: {e}")
            return None

    return call
