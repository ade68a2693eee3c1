"""
Challenge mode question generation.
"""
import logging
import random
from typing import Any, Dict, List, Optional

from gamesjr.tables.ai.openai_client import ModelCaller
from gamesjr.validators.ai_response_validator import validate_challenge_question

logger = logging.getLogger(__name__)

CHALLENGE_SYSTEM = ("You create lively multiplication quiz questions for 7-10 year olds. Keep questions short "
                    "(<90 chars), upbeat, and only use the provided facts. Return JSON only.")
MAX_PROMPT_LENGTH = 120


def build_fallback(targets: List[Dict[str, Any]], rng: Optional[random.Random] = None) -> List[Dict[str, Any]]:
    shuffled = list(targets)
    (rng or random).shuffle(shuffled)
    return [
        {
            "factId": t["id"],
            "a": t["a"],
            "b": t["b"],
            "prompt": f"What is {t['a']} × {t['b']}?",
            "answer": t["a"] * t["b"],
        }
        for t in shuffled
    ]


def generate_challenge_questions(targets: List[Dict[str, Any]],
                                 call_model: Optional[ModelCaller] = None) -> List[Dict[str, Any]]:
    """
    One question per target. Model questions are kept only when they
    reference a known fact once, carry a prompt and give the right answer;
    the rest of the batch is filled from the shuffled fallback.
    """
    if not targets:
        return []

    fallback = build_fallback(targets)
    if call_model is None:
        return fallback

    fact_map = {t["id"]: t for t in targets}
    fact_list = ", ".join(f"{t['id']}:{t['a']}x{t['b']}" for t in targets)
    parsed = call_model(
        CHALLENGE_SYSTEM,
        f"Facts: {fact_list}\n"
        'Return JSON {"questions":[{"factId":"id","prompt":"text","answer":number}]}. '
        "Ensure answer = a*b and prompt references multiplication.",
    )
    if not isinstance(parsed, dict):
        return fallback

    used = set()
    enriched = []
    for entry in parsed.get("questions") or []:
        if not isinstance(entry, dict):
            continue
        fact_id = entry.get("factId").strip() if isinstance(entry.get("factId"), str) else ""
        if not fact_id or fact_id in used or fact_id not in fact_map:
            continue
        prompt = entry.get("prompt").strip() if isinstance(entry.get("prompt"), str) else ""
        if not prompt:
            continue
        target = fact_map[fact_id]
        answer = entry.get("answer")
        if isinstance(answer, bool) or not isinstance(answer, (int, float)):
            continue
        question = validate_challenge_question({
            "factId": fact_id,
            "a": target["a"],
            "b": target["b"],
            "prompt": prompt[:MAX_PROMPT_LENGTH],
            "answer": answer,
        })
        if question is None or question.answer != target["a"] * target["b"]:
            continue
        used.add(fact_id)
        enriched.append(question.model_dump())

    if len(enriched) < len(targets):
        logger.debug(f"Model produced {len(enriched)}/{len(targets)} usable challenge questions")
    return enriched + [item for item in fallback if item["factId"] not in used]
