"""
AI coach for the times tables: hints, error explanations and word problems.

Every entry point works without a model (``call_model=None``) and falls
back to deterministic content whenever the model output does not validate.
"""
import logging
from typing import Any, Dict, Optional

from gamesjr.tables.ai.openai_client import ModelCaller
from gamesjr.tables.ai.sanitize import sanitize_operands, strip_pii
from gamesjr.tables.core.hints import deterministic_hint
from gamesjr.tables.core.problems import MAX_PROBLEM_LENGTH, generate_deterministic_problem
from gamesjr.validators.ai_response_validator import validate_explain, validate_hint, validate_word_problem

logger = logging.getLogger(__name__)

HINT_SYSTEM = ("You are a maths coach for 6–10 year-olds. Be concise, kind, concrete. "
               "Give one hint. No personal data.")
EXPLAIN_SYSTEM = "Explain the likely mistake in one sentence. Encourage strategy, not speed."
WORD_PROBLEM_SYSTEM = ("Generate one 15-20 word story problem that uses A×B (both ≤12). "
                       "Avoid brand names & sensitive topics.")

EXPLAIN_NO_MODEL = {"message": "Check your steps and try a strategy like splitting into tens.", "pattern": "unknown"}
EXPLAIN_INVALID = {"message": "Try breaking the problem into smaller parts, like (a×10) − (a×(10−b)).",
                   "pattern": "unknown"}
EXPLAIN_DISABLED = {"message": "Try splitting into tens and ones, then recombine the pieces to check your work.",
                    "pattern": "unknown"}


def get_hint(a, b, theme: Optional[str] = None, call_model: Optional[ModelCaller] = None) -> Dict[str, Any]:
    a, b = sanitize_operands(a, b)
    if call_model is None:
        return {"hint": deterministic_hint(a, b)}
    raw = call_model(HINT_SYSTEM, f"Operands: {a} x {b}\nTheme: {strip_pii(theme or '')}")
    hint = validate_hint(raw)
    if hint is None:
        return {"hint": deterministic_hint(a, b)}
    return hint.model_dump(exclude_none=True)


def explain_error(a, b, typed: str, call_model: Optional[ModelCaller] = None) -> Dict[str, Any]:
    a, b = sanitize_operands(a, b)
    if call_model is None:
        return dict(EXPLAIN_NO_MODEL)
    raw = call_model(EXPLAIN_SYSTEM, f"A: {a} B: {b} Typed: {strip_pii(typed or '')}")
    explain = validate_explain(raw)
    if explain is None:
        return dict(EXPLAIN_INVALID)
    return explain.model_dump(exclude_none=True)


def word_problem(a: int, b: int, theme: Optional[str] = None, age_band: Optional[str] = None,
                 call_model: Optional[ModelCaller] = None) -> Dict[str, Any]:
    """Story problem for a x b; the model's operands must match the requested fact."""
    fallback = generate_deterministic_problem(a, b, theme)
    if call_model is None:
        return fallback

    user_prompt = (f"A={a} B={b} Theme={theme or 'default'} Age={age_band or 'all'}\n"
                   "Respond with JSON containing problem (<=160 chars) and operands array.")
    problem = validate_word_problem(call_model(WORD_PROBLEM_SYSTEM, user_prompt))
    if problem is None:
        return fallback

    oa, ob = problem.operands
    if (oa, ob) not in ((a, b), (b, a)):
        logger.info(f"Discarding word problem with mismatched operands {oa}x{ob} for {a}x{b}")
        return fallback

    return {
        "problem": problem.problem[:MAX_PROBLEM_LENGTH],
        "operands": [a, b],
        "op": "*",
        "cultural_check": True if problem.cultural_check is None else problem.cultural_check,
    }
