from fastapi import APIRouter, HTTPException, Query, Request
from typing import Any, Callable, Dict, Optional
import logging
from datetime import timezone
import math
import time

from gamesjr.config import AI_CACHE_TTL_SECONDS, AI_MODEL_CHALLENGE, AI_MODEL_CONTENT, AI_MODEL_HINTS
from gamesjr.db.models import SessionMode, get_session
from gamesjr.models.schemas import (
    AttemptRequest,
    ChallengeRequest,
    ExplainRequest,
    HintRequest,
    RewardClaimRequest,
    SessionRequest,
    SessionScoreRequest,
    WordProblemRequest,
)
from gamesjr.services import kv_client
from gamesjr.tables import service as tables_service
from gamesjr.tables.ai import coach
from gamesjr.tables.ai.challenge import generate_challenge_questions
from gamesjr.tables.ai.feature_flags import ai_user_from_cookies, is_ai_enabled
from gamesjr.tables.ai.openai_client import make_json_caller
from gamesjr.tables.ai.sanitize import sanitize_operands
from gamesjr.tables.core.hints import deterministic_hint
from gamesjr.tables.core.problems import generate_deterministic_problem
from gamesjr.tables.core.rewards import coins_for
from gamesjr.tables.core.scheduler import UserFactState, on_attempt_update
from gamesjr.tables.core.scoring import session_score
from gamesjr.validators.ai_response_validator import (
    EXPLAIN_JSON_SCHEMA,
    HINT_JSON_SCHEMA,
    WORD_PROBLEM_JSON_SCHEMA,
    challenge_json_schema,
)

logger = logging.getLogger(__name__)

router = APIRouter()

DEFAULT_CHALLENGE_BATCH = 10
MIN_CHALLENGE_BATCH = 5
MAX_CHALLENGE_BATCH = 20


def normalize_batch_size(size: Any) -> int:
    """Clamp to 5..20; anything non-numeric gives 10."""
    try:
        value = float(size)
    except (TypeError, ValueError):
        return DEFAULT_CHALLENGE_BATCH
    if isinstance(size, bool) or not math.isfinite(value):
        return DEFAULT_CHALLENGE_BATCH
    return min(MAX_CHALLENGE_BATCH, max(MIN_CHALLENGE_BATCH, math.floor(value + 0.5)))


def cached_ai_response(key: str, request: Request, fallback: Callable[[], Dict[str, Any]],
                       generate: Callable[[], Dict[str, Any]]) -> Dict[str, Any]:
    """
    Serve from the KV cache, else from the deterministic fallback when AI is
    off, else from the model. Whatever is served gets cached.
    """
    cached = kv_client.get_json(key)
    if cached:
        return cached

    user = ai_user_from_cookies(request.cookies)
    result = generate() if is_ai_enabled(user) else fallback()
    kv_client.set_json(key, result, AI_CACHE_TTL_SECONDS)
    return result


@router.post("/session")
async def session(request: SessionRequest):
    """Start a session with its targets, or end one when ``end`` is set"""
    db = None
    try:
        db = get_session()
        if request.end and request.sessionId:
            ended = tables_service.end_session(db, request.sessionId)
            if ended is not None:
                ended_at = int(ended.ended_at.replace(tzinfo=timezone.utc).timestamp() * 1000)
            else:
                ended_at = int(time.time() * 1000)
            return {"ok": True, "sessionId": request.sessionId, "endedAt": ended_at}

        created = tables_service.create_session_with_targets(
            db,
            user_id=request.userId,
            mode=request.mode,
            batch_size=request.batchSize or 10
        )
        return {
            "sessionId": created["session"].id,
            "mode": created["session"].mode,
            "targets": created["targets"]
        }
    except Exception as e:
        logger.error(f"Error handling tables session: {e}")
        raise HTTPException(status_code=500, detail="Failed to handle session")
    finally:
        if db is not None:
            db.close()


@router.get("/scheduler/next")
async def scheduler_next(userId: Optional[str] = Query(None)):
    """Next batch of facts for a learner"""
    db = None
    try:
        db = get_session()
        user_id = tables_service.normalize_user_id(userId)
        targets = tables_service.get_next_facts_for_user(db, user_id, 10)
        return {"targets": [{key: t[key] for key in ("id", "a", "b", "op")} for t in targets]}
    except Exception as e:
        logger.error(f"Error selecting next facts: {e}")
        raise HTTPException(status_code=500, detail="Failed to select facts")
    finally:
        if db is not None:
            db.close()


@router.post("/attempt")
async def attempt(request: AttemptRequest):
    """Grade an answer and update the learner's schedule"""
    db = None
    try:
        db = get_session()
        result = tables_service.record_attempt(
            db,
            fact_id=request.factId,
            answer=request.answer,
            user_id=request.userId,
            session_id=request.sessionId,
            latency_ms=request.latencyMs,
            hint_used=request.hintUsed
        )
        return result.to_dict()
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Error recording attempt for fact {request.factId}: {e}")
        raise HTTPException(status_code=500, detail="Failed to record attempt")
    finally:
        if db is not None:
            db.close()


@router.post("/rewards/claim")
async def claim_reward(request: RewardClaimRequest):
    return {"coins": coins_for(request.kind)}


@router.post("/score")
async def score(request: SessionScoreRequest):
    return {"score": session_score(request.accuracy, request.uniqueMastered, request.base)}


@router.post("/coach/hint")
async def coach_hint(body: HintRequest, request: Request):
    a, b = sanitize_operands(body.a, body.b)
    key = f"tables:hint:{a}x{b}:{body.theme or 'none'}:{'none' if body.lastWrong is None else body.lastWrong}"

    return cached_ai_response(
        key,
        request,
        fallback=lambda: {"hint": deterministic_hint(a, b)},
        generate=lambda: coach.get_hint(
            a, b, body.theme, make_json_caller(AI_MODEL_HINTS, "hint", HINT_JSON_SCHEMA, max_tokens=120)
        ),
    )


@router.post("/coach/explain")
async def coach_explain(body: ExplainRequest, request: Request):
    a, b = sanitize_operands(body.a, body.b)
    typed = body.typed or ""
    key = f"tables:explain:{a}x{b}:{typed[:20] or 'none'}"

    return cached_ai_response(
        key,
        request,
        fallback=lambda: dict(coach.EXPLAIN_DISABLED),
        generate=lambda: coach.explain_error(
            a, b, typed, make_json_caller(AI_MODEL_HINTS, "explain", EXPLAIN_JSON_SCHEMA, max_tokens=120)
        ),
    )


@router.post("/content/wordproblem")
async def content_word_problem(body: WordProblemRequest, request: Request):
    a, b = sanitize_operands(body.a, body.b)
    key = f"tables:wp:{a}x{b}:{body.theme or 'default'}:{body.ageBand or 'all'}"

    return cached_ai_response(
        key,
        request,
        fallback=lambda: generate_deterministic_problem(a, b, body.theme),
        generate=lambda: coach.word_problem(
            a, b, body.theme, body.ageBand,
            make_json_caller(AI_MODEL_CONTENT, "word_problem", WORD_PROBLEM_JSON_SCHEMA, temperature=0.7)
        ),
    )


@router.post("/challenge/questions")
async def challenge_questions(request: Request, body: ChallengeRequest = None):
    """Open a CHALLENGE session and build one quiz question per target"""
    body = body or ChallengeRequest()
    user_id = tables_service.normalize_user_id(body.userId)
    batch_size = normalize_batch_size(body.batchSize)

    db = None
    try:
        db = get_session()
        created = tables_service.create_session_with_targets(
            db, user_id=user_id, mode=SessionMode.CHALLENGE, batch_size=batch_size
        )
        targets = created["targets"]

        call_model = None
        if targets and is_ai_enabled(ai_user_from_cookies(request.cookies)):
            call_model = make_json_caller(
                AI_MODEL_CHALLENGE, "challenge_questions", challenge_json_schema(len(targets)),
                max_tokens=900, temperature=0.4
            )

        return {
            "sessionId": created["session"].id,
            "userId": user_id,
            "questions": generate_challenge_questions(targets, call_model)
        }
    except Exception as e:
        logger.error(f"Error building challenge questions for {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to build challenge")
    finally:
        if db is not None:
            db.close()


@router.get("/ai/ping")
async def ai_ping(request: Request):
    return {"enabled": is_ai_enabled(ai_user_from_cookies(request.cookies))}


def _check(results: list, name: str, test: Callable[[], bool]) -> None:
    try:
        results.append({"name": name, "ok": bool(test())})
    except Exception as e:
        results.append({"name": name, "ok": False, "info": str(e)})


@router.get("/selftest")
async def selftest():
    """Smoke test of the scheduler, hint and word problem building blocks"""
    results = []

    def correct_increments():
        uf = on_attempt_update(UserFactState(id="t", user_id="u", fact_id="f"), True)
        return uf.streak == 1 and uf.mastery_level == 1

    def wrong_resets():
        uf = on_attempt_update(
            UserFactState(id="t2", user_id="u", fact_id="f", mastery_level=2, streak=3, interval_days=1), False
        )
        return uf.streak == 0 and uf.mastery_level == 1

    def hint_rhyme():
        hint = deterministic_hint(7, 8).lower()
        return "five-six" in hint or "five six" in hint or "56" in hint

    def problem_structure():
        problem = generate_deterministic_problem(3, 4, "animals")
        return problem["op"] == "*" and isinstance(problem["operands"], list) and len(problem["problem"]) > 0

    _check(results, "scheduler:correct_increments", correct_increments)
    _check(results, "scheduler:wrong_resets", wrong_resets)
    _check(results, "hints:7x8_rhyme", hint_rhyme)
    _check(results, "problems:structure", problem_structure)

    return {"ok": all(r["ok"] for r in results), "results": results}
