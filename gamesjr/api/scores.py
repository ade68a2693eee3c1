from fastapi import APIRouter, HTTPException, Query

from gamesjr.models.schemas import SaveScoreRequest
from gamesjr.services import leaderboard_service
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/save")
async def save_score(request: SaveScoreRequest):
    """Store a score in the game's top-5 leaderboard"""
    slug = str(request.slug).strip() if request.slug else ""
    if not slug or not leaderboard_service.is_valid_score(request.score):
        raise HTTPException(status_code=400, detail="Invalid payload")

    try:
        return leaderboard_service.save_score(slug, request.score, str(request.name or ""))
    except Exception as e:
        logger.error(f"[API] Failed to save score for {slug}: {e}")
        raise HTTPException(status_code=500, detail="Failed to save")


@router.get("/top")
async def top_scores(slug: str = Query("")):
    """Top five scores, highest first. Empty when the KV store is unavailable."""
    slug = slug.strip()
    if not slug:
        raise HTTPException(status_code=400, detail="Missing slug")
    return {"top": leaderboard_service.top_scores(slug)}
