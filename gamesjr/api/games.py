from fastapi import APIRouter, HTTPException, Response
import logging
import re

from gamesjr.db.models import get_session
from gamesjr.services.catalog_service import GameCatalog
from gamesjr.services.submission_service import SubmissionService

logger = logging.getLogger(__name__)

router = APIRouter()

SLUG_PATTERN = re.compile(r"^[a-z0-9-]+$")
DEMO_CACHE_CONTROL = "public, s-maxage=3600, stale-while-revalidate=86400"


@router.get("")
async def list_games():
    """All catalog entries"""
    try:
        return [game.model_dump(exclude_none=True) for game in GameCatalog.get_games()]
    except Exception as e:
        logger.error(f"Error loading game catalog: {e}")
        raise HTTPException(status_code=500, detail="Failed to load games")


@router.get("/paths")
async def game_paths():
    """Slugs of every catalog entry, for static page generation"""
    try:
        return GameCatalog.get_game_paths()
    except Exception as e:
        logger.error(f"Error loading game catalog: {e}")
        raise HTTPException(status_code=500, detail="Failed to load games")


@router.get("/status/{submission_id}")
async def submission_status(submission_id: str):
    """Progress of a submitted game, polled by the submitter"""
    db = None
    try:
        db = get_session()
        submission = SubmissionService.get_submission(db, submission_id)
        if not submission:
            raise HTTPException(status_code=404, detail="Submission not found")
        return SubmissionService.status_summary(submission)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[API] Error checking status of submission {submission_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to check status")
    finally:
        if db is not None:
            db.close()


@router.get("/{slug}/demo")
async def game_demo(slug: str):
    """Serve the HTML of the most recently approved submission for a slug"""
    if not SLUG_PATTERN.match(slug):
        raise HTTPException(status_code=400, detail="Invalid slug")

    db = None
    try:
        db = get_session()
        submission = SubmissionService.get_approved_demo(db, slug)
        if not submission:
            raise HTTPException(status_code=404, detail="Game not found or not approved")

        return Response(
            content=submission.generated_code,
            media_type="text/html; charset=utf-8",
            headers={"Cache-Control": DEMO_CACHE_CONTROL},
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"[API] Error serving game demo {slug}: {e}")
        raise HTTPException(status_code=500, detail="Failed to load game")
    finally:
        if db is not None:
            db.close()


@router.get("/{slug}")
async def get_game(slug: str):
    """One catalog entry by slug"""
    try:
        game = GameCatalog.get_game_by_slug(slug)
    except Exception as e:
        logger.error(f"Error loading game catalog: {e}")
        raise HTTPException(status_code=500, detail="Failed to load games")
    if not game:
        raise HTTPException(status_code=404, detail="Game not found")
    return game.model_dump(exclude_none=True)
