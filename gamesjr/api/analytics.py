from fastapi import APIRouter, HTTPException
import logging

from gamesjr.models.schemas import TrackEventRequest
from gamesjr.services.analytics_service import tracker

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/track")
async def track_event(request: TrackEventRequest):
    try:
        tracker.track(request.event or "", request.data)
        return {"success": True}
    except Exception as e:
        logger.error(f"Analytics tracking error: {e}")
        raise HTTPException(status_code=500, detail="Failed to track event")


@router.get("/track")
async def get_counters():
    return tracker.snapshot()
