from fastapi import APIRouter, HTTPException, Request
import logging

from gamesjr.models.schemas import CommunityPostRequest
from gamesjr.services.community_service import CommunityStore, build_message, client_ip, post_limiter

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/list")
async def list_messages():
    """Newest messages first"""
    return {"items": CommunityStore.get_messages()}


@router.post("/post")
async def post_message(body: CommunityPostRequest, request: Request):
    """Add a message to the wall; 5 posts per minute per IP"""
    ip = client_ip(request.headers, request.client.host if request.client else None)
    if not post_limiter.allow(ip):
        logger.info(f"Community post rate limited for {ip}")
        raise HTTPException(
            status_code=429,
            detail="Rate limit exceeded. Please wait a minute before posting again."
        )

    try:
        message = build_message(body.text, body.name)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        CommunityStore.add_message(message)
    except Exception as e:
        logger.error(f"Error saving community message: {e}")
        raise HTTPException(status_code=500, detail="Failed to save message")
    return {"ok": True, "item": message}
