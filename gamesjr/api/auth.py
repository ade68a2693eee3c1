from fastapi import APIRouter, HTTPException, Request, Response
import logging

from gamesjr.config import COOKIE_SECURE
from gamesjr.models.schemas import LoginRequest, SimpleLoginRequest
from gamesjr.services import auth_service
from gamesjr.services.auth_service import LOGIN_MAX_AGE, SIMPLE_LOGIN_MAX_AGE, TIER_COOKIE, USER_COOKIE

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/login")
async def login(request: LoginRequest, response: Response):
    """Demo login: remember the email and membership tier in cookies"""
    for key, value in ((USER_COOKIE, request.email or ""), (TIER_COOKIE, request.tier or auth_service.DEFAULT_TIER)):
        response.set_cookie(
            key=key,
            value=value,
            max_age=LOGIN_MAX_AGE,
            path="/",
            httponly=True,
            secure=COOKIE_SECURE,
            samesite="strict"
        )
    return {"ok": True}


@router.post("/logout")
async def logout(response: Response):
    response.delete_cookie(USER_COOKIE, path="/")
    response.delete_cookie(TIER_COOKIE, path="/")
    return {"ok": True}


@router.post("/simple-login")
async def simple_login(request: SimpleLoginRequest, response: Response):
    """Username-only login used by the kids' pages"""
    try:
        username = auth_service.sanitize_username(request.username)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    response.set_cookie(
        key=USER_COOKIE,
        value=username,
        max_age=SIMPLE_LOGIN_MAX_AGE,
        path="/",
        httponly=False,
        secure=COOKIE_SECURE,
        samesite="lax"
    )
    logger.info(f"Simple login for {username}")
    return {"ok": True, "username": username}


progress_router = APIRouter()


@progress_router.get("/progress")
async def progress(request: Request):
    """Progress snapshot for the tier in the ``gi_tier`` cookie"""
    tier = auth_service.normalize_tier(request.cookies.get(TIER_COOKIE))
    return {"tier": tier, **auth_service.progress_snapshot(tier)}
