from fastapi import APIRouter, HTTPException, Query, Request, Response
import logging
import uuid

from gamesjr.config import COOKIE_SECURE, OPENAI_API_KEY
from gamesjr.models.schemas import CharacterIntroRequest, ChatRequest
from gamesjr.services import imaginary_friends_service as friends
from gamesjr.services.auth_service import USER_COOKIE

logger = logging.getLogger(__name__)

router = APIRouter()

IDENTITY_COOKIE = "if_user_id"
IDENTITY_MAX_AGE = 365 * 24 * 60 * 60  # 1 year


def _user_id(value) -> str:
    value = (value or "").strip() if isinstance(value, str) else ""
    return value or friends.DEFAULT_USER_ID


@router.get("/characters")
async def list_characters():
    return {"characters": [c.to_dict() for c in friends.CHARACTERS.values()]}


@router.post("/chat")
async def chat(request: ChatRequest):
    """Reply in character, merging stored history with the client's turns"""
    character_id = (request.characterId or "").strip()
    if not character_id:
        raise HTTPException(status_code=400, detail="Missing characterId")

    try:
        return friends.get_service().chat(
            character_id=character_id,
            user_message=request.message or "",
            history=request.conversationHistory,
            user_id=_user_id(request.userId)
        )
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Imaginary Friends chat failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to generate response. Please try again.")


@router.post("/character-intro")
async def character_intro(request: CharacterIntroRequest):
    character_id = (request.characterId or "").strip()
    if not character_id:
        raise HTTPException(status_code=400, detail="Missing characterId")

    try:
        return {"introduction": friends.get_service().character_intro(character_id)}
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error(f"Imaginary Friends intro failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to generate introduction. Please try again.")


@router.get("/history")
async def get_history(
    characterId: str = Query(""),
    userId: str = Query(None),
    limit: int = Query(20)
):
    character_id = characterId.strip()
    if not character_id:
        raise HTTPException(status_code=400, detail="Missing characterId")

    limit = max(1, min(50, limit))
    try:
        return {"turns": friends.get_service().history(character_id, _user_id(userId), limit)}
    except Exception as e:
        logger.error(f"Imaginary Friends history fetch failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to load history")


@router.delete("/history", status_code=204)
async def clear_history(characterId: str = Query(""), userId: str = Query(None)):
    character_id = characterId.strip()
    if not character_id:
        raise HTTPException(status_code=400, detail="Missing characterId")

    try:
        friends.get_service().clear_history(character_id, _user_id(userId))
    except Exception as e:
        logger.error(f"Imaginary Friends history clear failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to clear history")
    return Response(status_code=204)


@router.get("/session")
async def session_info(userId: str = Query(None)):
    return friends.get_service().session_info(_user_id(userId))


@router.get("/session/identify")
async def identify(request: Request, response: Response):
    """Stable chat identity: the logged-in username, else a cookie-backed random id"""
    user_id = request.cookies.get(USER_COOKIE) or request.cookies.get(IDENTITY_COOKIE)
    if not user_id:
        user_id = f"u_{uuid.uuid4()}"

    response.set_cookie(
        key=IDENTITY_COOKIE,
        value=user_id,
        max_age=IDENTITY_MAX_AGE,
        path="/",
        httponly=True,
        secure=COOKIE_SECURE,
        samesite="lax"
    )
    return {"userId": user_id}


@router.get("/avatars")
async def avatars():
    return {"avatars": friends.list_avatars()}


@router.get("/health")
async def health():
    return {
        "ok": True,
        "openai": "configured" if OPENAI_API_KEY else "missing",
        "storageMode": friends.storage_mode()
    }
