from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from gamesjr.api import admin, analytics, auth, community, games, imaginary_friends, scores, tables
from gamesjr.config import DEBUG_MODE
from gamesjr.db.models import init_db
from gamesjr.middleware.logging_middleware import LoggingMiddleware
import logging

# Configure logging
logging.basicConfig(level=logging.DEBUG if DEBUG_MODE else logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title="Games Inc Jr API")

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

if DEBUG_MODE:
    app.add_middleware(LoggingMiddleware)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies and parameters are client errors (400)"""
    logger.warning(f"[API] Invalid request to {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=400,
        content={"detail": "Invalid request", "errors": jsonable_encoder(exc.errors())}
    )


@app.on_event("startup")
async def startup_event():
    logger.debug("Games Inc Jr API starting up...")
    init_db()


app.include_router(games.router, prefix="/api/games", tags=["games"])
app.include_router(admin.router, prefix="/api/admin", tags=["admin"])
app.include_router(scores.router, prefix="/api/scores", tags=["scores"])
app.include_router(tables.router, prefix="/api/tables", tags=["tables"])
app.include_router(imaginary_friends.router, prefix="/api/imaginary-friends", tags=["imaginary-friends"])
app.include_router(community.router, prefix="/api/community", tags=["community"])
app.include_router(analytics.router, prefix="/api/analytics", tags=["analytics"])
app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(auth.progress_router, prefix="/api", tags=["auth"])


@app.get("/")
def root():
    logger.debug("Root endpoint accessed")
    return {"message": "Welcome to the Games Inc Jr API"}
