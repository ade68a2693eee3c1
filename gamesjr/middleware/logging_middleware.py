"""
Logging Middleware
Logs requests and JSON responses when DEBUG_MODE is enabled.
"""
import logging
import time
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.concurrency import iterate_in_threadpool
from gamesjr.config import DEBUG_MODE

logger = logging.getLogger(__name__)

# Bodies longer than this are cut in the log (submitted games carry whole HTML documents)
MAX_LOGGED_BODY = 2000


def _preview(raw: bytes) -> str:
    text = raw.decode("utf-8", errors="replace")
    if len(text) > MAX_LOGGED_BODY:
        return f"{text[:MAX_LOGGED_BODY]}... ({len(text)} chars)"
    return text


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs method, path, status and duration of every request; bodies are
    logged for JSON traffic only.
    """

    async def dispatch(self, request: Request, call_next):
        if not DEBUG_MODE:
            return await call_next(request)

        started = time.perf_counter()
        try:
            body = await request.body()
            logger.info(f"Request: {request.method} {request.url.path}")
            if body:
                logger.info(f"Request Body: {_preview(body)}")

            # Downstream handlers read the body again
            async def receive():
                return {"type": "http.request", "body": body}
            request._receive = receive
        except Exception as e:
            logger.error(f"Error logging request: {e}")

        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(f"Response: {response.status_code} for {request.url.path} in {elapsed_ms:.1f}ms")

        if "application/json" not in response.headers.get("content-type", ""):
            return response

        try:
            response_body = [chunk async for chunk in response.body_iterator]
            response.body_iterator = iterate_in_threadpool(iter(response_body))
            if response_body:
                logger.info(f"Response Body: {_preview(b''.join(response_body))}")
        except Exception as e:
            logger.error(f"Error logging response: {e}")

        return response
