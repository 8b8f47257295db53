"""
Canteen Portal — Sliding window rate limiter middleware (Redis-backed)

RATE_LIMIT_MAX_ATTEMPTS login attempts per RATE_LIMIT_WINDOW_SECONDS per college_id.
Uses sorted sets (ZADD/ZREMRANGEBYSCORE/ZCARD) for a true sliding window.
"""
import json
import logging
import time
import uuid

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from canteen_portal.core.config import get_settings
from canteen_portal.core.redis_client import get_redis, login_attempts_key

settings = get_settings()
logger = logging.getLogger(__name__)

LOGIN_PATHS = ("/auth/login", "/auth/login/")


def _tracking_key(request: Request, body: bytes) -> str:
    client_host = request.client.host if request.client else "unknown"
    try:
        data = json.loads(body)
    except ValueError:
        return client_host
    if isinstance(data, dict) and isinstance(data.get("college_id"), str) and data["college_id"]:
        return data["college_id"]
    return client_host


class SlidingWindowRateLimiter(BaseHTTPMiddleware):
    """
    Applies sliding-window rate limiting ONLY to POST /auth/login.
    Key is the college_id in the request body, or the client IP if it cannot be read.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.method != "POST" or request.url.path not in LOGIN_PATHS:
            return await call_next(request)

        # Starlette caches the body, so the route can still read it
        body = await request.body()
        tracking_key = _tracking_key(request, body)

        redis = get_redis()
        key = login_attempts_key(tracking_key)
        now = time.time()
        window_start = now - settings.RATE_LIMIT_WINDOW_SECONDS

        pipe = redis.pipeline()
        pipe.zremrangebyscore(key, "-inf", window_start)
        pipe.zcard(key)
        pipe.zadd(key, {f"{now}:{uuid.uuid4().hex[:8]}": now})
        pipe.expire(key, settings.RATE_LIMIT_WINDOW_SECONDS + 1)
        results = await pipe.execute()

        attempt_count = results[1]  # count before this attempt

        if attempt_count >= settings.RATE_LIMIT_MAX_ATTEMPTS:
            logger.warning("Login rate limit hit for %s", tracking_key)
            return JSONResponse(
                status_code=429,
                content={
                    "message": (
                        f"Too many login attempts. Maximum {settings.RATE_LIMIT_MAX_ATTEMPTS} "
                        f"attempts per {settings.RATE_LIMIT_WINDOW_SECONDS} seconds."
                    ),
                    "retry_after_seconds": settings.RATE_LIMIT_WINDOW_SECONDS,
                },
                headers={"Retry-After": str(settings.RATE_LIMIT_WINDOW_SECONDS)},
            )

        return await call_next(request)
