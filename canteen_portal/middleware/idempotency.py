"""
Canteen Portal — Idempotent order placement

A client retrying POST /orders with the same Idempotency-Key gets the first
answer back instead of a second order and a second stock reservation. Stored
answers are scoped to the caller's Authorization header and kept for
IDEMPOTENCY_KEY_TTL_SECONDS; 5xx answers are never stored.

The key is claimed with SET NX before the handler runs. A second request that
arrives while the first is still being handled gets 409 and places nothing.
"""
import hashlib
import json
import logging

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from canteen_portal.core.config import get_settings
from canteen_portal.core.redis_client import get_redis, idempotency_key

settings = get_settings()
logger = logging.getLogger(__name__)

ORDER_PLACEMENT_PATHS = {"/orders", "/orders/"}
REPLAY_HEADER = "X-Idempotency-Replay"
IN_FLIGHT = "in-flight"


def order_cache_key(authorization: str, client_key: str) -> str:
    caller = hashlib.sha256(authorization.encode()).hexdigest()[:32]
    return idempotency_key(caller, client_key)


async def _read_body(response: Response) -> bytes:
    chunks = [chunk async for chunk in response.body_iterator]
    return b"".join(chunks)


def _answer_from(stored: str, client_key: str) -> JSONResponse:
    if stored == IN_FLIGHT:
        logger.info("Idempotency-Key %s is still being processed", client_key)
        return JSONResponse(
            status_code=409,
            content={"message": "A request with this Idempotency-Key is already in progress"},
        )
    record = json.loads(stored)
    logger.info("Order placement replayed for Idempotency-Key %s", client_key)
    return JSONResponse(
        content=record["body"],
        status_code=record["status_code"],
        headers={REPLAY_HEADER: "true"},
    )


class IdempotencyMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        client_key = request.headers.get("Idempotency-Key")
        if request.method != "POST" or request.url.path not in ORDER_PLACEMENT_PATHS or not client_key:
            return await call_next(request)

        redis = get_redis()
        key = order_cache_key(request.headers.get("Authorization", ""), client_key)
        ttl = settings.IDEMPOTENCY_KEY_TTL_SECONDS

        if not await redis.set(key, IN_FLIGHT, nx=True, ex=ttl):
            stored = await redis.get(key)
            if stored is not None:
                return _answer_from(stored, client_key)
            # Claim expired between SET and GET
            if not await redis.set(key, IN_FLIGHT, nx=True, ex=ttl):
                return _answer_from(await redis.get(key) or IN_FLIGHT, client_key)

        try:
            response = await call_next(request)
            raw = await _read_body(response)
        except Exception:
            await redis.delete(key)
            raise

        if response.status_code < 500:
            try:
                body = json.loads(raw)
            except ValueError:
                body = raw.decode("utf-8", errors="replace")
            record = {"status_code": response.status_code, "body": body}
            await redis.set(key, json.dumps(record), ex=ttl)
        else:
            await redis.delete(key)

        return Response(
            content=raw,
            status_code=response.status_code,
            media_type=response.media_type,
            headers=dict(response.headers),
        )
