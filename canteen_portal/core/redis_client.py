"""
Canteen Portal — Redis connection and key layout

    login:{college_id or ip}       sorted set of login attempt timestamps
    idempotent:{caller}:{key}      stored POST /orders response
    revoked:{jti}                  logged-out access token, expires with it
"""
import redis.asyncio as aioredis

from canteen_portal.core.config import get_settings

settings = get_settings()

_redis_client: aioredis.Redis | None = None


def get_redis() -> aioredis.Redis:
    global _redis_client
    if _redis_client is None:
        _redis_client = aioredis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=settings.HEALTH_CHECK_TIMEOUT,
        )
    return _redis_client


def login_attempts_key(identity: str) -> str:
    return f"login:{identity}"


def idempotency_key(caller: str, key: str) -> str:
    return f"idempotent:{caller}:{key}"


def revoked_token_key(jti: str) -> str:
    return f"revoked:{jti}"


async def ping_redis() -> bool:
    return bool(await get_redis().ping())


async def close_redis() -> None:
    global _redis_client
    client, _redis_client = _redis_client, None
    if client is not None:
        await client.aclose()
