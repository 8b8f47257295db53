"""
Canteen Portal — JWT Security utilities
"""
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import jwt, JWTError
from passlib.context import CryptContext

from canteen_portal.core.config import get_settings
from canteen_portal.core.redis_client import get_redis, revoked_token_key

settings = get_settings()

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


# ─── Password Hashing ─────────────────────────────────────────────────────────

def hash_password(plain: str) -> str:
    return pwd_context.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


# ─── JWT Token Generation ──────────────────────────────────────────────────────

def create_access_token(data: dict[str, Any]) -> str:
    payload = data.copy()
    expire = datetime.now(tz=timezone.utc) + timedelta(
        minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES
    )
    payload.update({"exp": expire, "type": "access", "jti": str(uuid.uuid4())})
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict[str, Any]:
    """Decode and validate a JWT. Raises JWTError on failure."""
    return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])


# ─── Session Revocation ───────────────────────────────────────────────────────

async def revoke_token(claims: dict[str, Any]) -> None:
    """Revoke a token's jti until the token would have expired anyway."""
    remaining = int(claims["exp"] - datetime.now(tz=timezone.utc).timestamp())
    if remaining <= 0:
        return
    redis = get_redis()
    await redis.setex(revoked_token_key(claims["jti"]), remaining, "1")


async def is_token_revoked(claims: dict[str, Any]) -> bool:
    jti = claims.get("jti")
    if not jti:
        return True
    redis = get_redis()
    return await redis.exists(revoked_token_key(jti)) > 0


__all__ = [
    "JWTError",
    "hash_password",
    "verify_password",
    "create_access_token",
    "decode_token",
    "revoke_token",
    "is_token_revoked",
]
