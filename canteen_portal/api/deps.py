"""
Canteen Portal — Request authentication and capability checks

Bearer token → decoded claims → fresh user row. A token stays usable only while
it is unexpired, not revoked, and its user is still active.
"""
from typing import Any

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from canteen_portal.core.errors import AuthError, AuthorizationError
from canteen_portal.core.gateway import RazorpayGateway, get_gateway
from canteen_portal.core.permissions import Capability, has_capability
from canteen_portal.core.security import JWTError, decode_token, is_token_revoked
from canteen_portal.db.database import get_db
from canteen_portal.models.user import User

bearer_scheme = HTTPBearer(auto_error=False)


async def get_token_claims(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> dict[str, Any]:
    if credentials is None:
        raise AuthError("Access denied. No token provided.")
    try:
        claims = decode_token(credentials.credentials)
    except JWTError:
        raise AuthError("Invalid token.")
    if claims.get("type") != "access" or not claims.get("sub"):
        raise AuthError("Invalid token.")
    if await is_token_revoked(claims):
        raise AuthError("Token has been revoked.")
    return claims


async def get_current_user(
    claims: dict[str, Any] = Depends(get_token_claims),
    db: AsyncSession = Depends(get_db),
) -> User:
    user = await db.get(User, claims["sub"])
    if user is None or not user.is_active:
        raise AuthError("Invalid token or user inactive.")
    return user


def require_capability(*capabilities: Capability):
    """Dependency factory: the current user, provided their role grants every capability."""

    async def dependency(user: User = Depends(get_current_user)) -> User:
        if not has_capability(user.role, *capabilities):
            raise AuthorizationError()
        return user

    return dependency


def gateway_dependency() -> RazorpayGateway:
    return get_gateway()
