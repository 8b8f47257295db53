"""
Canteen Portal — Auth API routes
"""
import logging
from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from canteen_portal.api.deps import get_current_user, get_token_claims
from canteen_portal.core.config import get_settings
from canteen_portal.core.errors import AuthError, ConflictError
from canteen_portal.core.security import (
    create_access_token,
    hash_password,
    revoke_token,
    verify_password,
)
from canteen_portal.db.database import get_db
from canteen_portal.models.user import User
from canteen_portal.schemas.auth import (
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    ProfileUpdateRequest,
    SessionUser,
)
from canteen_portal.schemas.user import UserResponse

settings = get_settings()
logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=LoginResponse)
async def login(payload: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Validate college credentials and issue a bearer token."""
    result = await db.execute(select(User).where(User.college_id == payload.college_id))
    user: User | None = result.scalar_one_or_none()

    if not user:
        raise AuthError("Invalid College ID")

    if not user.is_active:
        raise AuthError("Account is inactive")

    if not verify_password(payload.password, user.hashed_password):
        logger.info("Failed login for %s", payload.college_id)
        raise AuthError("Incorrect Password")

    token = create_access_token({"sub": user.id, "role": user.role.value})
    return LoginResponse(
        user=SessionUser.model_validate(user),
        token=token,
        expires_in=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


@router.post("/logout")
async def logout(claims: dict[str, Any] = Depends(get_token_claims)):
    """End the session: the presented token is rejected from now on."""
    await revoke_token(claims)
    return {"message": "Logged out successfully"}


@router.get("/profile")
async def get_profile(user: User = Depends(get_current_user)):
    return {"message": "Profile retrieved successfully", "user": UserResponse.model_validate(user)}


@router.put("/profile")
async def update_profile(
    payload: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)

    if "email" in changes and changes["email"] != user.email:
        taken = await db.execute(
            select(User.id).where(User.email == changes["email"], User.id != user.id)
        )
        if taken.first():
            raise ConflictError("Email already taken")

    for field, value in changes.items():
        setattr(user, field, value)
    await db.commit()
    await db.refresh(user)
    return {"message": "Profile updated successfully", "user": UserResponse.model_validate(user)}


@router.post("/change-password")
async def change_password(
    payload: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Change the caller's own password after verifying the current one."""
    if not verify_password(payload.current_password, user.hashed_password):
        raise AuthError("Current password is incorrect.")

    user.hashed_password = hash_password(payload.new_password)
    await db.commit()
    return {"message": "Password changed successfully"}
