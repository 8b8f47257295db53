"""
Canteen Portal — User administration API routes (admin only)
"""
import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from canteen_portal.api.deps import require_capability
from canteen_portal.core.config import get_settings
from canteen_portal.core.errors import ConflictError, NotFoundError, ValidationError
from canteen_portal.core.permissions import Capability
from canteen_portal.core.security import hash_password
from canteen_portal.db.database import get_db
from canteen_portal.db.pagination import paginate
from canteen_portal.models.user import Role, User, UserStatus
from canteen_portal.schemas.user import (
    ResetPasswordRequest,
    UserCreateRequest,
    UserResponse,
    UserUpdateRequest,
)

settings = get_settings()
logger = logging.getLogger(__name__)
router = APIRouter(
    prefix="/users",
    tags=["users"],
    dependencies=[Depends(require_capability(Capability.MANAGE_USERS))],
)


async def _get_user(db: AsyncSession, user_id: str) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


async def _ensure_unique(
    db: AsyncSession, *, email: str | None = None, college_id: str | None = None, exclude_id: str | None = None
) -> None:
    checks = (
        (User.email, email, "Email already exists"),
        (User.college_id, college_id, "College ID already exists"),
    )
    for column, value, message in checks:
        if value is None:
            continue
        stmt = select(User.id).where(column == value)
        if exclude_id is not None:
            stmt = stmt.where(User.id != exclude_id)
        if (await db.execute(stmt.limit(1))).first():
            raise ConflictError(message)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_user(payload: UserCreateRequest, db: AsyncSession = Depends(get_db)):
    """Create an account with the temporary default password."""
    await _ensure_unique(db, email=payload.email, college_id=payload.college_id)

    user = User(**payload.model_dump(), hashed_password=hash_password(settings.DEFAULT_USER_PASSWORD))
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info("User %s created with role %s", user.college_id, user.role.value)
    return {"message": "User created successfully", "user": UserResponse.model_validate(user)}


@router.get("")
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    role: Role | None = None,
    user_status: UserStatus | None = Query(None, alias="status"),
    search: str | None = None,
    db: AsyncSession = Depends(get_db),
):
    stmt = select(User).order_by(User.created_at.desc(), User.name)
    if role is not None:
        stmt = stmt.where(User.role == role)
    if user_status is not None:
        stmt = stmt.where(User.status == user_status)
    if search:
        pattern = f"%{search}%"
        stmt = stmt.where(
            or_(User.name.ilike(pattern), User.college_id.ilike(pattern), User.email.ilike(pattern))
        )

    users, pagination = await paginate(db, stmt, page, limit)
    return {
        "message": "Users retrieved successfully",
        "users": [UserResponse.model_validate(u) for u in users],
        "pagination": pagination,
    }


@router.get("/stats/overview")
async def user_stats(db: AsyncSession = Depends(get_db)):
    by_status = dict((await db.execute(select(User.status, func.count()).group_by(User.status))).all())
    by_role = dict((await db.execute(select(User.role, func.count()).group_by(User.role))).all())
    recent = (await db.execute(select(User).order_by(User.created_at.desc()).limit(5))).scalars().all()

    return {
        "message": "User statistics retrieved successfully",
        "stats": {
            "total": sum(by_status.values()),
            "active": by_status.get(UserStatus.ACTIVE, 0),
            "inactive": by_status.get(UserStatus.INACTIVE, 0),
            "by_role": {role.value: count for role, count in by_role.items()},
        },
        "recent_users": [UserResponse.model_validate(u) for u in recent],
    }


@router.get("/{user_id}")
async def get_user(user_id: str, db: AsyncSession = Depends(get_db)):
    user = await _get_user(db, user_id)
    return {"message": "User retrieved successfully", "user": UserResponse.model_validate(user)}


@router.put("/{user_id}")
async def update_user(user_id: str, payload: UserUpdateRequest, db: AsyncSession = Depends(get_db)):
    user = await _get_user(db, user_id)
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    await _ensure_unique(
        db, email=changes.get("email"), college_id=changes.get("college_id"), exclude_id=user.id
    )

    for field, value in changes.items():
        setattr(user, field, value)
    await db.commit()
    await db.refresh(user)
    return {"message": "User updated successfully", "user": UserResponse.model_validate(user)}


@router.delete("/{user_id}")
async def delete_user(
    user_id: str,
    admin: User = Depends(require_capability(Capability.MANAGE_USERS)),
    db: AsyncSession = Depends(get_db),
):
    user = await _get_user(db, user_id)
    if user.id == admin.id:
        raise ValidationError("You cannot delete your own account")

    await db.delete(user)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("User has orders or payments and cannot be deleted. Deactivate instead.")
    logger.info("User %s deleted by %s", user.college_id, admin.college_id)
    return {"message": "User deleted successfully"}


@router.patch("/{user_id}/toggle")
async def toggle_user_status(user_id: str, db: AsyncSession = Depends(get_db)):
    user = await _get_user(db, user_id)
    user.status = UserStatus.INACTIVE if user.is_active else UserStatus.ACTIVE
    await db.commit()
    await db.refresh(user)
    return {"message": f"User {user.status.value} successfully", "user": UserResponse.model_validate(user)}


@router.post("/{user_id}/reset-password")
async def reset_password(user_id: str, payload: ResetPasswordRequest, db: AsyncSession = Depends(get_db)):
    user = await _get_user(db, user_id)
    user.hashed_password = hash_password(payload.new_password)
    await db.commit()
    logger.info("Password reset for %s", user.college_id)
    return {"message": "Password reset successfully"}
