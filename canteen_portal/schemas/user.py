"""
Canteen Portal — User admin schemas
"""
from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from canteen_portal.models.user import Role, UserStatus


class UserCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    college_id: str = Field(..., min_length=1, max_length=64)
    role: Role
    status: UserStatus = UserStatus.ACTIVE
    department: str | None = Field(None, max_length=255)
    phone: str | None = Field(None, max_length=32)


class UserUpdateRequest(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    email: EmailStr | None = None
    college_id: str | None = Field(None, min_length=1, max_length=64)
    role: Role | None = None
    status: UserStatus | None = None
    department: str | None = Field(None, max_length=255)
    phone: str | None = Field(None, max_length=32)


class ResetPasswordRequest(BaseModel):
    new_password: str = Field(..., min_length=6, max_length=128)


class UserResponse(BaseModel):
    id: str
    name: str
    college_id: str
    email: str
    role: Role
    status: UserStatus
    department: str | None = None
    phone: str | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
