"""
Canteen Portal — Auth schemas
"""
from pydantic import BaseModel, EmailStr, Field

from canteen_portal.models.user import Role


class LoginRequest(BaseModel):
    college_id: str = Field(..., min_length=1, max_length=64, examples=["BWU/BTS/24/269"])
    password: str = Field(..., min_length=1, max_length=128)


class SessionUser(BaseModel):
    id: str
    name: str
    role: Role
    college_id: str

    model_config = {"from_attributes": True}


class LoginResponse(BaseModel):
    message: str = "Login successful"
    user: SessionUser
    token: str
    token_type: str = "bearer"
    expires_in: int  # seconds


class ProfileUpdateRequest(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=32)
    department: str | None = Field(None, max_length=255)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(..., min_length=6, max_length=128)
