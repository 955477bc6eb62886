"""Authentication-related Pydantic schemas."""

import re
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from clinicroute.db.enums import Role
from clinicroute.schemas.common import CamelModel

# Upper-case, lower-case and a digit or special character
PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*[\d\W]).+$")


def validate_password_strength(value: str) -> str:
    """Shared rule for register, user creation, password change and the CLI."""
    if not 8 <= len(value) <= 100:
        raise ValueError("Password must be 8-100 characters")
    if not PASSWORD_PATTERN.match(value):
        raise ValueError(
            "Password must contain uppercase, lowercase, and number/special character"
        )
    if len(value.encode("utf-8")) > 72:
        raise ValueError("Password must be at most 72 bytes")
    return value


class UserSession(BaseModel):
    """
    Identity of the caller for an authenticated request.

    Returned by get_current_session; every authorization and clinic-scoping
    decision uses this and nothing else.
    """
    user_id: UUID
    clinic_id: UUID
    role: Role
    email: str
    first_name: str
    last_name: str


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class RegisterRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=100)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    clinic_id: UUID
    role: Role | None = None

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        return validate_password_strength(v)


class AuthUser(CamelModel):
    id: UUID
    email: str
    first_name: str
    last_name: str
    role: Role
    clinic_id: UUID
    clinic_name: str


class TokenResponse(CamelModel):
    """Response for login, register and refresh."""
    access_token: str
    token_type: str = "Bearer"
    expires_in: int
    user: AuthUser


class MeResponse(CamelModel):
    """Response schema for GET /auth/me."""
    id: UUID
    email: str
    first_name: str
    last_name: str
    role: Role
    clinic_id: UUID
    clinic_name: str
    is_active: bool
    last_login_at: datetime | None = None
