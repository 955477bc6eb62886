"""Pydantic schemas for clinic users, clinics and insurers."""

from datetime import datetime
from uuid import UUID

from pydantic import EmailStr, Field, field_validator

from clinicroute.db.enums import Role, SubscriptionTier
from clinicroute.schemas.auth import validate_password_strength
from clinicroute.schemas.common import CamelModel


class UserCreate(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=100)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    role: Role = Role.CLINICIAN

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        return validate_password_strength(v)


class UserUpdate(CamelModel):
    first_name: str | None = Field(None, min_length=1, max_length=100)
    last_name: str | None = Field(None, min_length=1, max_length=100)
    role: Role | None = None
    is_active: bool | None = None


class PasswordChange(CamelModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=100)

    @field_validator("new_password")
    @classmethod
    def check_password(cls, v: str) -> str:
        return validate_password_strength(v)


class UserRead(CamelModel):
    id: UUID
    email: str
    first_name: str
    last_name: str
    role: Role
    clinic_id: UUID
    is_active: bool
    last_login_at: datetime | None
    created_at: datetime


# =============================================================================
# Clinics & insurers
# =============================================================================

class ClinicRead(CamelModel):
    id: UUID
    name: str
    email: str | None
    phone: str | None
    address: str | None
    sla_default_days: int | None
    subscription_tier: SubscriptionTier
    created_at: datetime


class ClinicUpdate(CamelModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=50)
    address: str | None = None
    sla_default_days: int | None = Field(None, ge=1, le=90)


class InsurerRead(CamelModel):
    id: UUID
    name: str
    code: str
    email: str | None
    phone: str | None
    portal_url: str | None
    avg_response_days: int | None
