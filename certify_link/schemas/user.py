"""
Pydantic schemas for user administration and roles.
"""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator

from certify_link.schemas.auth import RoleSummary


# --- Role Schemas ---

class RoleCreate(BaseModel):
    name: str = Field(min_length=2, max_length=50)
    description: str | None = Field(default=None, max_length=255)
    permissions: list[str] = Field(default_factory=list)
    is_active: bool = True

    @field_validator("name")
    @classmethod
    def normalize_name(cls, v: str) -> str:
        return v.strip().upper()


class RoleUpdate(BaseModel):
    description: str | None = Field(default=None, max_length=255)
    permissions: list[str] | None = None
    is_active: bool | None = None


class RoleResponse(BaseModel):
    id: int
    name: str
    description: str | None
    permissions: list[str]
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


# --- User Schemas ---

class UserCreate(BaseModel):
    """Admin-created user; a temporary password is generated."""
    email: EmailStr
    first_name: str = Field(min_length=2, max_length=50)
    last_name: str = Field(min_length=2, max_length=50)
    phone_number: str | None = Field(default=None, min_length=10, max_length=20)
    role_id: int
    is_active: bool = True


class UserUpdate(BaseModel):
    first_name: str | None = Field(default=None, min_length=2, max_length=50)
    last_name: str | None = Field(default=None, min_length=2, max_length=50)
    phone_number: str | None = Field(default=None, min_length=10, max_length=20)
    role_id: int | None = None
    is_active: bool | None = None


class BlockUserRequest(BaseModel):
    minutes: int = Field(default=30, ge=1, le=60 * 24 * 365)
    reason: str | None = Field(default=None, max_length=255)


class UserResponse(BaseModel):
    id: int
    email: str
    first_name: str
    last_name: str
    phone_number: str | None
    role: RoleSummary
    is_active: bool
    is_email_verified: bool
    two_factor_enabled: bool
    failed_login_attempts: int
    locked_until: datetime | None
    last_login_at: datetime | None
    created_at: datetime
    deleted_at: datetime | None

    model_config = {"from_attributes": True}


class CreatedUserResponse(BaseModel):
    user: UserResponse
    temporary_password: str


class UserPage(BaseModel):
    items: list[UserResponse]
    total: int
    page: int
    limit: int
    pages: int
