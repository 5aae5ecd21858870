"""
Pydantic schemas for authentication.

These define the API contract for login, registration, password
management and two-factor setup. Password strength rules live here
so that weak passwords never reach the service layer.
"""

import re
from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from certify_link.security import MAX_PASSWORD_BYTES, password_too_long


PASSWORD_PATTERN = re.compile(
    r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]"
)
PASSWORD_RULE_MESSAGE = (
    "Password must contain at least one uppercase letter, one lowercase "
    "letter, one number, and one special character"
)


def check_password_strength(value: str) -> str:
    if not PASSWORD_PATTERN.match(value):
        raise ValueError(PASSWORD_RULE_MESSAGE)
    if password_too_long(value):
        raise ValueError(
            f"Password must be at most {MAX_PASSWORD_BYTES} bytes long"
        )
    return value


# --- Request Schemas ---

class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=100)
    two_factor_code: str | None = Field(default=None, min_length=6, max_length=6)
    remember_me: bool = False


class RegisterRequest(BaseModel):
    email: EmailStr
    first_name: str = Field(min_length=2, max_length=50)
    last_name: str = Field(min_length=2, max_length=50)
    password: str = Field(min_length=8, max_length=100)
    confirm_password: str = Field(min_length=1)
    phone_number: str | None = Field(default=None, min_length=10, max_length=20)
    role_id: int | None = None

    @field_validator("password")
    @classmethod
    def password_must_be_strong(cls, v: str) -> str:
        return check_password_strength(v)


class RefreshTokenRequest(BaseModel):
    refresh_token: str = Field(min_length=1)


class LogoutRequest(BaseModel):
    logout_all: bool = False


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=8, max_length=100)
    confirm_password: str = Field(min_length=1)

    @field_validator("new_password")
    @classmethod
    def password_must_be_strong(cls, v: str) -> str:
        return check_password_strength(v)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1)
    new_password: str = Field(min_length=8, max_length=100)
    confirm_password: str = Field(min_length=1)

    @field_validator("new_password")
    @classmethod
    def password_must_be_strong(cls, v: str) -> str:
        return check_password_strength(v)


class VerifyEmailRequest(BaseModel):
    user_id: int
    token: str = Field(min_length=1)


class ResendVerificationRequest(BaseModel):
    email: EmailStr


class VerifyTokenRequest(BaseModel):
    token: str = Field(min_length=1)


class TwoFactorCodeRequest(BaseModel):
    code: str = Field(min_length=6, max_length=6)


class TwoFactorDisableRequest(BaseModel):
    password: str = Field(min_length=1)
    code: str = Field(min_length=6, max_length=6)


class UpdateProfileRequest(BaseModel):
    first_name: str | None = Field(default=None, min_length=2, max_length=50)
    last_name: str | None = Field(default=None, min_length=2, max_length=50)
    phone_number: str | None = Field(default=None, min_length=10, max_length=20)

    @model_validator(mode="after")
    def at_least_one_field(self):
        if not self.model_fields_set:
            raise ValueError("at least one field must be provided")
        return self


class UnlockAccountRequest(BaseModel):
    user_id: int


# --- Response Schemas ---

class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str = "Bearer"


class RoleSummary(BaseModel):
    id: int
    name: str
    permissions: list[str]

    model_config = {"from_attributes": True}


class UserProfile(BaseModel):
    id: int
    email: str
    first_name: str
    last_name: str
    full_name: str
    phone_number: str | None
    role: RoleSummary
    is_active: bool
    is_email_verified: bool
    two_factor_enabled: bool
    last_login_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class AuthResponse(BaseModel):
    user: UserProfile
    tokens: TokenResponse


class MessageResponse(BaseModel):
    message: str


class TwoFactorSetupResponse(BaseModel):
    secret: str
    otpauth_url: str


class VerifyTokenResponse(BaseModel):
    valid: bool
    user_id: int | None = None
    expires_at: datetime | None = None
