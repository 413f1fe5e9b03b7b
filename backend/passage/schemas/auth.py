"""Auth API request/response schemas.

All request schemas use ConfigDict(extra="forbid") to reject unexpected
fields. Passwords are only length-bounded here; strength rules live in
core.auth.validate_password_strength so the error envelope is uniform.
"""

from pydantic import BaseModel, ConfigDict, EmailStr, Field

_CODE_PATTERN = r"^\d{6}$"


class RegisterRequest(BaseModel):
    """Request body for POST /auth/register."""

    model_config = ConfigDict(extra="forbid")

    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(default="", max_length=100)
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)


class LoginRequest(BaseModel):
    """Request body for POST /auth/login."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str = Field(min_length=1, max_length=128)


class EmailRequest(BaseModel):
    """Request body for endpoints that only take an email."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr


class CodeRequest(BaseModel):
    """Request body for code entry (verify-email, reset-code)."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    code: str = Field(pattern=_CODE_PATTERN)


class PasswordResetRequest(BaseModel):
    """Request body for POST /auth/password/reset."""

    model_config = ConfigDict(extra="forbid")

    reset_token: str = Field(min_length=1, max_length=256)
    new_password: str = Field(min_length=1, max_length=128)


class SessionRead(BaseModel):
    """Login result. The same token is also set as an httpOnly cookie."""

    session_token: str


class ResetTokenRead(BaseModel):
    """Result of a verified reset code."""

    reset_token: str


class StatusRead(BaseModel):
    """Acknowledgement for success-shaped endpoints."""

    status: str = "ok"
