"""Pydantic request/response schemas for API endpoints."""

from passage.schemas.auth import (
    CodeRequest,
    EmailRequest,
    LoginRequest,
    PasswordResetRequest,
    RegisterRequest,
    ResetTokenRead,
    SessionRead,
    StatusRead,
)
from passage.schemas.user import UserRead, UserUpdate

__all__ = [
    "CodeRequest",
    "EmailRequest",
    "LoginRequest",
    "PasswordResetRequest",
    "RegisterRequest",
    "ResetTokenRead",
    "SessionRead",
    "StatusRead",
    "UserRead",
    "UserUpdate",
]
