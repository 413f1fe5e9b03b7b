"""Authentication helpers for passwords and session cookies.

Pipeline:
- validate_password_strength: Format rules (sync, no network)
- hash_password / check_password: bcrypt, cost 12
- DUMMY_HASH: Timing-safe constant for user enumeration defense
- set_session_cookie / clear_session_cookie: httpOnly session cookie
- extract_session_token: Bearer header first, then cookie
"""

import re
from datetime import timedelta

import bcrypt
from fastapi import Request, Response

from passage.core.config import settings
from passage.core.errors import ValidationError

# bcrypt cost factor for password hashing
BCRYPT_ROUNDS = 12
BCRYPT_MAX_BYTES = 72

# Session tokens carry a type prefix; anything else is rejected before the DB
SESSION_TOKEN_PREFIX = "auth:"

_BEARER_PREFIX = "bearer "

# Pre-computed bcrypt hash for timing-safe comparison on user-not-found.
# Security: prevents user enumeration via response time differences.
# Pre-generated to avoid ~300ms bcrypt computation on every app startup.
DUMMY_HASH = b"$2b$12$ZP2PVB8yI35X.mkRqcUPUuSzJA1CNRt4dZ7X3cyrfJu.2S3w.Qen2"


def validate_password_strength(password: str) -> None:
    """Validate password meets strength requirements.

    8-128 chars and at most 72 UTF-8 bytes (the bcrypt input limit),
    letter + number + special character.

    Args:
        password: Plain-text password to validate.

    Raises:
        ValidationError: If password doesn't meet requirements.
    """
    if len(password) < 8:
        raise ValidationError("Password must be at least 8 characters")
    if len(password) > 128:
        raise ValidationError("Password must be at most 128 characters")
    if len(password.encode()) > BCRYPT_MAX_BYTES:
        raise ValidationError(
            f"Password must be at most {BCRYPT_MAX_BYTES} bytes when UTF-8 encoded"
        )
    if not re.search(r"[a-zA-Z]", password):
        raise ValidationError("Password must contain at least one letter")
    if not re.search(r"\d", password):
        raise ValidationError("Password must contain at least one number")
    if not re.search(r"[^a-zA-Z\d]", password):
        raise ValidationError("Password must contain at least one special character")


def hash_password(password: str, *, rounds: int = BCRYPT_ROUNDS) -> str:
    """Hash a password with bcrypt.

    Args:
        password: Plain-text password.
        rounds: bcrypt cost factor. Tests pass a low value.

    Returns:
        bcrypt hash as a string.
    """
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=rounds)).decode()


def check_password(password: str, password_hash: str | None) -> bool:
    """Check a password against a stored bcrypt hash.

    Always performs a bcrypt comparison, against DUMMY_HASH when the
    account has no password, so response time does not reveal whether
    the account exists or is OAuth-only.

    Args:
        password: Plain-text password from the request.
        password_hash: Stored hash, or None.

    Returns:
        True only if the hash exists and matches. Input over
        BCRYPT_MAX_BYTES never matches.
    """
    encoded = password.encode()
    if not password_hash or len(encoded) > BCRYPT_MAX_BYTES:
        # bcrypt rejects longer input; no stored hash can match it.
        bcrypt.checkpw(encoded[:BCRYPT_MAX_BYTES], DUMMY_HASH)
        return False
    return bcrypt.checkpw(encoded, password_hash.encode())


def set_session_cookie(response: Response, token: str, *, max_age: timedelta) -> None:
    """Set httpOnly session cookie on response.

    Security: httpOnly prevents XSS cookie theft. Secure flag and SameSite
    are configured via settings for environment-appropriate security.

    Args:
        response: FastAPI response object.
        token: Opaque session token.
        max_age: Cookie lifetime; the absolute session TTL.
    """
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=token,
        httponly=True,
        secure=settings.auth_cookie_secure,
        samesite=settings.auth_cookie_samesite,
        path="/",
        max_age=int(max_age.total_seconds()),
        domain=settings.auth_cookie_domain or None,
    )


def clear_session_cookie(response: Response) -> None:
    """Delete the session cookie. Attributes must match set_session_cookie()."""
    response.delete_cookie(
        key=settings.auth_cookie_name,
        path="/",
        httponly=True,
        secure=settings.auth_cookie_secure,
        samesite=settings.auth_cookie_samesite,
        domain=settings.auth_cookie_domain or None,
    )


def extract_session_token(request: Request) -> str | None:
    """Read the session token from the Authorization header or cookie.

    Args:
        request: Incoming request.

    Returns:
        Raw token string, or None if neither source carries one.
    """
    header = request.headers.get("authorization", "")
    if header.lower().startswith(_BEARER_PREFIX):
        token = header[len(_BEARER_PREFIX) :].strip()
        if token:
            return token
    return request.cookies.get(settings.auth_cookie_name) or None
