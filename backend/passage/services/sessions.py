"""Session lifecycle: open, validate-and-extend, close.

Two TTLs apply on every validation:
- absolute: measured from creation, never renewed
- sliding: measured from last successful validation, renewed each time

Either one lapsing ends the session.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import StrEnum

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from passage.core.auth import SESSION_TOKEN_PREFIX
from passage.core.tokens import generate_opaque_token
from passage.repositories.session_repository import SessionRepository

logger = logging.getLogger(__name__)


class SessionStatus(StrEnum):
    """Internal validate_and_extend() result."""

    VALID = "valid"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"


@dataclass(frozen=True)
class SessionValidation:
    """Outcome of validate_and_extend().

    Attributes:
        status: Result branch.
        user_id: Owning user when status is VALID.
    """

    status: SessionStatus
    user_id: uuid.UUID | None = None


def is_well_formed(session_token: str | None) -> bool:
    """Cheap syntactic check, done before any store round trip."""
    if not session_token:
        return False
    return session_token.startswith(SESSION_TOKEN_PREFIX) and len(session_token) > len(
        SESSION_TOKEN_PREFIX
    )


async def open_session(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> str:
    """Create a session for a user.

    Args:
        db: Async database session. Caller commits.
        user_id: Authenticated user.
        user_agent: Client user agent (audit only).
        ip_address: Client IP (audit only).

    Returns:
        The new opaque session token.
    """
    session_token = f"{SESSION_TOKEN_PREFIX}{generate_opaque_token()}"
    await SessionRepository.create(
        db,
        user_id=user_id,
        session_token=session_token,
        now=datetime.now(UTC),
        user_agent=user_agent,
        ip_address=ip_address,
    )
    return session_token


async def validate_and_extend(
    db: AsyncSession,
    session_token: str | None,
    *,
    sliding_ttl: timedelta,
    absolute_ttl: timedelta,
) -> SessionValidation:
    """Validate a session and renew its sliding window in one statement.

    On detected expiry the row is deleted best-effort.

    Args:
        db: Async database session. Caller commits.
        session_token: Token presented by the client.
        sliding_ttl: Idle window.
        absolute_ttl: Lifetime cap.

    Returns:
        SessionValidation with status and, when valid, the user ID.
    """
    if not is_well_formed(session_token):
        return SessionValidation(SessionStatus.NOT_FOUND)

    now = datetime.now(UTC)
    user_id = await SessionRepository.touch_if_active(
        db,
        session_token=session_token,
        now=now,
        created_after=now - absolute_ttl,
        active_after=now - sliding_ttl,
    )
    if user_id is not None:
        return SessionValidation(SessionStatus.VALID, user_id)

    existing = await SessionRepository.get_by_token(db, session_token)
    if existing is None:
        return SessionValidation(SessionStatus.NOT_FOUND)

    try:
        async with db.begin_nested():
            await SessionRepository.delete_by_token(db, session_token)
    except SQLAlchemyError:
        logger.warning(
            "Failed to delete expired session",
            extra={"user_id": str(existing.user_id)},
            exc_info=True,
        )
    return SessionValidation(SessionStatus.EXPIRED)


async def close_session(db: AsyncSession, session_token: str) -> None:
    """Delete a session. Closing an unknown session is a no-op."""
    if not is_well_formed(session_token):
        return
    await SessionRepository.delete_by_token(db, session_token)


async def close_all_sessions(db: AsyncSession, user_id: uuid.UUID) -> int:
    """Delete every session of a user.

    Returns:
        Number of sessions closed.
    """
    return await SessionRepository.delete_all_for_user(db, user_id)
