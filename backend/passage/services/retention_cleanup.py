"""Retention cleanup service.

Deletes rows that can never be used again:

- OAuth states past their expiry (abandoned login attempts)
- Sessions past the absolute or sliding TTL
- Action tokens that are expired or already consumed

Validation paths never depend on this sweep; they check expiry on read.
The sweep only bounds table growth.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from passage.core.config import settings
from passage.core.errors import APIError
from passage.repositories.action_token_repository import ActionTokenRepository
from passage.repositories.oauth_state_repository import OAuthStateRepository
from passage.repositories.session_repository import SessionRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AllCleanupResult:
    """Aggregate result of one cleanup pass.

    Attributes:
        expired_oauth_states: OAuth states deleted.
        expired_sessions: Sessions deleted.
        stale_action_tokens: Expired or consumed action tokens deleted.
        finished_at: When the pass committed.
    """

    expired_oauth_states: int
    expired_sessions: int
    stale_action_tokens: int
    finished_at: datetime

    @property
    def total(self) -> int:
        return self.expired_oauth_states + self.expired_sessions + self.stale_action_tokens


class CleanupError(APIError):
    """Raised when a cleanup operation fails at the database level."""

    def __init__(self, message: str) -> None:
        super().__init__(
            code="CLEANUP_ERROR",
            message=message,
            status_code=500,
        )


async def cleanup_expired_oauth_states(db: AsyncSession, *, now: datetime) -> int:
    """Delete OAuth states whose expiry has passed.

    Raises:
        CleanupError: If the database operation fails.
    """
    try:
        return await OAuthStateRepository.delete_expired(db, now=now)
    except SQLAlchemyError as exc:
        logger.error("OAuth state cleanup failed: %s", exc)
        raise CleanupError("OAuth state cleanup failed") from exc


async def cleanup_expired_sessions(
    db: AsyncSession,
    *,
    now: datetime,
    sliding_ttl: timedelta,
    absolute_ttl: timedelta,
) -> int:
    """Delete sessions past either TTL.

    Args:
        db: Database session.
        now: Reference time.
        sliding_ttl: Idle window.
        absolute_ttl: Lifetime cap.

    Returns:
        Number of sessions deleted.

    Raises:
        CleanupError: If the database operation fails.
    """
    try:
        return await SessionRepository.delete_expired(
            db,
            created_before=now - absolute_ttl,
            inactive_before=now - sliding_ttl,
        )
    except SQLAlchemyError as exc:
        logger.error("Session cleanup failed: %s", exc)
        raise CleanupError("Session cleanup failed") from exc


async def cleanup_stale_action_tokens(db: AsyncSession, *, now: datetime) -> int:
    """Delete expired or consumed action tokens.

    Raises:
        CleanupError: If the database operation fails.
    """
    try:
        return await ActionTokenRepository.delete_stale(db, now=now)
    except SQLAlchemyError as exc:
        logger.error("Action token cleanup failed: %s", exc)
        raise CleanupError("Action token cleanup failed") from exc


async def run_all_cleanups(db: AsyncSession) -> AllCleanupResult:
    """Run every cleanup job in one transaction and commit.

    Args:
        db: Database session.

    Returns:
        AllCleanupResult with counts from all cleanup categories.

    Raises:
        CleanupError: If the database operation fails.
    """
    now = datetime.now(UTC)
    oauth_states = await cleanup_expired_oauth_states(db, now=now)
    expired_sessions = await cleanup_expired_sessions(
        db,
        now=now,
        sliding_ttl=settings.effective_session_sliding_ttl,
        absolute_ttl=settings.effective_session_absolute_ttl,
    )
    action_tokens = await cleanup_stale_action_tokens(db, now=now)
    try:
        await db.commit()
    except SQLAlchemyError as exc:
        logger.error("Cleanup commit failed: %s", exc)
        raise CleanupError("Cleanup commit failed") from exc

    return AllCleanupResult(
        expired_oauth_states=oauth_states,
        expired_sessions=expired_sessions,
        stale_action_tokens=action_tokens,
        finished_at=datetime.now(UTC),
    )
