"""OAuth login-attempt state: begin, complete, sweep.

Each attempt stores an anti-CSRF ``state`` and a PKCE verifier. The state
is single-use: complete_attempt() deletes the row in the same statement
that reads it, so a replayed or concurrent callback never finds it again.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from passage.core.errors import OAuthStateExpiredError, OAuthStateInvalidError
from passage.core.oauth import OAuthProvider
from passage.core.tokens import generate_opaque_token
from passage.repositories.oauth_state_repository import OAuthStateRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OAuthAttempt:
    """A started login attempt.

    Attributes:
        state: Value echoed back by the provider.
        verifier: PKCE code verifier. Only its challenge leaves the server.
    """

    state: str
    verifier: str


async def begin_attempt(
    db: AsyncSession,
    *,
    provider: OAuthProvider,
    ttl: timedelta,
) -> OAuthAttempt:
    """Persist a new attempt.

    Args:
        db: Async database session. Caller commits.
        provider: Target provider.
        ttl: Attempt lifetime.

    Returns:
        OAuthAttempt with fresh state and verifier.
    """
    attempt = OAuthAttempt(
        state=generate_opaque_token(),
        verifier=generate_opaque_token(),
    )
    await OAuthStateRepository.create(
        db,
        state=attempt.state,
        provider=provider.value,
        verifier=attempt.verifier,
        expires_at=datetime.now(UTC) + ttl,
    )
    return attempt


async def complete_attempt(
    db: AsyncSession,
    *,
    state: str,
    provider: OAuthProvider,
) -> str:
    """Consume an attempt and return its PKCE verifier.

    The row is deleted before any check runs, so it is gone on every path.

    Args:
        db: Async database session. Caller commits, also when this raises.
        state: State value from the callback.
        provider: Provider the callback arrived for.

    Returns:
        The stored code verifier.

    Raises:
        OAuthStateInvalidError: If the state is unknown or belongs to
            another provider.
        OAuthStateExpiredError: If the attempt has expired.
    """
    if not state:
        raise OAuthStateInvalidError()

    record = await OAuthStateRepository.consume(db, state)
    if record is None:
        raise OAuthStateInvalidError()
    if datetime.now(UTC) > record.expires_at:
        raise OAuthStateExpiredError()
    if record.provider != provider.value:
        logger.warning(
            "OAuth state presented to the wrong provider",
            extra={"expected": record.provider, "got": provider.value},
        )
        raise OAuthStateInvalidError()
    return record.verifier


async def discard_attempt(db: AsyncSession, *, state: str) -> bool:
    """Drop an attempt whose callback failed before completion.

    Returns:
        True if the attempt existed.
    """
    if not state:
        return False
    return await OAuthStateRepository.consume(db, state) is not None


async def delete_expired(db: AsyncSession) -> int:
    """Delete attempts past their expiry.

    Returns:
        Number of attempts removed.
    """
    return await OAuthStateRepository.delete_expired(db, now=datetime.now(UTC))
