"""Action token lifecycle: issue and redeem.

An action token decouples "the user proved control of the contact channel"
from "the user may now perform the sensitive action". The follow-up
endpoint only needs this one opaque token, not the OTP again.
"""

import logging
import uuid
from datetime import UTC, datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from passage.core.errors import InvalidResetTokenError
from passage.core.tokens import generate_opaque_token, hash_secret
from passage.repositories.action_token_repository import ActionTokenRepository

logger = logging.getLogger(__name__)


async def issue(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    purpose: str,
    ttl: timedelta,
) -> str:
    """Mint a token for (user, purpose), invalidating earlier ones.

    Invalidation is best-effort: a failure is logged and the new token is
    still issued.

    Args:
        db: Async database session. Caller commits.
        user_id: User the action applies to.
        purpose: What the token authorises.
        ttl: Token lifetime.

    Returns:
        The plaintext token. Only its hash is persisted.
    """
    try:
        async with db.begin_nested():
            removed = await ActionTokenRepository.delete_unconsumed_for_user(
                db, user_id=user_id, purpose=purpose
            )
        if removed:
            logger.debug(
                "Invalidated %d outstanding action token(s)",
                removed,
                extra={"user_id": str(user_id), "purpose": purpose},
            )
    except SQLAlchemyError:
        logger.warning(
            "Failed to invalidate previous action tokens",
            extra={"user_id": str(user_id), "purpose": purpose},
            exc_info=True,
        )

    token = generate_opaque_token()
    await ActionTokenRepository.create(
        db,
        user_id=user_id,
        purpose=purpose,
        token_hash=hash_secret(token),
        expires_at=datetime.now(UTC) + ttl,
    )
    return token


async def redeem(db: AsyncSession, *, token: str, purpose: str) -> uuid.UUID:
    """Consume a token and return the user it was issued for.

    Args:
        db: Async database session. Caller commits.
        token: Plaintext token presented by the client.
        purpose: Expected purpose.

    Returns:
        The owning user's ID.

    Raises:
        InvalidResetTokenError: If the token is unknown, expired, already
            consumed, or for another purpose.
    """
    now = datetime.now(UTC)
    record = await ActionTokenRepository.get_active_by_hash(
        db, token_hash=hash_secret(token), purpose=purpose
    )
    if record is None or now > record.expires_at:
        raise InvalidResetTokenError()

    if not await ActionTokenRepository.consume(db, record.id, consumed_at=now):
        raise InvalidResetTokenError()

    return record.user_id
