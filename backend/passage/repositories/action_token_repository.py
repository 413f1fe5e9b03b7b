"""Repository for ActionToken operations.

Tokens are stored hashed and looked up by (token_hash, purpose) among
unconsumed rows. Consumption is a conditional UPDATE, so a token can be
redeemed at most once even under concurrent requests.
"""

import uuid
from datetime import datetime

from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from passage.models.action_token import ActionToken


class ActionTokenRepository:
    """Stateless repository for ActionToken table operations.

    All methods are static; no instance state.
    """

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        purpose: str,
        token_hash: str,
        expires_at: datetime,
    ) -> ActionToken:
        """Store a new action token.

        Args:
            db: Async database session.
            user_id: User the action applies to.
            purpose: What the token authorises.
            token_hash: Hash of the plaintext token.
            expires_at: Token expiry.

        Returns:
            Created ActionToken.
        """
        token = ActionToken(
            user_id=user_id,
            purpose=purpose,
            token_hash=token_hash,
            expires_at=expires_at,
        )
        db.add(token)
        await db.flush()
        await db.refresh(token)
        return token

    @staticmethod
    async def get_active_by_hash(
        db: AsyncSession,
        *,
        token_hash: str,
        purpose: str,
    ) -> ActionToken | None:
        """Look up an unconsumed token by hash and purpose.

        Args:
            db: Async database session.
            token_hash: Hash of the presented token.
            purpose: Expected purpose.

        Returns:
            ActionToken if found and unconsumed, None otherwise. Expiry is
            left to the caller.
        """
        stmt = select(ActionToken).where(
            ActionToken.token_hash == token_hash,
            ActionToken.purpose == purpose,
            ActionToken.consumed_at.is_(None),
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def consume(
        db: AsyncSession,
        token_id: uuid.UUID,
        *,
        consumed_at: datetime,
    ) -> bool:
        """Mark a token consumed, only if it is still unconsumed.

        Args:
            db: Async database session.
            token_id: Row to consume.
            consumed_at: Consumption timestamp.

        Returns:
            True if this call consumed the token, False otherwise.
        """
        stmt = (
            update(ActionToken)
            .where(
                ActionToken.id == token_id,
                ActionToken.consumed_at.is_(None),
            )
            .values(consumed_at=consumed_at)
            .execution_options(synchronize_session="fetch")
        )
        result = await db.execute(stmt)
        return bool(result.rowcount)  # type: ignore[attr-defined]

    @staticmethod
    async def delete_unconsumed_for_user(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        purpose: str,
    ) -> int:
        """Invalidate every outstanding token for (user, purpose).

        Args:
            db: Async database session.
            user_id: Token owner.
            purpose: Token purpose.

        Returns:
            Number of deleted rows.
        """
        stmt = delete(ActionToken).where(
            ActionToken.user_id == user_id,
            ActionToken.purpose == purpose,
            ActionToken.consumed_at.is_(None),
        )
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count

    @staticmethod
    async def delete_stale(db: AsyncSession, *, now: datetime) -> int:
        """Delete expired or consumed tokens (periodic cleanup).

        Args:
            db: Async database session.
            now: Reference time for expiry.

        Returns:
            Number of deleted rows.
        """
        stmt = delete(ActionToken).where(
            or_(
                ActionToken.expires_at < now,
                ActionToken.consumed_at.is_not(None),
            )
        )
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count
