"""Repository for VerificationCode operations.

Every mutation here is a single conditional statement. Attempt counting,
consumption and in-place refresh all carry ``consumed_at IS NULL`` in
their WHERE clause, so concurrent requests race inside the database and
never through a read-modify-write in Python.
"""

import uuid
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from passage.models.verification_code import VerificationCode


class VerificationCodeRepository:
    """Stateless repository for VerificationCode table operations.

    All methods are static; no instance state.
    """

    @staticmethod
    async def get_active_by_contact(
        db: AsyncSession,
        *,
        contact: str,
        purpose: str,
        channel: str,
    ) -> VerificationCode | None:
        """Fetch the unconsumed code for a (contact, purpose, channel) key.

        Args:
            db: Async database session.
            contact: Delivery address (e.g., normalized email).
            purpose: VerificationPurpose value.
            channel: VerificationChannel value.

        Returns:
            Active VerificationCode if one exists, None otherwise.
        """
        stmt = (
            select(VerificationCode)
            .where(
                VerificationCode.contact == contact,
                VerificationCode.purpose == purpose,
                VerificationCode.channel == channel,
                VerificationCode.consumed_at.is_(None),
            )
            .order_by(VerificationCode.created_at.desc())
            .limit(1)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_active_by_user(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        purpose: str,
        channel: str,
    ) -> VerificationCode | None:
        """Fetch the unconsumed code for a (user, purpose, channel) key.

        Args:
            db: Async database session.
            user_id: Owning user.
            purpose: VerificationPurpose value.
            channel: VerificationChannel value.

        Returns:
            Active VerificationCode if one exists, None otherwise.
        """
        stmt = (
            select(VerificationCode)
            .where(
                VerificationCode.user_id == user_id,
                VerificationCode.purpose == purpose,
                VerificationCode.channel == channel,
                VerificationCode.consumed_at.is_(None),
            )
            .order_by(VerificationCode.created_at.desc())
            .limit(1)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        user_id: uuid.UUID | None,
        contact: str,
        purpose: str,
        channel: str,
        code_hash: str,
        max_attempts: int,
        last_sent_at: datetime,
        expires_at: datetime,
    ) -> VerificationCode:
        """Insert a new active code.

        Args:
            db: Async database session.
            user_id: Owning user, if known.
            contact: Delivery address.
            purpose: VerificationPurpose value.
            channel: VerificationChannel value.
            code_hash: Hash of the plaintext code.
            max_attempts: Wrong-guess budget.
            last_sent_at: Send time (cooldown anchor).
            expires_at: Expiry time.

        Returns:
            Created VerificationCode.

        Raises:
            sqlalchemy.exc.IntegrityError: If an active code already exists
                for the contact or user key.
        """
        code = VerificationCode(
            user_id=user_id,
            contact=contact,
            purpose=purpose,
            channel=channel,
            code_hash=code_hash,
            attempts=0,
            max_attempts=max_attempts,
            last_sent_at=last_sent_at,
            expires_at=expires_at,
        )
        db.add(code)
        await db.flush()
        await db.refresh(code)
        return code

    @staticmethod
    async def update_for_resend(
        db: AsyncSession,
        code_id: uuid.UUID,
        *,
        code_hash: str,
        expires_at: datetime,
        last_sent_at: datetime,
        max_attempts: int,
    ) -> bool:
        """Refresh an active code in place with a new secret.

        Resets attempts to 0. Conditioned on the row still being active.

        Args:
            db: Async database session.
            code_id: Row to refresh.
            code_hash: Hash of the new plaintext code.
            expires_at: New expiry.
            last_sent_at: New send time.
            max_attempts: Wrong-guess budget for the new code.

        Returns:
            True if the row was refreshed, False if it was no longer active.
        """
        stmt = (
            update(VerificationCode)
            .where(
                VerificationCode.id == code_id,
                VerificationCode.consumed_at.is_(None),
            )
            .values(
                code_hash=code_hash,
                expires_at=expires_at,
                last_sent_at=last_sent_at,
                attempts=0,
                max_attempts=max_attempts,
            )
            .execution_options(synchronize_session="fetch")
        )
        result = await db.execute(stmt)
        return bool(result.rowcount)  # type: ignore[attr-defined]

    @staticmethod
    async def increment_attempts(
        db: AsyncSession,
        code_id: uuid.UUID,
    ) -> tuple[int, int] | None:
        """Atomically record one wrong guess.

        Args:
            db: Async database session.
            code_id: Row to update.

        Returns:
            (attempts, max_attempts) after the increment, or None if the
            row was consumed in the meantime.
        """
        stmt = (
            update(VerificationCode)
            .where(
                VerificationCode.id == code_id,
                VerificationCode.consumed_at.is_(None),
            )
            .values(attempts=VerificationCode.attempts + 1)
            .returning(VerificationCode.attempts, VerificationCode.max_attempts)
            .execution_options(synchronize_session="fetch")
        )
        result = await db.execute(stmt)
        row = result.one_or_none()
        if row is None:
            return None
        return row.attempts, row.max_attempts

    @staticmethod
    async def consume(
        db: AsyncSession,
        code_id: uuid.UUID,
        *,
        consumed_at: datetime,
    ) -> bool:
        """Mark a code consumed, only if it is still active.

        Args:
            db: Async database session.
            code_id: Row to consume.
            consumed_at: Consumption timestamp.

        Returns:
            True if this call consumed the row, False if it already was.
        """
        stmt = (
            update(VerificationCode)
            .where(
                VerificationCode.id == code_id,
                VerificationCode.consumed_at.is_(None),
            )
            .values(consumed_at=consumed_at)
            .execution_options(synchronize_session="fetch")
        )
        result = await db.execute(stmt)
        return bool(result.rowcount)  # type: ignore[attr-defined]
