"""Repository for UserSession operations.

Validation and sliding renewal happen in one conditional UPDATE
(touch_if_active): the row is bumped only when both TTL windows still
hold, and the caller learns the owning user from RETURNING.
"""

import uuid
from datetime import datetime

from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from passage.models.session import UserSession


class SessionRepository:
    """Stateless repository for UserSession table operations.

    All methods are static; no instance state.
    """

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        session_token: str,
        now: datetime,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> UserSession:
        """Insert a new session with created_at = last_active_at = now.

        Args:
            db: Async database session.
            user_id: Authenticated user.
            session_token: Opaque token.
            now: Login time.
            user_agent: Client user agent (audit only).
            ip_address: Client IP (audit only).

        Returns:
            Created UserSession.
        """
        session = UserSession(
            user_id=user_id,
            session_token=session_token,
            user_agent=user_agent,
            ip_address=ip_address,
            created_at=now,
            last_active_at=now,
        )
        db.add(session)
        await db.flush()
        return session

    @staticmethod
    async def touch_if_active(
        db: AsyncSession,
        *,
        session_token: str,
        now: datetime,
        created_after: datetime,
        active_after: datetime,
    ) -> uuid.UUID | None:
        """Bump last_active_at if the session is within both TTL windows.

        Args:
            db: Async database session.
            session_token: Presented token.
            now: New last_active_at value.
            created_after: Absolute cutoff (now - absolute TTL).
            active_after: Sliding cutoff (now - sliding TTL).

        Returns:
            Owning user ID if the session was valid and extended, else None.
        """
        stmt = (
            update(UserSession)
            .where(
                UserSession.session_token == session_token,
                UserSession.created_at > created_after,
                UserSession.last_active_at > active_after,
            )
            .values(last_active_at=now)
            .returning(UserSession.user_id)
            .execution_options(synchronize_session="fetch")
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_token(
        db: AsyncSession,
        session_token: str,
    ) -> UserSession | None:
        """Fetch a session by token.

        Args:
            db: Async database session.
            session_token: Opaque token.

        Returns:
            UserSession if found, None otherwise.
        """
        stmt = select(UserSession).where(UserSession.session_token == session_token)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def delete_by_token(db: AsyncSession, session_token: str) -> int:
        """Delete one session. Deleting a missing session is not an error.

        Returns:
            Number of deleted rows (0 or 1).
        """
        stmt = delete(UserSession).where(UserSession.session_token == session_token)
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count

    @staticmethod
    async def delete_all_for_user(db: AsyncSession, user_id: uuid.UUID) -> int:
        """Delete every session of a user (sign out everywhere).

        Returns:
            Number of deleted rows.
        """
        stmt = delete(UserSession).where(UserSession.user_id == user_id)
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count

    @staticmethod
    async def delete_expired(
        db: AsyncSession,
        *,
        created_before: datetime,
        inactive_before: datetime,
    ) -> int:
        """Delete sessions past either TTL (periodic cleanup).

        Args:
            db: Async database session.
            created_before: Absolute cutoff.
            inactive_before: Sliding cutoff.

        Returns:
            Number of deleted rows.
        """
        stmt = delete(UserSession).where(
            or_(
                UserSession.created_at <= created_before,
                UserSession.last_active_at <= inactive_before,
            )
        )
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count
