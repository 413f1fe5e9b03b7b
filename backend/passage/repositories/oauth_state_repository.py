"""Repository for OAuthState operations."""

from datetime import datetime

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from passage.models.oauth_state import OAuthState


class OAuthStateRepository:
    """Stateless repository for OAuthState table operations.

    All methods are static; no instance state.
    """

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        state: str,
        provider: str,
        verifier: str,
        expires_at: datetime,
    ) -> OAuthState:
        """Store a new login attempt.

        Args:
            db: Async database session.
            state: Anti-CSRF state value (primary key).
            provider: OAuthProvider value.
            verifier: PKCE code verifier.
            expires_at: Attempt expiry.

        Returns:
            Created OAuthState.
        """
        oauth_state = OAuthState(
            state=state,
            provider=provider,
            verifier=verifier,
            expires_at=expires_at,
        )
        db.add(oauth_state)
        await db.flush()
        return oauth_state

    @staticmethod
    async def consume(db: AsyncSession, state: str) -> OAuthState | None:
        """Delete an attempt and return it, in one statement.

        Two callbacks racing on the same state cannot both get the row.

        Returns:
            The deleted OAuthState, or None if it did not exist.
        """
        stmt = (
            delete(OAuthState)
            .where(OAuthState.state == state)
            .returning(OAuthState)
            .execution_options(synchronize_session="fetch")
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def delete_expired(db: AsyncSession, *, now: datetime) -> int:
        """Delete attempts whose expiry has passed (periodic cleanup).

        Args:
            db: Async database session.
            now: Reference time.

        Returns:
            Number of deleted rows.
        """
        stmt = delete(OAuthState).where(OAuthState.expires_at < now)
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count
