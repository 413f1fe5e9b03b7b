"""Tests for the session lifecycle.

Sliding and absolute expiry are exercised by backdating rows instead of
moving the clock.
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select, update

from passage.core.auth import SESSION_TOKEN_PREFIX
from passage.models.session import UserSession
from passage.models.user import User
from passage.services.sessions import (
    SessionStatus,
    close_all_sessions,
    close_session,
    is_well_formed,
    open_session,
    validate_and_extend,
)

_SLIDING = timedelta(days=7)
_ABSOLUTE = timedelta(days=30)


async def _validate(db, token):
    return await validate_and_extend(
        db, token, sliding_ttl=_SLIDING, absolute_ttl=_ABSOLUTE
    )


async def _backdate(db, token: str, **values) -> None:
    await db.execute(
        update(UserSession)
        .where(UserSession.session_token == token)
        .values(**values)
        .execution_options(synchronize_session="fetch")
    )


async def _count(db) -> int:
    return len((await db.execute(select(UserSession))).scalars().all())


class TestIsWellFormed:
    """Tests for is_well_formed()."""

    @pytest.mark.parametrize(
        ("token", "expected"),
        [
            ("auth:abc", True),
            ("auth:", False),
            ("abc", False),
            ("", False),
            (None, False),
            ("Auth:abc", False),
        ],
    )
    def test_shape(self, token, expected):
        """Only prefixed, non-empty tokens are worth a lookup."""
        assert is_well_formed(token) is expected

    async def test_malformed_token_skips_database(self):
        """A malformed token is rejected without touching the store."""
        db = AsyncMock()
        result = await _validate(db, "not-a-session")
        assert result.status is SessionStatus.NOT_FOUND
        db.execute.assert_not_awaited()


class TestOpenSession:
    """Tests for open_session()."""

    async def test_returns_prefixed_token(self, db_session, test_user: User):
        """New tokens carry the session prefix and are stored."""
        token = await open_session(
            db_session, user_id=test_user.id, user_agent="pytest", ip_address="127.0.0.1"
        )

        row = (await db_session.execute(select(UserSession))).scalar_one()
        assert token.startswith(SESSION_TOKEN_PREFIX)
        assert row.session_token == token
        assert row.user_agent == "pytest"
        assert row.created_at == row.last_active_at

    async def test_tokens_are_unique(self, db_session, test_user: User):
        """Two logins give two sessions."""
        a = await open_session(db_session, user_id=test_user.id)
        b = await open_session(db_session, user_id=test_user.id)
        assert a != b
        assert await _count(db_session) == 2


class TestValidateAndExtend:
    """Tests for validate_and_extend()."""

    async def test_valid_session_is_extended(self, db_session, test_user: User):
        """A valid session returns its user and bumps last_active_at."""
        token = await open_session(db_session, user_id=test_user.id)
        an_hour_ago = datetime.now(UTC) - timedelta(hours=1)
        await _backdate(db_session, token, last_active_at=an_hour_ago)

        result = await _validate(db_session, token)

        row = (
            await db_session.execute(
                select(UserSession).execution_options(populate_existing=True)
            )
        ).scalar_one()
        assert result.status is SessionStatus.VALID
        assert result.user_id == test_user.id
        assert row.last_active_at > an_hour_ago

    async def test_unknown_session(self, db_session):
        """A well-formed but unknown token is NOT_FOUND."""
        result = await _validate(db_session, "auth:unknown")
        assert result.status is SessionStatus.NOT_FOUND
        assert result.user_id is None

    async def test_idle_session_expires(self, db_session, test_user: User):
        """Past the sliding window the session expires and is deleted."""
        token = await open_session(db_session, user_id=test_user.id)
        await _backdate(
            db_session, token, last_active_at=datetime.now(UTC) - _SLIDING - timedelta(minutes=1)
        )

        result = await _validate(db_session, token)

        assert result.status is SessionStatus.EXPIRED
        assert await _count(db_session) == 0

    async def test_absolute_lifetime_is_not_renewed(self, db_session, test_user: User):
        """Recent activity does not keep a session past its absolute TTL."""
        token = await open_session(db_session, user_id=test_user.id)
        await _backdate(
            db_session,
            token,
            created_at=datetime.now(UTC) - _ABSOLUTE - timedelta(minutes=1),
            last_active_at=datetime.now(UTC) - timedelta(minutes=5),
        )

        result = await _validate(db_session, token)

        assert result.status is SessionStatus.EXPIRED
        assert await _count(db_session) == 0

    async def test_expired_then_unknown(self, db_session, test_user: User):
        """Once expired and deleted, the token is simply unknown."""
        token = await open_session(db_session, user_id=test_user.id)
        await _backdate(
            db_session, token, last_active_at=datetime.now(UTC) - _SLIDING - timedelta(hours=1)
        )
        await _validate(db_session, token)

        result = await _validate(db_session, token)

        assert result.status is SessionStatus.NOT_FOUND


class TestCloseSessions:
    """Tests for close_session() / close_all_sessions()."""

    async def test_close_session(self, db_session, test_user: User):
        """A closed session no longer validates."""
        token = await open_session(db_session, user_id=test_user.id)

        await close_session(db_session, token)

        assert (await _validate(db_session, token)).status is SessionStatus.NOT_FOUND

    async def test_close_unknown_session_is_noop(self, db_session):
        """Closing an unknown or malformed token does not raise."""
        await close_session(db_session, "auth:unknown")
        await close_session(db_session, "garbage")

    async def test_close_all_sessions(self, db_session, test_user: User):
        """Every session of the user is closed and counted."""
        for _ in range(3):
            await open_session(db_session, user_id=test_user.id)

        closed = await close_all_sessions(db_session, test_user.id)

        assert closed == 3
        assert await _count(db_session) == 0
