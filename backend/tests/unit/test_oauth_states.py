"""Tests for OAuth login-attempt state."""

import asyncio
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import Delete, select, update
from sqlalchemy.dialects import postgresql
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from passage.core.errors import OAuthStateExpiredError, OAuthStateInvalidError
from passage.core.oauth import OAuthProvider
from passage.models.oauth_state import OAuthState
from passage.repositories.oauth_state_repository import OAuthStateRepository
from passage.services.oauth_states import (
    begin_attempt,
    complete_attempt,
    delete_expired,
    discard_attempt,
)

_TTL = timedelta(minutes=5)


async def _states(db) -> list[OAuthState]:
    result = await db.execute(
        select(OAuthState).execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def _expire(db, state: str) -> None:
    await db.execute(
        update(OAuthState)
        .where(OAuthState.state == state)
        .values(expires_at=datetime.now(UTC) - timedelta(seconds=1))
        .execution_options(synchronize_session="fetch")
    )


class TestBeginAttempt:
    """Tests for begin_attempt()."""

    async def test_persists_state_and_verifier(self, db_session):
        """The attempt row keeps provider, verifier and expiry."""
        attempt = await begin_attempt(db_session, provider=OAuthProvider.GOOGLE, ttl=_TTL)

        [row] = await _states(db_session)
        assert row.state == attempt.state
        assert row.verifier == attempt.verifier
        assert row.provider == "google"
        assert row.expires_at > datetime.now(UTC)
        assert row.user_id is None

    async def test_state_and_verifier_differ(self, db_session):
        """State and verifier are independent random values."""
        attempt = await begin_attempt(db_session, provider=OAuthProvider.APPLE, ttl=_TTL)
        assert attempt.state != attempt.verifier
        assert len(attempt.verifier) >= 43


class TestCompleteAttempt:
    """Tests for complete_attempt()."""

    async def test_returns_verifier_and_deletes(self, db_session):
        """A valid callback gets the verifier; the state is gone afterwards."""
        attempt = await begin_attempt(db_session, provider=OAuthProvider.GOOGLE, ttl=_TTL)

        verifier = await complete_attempt(
            db_session, state=attempt.state, provider=OAuthProvider.GOOGLE
        )

        assert verifier == attempt.verifier
        assert await _states(db_session) == []

    async def test_replay_is_rejected(self, db_session):
        """The same state cannot be used twice."""
        attempt = await begin_attempt(db_session, provider=OAuthProvider.GOOGLE, ttl=_TTL)
        await complete_attempt(db_session, state=attempt.state, provider=OAuthProvider.GOOGLE)

        with pytest.raises(OAuthStateInvalidError):
            await complete_attempt(
                db_session, state=attempt.state, provider=OAuthProvider.GOOGLE
            )

    @pytest.mark.parametrize("state", ["", "unknown-state"])
    async def test_unknown_state(self, db_session, state: str):
        """Empty and unknown states are invalid."""
        with pytest.raises(OAuthStateInvalidError):
            await complete_attempt(db_session, state=state, provider=OAuthProvider.GOOGLE)

    async def test_wrong_provider_is_rejected_and_deleted(self, db_session):
        """A Google state presented to the Apple callback is burned."""
        attempt = await begin_attempt(db_session, provider=OAuthProvider.GOOGLE, ttl=_TTL)

        with pytest.raises(OAuthStateInvalidError):
            await complete_attempt(
                db_session, state=attempt.state, provider=OAuthProvider.APPLE
            )
        assert await _states(db_session) == []

    async def test_expired_state_is_rejected_and_deleted(self, db_session):
        """An expired attempt raises the expired variant and is removed."""
        attempt = await begin_attempt(db_session, provider=OAuthProvider.GOOGLE, ttl=_TTL)
        await _expire(db_session, attempt.state)

        with pytest.raises(OAuthStateExpiredError):
            await complete_attempt(
                db_session, state=attempt.state, provider=OAuthProvider.GOOGLE
            )
        assert await _states(db_session) == []


    async def test_concurrent_callbacks_get_one_verifier(self, db_session, db_engine):
        """Two sessions racing on one state: exactly one wins."""
        attempt = await begin_attempt(db_session, provider=OAuthProvider.GOOGLE, ttl=_TTL)
        await db_session.commit()
        factory = async_sessionmaker(db_engine, class_=AsyncSession)

        async def callback() -> str | None:
            async with factory() as session:
                try:
                    return await complete_attempt(
                        session, state=attempt.state, provider=OAuthProvider.GOOGLE
                    )
                except OAuthStateInvalidError:
                    return None
                finally:
                    await session.commit()

        results = await asyncio.gather(callback(), callback())

        assert sorted(results, key=lambda r: r is None) == [attempt.verifier, None]


class TestConsumeStatement:
    """OAuthStateRepository.consume() reads and deletes in one statement."""

    async def test_single_delete_returning(self):
        """One DELETE ... RETURNING round trip, no prior SELECT."""
        db = AsyncMock()
        db.execute.return_value = MagicMock(**{"scalar_one_or_none.return_value": None})

        assert await OAuthStateRepository.consume(db, "some-state") is None

        db.execute.assert_awaited_once()
        db.get.assert_not_called()
        stmt = db.execute.await_args.args[0]
        assert isinstance(stmt, Delete)
        assert "RETURNING" in str(stmt.compile(dialect=postgresql.dialect()))


class TestDiscardAndSweep:
    """Tests for discard_attempt() and delete_expired()."""

    async def test_discard_removes_attempt(self, db_session):
        """A failed callback's attempt is burned."""
        attempt = await begin_attempt(db_session, provider=OAuthProvider.GOOGLE, ttl=_TTL)

        assert await discard_attempt(db_session, state=attempt.state)
        assert await _states(db_session) == []
        with pytest.raises(OAuthStateInvalidError):
            await complete_attempt(
                db_session, state=attempt.state, provider=OAuthProvider.GOOGLE
            )

    @pytest.mark.parametrize("state", ["", "missing"])
    async def test_discard_unknown_state(self, db_session, state: str):
        """Nothing to discard reports False."""
        assert not await discard_attempt(db_session, state=state)

    async def test_delete_expired_keeps_live_attempts(self, db_session):
        """Only attempts past expiry are swept."""
        live = await begin_attempt(db_session, provider=OAuthProvider.GOOGLE, ttl=_TTL)
        stale = await begin_attempt(db_session, provider=OAuthProvider.GOOGLE, ttl=_TTL)
        await _expire(db_session, stale.state)

        removed = await delete_expired(db_session)

        assert removed == 1
        assert [row.state for row in await _states(db_session)] == [live.state]
