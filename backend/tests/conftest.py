import socket
import uuid
from collections.abc import AsyncGenerator, Iterator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from pydantic import SecretStr
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from passage.core.auth import SESSION_TOKEN_PREFIX, hash_password
from passage.core.config import settings
from passage.core.tokens import init_secret_hasher, reset_secret_hasher
from passage.models.base import Base
from passage.models.user import User
from passage.notifications.dispatcher import NotificationDispatcher
from passage.notifications.messages import Channel
from passage.notifications.senders import MemoryEmailSender

# Use separate test database
TEST_DATABASE_URL = settings.database_url.replace(
    settings.database_name, f"{settings.database_name}_test"
)

# Test user ID (consistent across tests for predictable auth)
TEST_USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")
TEST_USER_EMAIL = "test@example.com"
TEST_PASSWORD = "Correct-horse-9"  # nosec B105

# Security: This is a test-only secret. Production uses a real secret from env.
TEST_AUTH_SECRET = "test-secret-key-that-is-at-least-32-characters-long"  # nosec B105  # gitleaks:allow

# Low bcrypt cost keeps fixture setup fast
TEST_BCRYPT_ROUNDS = 4


def _is_postgres_available() -> bool:
    """Check if PostgreSQL is accepting connections.

    Returns:
        True if PostgreSQL is reachable on the configured port, False otherwise.
    """
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.settimeout(1)
        result = sock.connect_ex((settings.database_host, settings.database_port))
        sock.close()
        return result == 0
    except OSError:
        return False


# Check once at module load time
_POSTGRES_AVAILABLE = _is_postgres_available()


def skip_if_no_postgres() -> None:
    """Skip test if PostgreSQL is not available.

    Called by fixtures that require database connection.
    Provides clear skip message to help diagnose CI/local issues.
    """
    if not _POSTGRES_AVAILABLE:
        pytest.skip(
            f"PostgreSQL not available on port {settings.database_port}. "
            "Start database with: docker compose up -d"
        )


@pytest.fixture(autouse=True)
def secret_hasher() -> Iterator[None]:
    """Install the test HMAC key for every test."""
    reset_secret_hasher()
    init_secret_hasher(TEST_AUTH_SECRET)
    yield
    reset_secret_hasher()


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create test database engine.

    Skips test if PostgreSQL is not available (e.g., Docker not running).
    """
    skip_if_no_postgres()

    engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    async with engine.begin() as conn:
        await conn.execute(text("CREATE EXTENSION IF NOT EXISTS pgcrypto"))
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()


async def make_user(
    db: AsyncSession,
    *,
    email: str,
    password: str | None = TEST_PASSWORD,
    email_verified: bool = True,
    first_name: str = "Test",
    last_name: str = "User",
    user_id: uuid.UUID | None = None,
) -> User:
    """Insert and commit a user with a low-cost bcrypt hash."""
    user = User(
        email=email,
        first_name=first_name,
        last_name=last_name,
        password_hash=(
            hash_password(password, rounds=TEST_BCRYPT_ROUNDS) if password else None
        ),
        email_verified=email_verified,
    )
    if user_id is not None:
        user.id = user_id
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    """Verified user with TEST_PASSWORD.

    Args:
        db_session: Database session from db_session fixture.

    Returns:
        User model instance.
    """
    return await make_user(db_session, email=TEST_USER_EMAIL, user_id=TEST_USER_ID)


@pytest_asyncio.fixture
async def unverified_user(db_session: AsyncSession) -> User:
    """User who registered but never confirmed their email."""
    return await make_user(
        db_session, email="pending@example.com", email_verified=False
    )


# =============================================================================
# Notification Fixtures
# =============================================================================


@pytest.fixture
def memory_sender() -> MemoryEmailSender:
    """Email sender that records messages instead of sending them."""
    return MemoryEmailSender()


@pytest_asyncio.fixture
async def notifier(
    memory_sender: MemoryEmailSender,
) -> AsyncGenerator[NotificationDispatcher, None]:
    """Started dispatcher backed by memory_sender."""
    dispatcher = NotificationDispatcher({Channel.EMAIL: memory_sender})
    await dispatcher.start()
    yield dispatcher
    await dispatcher.stop(drain_timeout=1.0)


# =============================================================================
# API Test Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def unauthenticated_client(
    db_engine, notifier: NotificationDispatcher
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client without a session.

    Sets up:
    - Test database connection via dependency override (commit on
      success, rollback on error, like the real get_db)
    - The memory-backed notifier in place of the lifespan one
    - Rate limiting off, so tests can repeat requests

    Args:
        db_engine: Test database engine from db_engine fixture.
        notifier: Started dispatcher from the notifier fixture.

    Yields:
        AsyncClient with no session cookie or header.
    """
    from passage.api.deps import get_notifier
    from passage.core.database import get_db
    from passage.core.rate_limiting import limiter
    from passage.main import app

    test_session_factory = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with test_session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier

    original_limiter_enabled = limiter.enabled
    original_auth_secret = settings.auth_secret
    original_cookie_secure = settings.auth_cookie_secure
    limiter.enabled = False
    settings.auth_secret = SecretStr(TEST_AUTH_SECRET)
    # httpx only resends Secure cookies over https
    settings.auth_cookie_secure = False

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    # Restore original settings
    limiter.enabled = original_limiter_enabled
    settings.auth_secret = original_auth_secret
    settings.auth_cookie_secure = original_cookie_secure
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(
    unauthenticated_client: AsyncClient,
    db_session: AsyncSession,
    test_user: User,
) -> AsyncClient:
    """Async HTTP client authenticated as test_user via a Bearer session token."""
    from passage.services.sessions import open_session

    token = await open_session(db_session, user_id=test_user.id)
    await db_session.commit()
    assert token.startswith(SESSION_TOKEN_PREFIX)

    unauthenticated_client.headers["Authorization"] = f"Bearer {token}"
    return unauthenticated_client
