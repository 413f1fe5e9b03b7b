"""Shared dependencies for API endpoints.

Authentication reads an opaque session token from the Authorization
header (``Bearer auth:...``) or the session cookie and validates it
against the session store, renewing its sliding window on success.
"""

import uuid
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from passage.core.auth import extract_session_token
from passage.core.config import settings
from passage.core.database import get_db
from passage.core.errors import UnauthorizedError
from passage.models import User
from passage.notifications.dispatcher import NotificationDispatcher
from passage.repositories.user_repository import UserRepository
from passage.services.account_service import AccountService
from passage.services.sessions import SessionStatus, validate_and_extend

DbSession = Annotated[AsyncSession, Depends(get_db)]


def get_session_token(request: Request) -> str | None:
    """Session token presented by the client, if any."""
    return extract_session_token(request)


SessionToken = Annotated[str | None, Depends(get_session_token)]


async def get_current_user_id(token: SessionToken, db: DbSession) -> uuid.UUID:
    """Get current user ID from the session token.

    Security: the 401 never says why authentication failed (missing,
    unknown or expired session).

    Args:
        token: Session token (injected).
        db: Database session (injected).

    Returns:
        UUID of the current authenticated user.

    Raises:
        UnauthorizedError: For any auth failure.
    """
    result = await validate_and_extend(
        db,
        token,
        sliding_ttl=settings.effective_session_sliding_ttl,
        absolute_ttl=settings.effective_session_absolute_ttl,
    )
    if result.status is SessionStatus.VALID and result.user_id is not None:
        return result.user_id

    if result.status is SessionStatus.EXPIRED:
        # Persist the lazy delete before the error response rolls back.
        await db.commit()
    raise UnauthorizedError()


CurrentUserId = Annotated[uuid.UUID, Depends(get_current_user_id)]


async def get_current_user(user_id: CurrentUserId, db: DbSession) -> User:
    """Get full User object for current user.

    Raises:
        UnauthorizedError: If the user no longer exists.
    """
    user = await UserRepository.get_by_id(db, user_id)
    if user is None:
        raise UnauthorizedError()
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


def get_notifier(request: Request) -> NotificationDispatcher:
    """Notification dispatcher started by the app lifespan."""
    notifier: NotificationDispatcher = request.app.state.notifier
    return notifier


Notifier = Annotated[NotificationDispatcher, Depends(get_notifier)]


def get_account_service(db: DbSession, notifier: Notifier) -> AccountService:
    """Account flows bound to this request's DB session."""
    return AccountService(db, notifier)


Accounts = Annotated[AccountService, Depends(get_account_service)]
