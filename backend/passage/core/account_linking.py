"""Account linking for OAuth sign-in.

Users are matched by email only; there is no per-provider account table.

Rules:
1. No user with this email → create one. It starts verified only when the
   provider vouched for the email AND the deployment trusts provider
   emails.
2. Existing verified user → same user, nothing to link.
3. Existing unverified user → REJECT, unless the provider vouched for the
   email and provider emails are trusted; then the user is marked verified.

Rule 3 is the pre-hijack defense: someone who registered a victim's
address with a password they control must not inherit the victim's
OAuth login.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from passage.core.errors import ConflictError
from passage.core.logging import mask_email
from passage.core.oauth_client import OAuthIdentity
from passage.models.user import User
from passage.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)


class AccountLinkingBlockedError(ConflictError):
    """An unverified account already holds this email (409)."""

    def __init__(self) -> None:
        super().__init__(
            code="ACCOUNT_LINKING_BLOCKED",
            message=(
                "An account with this email exists but is not verified. "
                "Please sign in with your original method first."
            ),
        )


async def find_or_create_user_for_oauth(
    *,
    db: AsyncSession,
    identity: OAuthIdentity,
    provider: str,
    trust_provider_email: bool,
) -> tuple[User, bool]:
    """Find or create the user an OAuth identity signs in as.

    Args:
        db: Async database session. Caller commits.
        identity: Identity returned by the provider (email must be set).
        provider: Provider name, for logging.
        trust_provider_email: Whether a provider-verified email counts as
            verified here.

    Returns:
        Tuple of (User, created) where created is True if a new user was made.

    Raises:
        AccountLinkingBlockedError: If an unverified user holds the email
            and the provider's assertion cannot be trusted.
    """
    vouched = trust_provider_email and identity.email_verified
    existing_user = await UserRepository.get_by_email(db, identity.email)

    if existing_user is None:
        new_user = await UserRepository.create(
            db,
            email=identity.email,
            first_name=identity.first_name,
            last_name=identity.last_name,
            email_verified=vouched,
        )
        logger.info(
            "Created new OAuth user",
            extra={"user_id": str(new_user.id), "provider": provider},
        )
        return new_user, True

    if existing_user.email_verified:
        logger.info(
            "Returning OAuth user",
            extra={"user_id": str(existing_user.id), "provider": provider},
        )
        return existing_user, False

    if vouched:
        await UserRepository.mark_email_verified(db, existing_user.id)
        await db.refresh(existing_user)
        logger.info(
            "Verified existing user through OAuth provider",
            extra={"user_id": str(existing_user.id), "provider": provider},
        )
        return existing_user, False

    logger.warning(
        "OAuth account linking blocked by email verification",
        extra={
            "provider": provider,
            "email": mask_email(identity.email),
            "provider_verified": identity.email_verified,
        },
    )
    raise AccountLinkingBlockedError()
