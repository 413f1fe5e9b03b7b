"""Account flows: registration, login, verification, reset and OAuth.

Each public method is one user-facing operation and is called by exactly
one route handler. The service owns the transaction decisions:

- It commits before raising wherever a state change must survive the
  error response (attempt counters, consumed OAuth state, lazy deletes).
- It enqueues notifications only after the commit that made the code
  real, so a rolled-back request never emails a code that does not exist.

Enumeration-sensitive flows answer unknown emails the same way they
answer wrong secrets.
"""

import dataclasses
import logging
import uuid

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from passage.core.account_linking import find_or_create_user_for_oauth
from passage.core.auth import (
    check_password,
    hash_password,
    validate_password_strength,
)
from passage.core.config import settings
from passage.core.errors import (
    ConflictError,
    EmailNotVerifiedError,
    InvalidCodeError,
    InvalidCredentialsError,
    NotFoundError,
    OAuthEmailMissingError,
    ResendTooSoonError,
    TooManyAttemptsError,
    UnsupportedOAuthProviderError,
)
from passage.core.logging import mask_email
from passage.core.oauth import (
    OAuthProvider,
    build_authorization_url,
    get_client_id,
    is_provider_configured,
)
from passage.core.oauth_client import exchange_code_for_identity
from passage.models.action_token import PASSWORD_RESET_PURPOSE
from passage.models.user import User
from passage.models.verification_code import VerificationChannel, VerificationPurpose
from passage.notifications.dispatcher import NotificationDispatcher
from passage.notifications.messages import Channel, OutboundMessage
from passage.notifications.templates import CodeEmailData, Scenario, render
from passage.repositories.user_repository import UserRepository, normalize_email
from passage.services import action_tokens, oauth_states, sessions, verification_codes
from passage.services.verification_codes import (
    CodeKey,
    VerificationOutcome,
    VerificationResult,
)

logger = logging.getLogger(__name__)

_SCENARIO_BY_PURPOSE: dict[VerificationPurpose, Scenario] = {
    VerificationPurpose.EMAIL_VERIFY: Scenario.VERIFY_EMAIL,
    VerificationPurpose.PASSWORD_RESET: Scenario.PASSWORD_RESET_CODE,
}


class AccountService:
    """Orchestrates the account flows for one request.

    Args:
        db: Async database session for the request.
        notifier: Dispatcher that delivers verification emails.
    """

    def __init__(self, db: AsyncSession, notifier: NotificationDispatcher) -> None:
        self._db = db
        self._notifier = notifier

    # -----------------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------------

    async def _issue_code(self, user: User, purpose: VerificationPurpose) -> str:
        return await verification_codes.create_or_refresh(
            self._db,
            contact=user.email,
            purpose=purpose.value,
            channel=VerificationChannel.EMAIL.value,
            ttl=settings.effective_code_ttl,
            cooldown=settings.effective_resend_cooldown,
            max_attempts=settings.effective_max_attempts,
            user_id=user.id,
        )

    def _send_code(self, user: User, purpose: VerificationPurpose, code: str) -> None:
        rendered = render(
            _SCENARIO_BY_PURPOSE[purpose],
            CodeEmailData(
                first_name=user.first_name,
                code=code,
                expires_in_minutes=int(
                    settings.effective_code_ttl.total_seconds() // 60
                ),
                support_email=settings.support_email,
            ),
        )
        self._notifier.deliver(
            OutboundMessage(
                recipient=user.email,
                channel=Channel.EMAIL,
                subject=rendered.subject,
                body=rendered.body,
            )
        )

    async def _check_code(
        self, user: User, purpose: VerificationPurpose, code: str
    ) -> VerificationResult:
        """Verify a code by user scope and raise on anything but success.

        The attempt counter is committed before raising.

        Raises:
            TooManyAttemptsError: If the attempt budget is spent.
            InvalidCodeError: For every other failure.
        """
        result = await verification_codes.verify(
            self._db,
            key=CodeKey(
                purpose=purpose.value,
                channel=VerificationChannel.EMAIL.value,
                user_id=user.id,
                contact=user.email,
            ),
            code=code,
        )
        if result.succeeded:
            return result

        await self._db.commit()
        logger.info(
            "Verification code rejected",
            extra={
                "user_id": str(user.id),
                "purpose": purpose.value,
                "outcome": result.outcome.value,
            },
        )
        if result.outcome is VerificationOutcome.TOO_MANY_ATTEMPTS:
            raise TooManyAttemptsError()
        raise InvalidCodeError()

    # -----------------------------------------------------------------------
    # Registration and email verification
    # -----------------------------------------------------------------------

    async def register(
        self,
        *,
        first_name: str,
        last_name: str,
        email: str,
        password: str,
    ) -> User:
        """Create (or refresh) an unverified account and email a code.

        Re-registering an unverified email updates only its name. The stored
        password stays, so a second sign-up cannot take over a pending
        account whose owner later confirms the emailed code.

        Returns:
            The unverified user.

        Raises:
            ValidationError: If the password is too weak.
            ConflictError: EMAIL_ALREADY_EXISTS for a verified account.
        """
        validate_password_strength(password)
        email = normalize_email(email)

        existing = await UserRepository.get_by_email(self._db, email)
        if existing is not None and existing.email_verified:
            raise ConflictError(
                code="EMAIL_ALREADY_EXISTS",
                message="Email already registered",
            )

        if existing is None:
            password_hash = hash_password(password)
            try:
                async with self._db.begin_nested():
                    user = await UserRepository.create(
                        self._db,
                        email=email,
                        first_name=first_name,
                        last_name=last_name,
                        password_hash=password_hash,
                    )
            except IntegrityError as exc:
                raise ConflictError(
                    code="EMAIL_ALREADY_EXISTS",
                    message="Email already registered",
                ) from exc
        else:
            updated = await UserRepository.update(
                self._db,
                existing.id,
                first_name=first_name,
                last_name=last_name,
            )
            user = updated or existing

        code: str | None
        try:
            code = await self._issue_code(user, VerificationPurpose.EMAIL_VERIFY)
        except ResendTooSoonError:
            # The previous code is still fresh; the user can use it.
            logger.info(
                "Verification code sent recently; not resending on register",
                extra={"user_id": str(user.id)},
            )
            code = None

        await self._db.commit()
        if code is not None:
            self._send_code(user, VerificationPurpose.EMAIL_VERIFY, code)
        logger.info("User registered", extra={"user_id": str(user.id)})
        return user

    async def resend_email_verification(self, *, email: str) -> None:
        """Send a fresh verification code.

        Unknown and already-verified emails succeed silently.

        Raises:
            ResendTooSoonError: If a code was sent within the cooldown.
        """
        user = await UserRepository.get_by_email(self._db, email)
        if user is None or user.email_verified:
            logger.info(
                "Verification resend skipped",
                extra={"email": mask_email(email)},
            )
            return

        code = await self._issue_code(user, VerificationPurpose.EMAIL_VERIFY)
        await self._db.commit()
        self._send_code(user, VerificationPurpose.EMAIL_VERIFY, code)

    async def confirm_email_verification(self, *, email: str, code: str) -> User:
        """Mark an email verified with the code that was sent to it.

        Returns:
            The verified user. Already-verified users are returned as-is.

        Raises:
            InvalidCodeError: Unknown email, or a wrong, expired or
                missing code.
            TooManyAttemptsError: If the attempt budget is spent.
        """
        user = await UserRepository.get_by_email(self._db, email)
        if user is None:
            raise InvalidCodeError()
        if user.email_verified:
            return user

        await self._check_code(user, VerificationPurpose.EMAIL_VERIFY, code)
        await UserRepository.mark_email_verified(self._db, user.id)
        await self._db.refresh(user)
        logger.info("Email verified", extra={"user_id": str(user.id)})
        return user

    # -----------------------------------------------------------------------
    # Password login
    # -----------------------------------------------------------------------

    async def login(
        self,
        *,
        email: str,
        password: str,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> str:
        """Authenticate with email + password and open a session.

        The password is always checked first; only a correct password
        learns that the email is unverified.

        Returns:
            The new session token.

        Raises:
            InvalidCredentialsError: Unknown email or wrong password.
            EmailNotVerifiedError: Correct password, unverified email.
        """
        user = await UserRepository.get_by_email(self._db, email)
        password_hash = user.password_hash if user is not None else None
        if not check_password(password, password_hash) or user is None:
            raise InvalidCredentialsError()

        if not user.email_verified:
            raise EmailNotVerifiedError()

        token = await sessions.open_session(
            self._db,
            user_id=user.id,
            user_agent=user_agent,
            ip_address=ip_address,
        )
        logger.info("User logged in", extra={"user_id": str(user.id)})
        return token

    async def logout(self, *, session_token: str) -> None:
        """Close one session. Unknown sessions are ignored."""
        await sessions.close_session(self._db, session_token)

    # -----------------------------------------------------------------------
    # Password reset
    # -----------------------------------------------------------------------

    async def initiate_password_reset(self, *, email: str) -> None:
        """Email a password-reset code. Unknown emails succeed silently.

        Raises:
            ResendTooSoonError: If a code was sent within the cooldown.
        """
        user = await UserRepository.get_by_email(self._db, email)
        if user is None:
            logger.info(
                "Password reset requested for unknown email",
                extra={"email": mask_email(email)},
            )
            return

        code = await self._issue_code(user, VerificationPurpose.PASSWORD_RESET)
        await self._db.commit()
        self._send_code(user, VerificationPurpose.PASSWORD_RESET, code)

    async def verify_password_reset_code(self, *, email: str, code: str) -> str:
        """Trade a correct reset code for a single-use reset token.

        Returns:
            Opaque password-reset action token.

        Raises:
            InvalidCodeError: Unknown email, or a wrong, expired or
                missing code.
            TooManyAttemptsError: If the attempt budget is spent.
        """
        user = await UserRepository.get_by_email(self._db, email)
        if user is None:
            raise InvalidCodeError()

        await self._check_code(user, VerificationPurpose.PASSWORD_RESET, code)
        return await action_tokens.issue(
            self._db,
            user_id=user.id,
            purpose=PASSWORD_RESET_PURPOSE,
            ttl=settings.effective_reset_token_ttl,
        )

    async def finalize_password_reset(self, *, token: str, new_password: str) -> None:
        """Set a new password and sign the user out everywhere.

        Raises:
            ValidationError: If the new password is too weak.
            InvalidResetTokenError: If the token cannot be redeemed.
        """
        validate_password_strength(new_password)
        user_id = await action_tokens.redeem(
            self._db, token=token, purpose=PASSWORD_RESET_PURPOSE
        )
        await UserRepository.update(
            self._db, user_id, password_hash=hash_password(new_password)
        )
        closed = await sessions.close_all_sessions(self._db, user_id)
        logger.info(
            "Password reset completed",
            extra={"user_id": str(user_id), "sessions_closed": closed},
        )

    # -----------------------------------------------------------------------
    # OAuth
    # -----------------------------------------------------------------------

    async def begin_oauth_login(
        self,
        *,
        provider: OAuthProvider,
        redirect_uri: str,
    ) -> str:
        """Start an OAuth login and return the provider URL.

        Raises:
            UnsupportedOAuthProviderError: If the provider is not configured.
        """
        if not is_provider_configured(provider, settings):
            raise UnsupportedOAuthProviderError(provider.value)

        attempt = await oauth_states.begin_attempt(
            self._db,
            provider=provider,
            ttl=settings.effective_oauth_state_ttl,
        )
        return build_authorization_url(
            provider,
            client_id=get_client_id(provider, settings),
            redirect_uri=redirect_uri,
            state=attempt.state,
            code_verifier=attempt.verifier,
        )

    async def abandon_oauth_login(self, *, state: str) -> None:
        """Burn the state of a callback that cannot complete.

        Used when the provider reports an error or omits the code, so the
        attempt is single-use on failure paths too.
        """
        if await oauth_states.discard_attempt(self._db, state=state):
            await self._db.commit()
            logger.info("OAuth attempt abandoned at callback")

    async def complete_oauth_login(
        self,
        *,
        provider: OAuthProvider,
        code: str,
        state: str,
        redirect_uri: str,
        user_agent: str | None = None,
        ip_address: str | None = None,
        name_hint: tuple[str, str] | None = None,
    ) -> str:
        """Finish an OAuth login and open a session.

        Args:
            provider: Provider the callback arrived for.
            code: Authorization code.
            state: State echoed by the provider.
            redirect_uri: Callback URL used when the attempt began.
            user_agent: Client user agent (audit only).
            ip_address: Client IP (audit only).
            name_hint: (first, last) supplied outside the identity, e.g.
                Apple's one-time ``user`` form field.

        Returns:
            The new session token.

        Raises:
            OAuthStateInvalidError: Unknown, expired or mismatched state.
            OAuthExchangeError: Provider call failed.
            OAuthEmailMissingError: Provider returned no email.
            AccountLinkingBlockedError: Email held by an unverified account.
            EmailNotVerifiedError: The resulting account is not verified.
        """
        try:
            verifier = await oauth_states.complete_attempt(
                self._db, state=state, provider=provider
            )
        finally:
            # The state is single-use even when it was rejected.
            await self._db.commit()

        identity = await exchange_code_for_identity(
            provider=provider,
            code=code,
            code_verifier=verifier,
            redirect_uri=redirect_uri,
        )
        if not identity.email:
            raise OAuthEmailMissingError()
        if name_hint and not (identity.first_name or identity.last_name):
            identity = dataclasses.replace(
                identity, first_name=name_hint[0], last_name=name_hint[1]
            )

        user, _ = await find_or_create_user_for_oauth(
            db=self._db,
            identity=identity,
            provider=provider.value,
            trust_provider_email=settings.oauth_trust_provider_email,
        )
        if not user.email_verified:
            # Keep the provisioned account so the user can verify it.
            await self._db.commit()
            raise EmailNotVerifiedError()

        return await sessions.open_session(
            self._db,
            user_id=user.id,
            user_agent=user_agent,
            ip_address=ip_address,
        )

    # -----------------------------------------------------------------------
    # Profile
    # -----------------------------------------------------------------------

    async def get_profile(self, user_id: uuid.UUID) -> User:
        """Fetch the signed-in user.

        Raises:
            NotFoundError: If the user no longer exists.
        """
        user = await UserRepository.get_by_id(self._db, user_id)
        if user is None:
            raise NotFoundError("User", str(user_id))
        return user

    async def update_profile(
        self,
        user_id: uuid.UUID,
        *,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> User:
        """Change the user's name. None leaves a field unchanged.

        Raises:
            NotFoundError: If the user no longer exists.
        """
        changes = {
            field: value
            for field, value in (("first_name", first_name), ("last_name", last_name))
            if value is not None
        }
        if not changes:
            return await self.get_profile(user_id)

        user = await UserRepository.update(self._db, user_id, **changes)
        if user is None:
            raise NotFoundError("User", str(user_id))
        return user
