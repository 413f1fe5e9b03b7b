"""API error classes.

Every failure the account flows can surface maps to one class here, so the
exception handlers in main.py can render a consistent error envelope.

Enumeration-sensitive flows (login, forgot-password, resend, confirm) raise
the same "invalid" class for not-found, expired and wrong-secret cases.
Only rate-control signals (ResendTooSoonError, TooManyAttemptsError) are
distinguishable, because legitimate clients need them.
"""


class APIError(Exception):
    """Base class for API errors.

    All API errors have a code, message, and HTTP status.
    Subclasses set default status_code.

    Attributes:
        code: Machine-readable error code (e.g., "NOT_FOUND").
        message: Human-readable error message.
        status_code: HTTP status code to return.
        details: Optional list of additional error details.
        headers: Optional extra response headers (e.g., Retry-After).
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: list[dict] | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        self.headers = headers
        super().__init__(message)


class ValidationError(APIError):
    """Field validation failed (400).

    Use for request body validation errors, query param errors, etc.
    """

    def __init__(
        self,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code="VALIDATION_ERROR",
            message=message,
            status_code=400,
            details=details,
        )


class UnauthorizedError(APIError):
    """Authentication required (401).

    Use when no valid session is presented. The message never says why.
    """

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(
            code="UNAUTHORIZED",
            message=message,
            status_code=401,
        )


class InvalidCredentialsError(APIError):
    """Email/password pair rejected (401).

    Raised for unknown emails and wrong passwords alike.
    """

    def __init__(self) -> None:
        super().__init__(
            code="INVALID_CREDENTIALS",
            message="Invalid email or password",
            status_code=401,
        )


class EmailNotVerifiedError(APIError):
    """Credentials are correct but the email is not verified yet (403)."""

    def __init__(self) -> None:
        super().__init__(
            code="EMAIL_NOT_VERIFIED",
            message="Please verify your email before signing in.",
            status_code=403,
        )


class NotFoundError(APIError):
    """Resource not found (404)."""

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        if resource_id:
            message = f"{resource} with id '{resource_id}' not found"
        else:
            message = f"{resource} not found"
        super().__init__(
            code="NOT_FOUND",
            message=message,
            status_code=404,
        )


class ConflictError(APIError):
    """Duplicate or conflicting resource (409).

    Accepts custom code for specific conflict types.
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details,
        )


class InvalidCodeError(APIError):
    """Verification code is wrong, expired, consumed or unknown (400)."""

    def __init__(self) -> None:
        super().__init__(
            code="INVALID_CODE",
            message="Invalid or expired verification code",
            status_code=400,
        )


class InvalidResetTokenError(APIError):
    """Password-reset action token is unknown, expired or already used (400)."""

    def __init__(self) -> None:
        super().__init__(
            code="INVALID_RESET_TOKEN",
            message="Invalid or expired password reset token",
            status_code=400,
        )


class ResendTooSoonError(APIError):
    """A code was sent for this key within the cooldown window (429).

    Args:
        retry_after_seconds: Whole seconds until another send is allowed.
    """

    def __init__(self, retry_after_seconds: int) -> None:
        retry_after_seconds = max(retry_after_seconds, 1)
        super().__init__(
            code="RESEND_TOO_SOON",
            message="A code was sent recently. Please wait before requesting another.",
            status_code=429,
            details=[{"retry_after_seconds": retry_after_seconds}],
            headers={"Retry-After": str(retry_after_seconds)},
        )
        self.retry_after_seconds = retry_after_seconds


class TooManyAttemptsError(APIError):
    """Attempt budget for the active code is exhausted (429)."""

    def __init__(self) -> None:
        super().__init__(
            code="TOO_MANY_ATTEMPTS",
            message="Too many incorrect attempts. Request a new code.",
            status_code=429,
        )


# =============================================================================
# OAuth
# =============================================================================


class OAuthStateInvalidError(APIError):
    """OAuth state is unknown, already used, or for another provider (400)."""

    def __init__(self) -> None:
        super().__init__(
            code="INVALID_OAUTH_STATE",
            message="Invalid or expired OAuth state",
            status_code=400,
        )


class OAuthStateExpiredError(OAuthStateInvalidError):
    """OAuth state existed but its TTL had passed.

    Rendered exactly like OAuthStateInvalidError; kept separate so logs
    and tests can tell the two apart.
    """


class OAuthExchangeError(APIError):
    """Provider token exchange or identity lookup failed (502)."""

    def __init__(self, message: str = "OAuth authentication failed") -> None:
        super().__init__(
            code="OAUTH_EXCHANGE_FAILED",
            message=message,
            status_code=502,
        )


class OAuthEmailMissingError(APIError):
    """Provider did not return an email address (400)."""

    def __init__(self) -> None:
        super().__init__(
            code="OAUTH_EMAIL_MISSING",
            message="OAuth provider did not return an email address",
            status_code=400,
        )


class UnsupportedOAuthProviderError(APIError):
    """Provider is unknown or not configured for this deployment (400)."""

    def __init__(self, provider: str) -> None:
        super().__init__(
            code="UNSUPPORTED_OAUTH_PROVIDER",
            message=f"Unsupported OAuth provider: {provider}",
            status_code=400,
        )


class InternalError(APIError):
    """Unexpected server error (500).

    Never expose stack traces or store errors to clients.
    """

    def __init__(self, message: str = "An unexpected error occurred") -> None:
        super().__init__(
            code="INTERNAL_ERROR",
            message=message,
            status_code=500,
        )
