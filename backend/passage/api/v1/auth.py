"""Authentication endpoints for password-based auth.

register, login, logout, and email verification (resend + confirm).

Security considerations:
- login: the password is checked before verification status, and against
  a dummy hash for unknown emails, so responses do not enumerate accounts
- resend: unknown and verified emails get the same success response
- confirm: unknown emails get the same INVALID_CODE as wrong codes
"""

from fastapi import APIRouter, Request, Response

from passage.api.deps import Accounts, CurrentUserId, SessionToken
from passage.core.auth import clear_session_cookie, set_session_cookie
from passage.core.config import settings
from passage.core.rate_limiting import limiter
from passage.core.responses import DataResponse
from passage.schemas.auth import (
    CodeRequest,
    EmailRequest,
    LoginRequest,
    RegisterRequest,
    SessionRead,
    StatusRead,
)
from passage.schemas.user import UserRead

router = APIRouter()


def _client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None


# ===================================================================
# POST /auth/register
# ===================================================================


@router.post("/register", status_code=201)
@limiter.limit("5/hour")
async def register(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: RegisterRequest,
    accounts: Accounts,
) -> DataResponse[UserRead]:
    """Register with name, email and password; emails a 6-digit code.

    Rate limit: 5 per hour per IP.
    """
    user = await accounts.register(
        first_name=body.first_name,
        last_name=body.last_name,
        email=body.email,
        password=body.password,
    )
    return DataResponse(data=UserRead.model_validate(user))


# ===================================================================
# POST /auth/login
# ===================================================================


@router.post("/login")
@limiter.limit("10/15minute")
async def login(
    request: Request,
    body: LoginRequest,
    response: Response,
    accounts: Accounts,
) -> DataResponse[SessionRead]:
    """Verify email + password and open a session.

    The token is returned in the body (for API clients) and set as an
    httpOnly cookie (for browsers).

    Rate limit: 10 per 15 minutes per IP.
    """
    token = await accounts.login(
        email=body.email,
        password=body.password,
        user_agent=request.headers.get("user-agent"),
        ip_address=_client_ip(request),
    )
    set_session_cookie(
        response, token, max_age=settings.effective_session_absolute_ttl
    )
    return DataResponse(data=SessionRead(session_token=token))


# ===================================================================
# POST /auth/logout
# ===================================================================


@router.post("/logout")
async def logout(
    _user_id: CurrentUserId,
    token: SessionToken,
    response: Response,
    accounts: Accounts,
) -> DataResponse[StatusRead]:
    """Close the current session and clear the cookie."""
    if token:
        await accounts.logout(session_token=token)
    clear_session_cookie(response)
    return DataResponse(data=StatusRead())


# ===================================================================
# POST /auth/verify-email/resend, /auth/verify-email/confirm
# ===================================================================


@router.post("/verify-email/resend")
@limiter.limit("5/hour")
async def resend_verification(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: EmailRequest,
    accounts: Accounts,
) -> DataResponse[StatusRead]:
    """Send a new verification code.

    Rate limit: 5 per hour per IP, plus the per-address resend cooldown.
    """
    await accounts.resend_email_verification(email=body.email)
    return DataResponse(data=StatusRead())


@router.post("/verify-email/confirm")
@limiter.limit("10/15minute")
async def confirm_verification(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: CodeRequest,
    accounts: Accounts,
) -> DataResponse[UserRead]:
    """Confirm an email address with the code sent to it.

    Rate limit: 10 per 15 minutes per IP, plus the per-code attempt budget.
    """
    user = await accounts.confirm_email_verification(email=body.email, code=body.code)
    return DataResponse(data=UserRead.model_validate(user))
