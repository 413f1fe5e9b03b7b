"""Password reset endpoints.

Three steps, each with its own proof:
1. forgot: emails a 6-digit code (always success-shaped)
2. verify-code: trades the code for a single-use reset token
3. reset: trades the reset token for a new password, signing out
   every session of the user
"""

from fastapi import APIRouter, Request

from passage.api.deps import Accounts
from passage.core.rate_limiting import limiter
from passage.core.responses import DataResponse
from passage.schemas.auth import (
    CodeRequest,
    EmailRequest,
    PasswordResetRequest,
    ResetTokenRead,
    StatusRead,
)

router = APIRouter()


@router.post("/forgot")
@limiter.limit("5/hour")
async def forgot_password(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: EmailRequest,
    accounts: Accounts,
) -> DataResponse[StatusRead]:
    """Email a password-reset code if the account exists.

    Rate limit: 5 per hour per IP.
    """
    await accounts.initiate_password_reset(email=body.email)
    return DataResponse(data=StatusRead())


@router.post("/verify-code")
@limiter.limit("10/15minute")
async def verify_reset_code(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: CodeRequest,
    accounts: Accounts,
) -> DataResponse[ResetTokenRead]:
    """Exchange a reset code for a reset token.

    Rate limit: 10 per 15 minutes per IP.
    """
    token = await accounts.verify_password_reset_code(email=body.email, code=body.code)
    return DataResponse(data=ResetTokenRead(reset_token=token))


@router.post("/reset")
@limiter.limit("10/15minute")
async def reset_password(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: PasswordResetRequest,
    accounts: Accounts,
) -> DataResponse[StatusRead]:
    """Set a new password with a reset token.

    Rate limit: 10 per 15 minutes per IP.
    """
    await accounts.finalize_password_reset(
        token=body.reset_token, new_password=body.new_password
    )
    return DataResponse(data=StatusRead())
