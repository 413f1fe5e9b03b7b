"""OAuth authentication endpoints.

Initiation and callback for Google and Apple, authorization code flow
with PKCE. The state and verifier live server-side (oauth_states table),
so the callback needs no cookie from the initiation step.

Apple posts its callback as a form (response_mode=form_post), so the
callback accepts both GET query parameters and POST form fields.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Form, Request
from fastapi.responses import RedirectResponse
from starlette.responses import Response

from passage.api.deps import Accounts
from passage.core.auth import set_session_cookie
from passage.core.config import settings
from passage.core.errors import ValidationError
from passage.core.oauth import OAuthProvider, parse_provider
from passage.core.oauth_client import parse_apple_user_payload
from passage.core.rate_limiting import limiter

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_api_callback_url(provider: OAuthProvider) -> str:
    """Build the OAuth callback URL registered with the provider.

    Uses the configured public base URL rather than the request's host,
    because providers compare redirect_uri byte for byte.
    """
    base = settings.backend_url.rstrip("/")
    return f"{base}/api/v1/auth/oauth/{provider.value}/callback"


async def _finish_login(
    *,
    request: Request,
    accounts: Accounts,
    provider_name: str,
    code: str | None,
    state: str | None,
    error: str | None,
    name_hint: tuple[str, str] | None = None,
) -> Response:
    provider = parse_provider(provider_name)
    if state and (error or not code):
        await accounts.abandon_oauth_login(state=state)
    if error:
        logger.info(
            "OAuth provider returned an error",
            extra={"provider": provider.value, "error": error},
        )
        raise ValidationError("OAuth authorization was not granted")
    if not code:
        raise ValidationError("Missing authorization code")
    if not state:
        raise ValidationError("Missing state parameter")

    token = await accounts.complete_oauth_login(
        provider=provider,
        code=code,
        state=state,
        redirect_uri=_get_api_callback_url(provider),
        user_agent=request.headers.get("user-agent"),
        ip_address=request.client.host if request.client else None,
        name_hint=name_hint,
    )

    redirect = RedirectResponse(url=settings.frontend_url, status_code=307)
    set_session_cookie(
        redirect, token, max_age=settings.effective_session_absolute_ttl
    )
    return redirect


# ===================================================================
# GET /auth/oauth/{provider} - OAuth Initiation
# ===================================================================


@router.get("/{provider}")
@limiter.limit("10/hour")
async def oauth_initiate(
    provider: str,
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    accounts: Accounts,
) -> Response:
    """Redirect to the provider's authorization URL.

    Stores a fresh state + PKCE verifier and sends only the S256
    challenge to the provider.

    Rate limit: 10 per hour per IP.
    """
    selected = parse_provider(provider)
    auth_url = await accounts.begin_oauth_login(
        provider=selected,
        redirect_uri=_get_api_callback_url(selected),
    )
    return RedirectResponse(url=auth_url, status_code=307)


# ===================================================================
# GET|POST /auth/oauth/{provider}/callback - OAuth Callback
# ===================================================================


@router.get("/{provider}/callback")
@limiter.limit("20/hour")
async def oauth_callback(
    provider: str,
    request: Request,
    accounts: Accounts,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
) -> Response:
    """Handle a query-string callback (Google).

    Rate limit: 20 per hour per IP.
    """
    return await _finish_login(
        request=request,
        accounts=accounts,
        provider_name=provider,
        code=code,
        state=state,
        error=error,
    )


@router.post("/{provider}/callback")
@limiter.limit("20/hour")
async def oauth_callback_form(
    provider: str,
    request: Request,
    accounts: Accounts,
    code: Annotated[str | None, Form()] = None,
    state: Annotated[str | None, Form()] = None,
    error: Annotated[str | None, Form()] = None,
    user: Annotated[str | None, Form()] = None,
) -> Response:
    """Handle a form_post callback (Apple).

    Apple sends the user's name once, in the ``user`` field of the very
    first authorization; it is used when the id_token carries no name.

    Rate limit: 20 per hour per IP.
    """
    first_name, last_name = parse_apple_user_payload(user)
    return await _finish_login(
        request=request,
        accounts=accounts,
        provider_name=provider,
        code=code,
        state=state,
        error=error,
        name_hint=(first_name, last_name) if first_name or last_name else None,
    )
