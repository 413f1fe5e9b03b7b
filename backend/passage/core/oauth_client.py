"""OAuth HTTP client: code exchange and identity extraction.

Google: token endpoint, then the userinfo endpoint.
Apple: token endpoint with a client secret minted fresh for every exchange
(ES256 JWT, five-minute expiry); identity comes from the returned id_token.
The id_token arrives directly from Apple's token endpoint over TLS, so its
issuer is trusted via the connection; audience, issuer and expiry claims
are still checked.
"""

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx
import jwt

from passage.core.config import settings
from passage.core.errors import OAuthExchangeError
from passage.core.oauth import OAuthProvider, get_provider_config

logger = logging.getLogger(__name__)

# HTTP client timeout for OAuth token exchange and userinfo
_OAUTH_HTTP_TIMEOUT = 10.0

_APPLE_AUDIENCE = "https://appleid.apple.com"
_APPLE_CLIENT_SECRET_TTL = timedelta(minutes=5)


@dataclass(frozen=True)
class OAuthIdentity:
    """Identity asserted by a provider.

    Attributes:
        subject: Provider's stable user identifier.
        email: Email address ("" if the provider sent none).
        email_verified: Whether the provider vouches for the email.
        first_name: Given name, if known.
        last_name: Family name, if known.
    """

    subject: str
    email: str
    email_verified: bool
    first_name: str = ""
    last_name: str = ""


def split_display_name(name: str | None) -> tuple[str, str]:
    """Split "Ada Lovelace King" into ("Ada", "Lovelace King")."""
    if not name:
        return "", ""
    first, _, last = name.strip().partition(" ")
    return first, last.strip()


def parse_apple_user_payload(raw: str | None) -> tuple[str, str]:
    """Extract (first, last) from Apple's one-time ``user`` form field.

    Apple only sends the user's name on the first authorization, as a JSON
    string posted next to code and state. Malformed payloads are ignored.
    """
    if not raw:
        return "", ""
    try:
        payload = json.loads(raw)
    except ValueError:
        logger.info("Ignoring malformed Apple user payload")
        return "", ""
    name = payload.get("name") if isinstance(payload, dict) else None
    if not isinstance(name, dict):
        return "", ""
    return str(name.get("firstName") or ""), str(name.get("lastName") or "")


def _as_bool(value: Any) -> bool:
    # Apple sends "true"/"false" strings, Google sends booleans.
    if isinstance(value, str):
        return value.lower() == "true"
    return bool(value)


def create_apple_client_secret(
    *,
    team_id: str,
    client_id: str,
    key_id: str,
    private_key: str,
    now: datetime | None = None,
) -> str:
    """Mint the short-lived ES256 client secret Apple expects.

    Args:
        team_id: Apple developer team ID (iss).
        client_id: Services ID (sub).
        key_id: Sign in with Apple key ID (kid header).
        private_key: PEM-encoded EC private key. Literal "\\n" sequences
            (common in env files) are converted to newlines.
        now: Issue time, defaults to the current time.

    Returns:
        Signed JWT string.
    """
    issued_at = now or datetime.now(UTC)
    payload = {
        "iss": team_id,
        "iat": issued_at,
        "exp": issued_at + _APPLE_CLIENT_SECRET_TTL,
        "aud": _APPLE_AUDIENCE,
        "sub": client_id,
    }
    return jwt.encode(
        payload,
        private_key.replace("\\n", "\n"),
        algorithm="ES256",
        headers={"kid": key_id},
    )


def _client_credentials(provider: OAuthProvider) -> tuple[str, str]:
    if provider is OAuthProvider.GOOGLE:
        return (
            settings.google_client_id,
            settings.google_client_secret.get_secret_value(),
        )
    return settings.apple_client_id, create_apple_client_secret(
        team_id=settings.apple_team_id,
        client_id=settings.apple_client_id,
        key_id=settings.apple_key_id,
        private_key=settings.apple_private_key.get_secret_value(),
    )


async def exchange_code_for_tokens(
    *,
    provider: OAuthProvider,
    code: str,
    code_verifier: str,
    redirect_uri: str,
) -> dict[str, Any]:
    """Exchange authorization code for OAuth tokens.

    Args:
        provider: Provider the code came from.
        code: Authorization code from callback.
        code_verifier: PKCE code verifier.
        redirect_uri: Callback URL used in initiation.

    Returns:
        Token response dict (access_token, id_token, etc.).

    Raises:
        httpx.HTTPError: If the request fails or returns an error status.
    """
    config = get_provider_config(provider)
    client_id, client_secret = _client_credentials(provider)

    async with httpx.AsyncClient() as client:
        resp = await client.post(
            config.token_url,
            data={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri,
                "client_id": client_id,
                "client_secret": client_secret,
                "code_verifier": code_verifier,
            },
            headers={"Accept": "application/json"},
            timeout=_OAUTH_HTTP_TIMEOUT,
        )
        resp.raise_for_status()
        result: dict[str, Any] = resp.json()
        return result


async def fetch_userinfo(
    *,
    provider: OAuthProvider,
    access_token: str,
) -> dict[str, Any]:
    """Fetch user info from a userinfo-style provider.

    Args:
        provider: Provider name.
        access_token: OAuth access token.

    Returns:
        User info dict (sub, email, email_verified, given_name, ...).

    Raises:
        httpx.HTTPError: If the request fails or returns an error status.
    """
    config = get_provider_config(provider)
    if config.userinfo_url is None:
        msg = f"{provider} has no userinfo endpoint"
        raise ValueError(msg)

    async with httpx.AsyncClient() as client:
        resp = await client.get(
            config.userinfo_url,
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=_OAUTH_HTTP_TIMEOUT,
        )
        resp.raise_for_status()
        result: dict[str, Any] = resp.json()
        return result


def identity_from_userinfo(userinfo: dict[str, Any]) -> OAuthIdentity:
    """Build an identity from an OIDC userinfo response."""
    first = userinfo.get("given_name") or ""
    last = userinfo.get("family_name") or ""
    if not first and not last:
        first, last = split_display_name(userinfo.get("name"))
    return OAuthIdentity(
        subject=str(userinfo.get("sub") or userinfo.get("id") or ""),
        email=userinfo.get("email") or "",
        email_verified=_as_bool(
            userinfo.get("email_verified", userinfo.get("verified_email", False))
        ),
        first_name=first,
        last_name=last,
    )


def identity_from_id_token(
    id_token: str,
    *,
    audience: str,
    issuer: str,
) -> OAuthIdentity:
    """Build an identity from id_token claims.

    Args:
        id_token: JWT returned by the token endpoint.
        audience: Expected aud (our client ID).
        issuer: Expected iss.

    Returns:
        OAuthIdentity from the sub/email/email_verified claims.

    Raises:
        jwt.InvalidTokenError: If the claims fail validation.
    """
    claims = jwt.decode(
        id_token,
        options={
            "verify_signature": False,
            "verify_aud": True,
            "verify_iss": True,
            "verify_exp": True,
            "require": ["sub", "aud", "iss", "exp"],
        },
        audience=audience,
        issuer=issuer,
    )
    return OAuthIdentity(
        subject=str(claims["sub"]),
        email=claims.get("email") or "",
        email_verified=_as_bool(claims.get("email_verified", False)),
    )


async def exchange_code_for_identity(
    *,
    provider: OAuthProvider,
    code: str,
    code_verifier: str,
    redirect_uri: str,
) -> OAuthIdentity:
    """Run the full exchange for a provider and return who logged in.

    Raises:
        OAuthExchangeError: On any transport, HTTP or token-validation
            failure. Details are logged, never returned to the client.
    """
    config = get_provider_config(provider)
    try:
        tokens = await exchange_code_for_tokens(
            provider=provider,
            code=code,
            code_verifier=code_verifier,
            redirect_uri=redirect_uri,
        )

        if config.identity_source == "id_token":
            id_token = tokens.get("id_token")
            if not id_token:
                raise OAuthExchangeError("OAuth provider did not return an id_token")
            return identity_from_id_token(
                id_token,
                audience=settings.apple_client_id,
                issuer=config.issuer or "",
            )

        access_token = tokens.get("access_token")
        if not access_token:
            raise OAuthExchangeError("OAuth provider did not return access token")
        userinfo = await fetch_userinfo(provider=provider, access_token=access_token)
        return identity_from_userinfo(userinfo)
    except httpx.HTTPError as exc:
        logger.warning(
            "OAuth exchange request failed",
            extra={"provider": provider.value, "error": type(exc).__name__},
        )
        raise OAuthExchangeError() from exc
    except jwt.InvalidTokenError as exc:
        logger.warning(
            "OAuth id_token rejected",
            extra={"provider": provider.value, "error": type(exc).__name__},
        )
        raise OAuthExchangeError() from exc
