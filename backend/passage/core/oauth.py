"""OAuth utilities: PKCE and provider configuration.

Google and Apple are two variants of one capability set (build an
authorization URL, exchange a code for an identity), selected by the
OAuthProvider enum. Provider differences live in OAuthProviderConfig data
plus a small branch in oauth_client for where the identity comes from.
"""

import base64
import hashlib
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Literal
from urllib.parse import urlencode

from passage.core.config import Settings
from passage.core.errors import UnsupportedOAuthProviderError


class OAuthProvider(StrEnum):
    """Supported identity providers."""

    GOOGLE = "google"
    APPLE = "apple"


def generate_code_challenge(verifier: str) -> str:
    """Generate a PKCE code challenge from a verifier.

    RFC 7636 §4.2: BASE64URL(SHA256(code_verifier)), no padding.

    Args:
        verifier: PKCE code verifier string.

    Returns:
        Base64url-encoded SHA256 hash without padding.
    """
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


# ===================================================================
# OAuth Provider Configuration
# ===================================================================


@dataclass(frozen=True)
class OAuthProviderConfig:
    """Configuration for an OAuth provider.

    Attributes:
        authorization_url: Provider's authorization endpoint.
        token_url: Provider's token exchange endpoint.
        scopes: OAuth scopes to request.
        identity_source: Where the user identity comes from after the
            code exchange: a userinfo call, or the id_token claims.
        userinfo_url: Provider's userinfo endpoint (userinfo source only).
        issuer: Expected id_token issuer (id_token source only).
        extra_auth_params: Provider-specific authorization URL parameters.
    """

    authorization_url: str
    token_url: str
    scopes: tuple[str, ...]
    identity_source: Literal["userinfo", "id_token"]
    userinfo_url: str | None = None
    issuer: str | None = None
    extra_auth_params: tuple[tuple[str, str], ...] = field(default_factory=tuple)


_PROVIDERS: dict[OAuthProvider, OAuthProviderConfig] = {
    OAuthProvider.GOOGLE: OAuthProviderConfig(  # nosec B106 - token_url is an endpoint
        authorization_url="https://accounts.google.com/o/oauth2/v2/auth",
        token_url="https://oauth2.googleapis.com/token",
        scopes=("openid", "email", "profile"),
        identity_source="userinfo",
        userinfo_url="https://openidconnect.googleapis.com/v1/userinfo",
        extra_auth_params=(("access_type", "offline"),),
    ),
    OAuthProvider.APPLE: OAuthProviderConfig(  # nosec B106 - token_url is an endpoint
        authorization_url="https://appleid.apple.com/auth/authorize",
        token_url="https://appleid.apple.com/auth/token",
        scopes=("name", "email"),
        identity_source="id_token",
        issuer="https://appleid.apple.com",
        # Apple posts the callback as a form when name/email scopes are requested
        extra_auth_params=(("response_mode", "form_post"),),
    ),
}


def parse_provider(name: str) -> OAuthProvider:
    """Map a path parameter to a provider.

    Raises:
        UnsupportedOAuthProviderError: If the name is not a known provider.
    """
    try:
        return OAuthProvider(name.lower())
    except ValueError as exc:
        raise UnsupportedOAuthProviderError(name) from exc


def get_provider_config(provider: OAuthProvider) -> OAuthProviderConfig:
    """Get OAuth configuration for a provider."""
    return _PROVIDERS[provider]


def get_client_id(provider: OAuthProvider, settings: Settings) -> str:
    """Client ID configured for a provider ("" when unset)."""
    if provider is OAuthProvider.GOOGLE:
        return settings.google_client_id
    return settings.apple_client_id


def is_provider_configured(provider: OAuthProvider, settings: Settings) -> bool:
    """Whether every credential the provider needs is present."""
    if provider is OAuthProvider.GOOGLE:
        return bool(
            settings.google_client_id
            and settings.google_client_secret.get_secret_value()
        )
    return bool(
        settings.apple_client_id
        and settings.apple_team_id
        and settings.apple_key_id
        and settings.apple_private_key.get_secret_value()
    )


def build_authorization_url(
    provider: OAuthProvider,
    *,
    client_id: str,
    redirect_uri: str,
    state: str,
    code_verifier: str,
) -> str:
    """Build the provider redirect URL for one login attempt.

    Args:
        provider: Target provider.
        client_id: OAuth client ID.
        redirect_uri: Callback URL registered with the provider.
        state: Anti-CSRF state value.
        code_verifier: PKCE verifier; only its S256 challenge is sent.

    Returns:
        Full authorization URL.
    """
    config = get_provider_config(provider)
    params = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "scope": " ".join(config.scopes),
        "state": state,
        "code_challenge": generate_code_challenge(code_verifier),
        "code_challenge_method": "S256",
    }
    params.update(dict(config.extra_auth_params))
    return f"{config.authorization_url}?{urlencode(params)}"
