"""Secret generation and hashing for codes, tokens and OAuth state.

Plaintext secrets exist only in memory between generation and hashing (and
in the outbound notification). Storage always holds the HMAC-SHA256 digest,
keyed by the deployment's AUTH_SECRET, so equality lookups work without
keeping anything reversible at rest.

The hashing key is process-wide state set once at startup through
init_secret_hasher(). There is no compiled-in fallback key.
"""

import hashlib
import hmac
import secrets

# Random bytes behind session tokens, reset tokens, OAuth state and verifiers
DEFAULT_TOKEN_BYTES = 32

# Human-facing OTP width
DEFAULT_CODE_DIGITS = 6

_hash_key: bytes | None = None


def init_secret_hasher(secret: str) -> None:
    """Install the HMAC key used by hash_secret().

    Args:
        secret: Deployment secret (AUTH_SECRET).

    Raises:
        RuntimeError: If the secret is empty, or a different key is
            already installed.
    """
    global _hash_key  # noqa: PLW0603
    if not secret:
        msg = "AUTH_SECRET is not configured; refusing to hash secrets without a key"
        raise RuntimeError(msg)
    key = secret.encode()
    if _hash_key is not None and _hash_key != key:
        msg = "Secret hasher is already initialised with a different key"
        raise RuntimeError(msg)
    _hash_key = key


def reset_secret_hasher() -> None:
    """Forget the installed key. Only tests should need this."""
    global _hash_key  # noqa: PLW0603
    _hash_key = None


def generate_opaque_token(byte_length: int = DEFAULT_TOKEN_BYTES) -> str:
    """Generate a URL-safe random token.

    Args:
        byte_length: Number of random bytes (43 chars for the default 32).

    Returns:
        Base64url-encoded random bytes without padding.
    """
    return secrets.token_urlsafe(byte_length)


def generate_numeric_code(digits: int = DEFAULT_CODE_DIGITS) -> str:
    """Generate a zero-padded numeric one-time code.

    Args:
        digits: Code width.

    Returns:
        Uniformly random string of ``digits`` decimal characters.
    """
    if digits <= 0:
        msg = f"digits must be positive, got {digits}"
        raise ValueError(msg)
    return f"{secrets.randbelow(10**digits):0{digits}d}"


def hash_secret(secret: str) -> str:
    """Hash a code or token for storage and lookup.

    Args:
        secret: Plaintext code or token.

    Returns:
        64-character hex HMAC-SHA256 digest.

    Raises:
        RuntimeError: If init_secret_hasher() has not been called.
    """
    if _hash_key is None:
        msg = "Secret hasher used before init_secret_hasher()"
        raise RuntimeError(msg)
    return hmac.new(_hash_key, secret.encode(), hashlib.sha256).hexdigest()


def secrets_match(supplied: str, stored_hash: str) -> bool:
    """Constant-time comparison of a supplied secret against a stored hash."""
    return hmac.compare_digest(hash_secret(supplied), stored_hash)
