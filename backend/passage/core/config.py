"""Application configuration loaded from environment variables.

Settings for the database, sessions, verification codes, OAuth providers,
notification delivery and background cleanup. Uses pydantic-settings for
validation and .env file support.

Lifecycle knobs (TTLs, cooldowns, attempt budgets) are read through the
``effective_*`` properties: a zero or negative value falls back to the
default instead of meaning "no limit".
"""

from datetime import timedelta
from typing import Literal

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Known insecure default password that must not be used in production
# Security: Runtime check in check_production_security() prevents use in production
_INSECURE_DEFAULT_PASSWORD = "passage_dev_password"  # nosec B105

# Minimum length for AUTH_SECRET in production (256 bits = 32 bytes)
_MIN_AUTH_SECRET_LENGTH = 32

# Lifecycle defaults
DEFAULT_VERIFICATION_CODE_TTL = timedelta(minutes=10)
DEFAULT_RESEND_COOLDOWN = timedelta(seconds=60)
DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_RESET_TOKEN_TTL = timedelta(minutes=15)
DEFAULT_SESSION_SLIDING_TTL = timedelta(days=7)
DEFAULT_SESSION_ABSOLUTE_TTL = timedelta(days=30)
DEFAULT_OAUTH_STATE_TTL = timedelta(minutes=5)


def _positive_or_default(value: timedelta, default: timedelta) -> timedelta:
    return value if value > timedelta(0) else default


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_host: str = "localhost"
    database_port: int = 5432
    database_name: str = "passage"
    database_user: str = "passage_user"
    database_password: str = _INSECURE_DEFAULT_PASSWORD

    # API
    # 0.0.0.0 binds to all network interfaces (required for Docker containers)
    api_host: str = "0.0.0.0"  # nosec B104
    api_port: int = 8000

    # CORS (Security)
    # Never set to ["*"] when allow_credentials=True
    allowed_origins: list[str] = ["http://localhost:3000"]

    # Application
    environment: str = "development"
    log_level: str = "INFO"
    log_json: bool = False

    # Authentication
    # AUTH_SECRET keys the HMAC used to hash codes and tokens at rest.
    # No usable default: startup refuses to run with an empty secret.
    auth_secret: SecretStr = SecretStr("")
    auth_cookie_name: str = "passage.session-token"
    auth_cookie_secure: bool = True
    auth_cookie_samesite: Literal["lax", "strict", "none"] = "lax"
    auth_cookie_domain: str = ""

    # Verification codes and reset tokens
    verification_code_ttl_minutes: int = 10
    verification_resend_cooldown_seconds: int = 60
    verification_max_attempts: int = 5
    password_reset_token_ttl_minutes: int = 15

    # Sessions
    session_sliding_ttl_hours: int = 7 * 24
    session_absolute_ttl_hours: int = 30 * 24

    # OAuth
    oauth_state_ttl_minutes: int = 5
    # Whether a provider's "email verified" claim marks the local account verified
    oauth_trust_provider_email: bool = True
    google_client_id: str = ""
    google_client_secret: SecretStr = SecretStr("")
    apple_client_id: str = ""
    apple_team_id: str = ""
    apple_key_id: str = ""
    apple_private_key: SecretStr = SecretStr("")

    # Email
    email_backend: Literal["console", "resend", "memory"] = "console"
    email_from: str = "noreply@passage.dev"
    support_email: str = "support@passage.dev"
    resend_api_key: SecretStr = SecretStr("")

    # Notification dispatcher
    notification_queue_size: int = 1000
    notification_workers: int = 1
    notification_drain_timeout_seconds: float = 10.0

    # Background cleanup of expired OAuth states and sessions
    cleanup_interval_seconds: int = 15 * 60

    # Frontend URL (OAuth callbacks redirect back here)
    frontend_url: str = "http://localhost:3000"
    # Public base URL of this API (OAuth redirect_uri is built from it)
    backend_url: str = "http://localhost:8000"

    # Rate Limiting (Security)
    rate_limit_enabled: bool = True  # Disable for testing

    @property
    def database_url(self) -> str:
        """Async database URL for SQLAlchemy."""
        return (
            f"postgresql+asyncpg://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @property
    def database_url_sync(self) -> str:
        """Sync database URL for Alembic."""
        return (
            f"postgresql://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    # =========================================================================
    # Effective lifecycle values (zero/negative falls back to defaults)
    # =========================================================================

    @property
    def effective_code_ttl(self) -> timedelta:
        """Lifetime of a freshly issued verification code."""
        return _positive_or_default(
            timedelta(minutes=self.verification_code_ttl_minutes),
            DEFAULT_VERIFICATION_CODE_TTL,
        )

    @property
    def effective_resend_cooldown(self) -> timedelta:
        """Minimum gap between two sends for the same code key."""
        return _positive_or_default(
            timedelta(seconds=self.verification_resend_cooldown_seconds),
            DEFAULT_RESEND_COOLDOWN,
        )

    @property
    def effective_max_attempts(self) -> int:
        """Wrong-code budget per issued code."""
        if self.verification_max_attempts > 0:
            return self.verification_max_attempts
        return DEFAULT_MAX_ATTEMPTS

    @property
    def effective_reset_token_ttl(self) -> timedelta:
        """Lifetime of a password-reset action token."""
        return _positive_or_default(
            timedelta(minutes=self.password_reset_token_ttl_minutes),
            DEFAULT_RESET_TOKEN_TTL,
        )

    @property
    def effective_session_sliding_ttl(self) -> timedelta:
        """Idle window after which a session expires."""
        return _positive_or_default(
            timedelta(hours=self.session_sliding_ttl_hours),
            DEFAULT_SESSION_SLIDING_TTL,
        )

    @property
    def effective_session_absolute_ttl(self) -> timedelta:
        """Hard cap on session lifetime, regardless of activity."""
        return _positive_or_default(
            timedelta(hours=self.session_absolute_ttl_hours),
            DEFAULT_SESSION_ABSOLUTE_TTL,
        )

    @property
    def effective_oauth_state_ttl(self) -> timedelta:
        """Lifetime of one OAuth login attempt."""
        return _positive_or_default(
            timedelta(minutes=self.oauth_state_ttl_minutes),
            DEFAULT_OAUTH_STATE_TTL,
        )

    @model_validator(mode="after")
    def check_production_security(self) -> "Settings":
        """Validate production security requirements.

        Security: Prevents deployment with known insecure defaults.
        Checks:
        - SameSite=None requires Secure flag (browser requirement)
        - CORS must not use wildcard origin (incompatible with credentials)
        - Database password must not be the default in production
        - AUTH_SECRET must be set and >= 32 chars in production
        """
        if self.auth_cookie_samesite == "none" and not self.auth_cookie_secure:
            msg = (
                "AUTH_COOKIE_SECURE must be true when AUTH_COOKIE_SAMESITE=none. "
                "Browsers reject SameSite=None cookies without the Secure flag."
            )
            raise ValueError(msg)

        if "*" in self.allowed_origins:
            msg = (
                "ALLOWED_ORIGINS must not contain '*' (wildcard). "
                "Session cookies are incompatible with wildcard CORS origins."
            )
            raise ValueError(msg)

        if self.environment == "production":
            if self.database_password == _INSECURE_DEFAULT_PASSWORD:
                msg = (
                    "Cannot use default database password in production. "
                    "Set DATABASE_PASSWORD environment variable to a secure value."
                )
                raise ValueError(msg)

            secret_value = self.auth_secret.get_secret_value()
            if len(secret_value) < _MIN_AUTH_SECRET_LENGTH:
                msg = (
                    f"AUTH_SECRET must be at least {_MIN_AUTH_SECRET_LENGTH} "
                    "characters in production. "
                    'Generate with: python -c "import secrets; '
                    'print(secrets.token_hex(32))"'
                )
                raise ValueError(msg)

            if self.email_backend == "memory":
                msg = "EMAIL_BACKEND=memory is for tests and cannot be used in production."
                raise ValueError(msg)

        return self


settings = Settings()
