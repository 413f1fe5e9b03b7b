"""OAuth state model - one-shot CSRF + PKCE correlation per login attempt."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from passage.models.base import Base, TimestampMixin


class OAuthState(Base, TimestampMixin):
    """Pending OAuth login attempt.

    Deleted when the callback is processed (success or failure); the
    cleanup worker removes rows whose callback never arrived.

    Attributes:
        state: Anti-CSRF value sent through the provider redirect. Primary key.
        provider: OAuthProvider value.
        user_id: User the attempt is linked to, if known.
        verifier: PKCE code verifier (server-side only).
        expires_at: Attempt expiry (minutes after creation).
    """

    __tablename__ = "oauth_states"

    state: Mapped[str] = mapped_column(String(128), primary_key=True)
    provider: Mapped[str] = mapped_column(String(32), nullable=False)
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    verifier: Mapped[str] = mapped_column(String(128), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
