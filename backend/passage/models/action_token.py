"""Action token model - single-use proof that an OTP challenge succeeded."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, func, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from passage.models.base import Base

_DEFAULT_UUID = text("gen_random_uuid()")

# Purpose string for tokens minted by the password-reset flow
PASSWORD_RESET_PURPOSE = "password_reset"


class ActionToken(Base):
    """Short-lived bearer token authorising one sensitive follow-up action.

    Looked up by token_hash + purpose + unconsumed. Only the hash is stored.

    Attributes:
        id: UUID primary key.
        user_id: User the action applies to.
        purpose: What the token authorises (e.g., "password_reset").
        token_hash: HMAC digest of the plaintext token. Globally unique.
        expires_at: Token expiry timestamp.
        consumed_at: Set on redemption. NULL = still usable.
        created_at: Row creation timestamp.
    """

    __tablename__ = "action_tokens"
    __table_args__ = (Index("ix_action_tokens_user_purpose", "user_id", "purpose"),)

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=_DEFAULT_UUID,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    purpose: Mapped[str] = mapped_column(String(50), nullable=False)
    token_hash: Mapped[str] = mapped_column(
        String(128),
        unique=True,
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    consumed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
