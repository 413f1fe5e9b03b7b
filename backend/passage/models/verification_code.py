"""Verification code model - one-time 6-digit codes.

At most one unconsumed row exists per (contact, purpose, channel), and per
(user_id, purpose, channel) when a user is known. Both rules are partial
unique indexes over the active subset, so consumed and expired rows
accumulate as history without blocking new codes.
"""

import uuid
from datetime import datetime
from enum import StrEnum

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from passage.models.base import Base

_DEFAULT_UUID = text("gen_random_uuid()")


class VerificationPurpose(StrEnum):
    """What a verification code authorises."""

    EMAIL_VERIFY = "email_verify"
    PASSWORD_RESET = "password_reset"


class VerificationChannel(StrEnum):
    """Out-of-band channel a code is delivered through."""

    EMAIL = "email"


class VerificationCode(Base):
    """One-time numeric code, stored as a hash.

    Attributes:
        id: UUID primary key.
        user_id: Owning user, when known.
        contact: Address the code was sent to (e.g., an email).
        purpose: VerificationPurpose value.
        channel: VerificationChannel value.
        code_hash: HMAC digest of the plaintext code.
        attempts: Wrong guesses recorded against this row.
        max_attempts: Wrong-guess budget.
        last_sent_at: When the current code was sent (cooldown anchor).
        expires_at: When the current code stops verifying.
        consumed_at: Set once on successful verification. NULL = active.
        created_at: Row creation timestamp.
    """

    __tablename__ = "verification_codes"
    __table_args__ = (
        CheckConstraint(
            "purpose IN ('email_verify', 'password_reset')",
            name="ck_verification_codes_purpose",
        ),
        CheckConstraint(
            "channel IN ('email')",
            name="ck_verification_codes_channel",
        ),
        Index(
            "uq_verification_codes_active_contact",
            "contact",
            "purpose",
            "channel",
            unique=True,
            postgresql_where=text("consumed_at IS NULL"),
        ),
        Index(
            "uq_verification_codes_active_user",
            "user_id",
            "purpose",
            "channel",
            unique=True,
            postgresql_where=text("consumed_at IS NULL AND user_id IS NOT NULL"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=_DEFAULT_UUID,
    )
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=True,
    )
    contact: Mapped[str] = mapped_column(String(255), nullable=False)
    purpose: Mapped[str] = mapped_column(String(32), nullable=False)
    channel: Mapped[str] = mapped_column(String(16), nullable=False)
    code_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    attempts: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        server_default=text("0"),
        default=0,
    )
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False)
    last_sent_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
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
