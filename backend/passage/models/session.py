"""Session model - opaque bearer credentials with sliding + absolute expiry.

The token column holds the credential itself (not a hash); the datastore
is the trust boundary. Tokens must never be logged.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, String, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from passage.models.base import Base

if TYPE_CHECKING:
    from passage.models.user import User

_DEFAULT_UUID = text("gen_random_uuid()")


class UserSession(Base):
    """Active login session.

    Attributes:
        id: UUID primary key.
        user_id: Authenticated user.
        session_token: Opaque "auth:"-prefixed token. Globally unique.
        user_agent: Client user agent at login (audit only).
        ip_address: Client IP at login (audit only).
        last_active_at: Last successful validation (sliding TTL anchor).
        created_at: Login time (absolute TTL anchor).
    """

    __tablename__ = "user_active_sessions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=_DEFAULT_UUID,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    session_token: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    user_agent: Mapped[str | None] = mapped_column(String(512), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    last_active_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="sessions")
