"""User model - identity record referenced by every code, token and session."""

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, String, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from passage.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from passage.models.session import UserSession

_DEFAULT_UUID = text("gen_random_uuid()")
_CASCADE_ALL_DELETE_ORPHAN = "all, delete-orphan"


class User(Base, TimestampMixin):
    """User account.

    Attributes:
        id: UUID primary key.
        first_name: Given name.
        last_name: Family name.
        email: Unique email address, stored lower-cased.
        password_hash: bcrypt hash. NULL for OAuth-only users.
        email_verified: Whether the email has been confirmed.
        created_at: Account creation timestamp (from TimestampMixin).
        updated_at: Last modification timestamp (from TimestampMixin).
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=_DEFAULT_UUID,
    )
    first_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        server_default="",
        default="",
    )
    last_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        server_default="",
        default="",
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    password_hash: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    email_verified: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=text("false"),
        default=False,
    )

    # Relationships
    sessions: Mapped[list["UserSession"]] = relationship(
        "UserSession",
        back_populates="user",
        cascade=_CASCADE_ALL_DELETE_ORPHAN,
        passive_deletes=True,
    )
