"""Initial schema: users, verification codes, action tokens, sessions, OAuth states.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-17

- pgcrypto provides gen_random_uuid() for UUID primary keys.
- verification_codes carries two partial unique indexes over unconsumed
  rows: one active code per (contact, purpose, channel) and, when a user
  is known, per (user_id, purpose, channel).
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_UUID_DEFAULT = sa.text("gen_random_uuid()")


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    # =========================================================================
    # users
    # =========================================================================
    op.create_table(
        "users",
        sa.Column(
            "id", UUID(as_uuid=True), primary_key=True, server_default=_UUID_DEFAULT
        ),
        sa.Column("first_name", sa.String(100), nullable=False, server_default=""),
        sa.Column("last_name", sa.String(100), nullable=False, server_default=""),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column(
            "email_verified",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("email", name="users_email_key"),
    )

    # =========================================================================
    # verification_codes
    # =========================================================================
    op.create_table(
        "verification_codes",
        sa.Column(
            "id", UUID(as_uuid=True), primary_key=True, server_default=_UUID_DEFAULT
        ),
        sa.Column(
            "user_id",
            UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("contact", sa.String(255), nullable=False),
        sa.Column("purpose", sa.String(32), nullable=False),
        sa.Column("channel", sa.String(16), nullable=False),
        sa.Column("code_hash", sa.String(128), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("max_attempts", sa.Integer(), nullable=False),
        sa.Column("last_sent_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("consumed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.CheckConstraint(
            "purpose IN ('email_verify', 'password_reset')",
            name="ck_verification_codes_purpose",
        ),
        sa.CheckConstraint(
            "channel IN ('email')",
            name="ck_verification_codes_channel",
        ),
    )
    op.create_index(
        "uq_verification_codes_active_contact",
        "verification_codes",
        ["contact", "purpose", "channel"],
        unique=True,
        postgresql_where=sa.text("consumed_at IS NULL"),
    )
    op.create_index(
        "uq_verification_codes_active_user",
        "verification_codes",
        ["user_id", "purpose", "channel"],
        unique=True,
        postgresql_where=sa.text("consumed_at IS NULL AND user_id IS NOT NULL"),
    )

    # =========================================================================
    # action_tokens
    # =========================================================================
    op.create_table(
        "action_tokens",
        sa.Column(
            "id", UUID(as_uuid=True), primary_key=True, server_default=_UUID_DEFAULT
        ),
        sa.Column(
            "user_id",
            UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("purpose", sa.String(50), nullable=False),
        sa.Column("token_hash", sa.String(128), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("consumed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.UniqueConstraint("token_hash", name="action_tokens_token_hash_key"),
    )
    op.create_index(
        "ix_action_tokens_user_purpose", "action_tokens", ["user_id", "purpose"]
    )

    # =========================================================================
    # user_active_sessions
    # =========================================================================
    op.create_table(
        "user_active_sessions",
        sa.Column(
            "id", UUID(as_uuid=True), primary_key=True, server_default=_UUID_DEFAULT
        ),
        sa.Column(
            "user_id",
            UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("session_token", sa.String(255), nullable=False),
        sa.Column("user_agent", sa.String(512), nullable=True),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column("last_active_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "session_token", name="user_active_sessions_session_token_key"
        ),
    )
    op.create_index(
        "ix_user_active_sessions_user_id", "user_active_sessions", ["user_id"]
    )

    # =========================================================================
    # oauth_states
    # =========================================================================
    op.create_table(
        "oauth_states",
        sa.Column("state", sa.String(128), primary_key=True),
        sa.Column("provider", sa.String(32), nullable=False),
        sa.Column(
            "user_id",
            UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("verifier", sa.String(128), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_oauth_states_expires_at", "oauth_states", ["expires_at"])


def downgrade() -> None:
    op.drop_index("ix_oauth_states_expires_at", table_name="oauth_states")
    op.drop_table("oauth_states")
    op.drop_index(
        "ix_user_active_sessions_user_id", table_name="user_active_sessions"
    )
    op.drop_table("user_active_sessions")
    op.drop_index("ix_action_tokens_user_purpose", table_name="action_tokens")
    op.drop_table("action_tokens")
    op.drop_index("uq_verification_codes_active_user", table_name="verification_codes")
    op.drop_index(
        "uq_verification_codes_active_contact", table_name="verification_codes"
    )
    op.drop_table("verification_codes")
    op.drop_table("users")
