"""SQLAlchemy ORM models for Passage.

All models are exported from this module for convenient imports:
    from passage.models import User, VerificationCode, ...

Models are organized by table:
- user.py: User
- verification_code.py: VerificationCode (+ purpose/channel enums)
- action_token.py: ActionToken
- session.py: UserSession
- oauth_state.py: OAuthState
"""

from passage.models.action_token import PASSWORD_RESET_PURPOSE, ActionToken
from passage.models.base import Base, TimestampMixin
from passage.models.oauth_state import OAuthState
from passage.models.session import UserSession
from passage.models.user import User
from passage.models.verification_code import (
    VerificationChannel,
    VerificationCode,
    VerificationPurpose,
)

__all__ = [
    "PASSWORD_RESET_PURPOSE",
    "ActionToken",
    "Base",
    "OAuthState",
    "TimestampMixin",
    "User",
    "UserSession",
    "VerificationChannel",
    "VerificationCode",
    "VerificationPurpose",
]
