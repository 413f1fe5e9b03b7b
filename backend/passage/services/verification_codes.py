"""Verification code lifecycle: create-or-refresh and verify.

State machine per (contact | user, purpose, channel) key:

    none -> active -> consumed
                   -> expired   (lazy, checked at verify time)

One active row per key, refreshed in place on resend. The cooldown and
the attempt budget are both anchored to that single row, so neither needs
a window query across history.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import StrEnum

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from passage.core.errors import ResendTooSoonError
from passage.core.tokens import generate_numeric_code, hash_secret, secrets_match
from passage.models.verification_code import VerificationCode
from passage.repositories.verification_code_repository import (
    VerificationCodeRepository,
)

logger = logging.getLogger(__name__)


class VerificationOutcome(StrEnum):
    """Internal verify() result. Callers collapse all but two into "invalid"."""

    SUCCESS = "success"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    MISMATCH = "mismatch"
    TOO_MANY_ATTEMPTS = "too_many_attempts"


@dataclass(frozen=True)
class CodeKey:
    """Identifies the active code to verify.

    Exactly one of user_id / contact is used: the user-scoped key when a
    user is known, the contact key otherwise.
    """

    purpose: str
    channel: str
    user_id: uuid.UUID | None = None
    contact: str | None = None

    def __post_init__(self) -> None:
        if self.user_id is None and not self.contact:
            msg = "CodeKey needs a user_id or a contact"
            raise ValueError(msg)


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of verify().

    Attributes:
        outcome: Internal result branch.
        code: The row that was examined, if one was found.
    """

    outcome: VerificationOutcome
    code: VerificationCode | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is VerificationOutcome.SUCCESS


def _retry_after(last_sent_at: datetime, cooldown: timedelta, now: datetime) -> int:
    remaining = (last_sent_at + cooldown) - now
    return int(remaining.total_seconds()) + 1


async def _find_active(db: AsyncSession, key: CodeKey) -> VerificationCode | None:
    # A user-scoped row wins over a bare contact match.
    active = None
    if key.user_id is not None:
        active = await VerificationCodeRepository.get_active_by_user(
            db, user_id=key.user_id, purpose=key.purpose, channel=key.channel
        )
    if active is None and key.contact:
        active = await VerificationCodeRepository.get_active_by_contact(
            db, contact=key.contact, purpose=key.purpose, channel=key.channel
        )
    return active


async def create_or_refresh(
    db: AsyncSession,
    *,
    contact: str,
    purpose: str,
    channel: str,
    ttl: timedelta,
    cooldown: timedelta,
    max_attempts: int,
    user_id: uuid.UUID | None = None,
) -> str:
    """Issue a code for a key, reusing the active row when there is one.

    Args:
        db: Async database session. Caller commits.
        contact: Delivery address (normalized).
        purpose: VerificationPurpose value.
        channel: VerificationChannel value.
        ttl: Lifetime of the new code.
        cooldown: Minimum gap since the previous send.
        max_attempts: Wrong-guess budget for the new code.
        user_id: Owning user, when known.

    Returns:
        The plaintext code, for delivery. Only its hash is persisted.

    Raises:
        ResendTooSoonError: If the active row was sent within the cooldown.
    """
    now = datetime.now(UTC)
    key = CodeKey(purpose=purpose, channel=channel, user_id=user_id, contact=contact)
    active = await _find_active(db, key)

    if active is not None and now - active.last_sent_at < cooldown:
        raise ResendTooSoonError(_retry_after(active.last_sent_at, cooldown, now))

    code = generate_numeric_code()
    code_hash = hash_secret(code)
    expires_at = now + ttl

    if active is not None:
        refreshed = await VerificationCodeRepository.update_for_resend(
            db,
            active.id,
            code_hash=code_hash,
            expires_at=expires_at,
            last_sent_at=now,
            max_attempts=max_attempts,
        )
        if refreshed:
            return code
        logger.info(
            "Active verification code changed before refresh; inserting new row",
            extra={"purpose": purpose, "channel": channel},
        )

    try:
        async with db.begin_nested():
            await VerificationCodeRepository.create(
                db,
                user_id=user_id,
                contact=contact,
                purpose=purpose,
                channel=channel,
                code_hash=code_hash,
                max_attempts=max_attempts,
                last_sent_at=now,
                expires_at=expires_at,
            )
    except IntegrityError as exc:
        # A concurrent request inserted the active row first; it was just sent.
        logger.info(
            "Concurrent verification code insert lost the race",
            extra={"purpose": purpose, "channel": channel},
        )
        raise ResendTooSoonError(int(cooldown.total_seconds())) from exc

    return code


async def verify(db: AsyncSession, *, key: CodeKey, code: str) -> VerificationResult:
    """Check a supplied code against the active row for a key.

    A wrong guess increments the attempt counter atomically; reaching the
    budget reports TOO_MANY_ATTEMPTS. A correct guess consumes the row,
    conditioned on it still being active, so two concurrent correct
    guesses cannot both succeed.

    Args:
        db: Async database session. Caller commits; failed attempts must
            be committed even when the caller goes on to raise.
        key: Which active code to check.
        code: Code supplied by the user.

    Returns:
        VerificationResult with the internal outcome.
    """
    now = datetime.now(UTC)
    active = await _find_active(db, key)
    if active is None:
        return VerificationResult(VerificationOutcome.NOT_FOUND)

    if now > active.expires_at:
        return VerificationResult(VerificationOutcome.EXPIRED, active)

    if not secrets_match(code, active.code_hash):
        counts = await VerificationCodeRepository.increment_attempts(db, active.id)
        if counts is None:
            return VerificationResult(VerificationOutcome.NOT_FOUND, active)
        attempts, max_attempts = counts
        if attempts >= max_attempts:
            return VerificationResult(VerificationOutcome.TOO_MANY_ATTEMPTS, active)
        return VerificationResult(VerificationOutcome.MISMATCH, active)

    # The right code after the budget is spent does not unlock the row.
    if active.attempts >= active.max_attempts:
        return VerificationResult(VerificationOutcome.TOO_MANY_ATTEMPTS, active)

    consumed = await VerificationCodeRepository.consume(
        db, active.id, consumed_at=now
    )
    if not consumed:
        return VerificationResult(VerificationOutcome.NOT_FOUND, active)
    return VerificationResult(VerificationOutcome.SUCCESS, active)
