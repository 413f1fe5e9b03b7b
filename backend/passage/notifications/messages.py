"""Message types shared by the dispatcher and the channel senders."""

from dataclasses import dataclass
from enum import StrEnum


class Channel(StrEnum):
    """Delivery channel."""

    EMAIL = "email"


class Priority(StrEnum):
    """Queue priority. Higher-priority messages are sent first."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


PRIORITY_RANK: dict[Priority, int] = {
    Priority.HIGH: 0,
    Priority.MEDIUM: 1,
    Priority.LOW: 2,
}


@dataclass(frozen=True)
class OutboundMessage:
    """An already-rendered notification.

    Attributes:
        recipient: Address on the channel (an email for EMAIL).
        channel: Delivery channel.
        subject: Rendered subject line.
        body: Rendered plain-text body. May contain a one-time code, so
            it is never logged.
        priority: Queue priority.
    """

    recipient: str
    channel: Channel
    subject: str
    body: str
    priority: Priority = Priority.HIGH
