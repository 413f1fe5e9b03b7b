"""Channel senders.

- ResendEmailSender: Resend HTTP API via httpx (production)
- ConsoleEmailSender: writes a log line instead of sending (development)
- MemoryEmailSender: keeps an outbox list (tests)

Senders raise on failure; the dispatcher decides what a failure means.
"""

from typing import Protocol

import httpx
import structlog

from passage.core.config import Settings
from passage.core.logging import mask_email
from passage.notifications.messages import OutboundMessage

logger = structlog.get_logger()

_RESEND_API_URL = "https://api.resend.com/emails"
_RESEND_TIMEOUT = 10.0


class NotificationSender(Protocol):
    """Delivers one message on one channel."""

    async def send(self, message: OutboundMessage) -> None: ...


class ResendEmailSender:
    """Send plain-text email through the Resend API.

    Args:
        api_key: Resend API key.
        sender: From address.
        timeout: HTTP timeout in seconds.
    """

    def __init__(
        self, *, api_key: str, sender: str, timeout: float = _RESEND_TIMEOUT
    ) -> None:
        self._api_key = api_key
        self._sender = sender
        self._timeout = timeout

    async def send(self, message: OutboundMessage) -> None:
        """POST the message to Resend.

        Raises:
            httpx.HTTPError: If the request fails or Resend rejects it.
        """
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                _RESEND_API_URL,
                headers={"Authorization": f"Bearer {self._api_key}"},
                json={
                    "from": self._sender,
                    "to": message.recipient,
                    "subject": message.subject,
                    "text": message.body,
                },
                timeout=self._timeout,
            )
            resp.raise_for_status()


class ConsoleEmailSender:
    """Log outgoing email instead of sending it.

    The body is only printed in development, where reading the code from
    the console is the point.
    """

    def __init__(self, *, show_body: bool = False) -> None:
        self._show_body = show_body

    async def send(self, message: OutboundMessage) -> None:
        logger.info(
            "email (console backend)",
            to=mask_email(message.recipient),
            subject=message.subject,
            body=message.body if self._show_body else "<redacted>",
        )


class MemoryEmailSender:
    """Collect messages in memory."""

    def __init__(self) -> None:
        self.outbox: list[OutboundMessage] = []

    async def send(self, message: OutboundMessage) -> None:
        self.outbox.append(message)

    def last_to(self, recipient: str) -> OutboundMessage | None:
        """Most recent message for a recipient, if any."""
        for message in reversed(self.outbox):
            if message.recipient == recipient:
                return message
        return None


def build_email_sender(settings: Settings) -> NotificationSender:
    """Pick the email sender named by EMAIL_BACKEND."""
    if settings.email_backend == "resend":
        return ResendEmailSender(
            api_key=settings.resend_api_key.get_secret_value(),
            sender=settings.email_from,
        )
    if settings.email_backend == "memory":
        return MemoryEmailSender()
    return ConsoleEmailSender(show_body=settings.environment == "development")
