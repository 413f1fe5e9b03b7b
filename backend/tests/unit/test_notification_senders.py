"""Tests for notification channel senders."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest
from structlog.testing import capture_logs
from pydantic import SecretStr

from passage.core.config import Settings
from passage.notifications.messages import Channel, OutboundMessage
from passage.notifications.senders import (
    _RESEND_API_URL,
    ConsoleEmailSender,
    MemoryEmailSender,
    ResendEmailSender,
    build_email_sender,
)


def _message(recipient: str = "ada@example.com") -> OutboundMessage:
    return OutboundMessage(
        recipient=recipient,
        channel=Channel.EMAIL,
        subject="Verify your email address",
        body="Your code is 123456",
    )


def _response(status_code: int) -> httpx.Response:
    return httpx.Response(
        status_code, request=httpx.Request("POST", _RESEND_API_URL)
    )


class TestResendEmailSender:
    """Tests for ResendEmailSender."""

    async def test_posts_message_with_api_key(self):
        """Message fields and the bearer key are sent to Resend."""
        sender = ResendEmailSender(api_key="re_test", sender="noreply@passage.dev")
        with patch.object(
            httpx.AsyncClient,
            "post",
            new_callable=AsyncMock,
            return_value=_response(200),
        ) as mock_post:
            await sender.send(_message())

        args, kwargs = mock_post.call_args
        assert args[0] == _RESEND_API_URL
        assert kwargs["headers"]["Authorization"] == "Bearer re_test"
        assert kwargs["json"] == {
            "from": "noreply@passage.dev",
            "to": "ada@example.com",
            "subject": "Verify your email address",
            "text": "Your code is 123456",
        }

    async def test_error_status_raises(self):
        """A rejected send raises so the dispatcher can count it."""
        sender = ResendEmailSender(api_key="re_test", sender="noreply@passage.dev")
        with (
            patch.object(
                httpx.AsyncClient,
                "post",
                new_callable=AsyncMock,
                return_value=_response(422),
            ),
            pytest.raises(httpx.HTTPStatusError),
        ):
            await sender.send(_message())


class TestConsoleEmailSender:
    """Tests for ConsoleEmailSender."""

    async def test_masks_recipient_and_hides_body(self):
        """By default the body (and its code) is redacted."""
        with capture_logs() as logs:
            await ConsoleEmailSender().send(_message())

        assert len(logs) == 1
        assert logs[0]["to"] != "ada@example.com"
        assert logs[0]["body"] == "<redacted>"
        assert "123456" not in str(logs[0])

    async def test_show_body(self):
        """Development mode prints the body."""
        with capture_logs() as logs:
            await ConsoleEmailSender(show_body=True).send(_message())

        assert logs[0]["body"] == "Your code is 123456"


class TestMemoryEmailSender:
    """Tests for MemoryEmailSender."""

    async def test_records_and_finds_latest(self):
        """last_to() returns the newest message for a recipient."""
        sender = MemoryEmailSender()
        await sender.send(_message("a@example.com"))
        first_b = _message("b@example.com")
        await sender.send(first_b)
        latest_a = OutboundMessage(
            recipient="a@example.com",
            channel=Channel.EMAIL,
            subject="Second",
            body="",
        )
        await sender.send(latest_a)

        assert len(sender.outbox) == 3
        assert sender.last_to("a@example.com") is latest_a
        assert sender.last_to("b@example.com") is first_b
        assert sender.last_to("c@example.com") is None


class TestBuildEmailSender:
    """Tests for build_email_sender()."""

    def test_console_by_default(self):
        """The default backend logs instead of sending."""
        assert isinstance(
            build_email_sender(Settings(_env_file=None)), ConsoleEmailSender
        )

    def test_resend(self):
        """EMAIL_BACKEND=resend builds the Resend sender."""
        settings = Settings(
            _env_file=None,
            email_backend="resend",
            resend_api_key=SecretStr("re_test"),
        )
        assert isinstance(build_email_sender(settings), ResendEmailSender)

    def test_memory(self):
        """EMAIL_BACKEND=memory builds the in-memory sender."""
        settings = Settings(_env_file=None, email_backend="memory")
        assert isinstance(build_email_sender(settings), MemoryEmailSender)
