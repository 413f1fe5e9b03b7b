"""Tests for rate limiting behavior.

Security: unauthenticated auth endpoints are limited per client IP.
"""

import json
from unittest.mock import MagicMock

from starlette.requests import Request

from passage.core.rate_limiting import (
    _rate_limit_key_func,
    limiter,
    rate_limit_exceeded_handler,
)


def _request(client_host: str | None = "203.0.113.7") -> Request:
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/api/v1/auth/login",
        "headers": [],
        "client": (client_host, 50000) if client_host else None,
    }
    return Request(scope)


class TestRateLimitExceededHandler:
    """Tests for rate limit exceeded response format."""

    def test_returns_429_with_envelope(self):
        """Rate limit responses use the standard error envelope."""
        exc = MagicMock()
        exc.detail = "10 per 15 minute"

        response = rate_limit_exceeded_handler(_request(), exc)
        body = json.loads(response.body.decode())

        assert response.status_code == 429
        assert body["error"]["code"] == "RATE_LIMITED"
        assert "Rate limit exceeded" in body["error"]["message"]

    def test_retry_after_fallback_on_invalid_detail(self):
        """Retry-After falls back to 60 if parsing fails."""
        exc = MagicMock()
        exc.detail = "unexpected format"

        response = rate_limit_exceeded_handler(_request(), exc)

        assert response.headers.get("Retry-After") == "60"

    def test_retry_after_handles_none_detail(self):
        """Retry-After falls back to 60 if detail is None."""
        exc = MagicMock()
        exc.detail = None

        response = rate_limit_exceeded_handler(_request(), exc)

        assert response.headers.get("Retry-After") == "60"


class TestRateLimitKeyFunction:
    """Tests for the per-IP key."""

    def test_keys_on_client_ip(self):
        """Key is the client address with an ip: prefix."""
        assert _rate_limit_key_func(_request("203.0.113.7")) == "ip:203.0.113.7"

    def test_forwarded_for_is_ignored(self):
        """Clients cannot pick their own bucket with X-Forwarded-For."""
        request = _request("203.0.113.7")
        request.scope["headers"] = [(b"x-forwarded-for", b"198.51.100.1")]
        assert _rate_limit_key_func(request) == "ip:203.0.113.7"

    def test_distinct_clients_get_distinct_keys(self):
        """Two addresses never share a bucket."""
        assert _rate_limit_key_func(_request("203.0.113.7")) != _rate_limit_key_func(
            _request("203.0.113.8")
        )


def test_limiter_uses_key_function():
    """The global limiter is wired to the per-IP key."""
    assert limiter._key_func is _rate_limit_key_func
