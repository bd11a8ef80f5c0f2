"""
Unit tests for notification adapters.

Tests verify the console and Brevo senders implement the
NotificationGateway protocol and map provider failures to
NotificationError.
"""

import logging
from unittest.mock import Mock

import pytest
import requests

from enrollgate.adapters.smtp.brevo import BREVO_ENDPOINT, BrevoEmailSender
from enrollgate.adapters.smtp.console import ConsoleEmailSender
from enrollgate.domain.exceptions import NotificationError
from enrollgate.domain.ports import NotificationGateway


class TestConsoleEmailSender:
    """Tests for ConsoleEmailSender."""

    def test_implements_protocol(self) -> None:
        def accepts_gateway(g: NotificationGateway) -> None:
            pass

        accepts_gateway(ConsoleEmailSender())
        assert ConsoleEmailSender.__bases__ == (object,)

    def test_logs_code(self, caplog: pytest.LogCaptureFixture) -> None:
        """Log format: [VERIFICATION] Email: ... Code: ..."""
        sender = ConsoleEmailSender()

        with caplog.at_level(logging.INFO):
            sender.send_verification_code("user@example.com", "567890")

        assert len(caplog.records) == 1
        assert "[VERIFICATION]" in caplog.text
        assert "Email: user@example.com" in caplog.text
        assert "Code: 567890" in caplog.text

    def test_returns_none(self) -> None:
        assert ConsoleEmailSender().send_verification_code("a@b.com", "123456") is None


def make_brevo(response: Mock | None = None, side_effect: Exception | None = None):
    session = Mock(spec=requests.Session)
    if side_effect is not None:
        session.post.side_effect = side_effect
    else:
        session.post.return_value = response
    sender = BrevoEmailSender(
        "api-key", "no-reply@example.com", "Enrollgate", http_client=session, timeout=10.0
    )
    return sender, session


class TestBrevoEmailSender:
    """Tests for BrevoEmailSender."""

    def test_requires_api_key(self) -> None:
        with pytest.raises(ValueError):
            BrevoEmailSender("", "no-reply@example.com", "Enrollgate")

    def test_posts_code_to_provider(self) -> None:
        sender, session = make_brevo(Mock(status_code=201))

        sender.send_verification_code("user@example.com", "482913")

        session.post.assert_called_once()
        args, kwargs = session.post.call_args
        assert args[0] == BREVO_ENDPOINT
        assert kwargs["timeout"] == 10.0
        assert kwargs["headers"]["api-key"] == "api-key"
        assert kwargs["json"]["to"] == [{"email": "user@example.com"}]
        assert "482913" in kwargs["json"]["htmlContent"]

    def test_non_2xx_raises(self) -> None:
        sender, _ = make_brevo(Mock(status_code=401))
        with pytest.raises(NotificationError):
            sender.send_verification_code("user@example.com", "482913")

    def test_timeout_raises(self) -> None:
        sender, _ = make_brevo(side_effect=requests.Timeout("slow"))
        with pytest.raises(NotificationError, match="timed out"):
            sender.send_verification_code("user@example.com", "482913")

    def test_network_error_raises(self) -> None:
        sender, _ = make_brevo(side_effect=requests.ConnectionError("down"))
        with pytest.raises(NotificationError, match="unreachable"):
            sender.send_verification_code("user@example.com", "482913")
