"""
Brevo email sender adapter - Implements NotificationGateway protocol.

Delivers the verification code through Brevo's transactional email
REST API. Every failure mode (timeout, network error, non-2xx response)
is reported as NotificationError so the domain can map it to a failed
issuance.
"""

import logging
from html import escape

import requests

from enrollgate.domain.exceptions import NotificationError

logger = logging.getLogger(__name__)

BREVO_ENDPOINT = "https://api.brevo.com/v3/smtp/email"

_SUBJECT = "Your verification code"
_HTML_BODY = (
    "<html><body>"
    "<p>Use this code to confirm your email address. It expires in 15 minutes.</p>"
    '<p style="font-family: monospace; font-size: 28px; letter-spacing: 8px;">{code}</p>'
    "</body></html>"
)


class BrevoEmailSender:
    """Send verification codes via the Brevo HTTP API."""

    def __init__(
        self,
        api_key: str,
        from_email: str,
        sender_name: str,
        *,
        http_client: requests.Session | None = None,
        timeout: float = 10.0,
    ) -> None:
        if not api_key:
            raise ValueError("Brevo API key is required")
        self._api_key = api_key
        self._from_email = from_email
        self._sender_name = sender_name
        self._http = http_client or requests.Session()
        self._timeout = timeout

    def send_verification_code(self, email: str, code: str) -> None:
        """
        Send the code to email.

        Raises:
            NotificationError: Provider unreachable, timed out, or rejected the message
        """
        payload = {
            "sender": {"name": self._sender_name, "email": self._from_email},
            "to": [{"email": email}],
            "subject": _SUBJECT,
            "htmlContent": _HTML_BODY.format(code=escape(code)),
        }
        headers = {"api-key": self._api_key, "Content-Type": "application/json"}

        try:
            response = self._http.post(
                BREVO_ENDPOINT, json=payload, headers=headers, timeout=self._timeout
            )
        except requests.Timeout as e:
            raise NotificationError("email provider timed out") from e
        except requests.RequestException as e:
            raise NotificationError("email provider unreachable") from e

        if not 200 <= response.status_code < 300:
            logger.warning("Brevo rejected message with status %s", response.status_code)
            raise NotificationError(f"email provider returned {response.status_code}")
