"""reCAPTCHA bot-check adapter - Implements BotChecker protocol.

Verifies client tokens against Google's siteverify endpoint. Transport
errors, malformed payloads, failed challenges and scores under the
threshold all come back as NOT_HUMAN; the score itself never leaves this
module except in debug logs.
"""

import json
import logging

import requests

from enrollgate.domain.ports import BotVerdict

logger = logging.getLogger(__name__)


class RecaptchaBotChecker:
    """Score reCAPTCHA tokens."""

    _RECAPTCHA_ENDPOINT = "https://www.google.com/recaptcha/api/siteverify"

    def __init__(
        self,
        secret: str,
        *,
        min_score: float = 0.5,
        http_client: requests.Session | None = None,
        request_timeout_s: float = 5.0,
    ) -> None:
        if not secret:
            raise ValueError("reCAPTCHA secret is not configured")

        self._secret = secret
        self._min_score = max(0.0, min(min_score, 1.0))
        self._http = http_client or requests.Session()
        self._timeout = max(1.0, request_timeout_s)

    def score(self, token: str | None) -> BotVerdict:
        """Verify token and map the provider answer to a verdict."""
        normalized_token = (token or "").strip()
        if not normalized_token:
            return BotVerdict.NOT_HUMAN

        payload = {"secret": self._secret, "response": normalized_token}

        try:
            response = self._http.post(self._RECAPTCHA_ENDPOINT, data=payload, timeout=self._timeout)
        except requests.RequestException as exc:
            logger.error("[SECURITY] reCAPTCHA verify error: %s", exc)
            return BotVerdict.NOT_HUMAN

        try:
            data = response.json()
        except (json.JSONDecodeError, ValueError):
            logger.warning("reCAPTCHA returned non-JSON payload (status %s)", response.status_code)
            return BotVerdict.NOT_HUMAN

        success = bool(data.get("success"))
        score = data.get("score")

        logger.debug(
            "reCAPTCHA verification result",
            extra={"success": success, "score": score, "action": data.get("action")},
        )

        if not success:
            return BotVerdict.NOT_HUMAN

        # v2 challenges carry no score; a successful solve counts as human
        if score is not None:
            try:
                if float(score) < self._min_score:
                    return BotVerdict.NOT_HUMAN
            except (TypeError, ValueError):
                return BotVerdict.NOT_HUMAN

        return BotVerdict.HUMAN
