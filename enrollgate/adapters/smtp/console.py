"""
Console email sender adapter - Implements NotificationGateway protocol.

This module provides a console-based implementation of the domain's
notification port, logging verification codes for local development.
"""

import logging

logger = logging.getLogger(__name__)


class ConsoleEmailSender:
    """
    Implements NotificationGateway protocol via console logging.

    Uses structural subtyping - no explicit inheritance from Protocol.
    Selected when no email provider key is configured.
    """

    def send_verification_code(self, email: str, code: str) -> None:
        """
        Log verification code to console (simulates email delivery).

        Args:
            email: Recipient email address (normalized by domain layer)
            code: 6-digit verification code
        """
        logger.info("[VERIFICATION] Email: %s Code: %s", email, code)
