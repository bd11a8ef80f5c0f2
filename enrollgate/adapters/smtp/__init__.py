"""Notification adapters - Verification code delivery."""

from .brevo import BrevoEmailSender
from .console import ConsoleEmailSender

__all__ = ["BrevoEmailSender", "ConsoleEmailSender"]
