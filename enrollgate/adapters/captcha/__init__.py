"""Bot-check adapters."""

from .recaptcha import RecaptchaBotChecker

__all__ = ["RecaptchaBotChecker"]
