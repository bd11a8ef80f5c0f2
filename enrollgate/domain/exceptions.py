"""
Domain exceptions - Semantic error types for enrollment.

This module defines domain-specific exceptions that communicate
business rule violations without leaking infrastructure details.
Each user-facing error carries the HTTP status and the exact message
returned to the caller.
"""


class EnrollmentError(Exception):
    """Base class for enrollment domain errors."""

    status_code = 500
    message = "An error occurred. Please try again later."

    def __init__(self, detail: str | None = None) -> None:
        # detail is for server-side logs only, never returned to the caller
        super().__init__(detail or self.message)


class InvalidEmail(EnrollmentError):
    """Email failed normalization or pattern match."""

    status_code = 400
    message = "Please provide a valid email address."


class InvalidInput(EnrollmentError):
    """Confirmation request has a malformed email or code."""

    status_code = 400
    message = "Invalid email or code format."


class AlreadySubscribed(EnrollmentError):
    """Email already has a confirmed subscriber record."""

    status_code = 400
    message = "This email is already verified and subscribed!"


class BotSuspected(EnrollmentError):
    """Bot check did not return a human verdict."""

    status_code = 403
    message = "Security check failed. Please try again."


class RateLimited(EnrollmentError):
    """Client exceeded the budget for a rate-limit bucket."""

    status_code = 429
    message = "Too many requests, please try again later."

    def __init__(self, retry_after: int, detail: str | None = None) -> None:
        super().__init__(detail)
        self.retry_after = retry_after


class NoPendingVerification(EnrollmentError):
    """No live pending record exists for the email."""

    status_code = 400
    message = "No pending verification found for this email."


class CodeExpired(EnrollmentError):
    """Pending record was past its expiry; it has been removed."""

    status_code = 400
    message = "Verification code has expired."


class InvalidCode(EnrollmentError):
    """Submitted code does not match the pending hash."""

    status_code = 400
    message = "Invalid verification code."


class DeliveryFailed(EnrollmentError):
    """Verification email could not be delivered."""

    status_code = 500
    message = "An error occurred. Please try again later."


class StoreUnavailable(EnrollmentError):
    """Storage layer failed or the connection pool is exhausted."""

    status_code = 500
    message = "An error occurred. Please try again later."


class NotificationError(Exception):
    """Raised by notification adapters when delivery fails."""

    pass
