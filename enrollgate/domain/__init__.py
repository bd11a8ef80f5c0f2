"""
Domain layer - Pure business logic with zero framework imports.

This package contains the OTP issuance-and-verification state machine,
its abuse gate, and the secret codec. It defines its own port interfaces
for infrastructure abstraction, ensuring true hexagonal architecture
decoupling.
"""

from .abuse import AbuseGate, RateBucket, RateDecision, RatePolicy
from .codec import SecretCodec
from .enrollment import EnrollmentService, normalize_email
from .exceptions import (
    AlreadySubscribed,
    BotSuspected,
    CodeExpired,
    DeliveryFailed,
    EnrollmentError,
    InvalidCode,
    InvalidEmail,
    InvalidInput,
    NoPendingVerification,
    NotificationError,
    RateLimited,
    StoreUnavailable,
)
from .ports import (
    BotChecker,
    BotVerdict,
    EnrollmentRepository,
    EnrollmentState,
    NotificationGateway,
    PendingVerification,
)

__all__ = [
    "AbuseGate",
    "AlreadySubscribed",
    "BotChecker",
    "BotSuspected",
    "BotVerdict",
    "CodeExpired",
    "DeliveryFailed",
    "EnrollmentError",
    "EnrollmentRepository",
    "EnrollmentService",
    "EnrollmentState",
    "InvalidCode",
    "InvalidEmail",
    "InvalidInput",
    "NoPendingVerification",
    "NotificationError",
    "NotificationGateway",
    "PendingVerification",
    "RateBucket",
    "RateDecision",
    "RateLimited",
    "RatePolicy",
    "SecretCodec",
    "StoreUnavailable",
    "normalize_email",
]
