"""
Enrollment domain service - OTP issuance and verification state machine.

This module contains the core business logic for email enrollment:
a visitor requests a one-time code, receives it by email, and becomes a
subscriber by returning it before it expires.

Enrollment State Machine
========================

States (derived from store contents, never stored):
- UNKNOWN: no pending record, no subscriber record
- PENDING: live pending verification exists
- CONFIRMED: subscriber record exists (terminal)

Transitions:
    UNKNOWN/PENDING -> PENDING    issue(): new code replaces any previous one
    PENDING -> CONFIRMED          confirm() with the correct code
    PENDING -> UNKNOWN            confirm() after expiry deletes the record

Policies:
- A wrong code keeps the pending record, so the user may retry within the
  CONFIRM rate budget instead of requesting a new code after one typo.
- A delivery failure keeps the pending record. The code never reached the
  user, and the next issue() overwrites it.
"""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from .abuse import AbuseGate, RateBucket
from .codec import SecretCodec, is_code_shaped
from .exceptions import (
    AlreadySubscribed,
    BotSuspected,
    CodeExpired,
    DeliveryFailed,
    InvalidCode,
    InvalidEmail,
    InvalidInput,
    NoPendingVerification,
    NotificationError,
    RateLimited,
)
from .ports import BotVerdict, EnrollmentRepository, EnrollmentState, NotificationGateway

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MAX_EMAIL_LENGTH = 254
DEFAULT_CODE_TTL = timedelta(minutes=15)


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def normalize_email(email: object) -> str | None:
    """
    Normalize an email address for storage and lookup.

    Applies: strip whitespace + lowercase, then a shape check.
    Returns None when the input is not a plausible address.
    """
    if not isinstance(email, str):
        return None
    normalized = email.strip().lower()
    if len(normalized) > MAX_EMAIL_LENGTH or not EMAIL_PATTERN.match(normalized):
        return None
    return normalized


@dataclass
class EnrollmentService:
    """
    Domain service for email enrollment.

    Orchestrates the abuse gate, secret codec, repository, and
    notification gateway. Holds no per-request state.
    """

    repository: EnrollmentRepository
    notifier: NotificationGateway
    gate: AbuseGate
    codec: SecretCodec = field(default_factory=SecretCodec)
    code_ttl: timedelta = DEFAULT_CODE_TTL
    clock: Callable[[], datetime] = utcnow

    def issue(self, email: str, bot_token: str | None, client_key: str) -> str:
        """
        Issue a fresh verification code for an email.

        Args:
            email: Submitted email address (will be normalized)
            bot_token: Client-supplied bot-check token
            client_key: Client identity used for rate limiting

        Returns:
            Normalized email address

        Raises:
            RateLimited: ISSUE bucket exhausted for this client
            InvalidEmail: Email failed normalization
            BotSuspected: Bot check returned NOT_HUMAN
            AlreadySubscribed: Email is already confirmed
            DeliveryFailed: Code was stored but could not be sent
        """
        self._enforce_rate(client_key, RateBucket.ISSUE)

        normalized_email = normalize_email(email)
        if normalized_email is None:
            raise InvalidEmail()

        if self.gate.check_human(bot_token) is BotVerdict.NOT_HUMAN:
            logger.warning("[SECURITY] Bot check rejected issuance from %s", client_key)
            raise BotSuspected()

        if self.repository.is_subscribed(normalized_email):
            raise AlreadySubscribed(normalized_email)

        now = self.clock()
        purged = self.repository.purge_expired(now)
        if purged:
            logger.info("Purged %d expired pending verification(s)", purged)

        code = self.codec.generate()
        code_hash = self.codec.hash(code)
        self.repository.upsert_pending(
            normalized_email, code_hash, now + self.code_ttl, issued_at=now
        )

        try:
            self.notifier.send_verification_code(normalized_email, code)
        except NotificationError as e:
            logger.error("[ENROLL] Delivery failed for %s: %s", normalized_email, e)
            raise DeliveryFailed(str(e)) from e

        logger.info("[ENROLL] Verification code sent to %s", normalized_email)
        return normalized_email

    def confirm(self, email: str, code: str, client_key: str) -> str:
        """
        Confirm an email with the code it received.

        Args:
            email: Submitted email address (will be normalized)
            code: 6-digit verification code
            client_key: Client identity used for rate limiting

        Returns:
            Normalized email address, now a subscriber

        Raises:
            RateLimited: CONFIRM bucket exhausted for this client
            InvalidInput: Malformed email or code
            NoPendingVerification: Nothing to confirm (or already consumed)
            CodeExpired: Code was past expiry; record removed
            InvalidCode: Code mismatch; record kept
        """
        self._enforce_rate(client_key, RateBucket.CONFIRM)

        normalized_email = normalize_email(email)
        if normalized_email is None or not isinstance(code, str) or len(code) != 6:
            raise InvalidInput()

        pending = self.repository.get_pending(normalized_email)
        if pending is None:
            raise NoPendingVerification(normalized_email)

        if self.clock() > pending.expires_at:
            self.repository.delete_pending(normalized_email, pending.code_hash)
            logger.info("[CONFIRM] Expired code removed for %s", normalized_email)
            raise CodeExpired(normalized_email)

        if not is_code_shaped(code) or not self.codec.verify(code, pending.code_hash):
            logger.info("[CONFIRM] Invalid code for %s", normalized_email)
            raise InvalidCode(normalized_email)

        if not self.repository.confirm(normalized_email, pending.code_hash):
            # Consumed by a concurrent confirmation or replaced by a newer issuance
            raise NoPendingVerification(normalized_email)

        logger.info("[CONFIRM] %s is now subscribed", normalized_email)
        return normalized_email

    def state_of(self, email: str) -> EnrollmentState:
        """Derive the enrollment state of an email from the store."""
        normalized_email = normalize_email(email)
        if normalized_email is None:
            raise InvalidEmail()
        if self.repository.is_subscribed(normalized_email):
            return EnrollmentState.CONFIRMED
        pending = self.repository.get_pending(normalized_email)
        if pending is not None and self.clock() <= pending.expires_at:
            return EnrollmentState.PENDING
        return EnrollmentState.UNKNOWN

    def _enforce_rate(self, client_key: str, bucket: RateBucket) -> None:
        decision = self.gate.check_rate(client_key, bucket)
        if not decision.allowed:
            raise RateLimited(decision.retry_after, f"{bucket.value} budget exhausted")
