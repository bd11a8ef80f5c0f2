"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the interfaces (ports) that the domain requires
from infrastructure, plus the value types that cross those ports.
Adapters implement these protocols.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Protocol


class EnrollmentState(str, Enum):
    """
    Enrollment state of a single email, derived from store contents.

    State Transitions:
    - UNKNOWN -> PENDING (code issued)
    - PENDING -> PENDING (code re-issued, previous code invalidated)
    - PENDING -> CONFIRMED (correct code submitted before expiry)
    - PENDING -> UNKNOWN (expired record removed)

    Terminal States:
    - CONFIRMED: no transition back to PENDING is exposed

    Note: The state is never persisted. It is computed from row presence
    so the store stays the single source of truth.
    """

    UNKNOWN = "UNKNOWN"
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"


class BotVerdict(str, Enum):
    """
    Three-valued outcome of a bot-likelihood check.

    SKIP means no check was performed (no provider configured, or a test
    bypass token was presented) and is treated as passing.
    """

    HUMAN = "human"
    NOT_HUMAN = "not_human"
    SKIP = "skip"


@dataclass(frozen=True)
class PendingVerification:
    """Unconsumed OTP issuance awaiting confirmation."""

    email: str
    code_hash: str
    expires_at: datetime
    issued_at: datetime


class EnrollmentRepository(Protocol):
    """Port interface for enrollment persistence."""

    def purge_expired(self, now: datetime | None = None) -> int:
        """
        Delete all pending records whose expiry has passed.

        Args:
            now: Reference time (defaults to the current UTC time)

        Returns:
            Number of records deleted
        """
        ...

    def is_subscribed(self, email: str) -> bool:
        """Return True if a subscriber record exists for the email."""
        ...

    def upsert_pending(
        self,
        email: str,
        code_hash: str,
        expires_at: datetime,
        issued_at: datetime | None = None,
    ) -> None:
        """
        Atomically create or replace the pending record for an email.

        Never produces two pending rows for one email, even under
        concurrent calls. The last writer's hash and expiry win.
        issued_at defaults to the store's current time.
        """
        ...

    def get_pending(self, email: str) -> PendingVerification | None:
        """Return the pending record for the email, or None."""
        ...

    def delete_pending(self, email: str, code_hash: str | None = None) -> bool:
        """
        Delete the pending record for the email. Returns True if a row was removed.

        With code_hash, only a record still holding that hash is removed, so
        a record replaced by a newer issuance survives.
        """
        ...

    def confirm(self, email: str, code_hash: str | None = None) -> bool:
        """
        Consume the pending record and create the subscriber record.

        Runs as a single transaction: delete pending, then insert the
        subscriber (insert-or-ignore). On any failure the transaction
        rolls back and the pending record is preserved. With code_hash,
        only a record still holding that hash is consumed.

        Returns:
            True if this call consumed the pending record,
            False if no matching pending record was left to consume

        Raises:
            StoreUnavailable: If the storage layer fails
        """
        ...

    def ping(self) -> None:
        """Check storage connectivity. Raises StoreUnavailable on failure."""
        ...


class NotificationGateway(Protocol):
    """Port interface for verification code delivery."""

    def send_verification_code(self, email: str, code: str) -> None:
        """
        Send verification code to email address.

        Args:
            email: Recipient email address
            code: 6-digit verification code

        Raises:
            NotificationError: If the message could not be delivered
        """
        ...


class BotChecker(Protocol):
    """Port interface for bot-likelihood scoring providers."""

    def score(self, token: str | None) -> BotVerdict:
        """
        Score a client-supplied challenge token.

        Provider errors and low-confidence scores must yield NOT_HUMAN.
        """
        ...
