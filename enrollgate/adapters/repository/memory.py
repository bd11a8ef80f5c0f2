"""
In-memory repository adapter - Implements EnrollmentRepository protocol.

Process-local storage for development and tests. A single lock makes
each operation atomic, matching the guarantees of the PostgreSQL adapter.
Data does not survive a restart.
"""

import threading
from datetime import datetime, timezone

from enrollgate.domain.ports import PendingVerification


class InMemoryEnrollmentRepository:
    """
    Implements EnrollmentRepository protocol with dictionaries.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pending: dict[str, PendingVerification] = {}
        # email -> confirmed_at
        self._subscribers: dict[str, datetime] = {}

    def purge_expired(self, now: datetime | None = None) -> int:
        reference = now or datetime.now(timezone.utc)
        with self._lock:
            expired = [e for e, p in self._pending.items() if p.expires_at < reference]
            for email in expired:
                del self._pending[email]
            return len(expired)

    def is_subscribed(self, email: str) -> bool:
        with self._lock:
            return email in self._subscribers

    def upsert_pending(
        self,
        email: str,
        code_hash: str,
        expires_at: datetime,
        issued_at: datetime | None = None,
    ) -> None:
        with self._lock:
            self._pending[email] = PendingVerification(
                email=email,
                code_hash=code_hash,
                expires_at=expires_at,
                issued_at=issued_at or datetime.now(timezone.utc),
            )

    def get_pending(self, email: str) -> PendingVerification | None:
        with self._lock:
            return self._pending.get(email)

    def delete_pending(self, email: str, code_hash: str | None = None) -> bool:
        with self._lock:
            return self._take(email, code_hash)

    def confirm(self, email: str, code_hash: str | None = None) -> bool:
        with self._lock:
            if not self._take(email, code_hash):
                return False
            self._subscribers.setdefault(email, datetime.now(timezone.utc))
            return True

    def _take(self, email: str, code_hash: str | None) -> bool:
        # Caller holds the lock
        pending = self._pending.get(email)
        if pending is None or (code_hash is not None and pending.code_hash != code_hash):
            return False
        del self._pending[email]
        return True

    def ping(self) -> None:
        return None

    def subscriber_count(self) -> int:
        """Number of confirmed subscribers (test helper)."""
        with self._lock:
            return len(self._subscribers)
