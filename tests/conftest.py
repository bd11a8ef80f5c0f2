"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- A controllable clock for expiry tests
- In-memory repository and abuse gate wiring
- A recording notification gateway that captures issued codes
- A PostgreSQL pool, skipped when no database is reachable
"""

from datetime import datetime, timedelta, timezone

import pytest
from psycopg_pool import ConnectionPool, PoolTimeout

from enrollgate.adapters.repository.memory import InMemoryEnrollmentRepository
from enrollgate.adapters.repository.postgres import run_migrations
from enrollgate.config.settings import get_settings
from enrollgate.domain.abuse import AbuseGate, RateBucket, RatePolicy
from enrollgate.domain.codec import SecretCodec
from enrollgate.domain.enrollment import EnrollmentService
from enrollgate.domain.exceptions import NotificationError

# Lowest bcrypt cost keeps the suite fast
FAST_CODEC = SecretCodec(cost=4)


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class RecordingNotifier:
    """NotificationGateway that remembers what it sent."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []
        self.fail = False

    def send_verification_code(self, email: str, code: str) -> None:
        if self.fail:
            raise NotificationError("provider down")
        self.sent.append((email, code))

    def last_code(self, email: str) -> str:
        return [c for e, c in self.sent if e == email][-1]


def generous_policies() -> dict[RateBucket, RatePolicy]:
    """Budgets large enough that tests never hit them by accident."""
    return {bucket: RatePolicy(limit=10_000, window_seconds=60) for bucket in RateBucket}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_repository() -> InMemoryEnrollmentRepository:
    return InMemoryEnrollmentRepository()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def gate() -> AbuseGate:
    return AbuseGate(generous_policies())


@pytest.fixture
def service(
    memory_repository: InMemoryEnrollmentRepository,
    notifier: RecordingNotifier,
    gate: AbuseGate,
    clock: FakeClock,
) -> EnrollmentService:
    return EnrollmentService(
        repository=memory_repository,
        notifier=notifier,
        gate=gate,
        codec=FAST_CODEC,
        clock=clock,
    )


@pytest.fixture(scope="session")
def pg_pool():
    """
    Connection pool for tests that need PostgreSQL.

    Skips the requesting test when the database is unreachable.
    """
    settings = get_settings()
    pool = ConnectionPool(conninfo=settings.database_url, min_size=1, max_size=10, open=False)
    try:
        pool.open(wait=True, timeout=3.0)
    except PoolTimeout:
        pool.close()
        pytest.skip("PostgreSQL is not reachable")

    run_migrations(pool)
    yield pool
    pool.close()


@pytest.fixture
def clean_pg(pg_pool):
    """Empty both enrollment tables before each test."""
    with pg_pool.connection() as conn:
        conn.execute("DELETE FROM pending_verifications")
        conn.execute("DELETE FROM subscribers")
    yield pg_pool
