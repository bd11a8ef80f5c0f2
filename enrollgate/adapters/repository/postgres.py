"""
PostgreSQL repository adapter - Implements EnrollmentRepository protocol.

This module provides the PostgreSQL implementation of the domain's
repository port using psycopg3 with raw SQL.

Atomicity Design:
-----------------
1. **upsert_pending**: INSERT ... ON CONFLICT (email) DO UPDATE. The primary
   key on pending_verifications.email makes the replace atomic, so
   concurrent issuances for one email always leave exactly one row.

2. **confirm**: DELETE pending + INSERT subscriber ... ON CONFLICT DO NOTHING
   in one transaction. The DELETE takes the row lock; a concurrent confirm
   blocks on it and then sees rowcount 0, so only one caller commits the
   transition. The DELETE also matches the verified code_hash, so a record
   replaced by a newer issuance is never consumed by a stale code. Any
   failure rolls the whole transaction back.

3. **Pool exhaustion**: connections are requested with a short timeout and a
   PoolTimeout surfaces as StoreUnavailable instead of queueing forever.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

import psycopg
from psycopg_pool import ConnectionPool, PoolTimeout

from enrollgate.domain.exceptions import StoreUnavailable
from enrollgate.domain.ports import PendingVerification

logger = logging.getLogger(__name__)


class PostgresEnrollmentRepository:
    """
    Implements EnrollmentRepository protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries for security.
    """

    def __init__(self, pool: ConnectionPool, timeout: float = 2.0) -> None:
        """
        Initialize repository with connection pool.

        Args:
            pool: psycopg3 ConnectionPool for database connections
            timeout: Seconds to wait for a free connection before failing
        """
        self._pool = pool
        self._timeout = timeout

    @contextmanager
    def _connection(self) -> Iterator[psycopg.Connection]:
        """
        Borrow a pooled connection, translating driver failures.

        The pool's context manager commits on clean exit and rolls back
        when the block raises.
        """
        try:
            with self._pool.connection(timeout=self._timeout) as conn:
                yield conn
        except PoolTimeout as e:
            logger.error("Connection pool exhausted: %s", e)
            raise StoreUnavailable("connection pool exhausted") from e
        except psycopg.Error as e:
            logger.error("Database error: %s", e, exc_info=True)
            raise StoreUnavailable("database error") from e

    def purge_expired(self, now: datetime | None = None) -> int:
        """Delete pending records whose expires_at is before now."""
        sql = "DELETE FROM pending_verifications WHERE expires_at < %s"
        reference = now or datetime.now(timezone.utc)

        with self._connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (reference,))
            return cursor.rowcount

    def is_subscribed(self, email: str) -> bool:
        """Return True if a subscriber record exists for the email."""
        with self._connection() as conn, conn.cursor() as cursor:
            cursor.execute("SELECT 1 FROM subscribers WHERE email = %s", (email,))
            return cursor.fetchone() is not None

    def upsert_pending(
        self,
        email: str,
        code_hash: str,
        expires_at: datetime,
        issued_at: datetime | None = None,
    ) -> None:
        """
        Atomically create or replace the pending record for an email.

        Args:
            email: Normalized email address (lowercase, stripped)
            code_hash: bcrypt hash of the issued code
            expires_at: Timezone-aware expiry time
            issued_at: Issuance time (defaults to the database's NOW())
        """
        sql = """
            INSERT INTO pending_verifications (email, code_hash, expires_at, issued_at)
            VALUES (%s, %s, %s, COALESCE(%s, NOW()))
            ON CONFLICT (email) DO UPDATE
            SET code_hash = EXCLUDED.code_hash,
                expires_at = EXCLUDED.expires_at,
                issued_at = EXCLUDED.issued_at
        """

        with self._connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (email, code_hash, expires_at, issued_at))

    def get_pending(self, email: str) -> PendingVerification | None:
        """Return the pending record for the email, or None."""
        sql = """
            SELECT email, code_hash, expires_at, issued_at
            FROM pending_verifications
            WHERE email = %s
        """

        with self._connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (email,))
            row = cursor.fetchone()

        if row is None:
            return None
        return PendingVerification(
            email=row[0], code_hash=row[1], expires_at=row[2], issued_at=row[3]
        )

    def delete_pending(self, email: str, code_hash: str | None = None) -> bool:
        """Delete the pending record for the email, optionally only if it still holds code_hash."""
        sql, params = _delete_pending_sql(email, code_hash)
        with self._connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, params)
            return cursor.rowcount == 1

    def confirm(self, email: str, code_hash: str | None = None) -> bool:
        """
        Consume the pending record and insert the subscriber in one transaction.

        With code_hash, the DELETE only matches the record that was verified,
        so a newer issuance that replaced it is left alone.

        Returns:
            True if this call deleted the pending record and committed,
            False if there was no matching pending record (nothing is written)
        """
        delete_sql, params = _delete_pending_sql(email, code_hash)
        insert_sql = """
            INSERT INTO subscribers (email, confirmed_at)
            VALUES (%s, NOW())
            ON CONFLICT (email) DO NOTHING
        """

        with self._connection() as conn:
            with conn.transaction(), conn.cursor() as cursor:
                cursor.execute(delete_sql, params)
                if cursor.rowcount == 0:
                    return False
                cursor.execute(insert_sql, (email,))
        return True

    def ping(self) -> None:
        """Run a trivial query to validate connectivity."""
        with self._connection() as conn:
            conn.execute("SELECT 1")


def _delete_pending_sql(email: str, code_hash: str | None) -> tuple[str, tuple[str, ...]]:
    if code_hash is None:
        return "DELETE FROM pending_verifications WHERE email = %s", (email,)
    return (
        "DELETE FROM pending_verifications WHERE email = %s AND code_hash = %s",
        (email, code_hash),
    )


def run_migrations(pool: ConnectionPool) -> None:
    """
    Execute all SQL migration files from the migrations directory.

    Migrations are executed in sorted order (alphabetically by filename).
    Each migration should be idempotent (use IF NOT EXISTS, etc.).

    Args:
        pool: psycopg3 ConnectionPool instance
    """
    # Structure: enrollgate/adapters/repository/postgres.py -> enrollgate/migrations/
    migrations_dir = Path(__file__).parent.parent.parent / "migrations"

    if not migrations_dir.exists():
        logger.warning("Migrations directory not found: %s", migrations_dir)
        return

    sql_files = sorted(migrations_dir.glob("*.sql"))

    if not sql_files:
        logger.info("No migration files found")
        return

    logger.info("Running %d migration(s)", len(sql_files))

    for sql_file in sql_files:
        logger.info("Executing migration: %s", sql_file.name)
        try:
            sql_content = sql_file.read_text()

            with pool.connection() as conn:
                conn.execute(sql_content)

            logger.info("Migration complete: %s", sql_file.name)
        except Exception as e:
            logger.error("Migration failed: %s - %s", sql_file.name, e)
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
