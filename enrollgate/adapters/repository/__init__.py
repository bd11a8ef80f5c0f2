"""Repository adapters - Database implementations."""

from .memory import InMemoryEnrollmentRepository
from .postgres import PostgresEnrollmentRepository, run_migrations

__all__ = ["InMemoryEnrollmentRepository", "PostgresEnrollmentRepository", "run_migrations"]
