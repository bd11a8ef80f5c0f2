"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting
domain services and infrastructure adapters into routes. The adapters
themselves are built once during app lifespan and kept in app.state.
"""

from datetime import timedelta

from fastapi import Request

from enrollgate.config.settings import Settings
from enrollgate.domain.abuse import AbuseGate
from enrollgate.domain.codec import SecretCodec
from enrollgate.domain.enrollment import EnrollmentService
from enrollgate.domain.ports import EnrollmentRepository, NotificationGateway


def get_settings_from_state(request: Request) -> Settings:
    """Settings the app was created with."""
    return request.app.state.settings


def get_repository(request: Request) -> EnrollmentRepository:
    """
    Get the repository from app state.

    The repository (and its connection pool, if any) is created during
    app lifespan startup.
    """
    return request.app.state.repository


def get_abuse_gate(request: Request) -> AbuseGate:
    """Get the shared abuse gate; its counters live for the app's lifetime."""
    return request.app.state.abuse_gate


def get_notifier(request: Request) -> NotificationGateway:
    """Get the configured notification gateway."""
    return request.app.state.notifier


def get_client_key(request: Request) -> str:
    """Client identity for rate limiting: the peer network address."""
    if request.client is None or not request.client.host:
        return "unknown"
    return request.client.host


def get_enrollment_service(request: Request) -> EnrollmentService:
    """
    Create enrollment service with injected dependencies.

    Wires together the repository, notifier and abuse gate for the domain service.
    """
    settings = get_settings_from_state(request)
    return EnrollmentService(
        repository=get_repository(request),
        notifier=get_notifier(request),
        gate=get_abuse_gate(request),
        codec=SecretCodec(cost=settings.bcrypt_cost),
        code_ttl=timedelta(seconds=settings.code_ttl_seconds),
    )
