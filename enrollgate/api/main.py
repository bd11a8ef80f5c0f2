"""
FastAPI application factory and configuration.

This module creates the FastAPI application instance,
configures middleware, exception handlers, and lifespan events.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from psycopg_pool import ConnectionPool

from enrollgate.adapters.captcha.recaptcha import RecaptchaBotChecker
from enrollgate.adapters.repository.memory import InMemoryEnrollmentRepository
from enrollgate.adapters.repository.postgres import PostgresEnrollmentRepository, run_migrations
from enrollgate.adapters.smtp.brevo import BrevoEmailSender
from enrollgate.adapters.smtp.console import ConsoleEmailSender
from enrollgate.api.errors import register_error_handlers
from enrollgate.api.middleware import BodySizeLimitMiddleware
from enrollgate.api.routes import router
from enrollgate.config.settings import Settings, get_settings
from enrollgate.domain.abuse import AbuseGate, RateBucket, RatePolicy
from enrollgate.domain.ports import NotificationGateway

logger = logging.getLogger(__name__)

# OpenAPI tags for documentation grouping
tags_metadata = [
    {
        "name": "enrollment",
        "description": "Email enrollment with one-time verification codes",
    },
]


def build_abuse_gate(settings: Settings) -> AbuseGate:
    """Create the abuse gate with per-bucket budgets and the optional bot checker."""
    policies = {
        RateBucket.API: RatePolicy(settings.api_rate_limit, settings.api_rate_window_seconds),
        RateBucket.ISSUE: RatePolicy(settings.issue_rate_limit, settings.issue_rate_window_seconds),
        RateBucket.CONFIRM: RatePolicy(
            settings.confirm_rate_limit, settings.confirm_rate_window_seconds
        ),
    }

    bot_checker = None
    if settings.recaptcha_secret_key:
        bot_checker = RecaptchaBotChecker(
            settings.recaptcha_secret_key,
            min_score=settings.recaptcha_min_score,
            request_timeout_s=settings.recaptcha_timeout_seconds,
        )
    else:
        logger.warning("No bot-check provider configured; bot check will be skipped")

    return AbuseGate(
        policies,
        bot_checker=bot_checker,
        bypass_tokens=settings.bot_bypass_tokens,
        test_mode=not settings.is_production,
    )


def build_notifier(settings: Settings) -> NotificationGateway:
    """Brevo when an API key is configured, console logging otherwise."""
    if settings.brevo_api_key:
        return BrevoEmailSender(
            settings.brevo_api_key,
            settings.from_email,
            settings.sender_name,
            timeout=settings.delivery_timeout_seconds,
        )
    logger.warning("No email provider configured; codes will be logged to console")
    return ConsoleEmailSender()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Manages application startup and shutdown:
    - Creates the repository (and database connection pool) on startup
    - Runs migrations on startup
    - Closes connection pool on shutdown
    """
    settings: Settings = app.state.settings

    logger.info("Starting enrollgate %s...", settings.app_version)

    pool = None
    if settings.storage_backend == "memory":
        logger.warning("Using in-memory storage; data will not survive a restart")
        app.state.repository = InMemoryEnrollmentRepository()
    else:
        logger.info("Connecting to database...")
        # Create connection pool with explicit sizing
        pool = ConnectionPool(
            conninfo=settings.database_url,
            min_size=settings.pool_min_size,
            max_size=settings.pool_max_size,
            timeout=settings.pool_timeout_seconds,
            open=True,
        )

        logger.info("Running database migrations...")
        run_migrations(pool)

        app.state.repository = PostgresEnrollmentRepository(
            pool, timeout=settings.pool_timeout_seconds
        )

    app.state.abuse_gate = build_abuse_gate(settings)
    app.state.notifier = build_notifier(settings)

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    if pool is not None:
        pool.close()
        logger.info("Database connection pool closed")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the FastAPI application for the given settings."""
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="enrollgate",
        description="Email enrollment API - one-time verification codes with abuse gating",
        version=settings.app_version,
        openapi_tags=tags_metadata,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(BodySizeLimitMiddleware, max_body_bytes=settings.max_body_bytes)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_methods=["GET", "POST"],
        allow_credentials=True,
        allow_headers=["*"],
    )

    register_error_handlers(app)
    app.include_router(router)
    return app


app = create_app()
