"""
API routes - Enrollment and confirmation endpoints.

This module defines the HTTP endpoints:
- POST /enroll  - Issue a verification code to an email
- POST /confirm - Confirm an email with the code it received
- GET  /health  - Liveness with storage check

Handlers are plain functions: FastAPI runs them on its worker threadpool,
so blocking database and provider calls never stall the event loop, and a
handler runs to completion even if the client disconnects.
"""

from fastapi import APIRouter, Depends, status

from enrollgate.api.dependencies import (
    get_abuse_gate,
    get_client_key,
    get_enrollment_service,
    get_repository,
    get_settings_from_state,
)
from enrollgate.api.models import (
    ConfirmRequest,
    EnrollRequest,
    ErrorResponse,
    HealthResponse,
    MessageResponse,
)
from enrollgate.config.settings import Settings
from enrollgate.domain.abuse import AbuseGate, RateBucket
from enrollgate.domain.enrollment import EnrollmentService
from enrollgate.domain.exceptions import RateLimited
from enrollgate.domain.ports import EnrollmentRepository

router = APIRouter(tags=["enrollment"])

ENROLL_SUCCESS = "Verification code sent to your email."
CONFIRM_SUCCESS = "Verification successful. You are now subscribed."


@router.post(
    "/enroll",
    response_model=MessageResponse,
    status_code=status.HTTP_200_OK,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid email or already subscribed"},
        403: {"model": ErrorResponse, "description": "Security check failed"},
        429: {"model": ErrorResponse, "description": "Too many requests"},
        500: {"model": ErrorResponse, "description": "Delivery or internal failure"},
    },
    summary="Request a verification code",
    description="Submit an email address and bot-check token. "
    "A 6-digit verification code valid for 15 minutes is sent to the address.",
)
def enroll(
    request_data: EnrollRequest,
    client_key: str = Depends(get_client_key),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> MessageResponse:
    """
    Issue a verification code.

    - **email**: Address to enroll
    - **bot_token**: Token from the client-side bot check
    """
    service.issue(request_data.email, request_data.bot_token, client_key)
    return MessageResponse(message=ENROLL_SUCCESS)


@router.post(
    "/confirm",
    response_model=MessageResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid, expired or missing code"},
        429: {"model": ErrorResponse, "description": "Too many requests"},
        500: {"model": ErrorResponse, "description": "Internal failure"},
    },
    summary="Confirm an email with its verification code",
    description="Submit the 6-digit code received by email to become a subscriber.",
)
def confirm(
    request_data: ConfirmRequest,
    client_key: str = Depends(get_client_key),
    service: EnrollmentService = Depends(get_enrollment_service),
) -> MessageResponse:
    """
    Confirm enrollment.

    - **email**: Address the code was sent to
    - **code**: 6-digit verification code
    """
    service.confirm(request_data.email, request_data.code, client_key)
    return MessageResponse(message=CONFIRM_SUCCESS)


@router.get("/health", response_model=HealthResponse, summary="Health check")
def health_check(
    client_key: str = Depends(get_client_key),
    gate: AbuseGate = Depends(get_abuse_gate),
    repository: EnrollmentRepository = Depends(get_repository),
    settings: Settings = Depends(get_settings_from_state),
) -> HealthResponse:
    """
    Health check endpoint with storage validation.

    Counts against the generic API budget only.
    """
    decision = gate.check_rate(client_key, RateBucket.API)
    if not decision.allowed:
        raise RateLimited(decision.retry_after)

    repository.ping()
    return HealthResponse(status="ok", version=settings.app_version)
