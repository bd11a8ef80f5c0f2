"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
Email and code shape are checked by the domain service, so malformed
values come back as the domain's 400 errors rather than schema errors.
"""

from pydantic import BaseModel, Field


class EnrollRequest(BaseModel):
    """Request model for code issuance."""

    email: str = Field(..., max_length=320, description="Email address to enroll")
    bot_token: str | None = Field(
        default=None, max_length=4096, description="Bot-check challenge token"
    )


class ConfirmRequest(BaseModel):
    """Request model for code confirmation."""

    email: str = Field(..., max_length=320, description="Email address being confirmed")
    code: str = Field(..., max_length=32, description="6-digit verification code")


class MessageResponse(BaseModel):
    """Response model for successful operations."""

    message: str


class HealthResponse(BaseModel):
    """Response model for the health check."""

    status: str
    version: str


class ErrorResponse(BaseModel):
    """Standard error response model."""

    error: str
