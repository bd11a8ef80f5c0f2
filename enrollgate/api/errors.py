"""
Error handlers - global exception handlers for the enrollment API.

Invariants:
    - EnrollmentError -> {"error": <fixed user-facing message>} with its status
    - RateLimited additionally sets Retry-After
    - RequestValidationError -> 400 {"error": ...}
    - HTTPException (404, 405, 413) -> its status with {"error": detail}
    - StoreUnavailable and any unexpected exception -> opaque 500,
      full detail in server logs only
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from enrollgate.domain.exceptions import EnrollmentError, RateLimited

logger = logging.getLogger(__name__)

GENERIC_ERROR = "An error occurred. Please try again later."


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""
    _register_enrollment_error_handler(app)
    _register_validation_error_handler(app)
    _register_http_error_handler(app)
    _register_generic_error_handler(app)


def _register_enrollment_error_handler(app: FastAPI) -> None:
    @app.exception_handler(EnrollmentError)
    async def enrollment_error_handler(request: Request, exc: EnrollmentError):
        """Map domain errors to their status and message."""
        if exc.status_code >= 500:
            logger.error(
                "%s on %s: %s",
                type(exc).__name__,
                request.url.path,
                exc,
                exc_info=exc,
            )
        else:
            logger.info("%s on %s", type(exc).__name__, request.url.path)

        headers = None
        if isinstance(exc, RateLimited):
            headers = {"Retry-After": str(exc.retry_after)}

        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message},
            headers=headers,
        )


def _register_validation_error_handler(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        """Handle malformed request bodies."""
        logger.warning("Validation error on %s: %s", request.url.path, exc.errors())
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid request body."},
        )


def _register_http_error_handler(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        """Framework errors (404, 405, 413) in the {"error"} shape."""
        logger.info("HTTP %s on %s", exc.status_code, request.url.path)
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )


def _register_generic_error_handler(app: FastAPI) -> None:
    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        """Catch-all - never leaks internal details."""
        logger.error("Unhandled exception on %s: %s", request.url.path, exc, exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": GENERIC_ERROR},
        )
