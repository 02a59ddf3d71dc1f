"""
Centralized error handling and safe error messages.

This module defines the application's exception hierarchy and the FastAPI
handlers that turn exceptions into a single error shape,
``{"error": <message>, "reason": <machine-readable reason>}``, without leaking
stack traces, database details or token material in production.
"""
import logging
import traceback
from typing import Any

from fastapi import HTTPException
from fastapi.requests import Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from promohub.core.config import settings
from promohub.services.alerting_service import alert_internal_failure

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """Standardized error response model."""
    error: str
    reason: str | None = None
    detail: str | None = None


class SafeException(Exception):
    """Base exception for safe errors that can be shown to users."""

    status_code: int = 400

    def __init__(
        self,
        message: str,
        reason: str | None = None,
        status_code: int | None = None,
        detail: str | None = None,
        extra: dict[str, Any] | None = None,
    ):
        """
        Initialize the safe exception.

        Args:
            message: User-friendly error message
            reason: Stable machine-readable reason
            status_code: HTTP status to respond with
            detail: Optional additional details
            extra: Extra fields merged into the response body
        """
        self.message = message
        self.reason = reason
        if status_code is not None:
            self.status_code = status_code
        self.detail = detail
        self.extra = extra or {}
        super().__init__(message)


class RedemptionError(SafeException):
    """A QR generate/validate/confirm request was refused."""

    pass


class ReservationError(SafeException):
    """A reservation request was refused."""

    pass


class PromoHubError(Exception):
    """Base exception for internal PromoHub errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """
        Initialize the PromoHub error.

        Args:
            message: Error message
            details: Optional additional error details
        """
        self.message = message
        self.details = details or {}
        super().__init__(message)


class StoreError(PromoHubError):
    """The transactional store failed to apply an operation."""

    pass


class RedemptionExistsError(StoreError):
    """A redemption already exists for the reservation."""

    pass


class RedemptionNotPendingError(StoreError):
    """The redemption left PENDING before this confirm could apply."""

    pass


class InsufficientWalletBalanceError(StoreError):
    """The user's wallet cannot cover the requested wallet amount."""

    pass


def create_error_response(
    status_code: int,
    message: str,
    reason: str | None = None,
    detail: str | None = None,
    extra: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """
    Create a standardized JSON error response.

    Args:
        status_code: HTTP status code
        message: Main error message
        reason: Machine-readable reason
        detail: Optional additional detail (only shown in debug mode)
        extra: Extra fields merged into the body
        headers: Response headers

    Returns:
        JSONResponse with error information
    """
    error_response = ErrorResponse(
        error=message, reason=reason, detail=detail if settings.debug else None
    )
    content = error_response.model_dump(exclude_none=True)
    content.update(extra or {})

    logger.info(f"Error {status_code}: {message} ({reason})")

    return JSONResponse(status_code=status_code, content=content, headers=headers)


async def safe_exception_handler(
    request: Request, exc: SafeException
) -> JSONResponse:
    """Render a SafeException with its own status, message and reason."""
    return create_error_response(
        status_code=exc.status_code,
        message=exc.message,
        reason=exc.reason,
        detail=exc.detail,
        extra=exc.extra,
    )


async def http_exception_handler(
    request: Request, exc: HTTPException
) -> JSONResponse:
    """
    Handle HTTPException globally.

    Args:
        request: The request that caused the exception
        exc: The HTTPException that was raised

    Returns:
        JSONResponse with the error message
    """
    return create_error_response(
        status_code=exc.status_code,
        message=str(exc.detail),
        headers=getattr(exc, "headers", None),
    )


async def general_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    """
    Handle all other exceptions globally.

    Args:
        request: The request that caused the exception
        exc: The exception that was raised

    Returns:
        JSONResponse with sanitized error information
    """
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    alert_internal_failure(exc, str(request.url.path), request.method)

    if settings.debug:
        detail = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    else:
        detail = None

    return create_error_response(
        status_code=500,
        message="Internal server error",
        reason="internal_error",
        detail=detail,
    )
