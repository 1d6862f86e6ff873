"""
Error types and standardized error responses.

Domain code raises HiMindError subclasses; main.py turns them into the
structured body below. Stack traces never cross the API boundary.

    {"error": {"code": "NOT_FOUND", "message": "...",
               "details": {...}, "correlation_id": "ab12cd34"}}
"""

from enum import Enum
from typing import Any, Optional

from fastapi.responses import JSONResponse
from pydantic import BaseModel


class ErrorCode(str, Enum):
    """Error codes returned by the API."""

    # Client errors (4xx)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    BAD_REQUEST = "BAD_REQUEST"

    # Server errors (5xx)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"
    TIMEOUT = "TIMEOUT"

    # Domain-specific errors
    PROCESSING_ERROR = "PROCESSING_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"


class ErrorDetail(BaseModel):
    """Structured error detail model."""
    code: str
    message: str
    details: Optional[dict[str, Any]] = None
    correlation_id: Optional[str] = None


class ErrorResponse(BaseModel):
    """Standard error response wrapper."""
    error: ErrorDetail


# =============================================================================
# EXCEPTIONS
# =============================================================================

class HiMindError(Exception):
    """Base class for errors that map onto an API error response."""

    code = ErrorCode.INTERNAL_ERROR
    status_code = 500

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ContentValidationError(HiMindError):
    """Malformed content payload. Classified as a 'validation' processing error."""

    code = ErrorCode.VALIDATION_ERROR
    status_code = 400


class EmbeddingDimensionError(ContentValidationError):
    """An embedding whose length differs from the configured dimension."""

    def __init__(self, expected: int, actual: int):
        super().__init__(
            f"Invalid embedding dimension: expected {expected}, got {actual}",
            details={"expected": expected, "actual": actual},
        )
        self.expected = expected
        self.actual = actual


class JobNotFoundError(HiMindError):
    code = ErrorCode.NOT_FOUND
    status_code = 404

    def __init__(self, job_id: str):
        super().__init__(
            f"Processing job not found: {job_id}",
            details={"resource_type": "processing_job", "resource_id": job_id},
        )
        self.job_id = job_id


class OrganizationNotFoundError(HiMindError):
    code = ErrorCode.NOT_FOUND
    status_code = 404

    def __init__(self, organization_id: Optional[str] = None):
        message = (
            f"Organization not found: {organization_id}"
            if organization_id
            else "No organization context available"
        )
        super().__init__(message, details={"resource_type": "organization", "resource_id": organization_id})


class EmbeddingServiceError(HiMindError):
    """Embedding provider call failed. Classified as an 'api' processing error."""

    code = ErrorCode.EXTERNAL_SERVICE_ERROR
    status_code = 502


# =============================================================================
# RESPONSES
# =============================================================================

def error_response(
    code: ErrorCode,
    message: str,
    status_code: int,
    details: Optional[dict[str, Any]] = None,
    correlation_id: Optional[str] = None,
) -> JSONResponse:
    """
    Create a standardized JSON error response.

    Args:
        code: Error code from ErrorCode enum
        message: Human-readable error message
        status_code: HTTP status code
        details: Optional additional error details
        correlation_id: Request correlation ID for tracing

    Returns:
        JSONResponse with standardized error format
    """
    body = ErrorResponse(
        error=ErrorDetail(
            code=code.value,
            message=message,
            details=details,
            correlation_id=correlation_id,
        )
    )
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(exclude_none=True),
    )


def from_exception(exc: HiMindError, correlation_id: Optional[str] = None) -> JSONResponse:
    """Render a domain exception as an error response."""
    return error_response(
        code=exc.code,
        message=exc.message,
        status_code=exc.status_code,
        details=exc.details,
        correlation_id=correlation_id,
    )


def validation_error(
    message: str,
    details: Optional[dict[str, Any]] = None,
    correlation_id: Optional[str] = None,
) -> JSONResponse:
    """400 response for malformed requests."""
    return error_response(
        code=ErrorCode.VALIDATION_ERROR,
        message=message,
        status_code=400,
        details=details,
        correlation_id=correlation_id,
    )


def internal_error(
    message: str = "Internal server error",
    details: Optional[dict[str, Any]] = None,
    correlation_id: Optional[str] = None,
) -> JSONResponse:
    """
    500 response.

    Only user-safe text goes into message/details; the cause stays in the logs.
    """
    return error_response(
        code=ErrorCode.INTERNAL_ERROR,
        message=message,
        status_code=500,
        details=details,
        correlation_id=correlation_id,
    )
