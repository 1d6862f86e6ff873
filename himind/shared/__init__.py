# Shared error types, correlation ids and logging setup
from .correlation import CorrelationContext, CorrelationMiddleware, get_correlation_id
from .errors import (
    ContentValidationError,
    EmbeddingDimensionError,
    EmbeddingServiceError,
    ErrorCode,
    HiMindError,
    JobNotFoundError,
    OrganizationNotFoundError,
)
from .logging_config import setup_logging

__all__ = [
    "ContentValidationError",
    "CorrelationContext",
    "CorrelationMiddleware",
    "EmbeddingDimensionError",
    "EmbeddingServiceError",
    "ErrorCode",
    "HiMindError",
    "JobNotFoundError",
    "OrganizationNotFoundError",
    "get_correlation_id",
    "setup_logging",
]
