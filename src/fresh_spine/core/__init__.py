"""Core primitives shared by the scheduler and the client."""

from .constants import HOUR, MINUTE, SECOND
from .errors import (
    ErrorCategory,
    ErrorContext,
    FreshSpineError,
    InvalidRequirementError,
    InvalidTransitionError,
    NoEventLoopError,
    OperationError,
    OperationNotFoundError,
    RequestTimeoutError,
    is_retryable,
)
from .timestamps import is_time_earlier, utc_now

__all__ = [
    "HOUR",
    "MINUTE",
    "SECOND",
    "ErrorCategory",
    "ErrorContext",
    "FreshSpineError",
    "InvalidRequirementError",
    "InvalidTransitionError",
    "NoEventLoopError",
    "OperationError",
    "OperationNotFoundError",
    "RequestTimeoutError",
    "is_retryable",
    "is_time_earlier",
    "utc_now",
]
