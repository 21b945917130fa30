"""
Structured error types for fresh-spine.

Provides a small hierarchy of typed errors with metadata for retry
decisions and error categorization, so scheduler and client code can tell
a misconfigured consumer apart from a transient transport failure.

Every FreshSpineError carries:
- **Category:** What kind of error (validation, config, network, etc.)
- **Retryable:** Whether the operation can be retried automatically
- **Context:** Structured metadata (client, operation, resource keys)
- **Cause:** Chained underlying exception for root cause analysis

Manifesto:
    - **Fail fast on programmer mistakes:** Bad requirement shapes, unknown
      operations and illegal request transitions raise immediately
    - **Recover transport failures into state:** Per-key errors become the
      cached ``error`` of a resource instead of escaping the scheduler
    - **Error Chaining:** Preserve original exceptions while adding context

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                      FreshSpineError                             │
        │  (category, retryable, context, cause)                           │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  InvalidRequirementError   OperationNotFoundError                │
        │  (VALIDATION)              (CONFIG)                              │
        │                                                                  │
        │  InvalidTransitionError    RequestTimeoutError   OperationError  │
        │  (INTERNAL)                (NETWORK, retryable)  (SOURCE)        │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> error = OperationNotFoundError("read")
    >>> error.category
    <ErrorCategory.CONFIG: 'CONFIG'>
    >>> error.retryable
    False

    >>> error = OperationError("HTTP 500").with_context(key="thing:1")
    >>> error.context.key
    'thing:1'

Tags:
    error-handling, exception-hierarchy, retry-logic, error-context,
    fresh-spine

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    # Infrastructure errors (usually transient)
    NETWORK = "NETWORK"           # Timeouts, unreachable endpoints

    # Source/data errors
    SOURCE = "SOURCE"             # Upstream API returned an error entry
    VALIDATION = "VALIDATION"     # Bad requirement shapes

    # Configuration errors (never retryable)
    CONFIG = "CONFIG"             # Missing operation, bad api spec

    # Internal errors
    INTERNAL = "INTERNAL"         # Bugs, illegal state transitions
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured metadata context for errors.

    Typed fields cover the scheduler's vocabulary; anything else goes into
    ``metadata``. ``to_dict()`` drops unset fields for logging.

    Attributes:
        client: Name of the ApiClient involved
        operation: Operation name (e.g. "read", "write")
        key: Single resource key
        keys: Batch of resource keys sent together
        status: Request status at the time of the error
        metadata: Additional key-value pairs
    """

    client: str | None = None
    operation: str | None = None
    key: str | None = None
    keys: list[str] | None = None
    status: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for name in ["client", "operation", "key", "keys", "status"]:
            value = getattr(self, name)
            if value is not None:
                result[name] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class FreshSpineError(Exception):
    """
    Base exception for all fresh-spine errors.

    Subclasses set ``default_category`` and ``default_retryable`` to give
    sensible defaults for their domain.

    Examples:
        >>> error = FreshSpineError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.to_dict()["retryable"]
        False
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> FreshSpineError:
        """
        Add context to this error (fluent API).

        Usage:
            raise OperationError("Failed").with_context(
                operation="read",
                key="thing:1",
            )
        """
        for name, value in kwargs.items():
            if name != "metadata" and hasattr(self.context, name):
                setattr(self.context, name, value)
            else:
                self.context.metadata[name] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# PROGRAMMER ERRORS (never retryable, raised synchronously)
# =============================================================================


class InvalidRequirementError(FreshSpineError, ValueError):
    """A requirement has a non-positive or non-numeric freshness/timeout."""

    default_category = ErrorCategory.VALIDATION


class OperationNotFoundError(FreshSpineError, LookupError):
    """A request names an operation the client does not define."""

    default_category = ErrorCategory.CONFIG

    def __init__(self, operation: str, **kwargs: Any):
        super().__init__(f'Operation "{operation}" not found.', **kwargs)
        self.context.operation = operation


class NoEventLoopError(FreshSpineError, RuntimeError):
    """A timer was armed outside a running event loop and no loop was given."""

    default_category = ErrorCategory.CONFIG


class InvalidTransitionError(FreshSpineError, ValueError):
    """
    Raised when an illegal request transition is attempted.

    Request status is derived from timestamps, so the guard lives on the
    mutating calls (``mark_sent``, ``mark_complete``, ``mark_failed``).
    """

    def __init__(self, current: str, target: str, **kwargs: Any):
        self.current = current
        self.target = target
        super().__init__(f"Invalid request transition: {current} → {target}", **kwargs)
        self.context.status = current


# =============================================================================
# TRANSPORT ERRORS (recovered into resource state)
# =============================================================================


class RequestTimeoutError(FreshSpineError):
    """A request timed out more times than the scheduler allows."""

    default_category = ErrorCategory.NETWORK
    default_retryable = True


class OperationError(FreshSpineError):
    """An operation reported an error entry for a resource key."""

    default_category = ErrorCategory.SOURCE


def is_retryable(error: BaseException) -> bool:
    """Check if an error is retryable.

    Works with both FreshSpineError and standard exceptions.
    Standard timeouts and connection errors count as retryable.
    """
    if isinstance(error, FreshSpineError):
        return error.retryable
    return isinstance(error, (TimeoutError, ConnectionError))


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "FreshSpineError",
    "InvalidRequirementError",
    "OperationNotFoundError",
    "NoEventLoopError",
    "InvalidTransitionError",
    "RequestTimeoutError",
    "OperationError",
    "is_retryable",
]
