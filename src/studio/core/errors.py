"""
Structured error types for studio-core.

Provides a typed hierarchy of errors with metadata for retry decisions,
categorization, HTTP mapping and root cause analysis through chaining.

Instead of generic exceptions that lose context, StudioError and its
subclasses carry:
- **Category:** What kind of error (network, validation, telemetry, etc.)
- **Retryable:** Whether the operation can be retried automatically
- **Context:** Operation, endpoint and HTTP status metadata
- **Cause:** Chained underlying exception

Manifesto:
    - **Typed Error Hierarchy:** Different error types for different domains
    - **Explicit Retry Semantics:** Each error knows if it's retryable
    - **Expected failures degrade:** Offline, disabled, probe absent and
      delivery failure become ``False``/``None`` results at the telemetry
      boundary. Only logic errors propagate.

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                       StudioError                                │
        │  (category, retryable, context, cause)                          │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  TransientError    ValidationError     TelemetryError           │
        │  (retryable=True)  (VALIDATION)        (TELEMETRY)              │
        │       │                                     │                    │
        │  NetworkError      DatabaseError       SessionClockError        │
        │  RequestTimeout    (DATABASE)          (INTERNAL)               │
        │  DeliveryError          │                                       │
        │                    IntegrityError                               │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> error = DeliveryError("collector answered 503", http_status=503)
    >>> error.retryable
    True
    >>> error.context.http_status
    503

    >>> try:
    ...     raise ConnectionError("DNS failure")
    ... except ConnectionError as e:
    ...     raise NetworkError("Failed to reach collector", cause=e)
    Traceback (most recent call last):
    ...
    NetworkError: Failed to reach collector

Tags:
    error-handling, exception-hierarchy, retry-logic, studio-core
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Standard error categories for classification and routing.

    Categories are grouped by their typical retry behavior:
    - **Infrastructure (usually transient):** NETWORK, DATABASE
    - **Input errors:** VALIDATION
    - **Application errors:** TELEMETRY
    - **Internal errors:** INTERNAL
    """

    NETWORK = "NETWORK"
    DATABASE = "DATABASE"

    VALIDATION = "VALIDATION"

    TELEMETRY = "TELEMETRY"

    INTERNAL = "INTERNAL"


@dataclass
class ErrorContext:
    """
    Structured metadata context for errors.

    Attributes:
        operation: Logical operation (e.g. ``"sync.snapshot"``)
        url: URL that was being accessed
        http_status: HTTP status code if applicable
        metadata: Additional key-value pairs
    """

    operation: str | None = None
    url: str | None = None
    http_status: int | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["operation", "url", "http_status"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class StudioError(Exception):
    """
    Base exception for all studio-core errors.

    Subclasses set ``default_category`` and ``default_retryable`` to provide
    sensible defaults for their domain.

    Examples:
        >>> error = StudioError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.retryable
        False

        >>> error = StudioError("Fetch failed").with_context(
        ...     operation="health.backend", url="http://localhost:8000/health"
        ... )
        >>> error.context.operation
        'health.backend'
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
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> StudioError:
        """
        Add context to this error (fluent API).

        Usage:
            raise NetworkError("Failed").with_context(
                operation="sync.events",
                url="http://localhost:3000/api/telemetry/events",
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
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
# TRANSIENT ERRORS (Usually Retryable)
# =============================================================================


class TransientError(StudioError):
    """
    Temporary error that may succeed on retry.

    Network failures, timeouts and non-2xx answers from the collector all
    land here. Telemetry delivery retries these with a bounded budget.
    """

    default_category = ErrorCategory.NETWORK
    default_retryable = True


class NetworkError(TransientError):
    """Connection refused, DNS failure, reset, abort."""

    default_category = ErrorCategory.NETWORK


class RequestTimeoutError(TransientError):
    """Request exceeded its deadline."""

    default_category = ErrorCategory.NETWORK


class DeliveryError(TransientError):
    """Remote endpoint answered with a non-success HTTP status."""

    def __init__(self, message: str, *, http_status: int | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.http_status = http_status
        if http_status is not None:
            self.context.http_status = http_status


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(StudioError):
    """
    Input validation error.

    Never retryable - input must be fixed.
    """

    default_category = ErrorCategory.VALIDATION
    default_retryable = False

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        code: str | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value
        self.code = code

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        if self.value is not None:
            result["value"] = repr(self.value)
        if self.code:
            result["code"] = self.code
        return result


# =============================================================================
# STORAGE ERRORS
# =============================================================================


class DatabaseError(StudioError):
    """Database query or transaction error."""

    default_category = ErrorCategory.DATABASE
    default_retryable = False


class IntegrityError(DatabaseError):
    """Database integrity constraint violation."""

    pass


# =============================================================================
# TELEMETRY ERRORS
# =============================================================================


class TelemetryError(StudioError):
    """Telemetry pipeline error."""

    default_category = ErrorCategory.TELEMETRY
    default_retryable = False


class SessionClockError(TelemetryError):
    """Session start lies after digest time.

    Indicates a bug in whichever collaborator recorded the session start;
    it is raised rather than clamped.
    """

    default_category = ErrorCategory.INTERNAL

    def __init__(self, session_started_at: int, digested_at: int):
        self.session_started_at = session_started_at
        self.digested_at = digested_at
        super().__init__(
            f"Session started at {session_started_at} after digest time {digested_at}"
        )


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "StudioError",
    "TransientError",
    "NetworkError",
    "RequestTimeoutError",
    "DeliveryError",
    "ValidationError",
    "DatabaseError",
    "IntegrityError",
    "TelemetryError",
    "SessionClockError",
]
