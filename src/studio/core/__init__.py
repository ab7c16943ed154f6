"""
studio.core - shared primitives: errors, logging, settings, retry, timestamps.
"""

from studio.core.errors import (
    DeliveryError,
    ErrorCategory,
    ErrorContext,
    NetworkError,
    RequestTimeoutError,
    SessionClockError,
    StudioError,
    TelemetryError,
    TransientError,
    ValidationError,
)
from studio.core.logging import LogContext, configure_logging, get_logger
from studio.core.settings import StudioSettings, get_settings, reset_settings

__all__ = [
    "DeliveryError",
    "ErrorCategory",
    "ErrorContext",
    "NetworkError",
    "RequestTimeoutError",
    "SessionClockError",
    "StudioError",
    "TelemetryError",
    "TransientError",
    "ValidationError",
    "LogContext",
    "configure_logging",
    "get_logger",
    "StudioSettings",
    "get_settings",
    "reset_settings",
]
