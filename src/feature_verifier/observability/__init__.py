"""Observability exports."""

from feature_verifier.observability.logging import (
    EventLogger,
    LoggingConfig,
    configure_logging,
    get_logger,
    redact_event,
    redact_value,
)

__all__ = [
    "EventLogger",
    "LoggingConfig",
    "configure_logging",
    "get_logger",
    "redact_event",
    "redact_value",
]
