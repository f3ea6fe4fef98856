"""Structured logging setup: structlog over stdlib ``logging`` with redaction support.

Components log events as ``logger.info("event_name", key=value)`` against a logger
obtained from :func:`get_logger` (or injected by tests). :func:`configure_logging`
wires structlog to render those events as JSON lines or console text, stamps them
with an ISO-8601 UTC timestamp, and masks secrets before rendering.
"""

from __future__ import annotations

import logging
import math
import re
import sys
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final, Protocol

import structlog

if TYPE_CHECKING:
    from feature_verifier.config.schema import LoggingSettings

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]

_REDACTED_VALUE: Final[str] = "***REDACTED***"
_DEFAULT_LOGGER_NAME: Final[str] = "feature_verifier"

_SENSITIVE_KEY_TERMS: Final[tuple[str, ...]] = (
    "secret",
    "token",
    "password",
    "passphrase",
    "api_key",
    "apikey",
    "authorization",
    "credential",
    "cookie",
    "private_key",
    "client_secret",
)

_TRANSCRIPT_KEY_TERMS: Final[tuple[str, ...]] = (
    "transcript",
    "prompt_text",
    "agent_prompt",
)

_SENSITIVE_ASSIGNMENT_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"(?i)\b(api[_-]?key|token|password|secret|client_secret|authorization)\b\s*([:=])\s*([^\s,;]+)"
)
_BEARER_TOKEN_PATTERN: Final[re.Pattern[str]] = re.compile(r"(?i)\bbearer\s+[A-Za-z0-9._~+/-]+=*")
_OPENAI_KEY_PATTERN: Final[re.Pattern[str]] = re.compile(r"\bsk-[A-Za-z0-9]{12,}\b")
_ANTHROPIC_KEY_PATTERN: Final[re.Pattern[str]] = re.compile(r"\bsk-ant-[A-Za-z0-9_-]{12,}\b")

# Keys structlog itself manages; never masked.
_RESERVED_EVENT_KEYS: Final[frozenset[str]] = frozenset({"event", "level", "timestamp", "logger"})


class EventLogger(Protocol):
    """Minimal logger surface the verifier components call into."""

    def debug(self, event: str, **fields: Any) -> Any: ...

    def info(self, event: str, **fields: Any) -> Any: ...

    def warning(self, event: str, **fields: Any) -> Any: ...

    def error(self, event: str, **fields: Any) -> Any: ...


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Configuration for structured logging."""

    level: int | str = "INFO"
    json_output: bool = True
    log_file: Path | str | None = None
    logger_name: str = _DEFAULT_LOGGER_NAME
    redact: bool = True

    @classmethod
    def from_settings(cls, settings: LoggingSettings) -> LoggingConfig:
        return cls(level=settings.level, json_output=settings.json, log_file=settings.log_file)


def configure_logging(config: LoggingConfig | None = None) -> None:
    """Install structlog processors and stdlib handlers for ``config``.

    Calling this more than once replaces the handlers installed by the previous call.
    """

    cfg = config or LoggingConfig()
    level = _parse_log_level(cfg.level)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
    ]
    if cfg.redact:
        processors.append(redact_event)
    processors.append(structlog.stdlib.ProcessorFormatter.wrap_for_formatter)

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    renderer: Any = (
        structlog.processors.JSONRenderer(sort_keys=True)
        if cfg.json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    )

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if cfg.log_file is not None:
        log_path = Path(cfg.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    logger = logging.getLogger(cfg.logger_name)
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False


def get_logger(name: str | None = None) -> Any:
    """Return a structlog logger bound to ``name``."""

    return structlog.get_logger(name or _DEFAULT_LOGGER_NAME)


def redact_event(
    _logger: object, _method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """structlog processor masking sensitive keys and inline secrets."""

    for key in list(event_dict):
        if key in _RESERVED_EVENT_KEYS:
            continue
        event_dict[key] = redact_value(_normalize_json_value(event_dict[key]), key_context=key)
    message = event_dict.get("event")
    if isinstance(message, str):
        event_dict["event"] = _redact_string(message)
    return event_dict


def redact_value(value: JSONValue, *, key_context: str | None = None) -> JSONValue:
    if key_context is not None and _requires_redaction_for_key(key_context):
        return _REDACTED_VALUE

    if isinstance(value, str):
        return _redact_string(value)

    if isinstance(value, list):
        return [redact_value(item) for item in value]

    if isinstance(value, dict):
        return {key: redact_value(item, key_context=key) for key, item in value.items()}

    return value


def _requires_redaction_for_key(key: str) -> bool:
    key_lower = key.lower()
    return any(term in key_lower for term in _SENSITIVE_KEY_TERMS) or any(
        term in key_lower for term in _TRANSCRIPT_KEY_TERMS
    )


def _redact_string(text: str) -> str:
    redacted = _SENSITIVE_ASSIGNMENT_PATTERN.sub(
        lambda match: f"{match.group(1)}{match.group(2)}{_REDACTED_VALUE}", text
    )
    redacted = _BEARER_TOKEN_PATTERN.sub(f"Bearer {_REDACTED_VALUE}", redacted)
    redacted = _ANTHROPIC_KEY_PATTERN.sub(_REDACTED_VALUE, redacted)
    redacted = _OPENAI_KEY_PATTERN.sub(_REDACTED_VALUE, redacted)
    return redacted


def _normalize_json_value(value: object) -> JSONValue:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else repr(value)
    if isinstance(value, Path):
        return value.as_posix()
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, Mapping):
        return {str(key): _normalize_json_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_normalize_json_value(item) for item in value]
    return str(value)


def _parse_log_level(value: int | str) -> int:
    if isinstance(value, int):
        return value
    candidate = logging.getLevelName(value.strip().upper())
    if isinstance(candidate, int):
        return candidate
    raise ValueError(f"unknown log level: {value!r}")


__all__ = [
    "EventLogger",
    "JSONScalar",
    "JSONValue",
    "LoggingConfig",
    "configure_logging",
    "get_logger",
    "redact_event",
    "redact_value",
]
