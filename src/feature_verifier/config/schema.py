"""
feature-verifier configuration schema and validation.

File: src/feature_verifier/config/schema.py

Purpose
- Define authoritative configuration defaults, strict validation rules, and the
  immutable ``VerifierConfig`` object threaded through the verifier's constructors.

Functional requirements
- Validate config payloads and return structured errors (field path + message).
- Unknown keys and wrongly typed values are rejected.
- Timeouts are milliseconds; ``0`` for the autonomous timeout means unbounded.

Non-functional requirements
- Keep rules deterministic and easy to audit.
"""

from __future__ import annotations

import copy
import math
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Final

from feature_verifier.constants import (
    AI_DEFAULT_TIMEOUT_MS,
    AI_VERIFICATION_TIMEOUT_MS,
    CHECK_TIMEOUT_MS,
    DEFAULT_AGENT_PRIORITY,
    DEFAULT_BASE_DELAY_MS,
    DEFAULT_INIT_SCRIPT,
    DEFAULT_JITTER_RATIO,
    DEFAULT_MAX_DELAY_MS,
    DEFAULT_MAX_RETRIES,
    VERIFICATION_STORE_DIR,
)

LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

DEFAULT_CONFIG: Final[dict[str, Any]] = {
    "timeouts": {
        "ai_verification": AI_VERIFICATION_TIMEOUT_MS,
        "ai_autonomous": 0,
        "ai_default": AI_DEFAULT_TIMEOUT_MS,
        "check_command": CHECK_TIMEOUT_MS,
    },
    "retry": {
        "max_retries": DEFAULT_MAX_RETRIES,
        "base_delay_ms": DEFAULT_BASE_DELAY_MS,
        "max_delay_ms": DEFAULT_MAX_DELAY_MS,
        "jitter_ratio": DEFAULT_JITTER_RATIO,
    },
    "agents": {
        "priority": list(DEFAULT_AGENT_PRIORITY),
        "descriptors_file": None,
    },
    "checks": {
        "parallel": False,
        "init_script": DEFAULT_INIT_SCRIPT.as_posix(),
        "max_output_chars": 200_000,
    },
    "store": {
        "directory": VERIFICATION_STORE_DIR.as_posix(),
    },
    "logging": {
        "level": "INFO",
        "json": True,
        "log_file": None,
    },
}


@dataclass(frozen=True, slots=True)
class TimeoutSettings:
    """Per-operation timeouts in milliseconds."""

    ai_verification_ms: int = AI_VERIFICATION_TIMEOUT_MS
    ai_autonomous_ms: int = 0
    ai_default_ms: int = AI_DEFAULT_TIMEOUT_MS
    check_command_ms: int = CHECK_TIMEOUT_MS


@dataclass(frozen=True, slots=True)
class RetrySettings:
    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay_ms: int = DEFAULT_BASE_DELAY_MS
    max_delay_ms: int = DEFAULT_MAX_DELAY_MS
    jitter_ratio: float = DEFAULT_JITTER_RATIO


@dataclass(frozen=True, slots=True)
class AgentSettings:
    priority: tuple[str, ...] = DEFAULT_AGENT_PRIORITY
    descriptors_file: str | None = None


@dataclass(frozen=True, slots=True)
class CheckSettings:
    parallel: bool = False
    init_script: str = DEFAULT_INIT_SCRIPT.as_posix()
    max_output_chars: int = 200_000


@dataclass(frozen=True, slots=True)
class StoreSettings:
    directory: str = VERIFICATION_STORE_DIR.as_posix()


@dataclass(frozen=True, slots=True)
class LoggingSettings:
    level: str = "INFO"
    json: bool = True
    log_file: str | None = None


@dataclass(frozen=True, slots=True)
class VerifierConfig:
    """Immutable effective configuration, constructed once per process."""

    timeouts: TimeoutSettings = field(default_factory=TimeoutSettings)
    retry: RetrySettings = field(default_factory=RetrySettings)
    agents: AgentSettings = field(default_factory=AgentSettings)
    checks: CheckSettings = field(default_factory=CheckSettings)
    store: StoreSettings = field(default_factory=StoreSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)

    def to_dict(self) -> dict[str, Any]:
        return {
            "timeouts": {
                "ai_verification": self.timeouts.ai_verification_ms,
                "ai_autonomous": self.timeouts.ai_autonomous_ms,
                "ai_default": self.timeouts.ai_default_ms,
                "check_command": self.timeouts.check_command_ms,
            },
            "retry": {
                "max_retries": self.retry.max_retries,
                "base_delay_ms": self.retry.base_delay_ms,
                "max_delay_ms": self.retry.max_delay_ms,
                "jitter_ratio": self.retry.jitter_ratio,
            },
            "agents": {
                "priority": list(self.agents.priority),
                "descriptors_file": self.agents.descriptors_file,
            },
            "checks": {
                "parallel": self.checks.parallel,
                "init_script": self.checks.init_script,
                "max_output_chars": self.checks.max_output_chars,
            },
            "store": {"directory": self.store.directory},
            "logging": {
                "level": self.logging.level,
                "json": self.logging.json,
                "log_file": self.logging.log_file,
            },
        }


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


class ConfigValidationError(ValueError):
    """Raised when strict config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered}")


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


def default_config() -> dict[str, Any]:
    """Return a deep copy of deterministic built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deterministically deep-merge ``overlay`` onto ``base``."""

    merged = copy.deepcopy(dict(base))
    _merge_into(merged, overlay)
    return merged


def build_config(payload: Mapping[str, object]) -> VerifierConfig:
    """Validate a merged payload and materialize ``VerifierConfig``.

    Raises ``ConfigValidationError`` listing every issue found.
    """

    issues = _IssueCollector()
    _reject_unknown_keys(payload, set(DEFAULT_CONFIG), "", issues)

    sections: dict[str, Any] = {}
    validators: dict[str, Callable[[Mapping[str, object], str, _IssueCollector], Any]] = {
        "timeouts": _validate_timeouts,
        "retry": _validate_retry,
        "agents": _validate_agents,
        "checks": _validate_checks,
        "store": _validate_store,
        "logging": _validate_logging,
    }
    for key, validator in validators.items():
        raw = payload.get(key, {})
        if not isinstance(raw, Mapping):
            issues.add(key, f"expected object, got {type(raw).__name__}")
            continue
        _reject_unknown_keys(raw, set(DEFAULT_CONFIG[key]), key, issues)
        sections[key] = validator(merge_config(DEFAULT_CONFIG[key], raw), key, issues)

    if issues.has_issues:
        raise ConfigValidationError(issues.items())
    return VerifierConfig(**sections)


def format_timeout(ms: int | None) -> str:
    """Render a millisecond duration as ``45s``, ``5m`` or ``2m 30s``."""

    if ms is None or ms <= 0:
        return "unbounded"
    seconds = round(ms / 1000)
    if seconds < 60:
        return f"{seconds}s"
    minutes, remainder = divmod(seconds, 60)
    if remainder == 0:
        return f"{minutes}m"
    return f"{minutes}m {remainder}s"


def _validate_timeouts(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> TimeoutSettings:
    def positive(key: str) -> int:
        parsed = _as_int(payload[key], _join(path, key), issues, minimum=1)
        return parsed if parsed is not None else 1

    autonomous = _as_int(
        payload["ai_autonomous"], _join(path, "ai_autonomous"), issues, minimum=0
    )
    return TimeoutSettings(
        ai_verification_ms=positive("ai_verification"),
        ai_autonomous_ms=autonomous if autonomous is not None else 0,
        ai_default_ms=positive("ai_default"),
        check_command_ms=positive("check_command"),
    )


def _validate_retry(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> RetrySettings:
    max_retries = _as_int(payload["max_retries"], _join(path, "max_retries"), issues, minimum=1)
    base = _as_int(payload["base_delay_ms"], _join(path, "base_delay_ms"), issues, minimum=0)
    cap = _as_int(payload["max_delay_ms"], _join(path, "max_delay_ms"), issues, minimum=0)
    jitter = _as_float(payload["jitter_ratio"], _join(path, "jitter_ratio"), issues, minimum=0.0)
    if jitter is not None and jitter > 1.0:
        issues.add(_join(path, "jitter_ratio"), "must be <= 1.0")
    if base is not None and cap is not None and cap < base:
        issues.add(_join(path, "max_delay_ms"), "must be >= base_delay_ms")
    return RetrySettings(
        max_retries=max_retries or DEFAULT_MAX_RETRIES,
        base_delay_ms=base if base is not None else DEFAULT_BASE_DELAY_MS,
        max_delay_ms=cap if cap is not None else DEFAULT_MAX_DELAY_MS,
        jitter_ratio=jitter if jitter is not None else DEFAULT_JITTER_RATIO,
    )


def _validate_agents(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> AgentSettings:
    priority_path = _join(path, "priority")
    raw_priority = payload["priority"]
    priority: list[str] = []
    if isinstance(raw_priority, str) or not isinstance(raw_priority, Sequence):
        issues.add(priority_path, f"expected list of strings, got {type(raw_priority).__name__}")
    else:
        for index, item in enumerate(raw_priority):
            parsed = _as_str(item, f"{priority_path}[{index}]", issues)
            if parsed is not None:
                priority.append(parsed.lower())
    descriptors = payload["descriptors_file"]
    descriptors_file = (
        None
        if descriptors is None
        else _as_str(descriptors, _join(path, "descriptors_file"), issues)
    )
    return AgentSettings(priority=tuple(priority), descriptors_file=descriptors_file)


def _validate_checks(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> CheckSettings:
    parallel = _as_bool(payload["parallel"], _join(path, "parallel"), issues)
    init_script = _as_str(payload["init_script"], _join(path, "init_script"), issues)
    max_output = _as_int(
        payload["max_output_chars"], _join(path, "max_output_chars"), issues, minimum=1
    )
    return CheckSettings(
        parallel=bool(parallel),
        init_script=init_script or DEFAULT_INIT_SCRIPT.as_posix(),
        max_output_chars=max_output or 200_000,
    )


def _validate_store(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> StoreSettings:
    directory = _as_str(payload["directory"], _join(path, "directory"), issues)
    return StoreSettings(directory=directory or VERIFICATION_STORE_DIR.as_posix())


def _validate_logging(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> LoggingSettings:
    level = _as_str(payload["level"], _join(path, "level"), issues)
    if level is not None and level.upper() not in LOG_LEVELS:
        issues.add(
            _join(path, "level"),
            f"invalid value {level!r}; expected one of: {', '.join(LOG_LEVELS)}",
        )
        level = None
    json_output = _as_bool(payload["json"], _join(path, "json"), issues)
    log_file = payload["log_file"]
    return LoggingSettings(
        level=level.upper() if level is not None else "INFO",
        json=True if json_output is None else json_output,
        log_file=None if log_file is None else _as_str(log_file, _join(path, "log_file"), issues),
    )


def _as_str(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip()
    if not parsed:
        issues.add(path, "must not be empty")
        return None
    return parsed


def _as_bool(value: object, path: str, issues: _IssueCollector) -> bool | None:
    if isinstance(value, bool):
        return value
    issues.add(path, f"expected boolean, got {type(value).__name__}")
    return None


def _as_int(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: int | None = None,
) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        issues.add(path, f"expected integer, got {type(value).__name__}")
        return None
    if minimum is not None and value < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return value


def _as_float(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: float | None = None,
) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        issues.add(path, f"expected number, got {type(value).__name__}")
        return None
    parsed = float(value)
    if not math.isfinite(parsed):
        issues.add(path, "must be finite")
        return None
    if minimum is not None and parsed < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return parsed


def _reject_unknown_keys(
    payload: Mapping[str, object],
    allowed: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(payload):
        if key not in allowed:
            issues.add(_join(path, key), "unknown field")


def _join(path: str, key: str) -> str:
    if not path:
        return key
    return f"{path}.{key}"


def _merge_into(target: dict[str, Any], overlay: Mapping[str, object]) -> None:
    for key in sorted(overlay):
        value = overlay[key]
        if isinstance(value, Mapping):
            existing = target.get(key)
            nested = copy.deepcopy(dict(existing)) if isinstance(existing, Mapping) else {}
            _merge_into(nested, value)
            target[key] = nested
        else:
            target[key] = copy.deepcopy(value)


__all__ = [
    "AgentSettings",
    "CheckSettings",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "DEFAULT_CONFIG",
    "LOG_LEVELS",
    "LoggingSettings",
    "RetrySettings",
    "StoreSettings",
    "TimeoutSettings",
    "VerifierConfig",
    "build_config",
    "default_config",
    "format_timeout",
    "merge_config",
]
