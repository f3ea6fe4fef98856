"""Verifier error taxonomy with deterministic machine-readable fields.

Expected failures (check failures, agent failures, parse failures) are normally
converted to data at their boundary; these classes give those failures a stable
``code`` and ``retryable`` flag, and ``StoreWriteError`` is the one raised past the
orchestrator when the current run cannot be persisted.
"""

from __future__ import annotations

import re
from typing import Final

_TRANSIENT_PATTERNS: Final[tuple[re.Pattern[str], ...]] = (
    re.compile(r"timeout", re.IGNORECASE),
    re.compile(r"timed?\s*out", re.IGNORECASE),
    re.compile(r"ETIMEDOUT", re.IGNORECASE),
    re.compile(r"ECONNRESET", re.IGNORECASE),
    re.compile(r"ECONNREFUSED", re.IGNORECASE),
    re.compile(r"ENETUNREACH", re.IGNORECASE),
    re.compile(r"network", re.IGNORECASE),
    re.compile(r"socket hang up", re.IGNORECASE),
    re.compile(r"connection.*reset", re.IGNORECASE),
    re.compile(r"connection.*refused", re.IGNORECASE),
    re.compile(r"connection.*closed", re.IGNORECASE),
    re.compile(r"temporarily unavailable", re.IGNORECASE),
    re.compile(r"rate limit", re.IGNORECASE),
    re.compile(r"too many requests", re.IGNORECASE),
    re.compile(r"429"),
    re.compile(r"503"),
    re.compile(r"502"),
    re.compile(r"504"),
    re.compile(r"overloaded", re.IGNORECASE),
    re.compile(r"capacity", re.IGNORECASE),
)


class VerifierError(RuntimeError):
    """Base verifier error with machine-readable fields."""

    def __init__(self, *, code: str, detail: str, retryable: bool = False) -> None:
        self.code = code
        self.detail = detail.strip() or "unknown error"
        self.retryable = bool(retryable)
        super().__init__(
            f"code={self.code} retryable={str(self.retryable).lower()} detail={self.detail}"
        )


class AgentUnavailableError(VerifierError):
    """No configured agent resolves on this machine."""

    def __init__(self, detail: str = "No AI agents available or all failed") -> None:
        super().__init__(code="agent_unavailable", detail=detail, retryable=False)


class AgentTransientError(VerifierError):
    """Agent failure likely to succeed on retry (timeout, network, rate limit)."""

    def __init__(self, detail: str) -> None:
        super().__init__(code="agent_transient", detail=detail, retryable=True)


class AgentPermanentError(VerifierError):
    def __init__(self, detail: str) -> None:
        super().__init__(code="agent_permanent", detail=detail, retryable=False)


class ResponseParseError(VerifierError):
    """Agent output held no extractable, well-formed JSON verdict."""

    def __init__(self, detail: str) -> None:
        super().__init__(code="response_parse", detail=detail, retryable=False)


class StoreWriteError(VerifierError):
    """Disk failure while persisting a run record or migrating the legacy store."""

    def __init__(self, detail: str, *, feature_id: str | None = None) -> None:
        self.feature_id = feature_id
        super().__init__(code="store_write", detail=detail, retryable=False)


def is_transient_error(error: str | None) -> bool:
    """Return ``True`` when ``error`` matches the transient failure taxonomy."""

    if not error:
        return False
    return any(pattern.search(error) for pattern in _TRANSIENT_PATTERNS)


def classify_agent_error(error: str | None) -> AgentTransientError | AgentPermanentError:
    detail = error or "Unknown error"
    if is_transient_error(error):
        return AgentTransientError(detail)
    return AgentPermanentError(detail)


__all__ = [
    "AgentPermanentError",
    "AgentTransientError",
    "AgentUnavailableError",
    "ResponseParseError",
    "StoreWriteError",
    "VerifierError",
    "classify_agent_error",
    "is_transient_error",
]
