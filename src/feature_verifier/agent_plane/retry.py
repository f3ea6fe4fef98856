"""
feature-verifier retry policy and coordinator.

File: src/feature_verifier/agent_plane/retry.py

Purpose
- Wrap one agent "attempt" call with transient-error classification and bounded
  exponential backoff.

What should be included in this file
- ``calculate_backoff``: ``min(base * 2^(attempt-1) * (1 +/- jitter), max)``.
- ``decide``: a pure policy function from attempt history to retry/stop + delay.
- ``RetryCoordinator``: the effectful driver that awaits attempts, sleeps and logs.

Functional requirements
- Permanent errors stop after the first attempt.
- Transient errors are retried until ``max_retries`` total attempts have run.
- Attempts are strictly sequential.
"""

from __future__ import annotations

import asyncio
import random as random_module
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any, TypeAlias

import structlog

from feature_verifier.agent_plane.errors import classify_agent_error
from feature_verifier.constants import (
    DEFAULT_BASE_DELAY_MS,
    DEFAULT_JITTER_RATIO,
    DEFAULT_MAX_DELAY_MS,
    DEFAULT_MAX_RETRIES,
)

if TYPE_CHECKING:
    from feature_verifier.agent_plane.invoker import AgentCallResult
    from feature_verifier.config.schema import RetrySettings
    from feature_verifier.observability.logging import EventLogger

RandomFn: TypeAlias = Callable[[], float]
SleepFn: TypeAlias = Callable[[float], Awaitable[None]]
RetryCallback: TypeAlias = Callable[[int, str, float], None]


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Bounded exponential backoff policy. ``max_retries`` counts total attempts."""

    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay_ms: int = DEFAULT_BASE_DELAY_MS
    max_delay_ms: int = DEFAULT_MAX_DELAY_MS
    jitter_ratio: float = DEFAULT_JITTER_RATIO

    def __post_init__(self) -> None:
        if self.max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        if self.base_delay_ms < 0:
            raise ValueError("base_delay_ms must be >= 0")
        if self.max_delay_ms < 0:
            raise ValueError("max_delay_ms must be >= 0")
        if not (0.0 <= self.jitter_ratio <= 1.0):
            raise ValueError("jitter_ratio must be between 0.0 and 1.0")

    @classmethod
    def from_settings(cls, settings: RetrySettings) -> RetryPolicy:
        return cls(
            max_retries=settings.max_retries,
            base_delay_ms=settings.base_delay_ms,
            max_delay_ms=settings.max_delay_ms,
            jitter_ratio=settings.jitter_ratio,
        )


class RetryAction(StrEnum):
    RETRY = "retry"
    STOP = "stop"


class StopReason(StrEnum):
    SUCCEEDED = "succeeded"
    PERMANENT = "permanent"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True, slots=True)
class AttemptRecord:
    attempt: int
    success: bool
    error: str | None = None


@dataclass(frozen=True, slots=True)
class RetryDecision:
    action: RetryAction
    delay_ms: float = 0.0
    reason: StopReason | None = None


def calculate_backoff(
    attempt: int,
    base_delay_ms: float = DEFAULT_BASE_DELAY_MS,
    *,
    max_delay_ms: float = DEFAULT_MAX_DELAY_MS,
    jitter_ratio: float = DEFAULT_JITTER_RATIO,
    random_fn: RandomFn = random_module.random,
) -> float:
    """Return the delay in ms before retry ``attempt`` (1-based)."""

    if attempt <= 0:
        raise ValueError("attempt must be > 0")

    delay = base_delay_ms * (2 ** (attempt - 1))
    if jitter_ratio == 0.0:
        return min(delay, max_delay_ms)

    random_value = random_fn()
    if not (0.0 <= random_value <= 1.0):
        raise ValueError("random_fn must return values in [0.0, 1.0]")

    jitter = delay * jitter_ratio * ((random_value * 2.0) - 1.0)
    return max(0.0, min(delay + jitter, max_delay_ms))


def decide(
    history: Sequence[AttemptRecord],
    policy: RetryPolicy,
    *,
    random_fn: RandomFn = random_module.random,
) -> RetryDecision:
    """Pure retry policy: given the attempts so far, retry (with a delay) or stop."""

    if not history:
        return RetryDecision(action=RetryAction.RETRY, delay_ms=0.0)

    last = history[-1]
    if last.success:
        return RetryDecision(action=RetryAction.STOP, reason=StopReason.SUCCEEDED)
    if not classify_agent_error(last.error).retryable:
        return RetryDecision(action=RetryAction.STOP, reason=StopReason.PERMANENT)
    if len(history) >= policy.max_retries:
        return RetryDecision(action=RetryAction.STOP, reason=StopReason.EXHAUSTED)
    return RetryDecision(
        action=RetryAction.RETRY,
        delay_ms=calculate_backoff(
            len(history),
            policy.base_delay_ms,
            max_delay_ms=policy.max_delay_ms,
            jitter_ratio=policy.jitter_ratio,
            random_fn=random_fn,
        ),
    )


@dataclass(frozen=True, slots=True)
class RetryOutcome:
    """Final attempt result plus the full attempt history."""

    result: AgentCallResult
    history: tuple[AttemptRecord, ...]
    stop_reason: StopReason

    @property
    def attempts(self) -> int:
        return len(self.history)


class RetryCoordinator:
    """Effectful driver around :func:`decide`: awaits attempts, sleeps and logs."""

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        *,
        sleep: SleepFn = asyncio.sleep,
        random_fn: RandomFn = random_module.random,
        logger: EventLogger | Any | None = None,
    ) -> None:
        self._policy = policy if policy is not None else RetryPolicy()
        self._sleep = sleep
        self._random_fn = random_fn
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    async def with_retry(
        self,
        attempt_fn: Callable[[], Awaitable[AgentCallResult]],
        *,
        on_retry: RetryCallback | None = None,
    ) -> RetryOutcome:
        history: list[AttemptRecord] = []
        while True:
            result = await attempt_fn()
            history.append(
                AttemptRecord(attempt=len(history) + 1, success=result.success, error=result.error)
            )
            decision = decide(history, self._policy, random_fn=self._random_fn)

            if decision.action is RetryAction.STOP:
                stop_reason = decision.reason or StopReason.EXHAUSTED
                if stop_reason is not StopReason.SUCCEEDED:
                    self._logger.warning(
                        "agent_retry_stopped",
                        reason=stop_reason.value,
                        code=classify_agent_error(result.error).code,
                        attempts=len(history),
                        max_retries=self._policy.max_retries,
                        error=result.error,
                        agent=result.agent_used,
                    )
                return RetryOutcome(result=result, history=tuple(history), stop_reason=stop_reason)

            self._logger.info(
                "agent_retry_scheduled",
                attempt=len(history),
                max_retries=self._policy.max_retries,
                delay_ms=round(decision.delay_ms),
                error=result.error,
            )
            if on_retry is not None:
                on_retry(len(history), result.error or "", decision.delay_ms)
            await self._sleep(decision.delay_ms / 1000)


__all__ = [
    "AttemptRecord",
    "RetryAction",
    "RetryCoordinator",
    "RetryDecision",
    "RetryOutcome",
    "RetryPolicy",
    "StopReason",
    "calculate_backoff",
    "decide",
]
