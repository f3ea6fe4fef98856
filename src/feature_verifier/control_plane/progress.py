"""Step-completion signals from the orchestrator to an external progress display."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import structlog

if TYPE_CHECKING:
    from feature_verifier.observability.logging import EventLogger


@runtime_checkable
class ProgressReporter(Protocol):
    def step_completed(self, step: int, total: int, label: str, *, success: bool) -> None: ...


class NullProgressReporter:
    def step_completed(self, step: int, total: int, label: str, *, success: bool) -> None:
        return None


class LoggingProgressReporter:
    """Emits one ``verification_step_completed`` event per finished step."""

    def __init__(self, logger: EventLogger | Any | None = None) -> None:
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    def step_completed(self, step: int, total: int, label: str, *, success: bool) -> None:
        self._logger.info(
            "verification_step_completed", step=step, total=total, label=label, success=success
        )


class StepTracker:
    """Walks a fixed list of step labels, reporting each as it completes."""

    def __init__(self, reporter: ProgressReporter, steps: Sequence[str]) -> None:
        self._reporter = reporter
        self._steps = tuple(steps)
        self._completed = 0

    @property
    def completed(self) -> int:
        return self._completed

    @property
    def total(self) -> int:
        return len(self._steps)

    def complete(self, success: bool = True) -> None:
        if self._completed >= len(self._steps):
            return
        label = self._steps[self._completed]
        self._completed += 1
        self._reporter.step_completed(self._completed, len(self._steps), label, success=success)


__all__ = ["LoggingProgressReporter", "NullProgressReporter", "ProgressReporter", "StepTracker"]
