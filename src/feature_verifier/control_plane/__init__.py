"""Control plane: verification mode selection, orchestration and result summaries."""

from feature_verifier.control_plane.orchestrator import (
    STRICT_TDD,
    VerificationOrchestrator,
    VerifyOptions,
    determine_verification_mode,
)
from feature_verifier.control_plane.progress import (
    LoggingProgressReporter,
    NullProgressReporter,
    ProgressReporter,
    StepTracker,
)
from feature_verifier.control_plane.summary import (
    VerificationSummary,
    create_verification_summary,
    format_verification_result,
)

__all__ = [
    "LoggingProgressReporter",
    "NullProgressReporter",
    "ProgressReporter",
    "STRICT_TDD",
    "StepTracker",
    "VerificationOrchestrator",
    "VerificationSummary",
    "VerifyOptions",
    "create_verification_summary",
    "determine_verification_mode",
    "format_verification_result",
]
