"""Domain models shared by every plane of the verifier."""

from feature_verifier.domain.models import (
    AutomatedCheckResult,
    Capabilities,
    CheckType,
    CriterionResult,
    E2EInfo,
    E2EMode,
    Feature,
    FeatureIndexEntry,
    RunRecord,
    TestMode,
    TestRequirements,
    Verdict,
    VerificationMode,
    VerificationResult,
    utc_timestamp,
)

__all__ = [
    "AutomatedCheckResult",
    "Capabilities",
    "CheckType",
    "CriterionResult",
    "E2EInfo",
    "E2EMode",
    "Feature",
    "FeatureIndexEntry",
    "RunRecord",
    "TestMode",
    "TestRequirements",
    "Verdict",
    "VerificationMode",
    "VerificationResult",
    "utc_timestamp",
]
