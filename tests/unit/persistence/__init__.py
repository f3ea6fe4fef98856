"""Shared deterministic builders for persistence tests."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Final

from feature_verifier.domain.models import (
    AutomatedCheckResult,
    CheckType,
    CriterionResult,
    JSONValue,
    Verdict,
    VerificationResult,
)

_BASE_TS: Final[datetime] = datetime(2026, 2, 1, 12, 0, 0, tzinfo=UTC)


def make_timestamp(offset_seconds: int = 0) -> str:
    moment = _BASE_TS + timedelta(seconds=offset_seconds)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.000Z")


def make_result(
    feature_id: str = "auth.login",
    *,
    verdict: Verdict = Verdict.PASS,
    seq: int = 0,
    commit_hash: str = "0123456789abcdef0123456789abcdef01234567",
    checks: tuple[AutomatedCheckResult, ...] | None = None,
) -> VerificationResult:
    satisfied = verdict is Verdict.PASS
    return VerificationResult(
        feature_id=feature_id,
        timestamp=make_timestamp(seq),
        commit_hash=commit_hash,
        changed_files=("src/auth/login.py", "tests/test_login.py"),
        diff_summary="2 files changed",
        automated_checks=(
            checks
            if checks is not None
            else (
                AutomatedCheckResult(
                    type=CheckType.TEST, success=satisfied, output="3 passed", duration_ms=1_250
                ),
            )
        ),
        criteria_results=(
            CriterionResult(
                criterion="Login form renders",
                index=0,
                satisfied=satisfied,
                reasoning="Form component present",
                evidence=("src/auth/login.py:10",),
                confidence=0.9,
            ),
        ),
        verdict=verdict,
        verified_by="claude",
        overall_reasoning=f"run {seq} for {feature_id}",
        suggestions=("Add a remember-me test",),
    )


def legacy_payload(results: dict[str, VerificationResult]) -> dict[str, JSONValue]:
    """``results.json`` as the single-file store wrote it."""

    return {
        "features": {},
        "lastUpdated": make_timestamp(),
        "version": "1.0.0",
        "results": {key: value.to_dict() for key, value in results.items()},
    }


__all__ = ["legacy_payload", "make_result", "make_timestamp"]
