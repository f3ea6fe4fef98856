"""Compact summaries and plain-text console rendering of verification results."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from feature_verifier.domain.models import JSONValue, Verdict, VerificationResult

_RULE: Final[str] = "   " + "-" * 50
_CRITERION_PREVIEW_CHARS: Final[int] = 50


@dataclass(frozen=True, slots=True)
class VerificationSummary:
    """Short record of a run, suitable for embedding in a feature list."""

    verified_at: str
    verdict: Verdict
    verified_by: str
    commit_hash: str
    summary: str

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "verifiedAt": self.verified_at,
            "verdict": self.verdict.value,
            "verifiedBy": self.verified_by,
            "commitHash": self.commit_hash,
            "summary": self.summary,
        }


def criteria_summary(result: VerificationResult) -> str:
    return f"{result.satisfied_count}/{len(result.criteria_results)} criteria satisfied"


def create_verification_summary(result: VerificationResult) -> VerificationSummary:
    return VerificationSummary(
        verified_at=result.timestamp,
        verdict=result.verdict,
        verified_by=result.verified_by,
        commit_hash=result.commit_hash,
        summary=criteria_summary(result),
    )


def format_verification_result(result: VerificationResult, verbose: bool = False) -> str:
    lines = ["", "   Verification Result", _RULE]

    if result.automated_checks:
        lines.extend(["", "   Automated Checks:"])
        for check in result.automated_checks:
            status = "PASSED" if check.success else "FAILED"
            duration = f" ({check.duration_ms / 1000:.1f}s)" if check.duration_ms else ""
            lines.append(f"   {check.type.value:<12} {status}{duration}")

    lines.extend(["", "   Criteria Analysis:"])
    for criterion in result.criteria_results:
        mark = "[x]" if criterion.satisfied else "[ ]"
        text = criterion.criterion
        if len(text) > _CRITERION_PREVIEW_CHARS:
            text = text[:_CRITERION_PREVIEW_CHARS] + "..."
        lines.append(
            f"   {mark} {criterion.index + 1}. {text} ({round(criterion.confidence * 100)}%)"
        )
        if verbose:
            lines.append(f"      {criterion.reasoning}")
            if criterion.evidence:
                lines.append(f"      Evidence: {', '.join(criterion.evidence)}")

    lines.extend(["", _RULE, f"   Verdict: {result.verdict.value.upper()}"])
    if verbose and result.overall_reasoning:
        lines.extend(["", f"   {result.overall_reasoning}"])

    if result.suggestions:
        lines.extend(["", "   Suggestions:"])
        lines.extend(f"   - {suggestion}" for suggestion in result.suggestions)

    return "\n".join(lines)


__all__ = [
    "VerificationSummary",
    "create_verification_summary",
    "criteria_summary",
    "format_verification_result",
]
