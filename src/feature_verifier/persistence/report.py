"""Markdown rendering of a single verification run (``NNN.md``)."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Final

from feature_verifier.constants import REPORT_OUTPUT_MAX_CHARS, RUN_NUMBER_WIDTH
from feature_verifier.domain.models import AutomatedCheckResult, CheckType, VerificationResult

_CHECK_TITLES: Final[dict[CheckType, str]] = {
    CheckType.TEST: "Tests",
    CheckType.TYPECHECK: "Type Check",
    CheckType.LINT: "Lint",
    CheckType.BUILD: "Build",
    CheckType.E2E: "E2E",
    CheckType.INIT_SCRIPT: "Init Script",
}


def format_report_date(timestamp: str) -> str:
    """``2024-01-02T03:04:05.678Z`` -> ``2024-01-02 03:04:05 UTC``; unparsable input is returned as-is."""

    try:
        parsed = datetime.fromisoformat(timestamp)
    except ValueError:
        return timestamp
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(UTC)
    return parsed.strftime("%Y-%m-%d %H:%M:%S UTC")


def format_duration(duration_ms: int) -> str:
    if duration_ms < 1000:
        return f"{duration_ms}ms"
    if duration_ms < 60_000:
        return f"{duration_ms / 1000:.1f}s"
    minutes, remainder = divmod(duration_ms, 60_000)
    return f"{minutes}m {remainder / 1000:.1f}s"


def truncate_output(output: str, max_chars: int = REPORT_OUTPUT_MAX_CHARS) -> str:
    text = output.strip()
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + "\n... (truncated)"


def _check_section(check: AutomatedCheckResult) -> list[str]:
    lines = [
        f"### {_CHECK_TITLES.get(check.type, check.type.value)}",
        "",
        f"- **Status**: {'Passed' if check.success else 'Failed'}",
        f"- **Duration**: {format_duration(check.duration_ms)}",
    ]
    if check.error_count:
        lines.append(f"- **Error Count**: {check.error_count}")
    output = truncate_output(check.output)
    if output:
        lines.extend(["", "**Output**:", "```", output, "```"])
    lines.append("")
    return lines


def _bullets(items: tuple[str, ...], *, code: bool = False) -> list[str]:
    return [f"- `{item}`" if code else f"- {item}" for item in items]


def render_report(result: VerificationResult, run_number: int | None = None) -> str:
    date = format_report_date(result.timestamp)
    lines = [f"# Verification Report: {result.feature_id}", ""]
    if run_number is not None:
        lines.append(f"**Run**: #{run_number:0{RUN_NUMBER_WIDTH}d}")
    lines.extend(
        [
            f"**Date**: {date}",
            f"**Verdict**: {result.verdict.value.upper()}",
            f"**Verified By**: {result.verified_by}",
        ]
    )
    if result.commit_hash:
        lines.append(f"**Commit**: `{result.commit_hash[:7]}`")

    lines.extend(["", "## Changed Files", ""])
    lines.extend(_bullets(result.changed_files, code=True) or ["_No files changed_"])
    if result.diff_summary:
        lines.extend(["", f"> {result.diff_summary}"])

    lines.extend(["", "## Automated Checks", ""])
    if result.automated_checks:
        lines.extend(["| Check | Status | Duration |", "|-------|--------|----------|"])
        for check in result.automated_checks:
            lines.append(
                f"| {_CHECK_TITLES.get(check.type, check.type.value)} "
                f"| {'Pass' if check.success else 'Fail'} "
                f"| {format_duration(check.duration_ms)} |"
            )
        lines.append("")
        for check in result.automated_checks:
            lines.extend(_check_section(check))
    else:
        lines.extend(["_No automated checks were run_", ""])

    lines.extend(["## Acceptance Criteria", ""])
    if not result.criteria_results:
        lines.extend(["_No criteria were evaluated_", ""])
    for criterion in result.criteria_results:
        lines.extend(
            [
                f"### {criterion.index + 1}. {criterion.criterion}",
                "",
                f"- **Satisfied**: {'Yes' if criterion.satisfied else 'No'}",
                f"- **Confidence**: {round(criterion.confidence * 100)}%",
                "",
            ]
        )
        if criterion.reasoning:
            lines.extend(["**Reasoning**:", "", criterion.reasoning, ""])
        if criterion.evidence:
            lines.extend(["**Evidence**:", "", *_bullets(criterion.evidence, code=True), ""])

    lines.extend(
        ["## Overall Assessment", "", result.overall_reasoning or "_No overall assessment provided_", ""]
    )
    for title, items, code in (
        ("Suggestions", result.suggestions, False),
        ("Code Quality Notes", result.code_quality_notes, False),
        ("Related Files Analyzed", result.related_files_analyzed, True),
    ):
        if items:
            lines.extend([f"## {title}", "", *_bullets(items, code=code), ""])

    lines.extend(["---", "", f"_Generated by feature-verifier at {date}_", ""])
    return "\n".join(lines)


__all__ = ["format_duration", "format_report_date", "render_report", "truncate_output"]
