"""Prompt builders for diff-based and autonomous AI verification."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Final

from feature_verifier.constants import RELATED_FILE_MAX_CHARS
from feature_verifier.domain.models import AutomatedCheckResult, Feature

_RESPONSE_SCHEMA: Final[str] = """{
  "criteriaResults": [
    {
      "index": 0,
      "satisfied": true,
      "reasoning": "What implements the criterion, with file:line references",
      "evidence": ["src/module.py:45", "tests/test_module.py:100"],
      "confidence": 0.95
    }
  ],
  "verdict": "pass",
  "overallReasoning": "Summary of the findings",
  "suggestions": ["Actionable improvement"],
  "codeQualityNotes": ["Quality observation"]
}"""

_VERDICT_RULES: Final[str] = """Verdict rules:
- "pass": every criterion is satisfied with confidence above 0.7
- "fail": at least one criterion is clearly not satisfied
- "needs_review": evidence is insufficient or confidence is low"""


def format_criteria(acceptance: Sequence[str]) -> str:
    return "\n".join(f"{position}. {criterion}" for position, criterion in enumerate(acceptance, 1))


def format_check_summary(results: Sequence[AutomatedCheckResult]) -> str:
    if not results:
        return "No automated checks were run."
    lines: list[str] = []
    for result in results:
        status = "PASSED" if result.success else "FAILED"
        line = f"- **{result.type.value.upper()}**: {status} ({result.duration_ms}ms)"
        if result.error_count:
            line += f" - {result.error_count} errors"
        lines.append(line)
    return "\n".join(lines)


def format_related_files(files: Mapping[str, str], *, max_chars: int = RELATED_FILE_MAX_CHARS) -> str:
    if not files:
        return ""
    sections: list[str] = []
    for path, content in files.items():
        body = content if len(content) <= max_chars else content[:max_chars] + "\n... (truncated)"
        sections.append(f"### {path}\n\n```\n{body}\n```")
    return "## Related Files\n\n" + "\n\n".join(sections)


def build_verification_prompt(
    feature: Feature,
    diff: str,
    changed_files: Sequence[str],
    automated_results: Sequence[AutomatedCheckResult],
    related_files: Mapping[str, str] | None = None,
) -> str:
    """Prompt for judging a precomputed diff against the acceptance criteria."""

    changed = "\n".join(f"- {path}" for path in changed_files) or "- (none)"
    sections = [
        "You are verifying whether code changes satisfy a feature's acceptance criteria.",
        "## Feature\n\n"
        f"- ID: {feature.id}\n- Description: {feature.description}\n- Module: {feature.module}",
        f"## Acceptance Criteria\n\n{format_criteria(feature.acceptance)}",
        f"## Changed Files\n\n{changed}",
        f"## Git Diff\n\n```diff\n{diff}\n```",
        f"## Automated Check Results\n\n{format_check_summary(automated_results)}",
    ]
    related = format_related_files(related_files or {})
    if related:
        sections.append(related)
    sections.extend(
        [
            "## Task\n\n"
            "For each criterion decide whether it is satisfied, cite evidence from the diff, "
            "rate your confidence from 0.0 to 1.0 and explain your reasoning. Note code quality "
            "issues and unhandled edge cases.",
            _VERDICT_RULES,
            f"Respond with ONLY a JSON object in this format:\n\n```json\n{_RESPONSE_SCHEMA}\n```",
        ]
    )
    return "\n\n".join(sections)


def build_autonomous_prompt(
    cwd: str,
    feature: Feature,
    automated_results: Sequence[AutomatedCheckResult],
) -> str:
    """Prompt asking the agent to explore the repository itself; no diff is supplied."""

    return "\n\n".join(
        [
            "You are verifying whether a feature's acceptance criteria are satisfied.",
            f"## Working Directory\n\n{cwd}\n\nExplore it with your available tools.",
            "## Feature\n\n"
            f"- ID: {feature.id}\n- Description: {feature.description}\n- Module: {feature.module}",
            f"## Acceptance Criteria\n\n{format_criteria(feature.acceptance)}",
            f"## Automated Check Results\n\n{format_check_summary(automated_results)}",
            "## Task\n\n"
            "Read the relevant source files and tests, find the code that implements each "
            "criterion, check that tests cover it, and judge each criterion.",
            _VERDICT_RULES,
            "After exploring, return ONLY a JSON object (no markdown, no explanation):\n\n"
            + _RESPONSE_SCHEMA,
        ]
    )


__all__ = [
    "build_autonomous_prompt",
    "build_verification_prompt",
    "format_check_summary",
    "format_criteria",
    "format_related_files",
]
