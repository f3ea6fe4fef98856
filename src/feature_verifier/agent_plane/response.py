"""
feature-verifier agent response parsing.

File: src/feature_verifier/agent_plane/response.py

Purpose
- Turn raw agent output into a typed analysis, in one place.

Functional requirements
- JSON is taken from a fenced code block when present, otherwise from the outermost
  ``{...}`` span of the output.
- Criteria results are aligned to the feature's acceptance list by ``index``; a
  criterion the agent did not address is unsatisfied with reasoning
  "Criterion not analyzed by AI". The result length always equals the acceptance
  length.
- Default filling: missing or non-numeric confidence -> 0.5, out-of-range confidence
  is clamped to [0, 1], missing reasoning -> "No reasoning provided", unknown verdict
  -> ``needs_review``, non-list suggestion/note fields -> empty.
- Unparseable output yields an error outcome rather than raising.
"""

from __future__ import annotations

import json
import math
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Final

from feature_verifier.agent_plane.errors import ResponseParseError
from feature_verifier.domain.models import CriterionResult, Verdict

NOT_ANALYZED_REASONING: Final[str] = "Criterion not analyzed by AI"
NO_REASONING: Final[str] = "No reasoning provided"
PARSE_FAILURE_REASONING: Final[str] = "Failed to parse AI response"
DEFAULT_CONFIDENCE: Final[float] = 0.5

_FENCED_BLOCK: Final[re.Pattern[str]] = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")
_OBJECT_SPAN: Final[re.Pattern[str]] = re.compile(r"\{[\s\S]*\}")


@dataclass(frozen=True, slots=True)
class AgentAnalysis:
    """Typed agent judgment for one feature."""

    criteria_results: tuple[CriterionResult, ...]
    verdict: Verdict
    overall_reasoning: str
    suggestions: tuple[str, ...] = ()
    code_quality_notes: tuple[str, ...] = ()

    @classmethod
    def failed(cls, acceptance: Sequence[str], *, reasoning: str, overall: str) -> AgentAnalysis:
        """Every criterion unsatisfied with ``reasoning``; verdict ``needs_review``."""

        return cls(
            criteria_results=tuple(
                CriterionResult(
                    criterion=criterion,
                    index=index,
                    satisfied=False,
                    reasoning=reasoning,
                    confidence=0.0,
                )
                for index, criterion in enumerate(acceptance)
            ),
            verdict=Verdict.NEEDS_REVIEW,
            overall_reasoning=overall,
        )


@dataclass(frozen=True, slots=True)
class ParseOutcome:
    """Either a parsed analysis (``ok``) or the reason parsing failed."""

    analysis: AgentAnalysis | None
    error: ResponseParseError | None = None

    @property
    def ok(self) -> bool:
        return self.analysis is not None

    def analysis_or_fallback(self, acceptance: Sequence[str]) -> AgentAnalysis:
        if self.analysis is not None:
            return self.analysis
        return AgentAnalysis.failed(
            acceptance, reasoning=PARSE_FAILURE_REASONING, overall=PARSE_FAILURE_REASONING
        )


def extract_json_text(raw: str) -> str | None:
    text = raw.strip()
    fenced = _FENCED_BLOCK.search(text)
    if fenced:
        text = fenced.group(1)
    span = _OBJECT_SPAN.search(text)
    if span:
        return span.group(0)
    return None


def parse_agent_response(raw: str, acceptance: Sequence[str]) -> ParseOutcome:
    """Parse agent output against ``acceptance``; never raises for bad output."""

    candidate = extract_json_text(raw)
    if candidate is None:
        return ParseOutcome(
            analysis=None, error=ResponseParseError("no JSON object found in agent output")
        )
    try:
        payload = json.loads(candidate)
    except json.JSONDecodeError as exc:
        return ParseOutcome(analysis=None, error=ResponseParseError(f"invalid JSON: {exc.msg}"))
    if not isinstance(payload, Mapping):
        return ParseOutcome(
            analysis=None,
            error=ResponseParseError(f"expected JSON object, got {type(payload).__name__}"),
        )

    by_index = _index_criteria(payload.get("criteriaResults"))
    criteria = tuple(
        _criterion_from(by_index.get(index), criterion, index)
        for index, criterion in enumerate(acceptance)
    )
    return ParseOutcome(
        analysis=AgentAnalysis(
            criteria_results=criteria,
            verdict=_verdict(payload.get("verdict")),
            overall_reasoning=_text(payload.get("overallReasoning")) or NO_REASONING,
            suggestions=_string_list(payload.get("suggestions")),
            code_quality_notes=_string_list(payload.get("codeQualityNotes")),
        )
    )


def normalize_confidence(value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return DEFAULT_CONFIDENCE
    parsed = float(value)
    if math.isnan(parsed):
        return DEFAULT_CONFIDENCE
    return min(1.0, max(0.0, parsed))


def _index_criteria(raw: object) -> dict[int, Mapping[str, object]]:
    indexed: dict[int, Mapping[str, object]] = {}
    if not isinstance(raw, list):
        return indexed
    for item in raw:
        if not isinstance(item, Mapping):
            continue
        index = item.get("index")
        if isinstance(index, bool) or not isinstance(index, int):
            continue
        indexed.setdefault(index, item)
    return indexed


def _criterion_from(item: Mapping[str, object] | None, criterion: str, index: int) -> CriterionResult:
    if item is None:
        return CriterionResult(
            criterion=criterion,
            index=index,
            satisfied=False,
            reasoning=NOT_ANALYZED_REASONING,
            confidence=0.0,
        )
    return CriterionResult(
        criterion=criterion,
        index=index,
        satisfied=item.get("satisfied") is True,
        reasoning=_text(item.get("reasoning")) or NO_REASONING,
        evidence=_string_list(item.get("evidence")),
        confidence=normalize_confidence(item.get("confidence")),
    )


def _verdict(value: object) -> Verdict:
    if isinstance(value, str):
        try:
            return Verdict(value.strip().lower())
        except ValueError:
            return Verdict.NEEDS_REVIEW
    return Verdict.NEEDS_REVIEW


def _text(value: object) -> str:
    return value.strip() if isinstance(value, str) else ""


def _string_list(value: object) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(str(item) for item in value if item is not None)


__all__ = [
    "AgentAnalysis",
    "DEFAULT_CONFIDENCE",
    "NOT_ANALYZED_REASONING",
    "NO_REASONING",
    "PARSE_FAILURE_REASONING",
    "ParseOutcome",
    "extract_json_text",
    "normalize_confidence",
    "parse_agent_response",
]
