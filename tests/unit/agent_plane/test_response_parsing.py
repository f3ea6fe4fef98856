"""
feature-verifier - unit tests for agent response parsing

File: tests/unit/agent_plane/test_response_parsing.py

Purpose
- Validate JSON extraction, index alignment and default filling for agent output.
"""

from __future__ import annotations

import json

from hypothesis import given
from hypothesis import strategies as st

from feature_verifier.agent_plane.errors import ResponseParseError
from feature_verifier.agent_plane.response import (
    DEFAULT_CONFIDENCE,
    NO_REASONING,
    NOT_ANALYZED_REASONING,
    PARSE_FAILURE_REASONING,
    AgentAnalysis,
    extract_json_text,
    normalize_confidence,
    parse_agent_response,
)
from feature_verifier.domain.models import Verdict

ACCEPTANCE = ("Login form renders", "Invalid password shows error", "Session persists")


def _payload(**overrides: object) -> str:
    body: dict[str, object] = {
        "criteriaResults": [
            {
                "index": 0,
                "satisfied": True,
                "reasoning": "Form component exists",
                "evidence": ["src/login.tsx:12"],
                "confidence": 0.9,
            },
            {
                "index": 1,
                "satisfied": False,
                "reasoning": "No error branch",
                "evidence": [],
                "confidence": 0.7,
            },
            {
                "index": 2,
                "satisfied": True,
                "reasoning": "Cookie set on login",
                "evidence": ["src/session.ts:4"],
                "confidence": 0.8,
            },
        ],
        "verdict": "fail",
        "overallReasoning": "Error handling is missing.",
        "suggestions": ["Render the error message"],
        "codeQualityNotes": ["Consider extracting the form"],
    }
    body.update(overrides)
    return json.dumps(body)


def test_parses_json_inside_fenced_block() -> None:
    raw = f"Here is my analysis:\n```json\n{_payload()}\n```\nThanks."

    outcome = parse_agent_response(raw, ACCEPTANCE)

    assert outcome.ok
    analysis = outcome.analysis
    assert analysis is not None
    assert analysis.verdict is Verdict.FAIL
    assert [item.satisfied for item in analysis.criteria_results] == [True, False, True]
    assert analysis.criteria_results[0].evidence == ("src/login.tsx:12",)
    assert analysis.suggestions == ("Render the error message",)
    assert analysis.code_quality_notes == ("Consider extracting the form",)


def test_parses_bare_object_surrounded_by_prose() -> None:
    raw = f"Sure! {_payload(verdict='pass')} Let me know if you need more."

    outcome = parse_agent_response(raw, ACCEPTANCE)

    assert outcome.ok
    assert outcome.analysis is not None
    assert outcome.analysis.verdict is Verdict.PASS


def test_criterion_text_comes_from_acceptance_not_agent() -> None:
    raw = _payload(
        criteriaResults=[{"index": 0, "criterion": "something else", "satisfied": True}]
    )

    outcome = parse_agent_response(raw, ACCEPTANCE)

    assert outcome.analysis is not None
    assert outcome.analysis.criteria_results[0].criterion == ACCEPTANCE[0]


def test_missing_criteria_are_filled_as_not_analyzed() -> None:
    raw = _payload(criteriaResults=[{"index": 1, "satisfied": True, "reasoning": "ok"}])

    outcome = parse_agent_response(raw, ACCEPTANCE)

    assert outcome.analysis is not None
    results = outcome.analysis.criteria_results
    assert len(results) == len(ACCEPTANCE)
    assert [item.index for item in results] == [0, 1, 2]
    assert results[0].satisfied is False
    assert results[0].reasoning == NOT_ANALYZED_REASONING
    assert results[1].satisfied is True
    assert results[2].reasoning == NOT_ANALYZED_REASONING


def test_defaults_fill_missing_and_out_of_range_fields() -> None:
    raw = _payload(
        criteriaResults=[
            {"index": 0, "satisfied": True},
            {"index": 1, "satisfied": "yes", "confidence": 4.2, "reasoning": "  "},
            {"index": 2, "satisfied": True, "confidence": -1},
        ],
        verdict="maybe",
        overallReasoning=None,
        suggestions="not a list",
        codeQualityNotes=None,
    )

    outcome = parse_agent_response(raw, ACCEPTANCE)

    analysis = outcome.analysis
    assert analysis is not None
    first, second, third = analysis.criteria_results
    assert first.confidence == DEFAULT_CONFIDENCE
    assert first.reasoning == NO_REASONING
    assert second.satisfied is False
    assert second.confidence == 1.0
    assert second.reasoning == NO_REASONING
    assert third.confidence == 0.0
    assert analysis.verdict is Verdict.NEEDS_REVIEW
    assert analysis.overall_reasoning == NO_REASONING
    assert analysis.suggestions == ()
    assert analysis.code_quality_notes == ()


def test_unparseable_output_yields_error_outcome() -> None:
    no_json = parse_agent_response("I could not decide.", ACCEPTANCE)
    broken = parse_agent_response('{"verdict": "pass",', ACCEPTANCE)
    not_object = parse_agent_response("```json\n[1, 2]\n```", ACCEPTANCE)

    assert not no_json.ok
    assert not broken.ok
    assert not not_object.ok
    assert isinstance(no_json.error, ResponseParseError)
    assert no_json.error.code == "response_parse"
    assert no_json.error.retryable is False
    assert no_json.error.detail == "no JSON object found in agent output"
    assert isinstance(broken.error, ResponseParseError)
    assert isinstance(not_object.error, ResponseParseError)


def test_fallback_marks_every_criterion_unsatisfied() -> None:
    outcome = parse_agent_response("garbage", ACCEPTANCE)

    fallback = outcome.analysis_or_fallback(ACCEPTANCE)

    assert fallback.verdict is Verdict.NEEDS_REVIEW
    assert len(fallback.criteria_results) == len(ACCEPTANCE)
    assert all(not item.satisfied for item in fallback.criteria_results)
    assert all(item.reasoning == PARSE_FAILURE_REASONING for item in fallback.criteria_results)


def test_failed_analysis_uses_given_reasoning() -> None:
    analysis = AgentAnalysis.failed(
        ACCEPTANCE, reasoning="AI analysis failed: boom", overall="AI analysis failed"
    )

    assert analysis.overall_reasoning == "AI analysis failed"
    assert {item.reasoning for item in analysis.criteria_results} == {"AI analysis failed: boom"}


def test_extract_json_text_prefers_fenced_block() -> None:
    raw = 'noise {"a": 1} ```\n{"b": 2}\n```'

    assert extract_json_text(raw) == '{"b": 2}'
    assert extract_json_text("no braces here") is None


def test_normalize_confidence() -> None:
    assert normalize_confidence(0.25) == 0.25
    assert normalize_confidence(True) == DEFAULT_CONFIDENCE
    assert normalize_confidence("0.9") == DEFAULT_CONFIDENCE
    assert normalize_confidence(float("nan")) == DEFAULT_CONFIDENCE
    assert normalize_confidence(7) == 1.0


@given(
    acceptance=st.lists(st.text(min_size=1, max_size=20), min_size=0, max_size=6),
    indices=st.lists(st.integers(min_value=-3, max_value=10), max_size=8),
)
def test_criteria_length_always_matches_acceptance(
    acceptance: list[str], indices: list[int]
) -> None:
    raw = json.dumps(
        {
            "criteriaResults": [
                {"index": index, "satisfied": True, "reasoning": "r", "confidence": 0.6}
                for index in indices
            ],
            "verdict": "pass",
        }
    )

    outcome = parse_agent_response(raw, acceptance)

    assert outcome.analysis is not None
    results = outcome.analysis.criteria_results
    assert len(results) == len(acceptance)
    assert [item.index for item in results] == list(range(len(acceptance)))
    assert [item.criterion for item in results] == acceptance
