"""
feature-verifier - unit tests for domain models

File: tests/unit/domain/test_verification_models.py

Purpose
- Validate model validation, camelCase serialization and feature-list parsing.
"""

from __future__ import annotations

import pytest

from feature_verifier.domain.models import (
    AutomatedCheckResult,
    CheckType,
    CriterionResult,
    Feature,
    FeatureIndexEntry,
    RunRecord,
    Verdict,
    VerificationResult,
    utc_timestamp,
)


def _result(**overrides: object) -> VerificationResult:
    fields: dict[str, object] = {
        "feature_id": "auth.login",
        "timestamp": "2026-02-01T12:00:00.000Z",
        "commit_hash": "abc1234",
        "changed_files": ("src/login.py",),
        "diff_summary": "1 files changed",
        "automated_checks": (
            AutomatedCheckResult(type=CheckType.TEST, success=True, output="ok", duration_ms=12),
        ),
        "criteria_results": (
            CriterionResult(
                criterion="Form renders",
                index=0,
                satisfied=True,
                reasoning="present",
                evidence=("src/login.py:3",),
                confidence=0.8,
            ),
        ),
        "verdict": Verdict.PASS,
        "verified_by": "claude",
        "overall_reasoning": "looks good",
    }
    fields.update(overrides)
    return VerificationResult(**fields)  # type: ignore[arg-type]


def test_result_serializes_with_camel_case_keys() -> None:
    payload = _result().to_dict()

    assert payload["featureId"] == "auth.login"
    assert payload["commitHash"] == "abc1234"
    assert payload["automatedChecks"] == [
        {"type": "test", "success": True, "output": "ok", "duration": 12}
    ]
    criteria = payload["criteriaResults"]
    assert isinstance(criteria, list) and criteria[0]["evidence"] == ["src/login.py:3"]
    assert payload["verdict"] == "pass"
    assert payload["relatedFilesAnalyzed"] == []


def test_result_from_dict_restores_equal_value() -> None:
    original = _result(suggestions=("x",), code_quality_notes=("y",))

    assert VerificationResult.from_dict(original.to_dict()) == original


def test_result_from_dict_fills_optional_fields() -> None:
    restored = VerificationResult.from_dict(
        {"featureId": "a", "timestamp": "t", "verdict": "needs_review"}
    )

    assert restored.commit_hash == "unknown"
    assert restored.verified_by == "none"
    assert restored.automated_checks == ()
    assert restored.criteria_results == ()


@pytest.mark.parametrize(
    ("payload", "message"),
    [
        ({"timestamp": "t", "verdict": "pass"}, "featureId"),
        ({"featureId": "a", "verdict": "great"}, "verdict"),
        ({"featureId": "a", "verdict": "pass", "automatedChecks": {"x": 1}}, "automatedChecks"),
    ],
)
def test_result_from_dict_rejects_malformed_payloads(
    payload: dict[str, object], message: str
) -> None:
    with pytest.raises(ValueError, match=message):
        VerificationResult.from_dict(payload)


def test_criterion_validates_confidence_and_index() -> None:
    with pytest.raises(ValueError, match="confidence"):
        CriterionResult(criterion="c", index=0, satisfied=True, reasoning="r", confidence=1.5)
    with pytest.raises(ValueError, match="index"):
        CriterionResult(criterion="c", index=-1, satisfied=True, reasoning="r")


def test_check_result_accepts_string_type() -> None:
    check = AutomatedCheckResult(type="init-script", success=False)  # type: ignore[arg-type]

    assert check.type is CheckType.INIT_SCRIPT
    assert check.to_dict() == {"type": "init-script", "success": False, "output": "", "duration": 0}


def test_run_record_adds_run_number() -> None:
    record = RunRecord(run_number=4, result=_result())

    payload = record.to_dict()

    assert payload["runNumber"] == 4
    assert RunRecord.from_dict(payload) == record
    with pytest.raises(ValueError, match="run_number"):
        RunRecord(run_number=0, result=_result())


def test_index_entry_round_trip() -> None:
    entry = FeatureIndexEntry(
        feature_id="auth.login",
        latest_run=2,
        latest_timestamp="t",
        latest_verdict=Verdict.FAIL,
        total_runs=2,
        pass_count=1,
        fail_count=1,
    )

    assert FeatureIndexEntry.from_dict(entry.to_dict()) == entry


def test_feature_from_feature_list_entry() -> None:
    feature = Feature.from_dict(
        {
            "id": "auth.login",
            "description": "Login",
            "module": "auth",
            "acceptance": ["Form renders", "Errors shown"],
            "testRequirements": {
                "unit": {"required": True, "pattern": "tests/auth/**/*.test.ts"},
                "e2e": {"required": True, "tags": ["@auth"]},
            },
            "status": "passing",
        }
    )

    assert feature.acceptance == ("Form renders", "Errors shown")
    assert feature.test_requirements is not None
    assert feature.test_requirements.any_required
    assert feature.test_requirements.test_files == ("tests/auth/**/*.test.ts",)
    assert feature.resolved_e2e_tags == ("@auth",)


def test_feature_explicit_e2e_tags_win() -> None:
    feature = Feature.from_dict(
        {
            "id": "a",
            "acceptance": [],
            "e2eTags": ["@smoke"],
            "testRequirements": {"e2e": {"tags": ["@other"]}},
        }
    )

    assert feature.resolved_e2e_tags == ("@smoke",)


def test_feature_requires_id() -> None:
    with pytest.raises(ValueError, match="Feature.id"):
        Feature.from_dict({"id": "  ", "acceptance": []})


def test_utc_timestamp_shape() -> None:
    stamp = utc_timestamp()

    assert stamp.endswith("Z")
    assert len(stamp) == len("2026-02-01T12:00:00.000Z")
