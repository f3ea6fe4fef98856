"""Dataclass domain models with validation and camelCase JSON serialization.

The on-disk run records, the legacy ``results.json`` store and the feature list all
use camelCase keys; attributes stay snake_case and ``to_dict``/``from_dict`` map
between the two.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import NoReturn, TypeVar

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]

TEnum = TypeVar("TEnum", bound=StrEnum)


class Verdict(StrEnum):
    PASS = "pass"
    FAIL = "fail"
    NEEDS_REVIEW = "needs_review"


class CheckType(StrEnum):
    TEST = "test"
    TYPECHECK = "typecheck"
    LINT = "lint"
    BUILD = "build"
    E2E = "e2e"
    INIT_SCRIPT = "init-script"


class TestMode(StrEnum):
    FULL = "full"
    QUICK = "quick"
    SKIP = "skip"


class E2EMode(StrEnum):
    FULL = "full"
    SMOKE = "smoke"
    TAGS = "tags"


class VerificationMode(StrEnum):
    TDD = "tdd"
    AI = "ai"


def utc_timestamp() -> str:
    """Current time as an ISO-8601 UTC string with millisecond precision."""

    now = datetime.now(UTC)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


@dataclass(frozen=True, slots=True)
class TestRequirements:
    """Per-feature TDD requirements."""

    unit_required: bool = False
    e2e_required: bool = False
    test_files: tuple[str, ...] = ()
    e2e_tags: tuple[str, ...] = ()

    @property
    def any_required(self) -> bool:
        return self.unit_required or self.e2e_required

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> TestRequirements:
        unit = _as_mapping(data.get("unit", {}), "testRequirements.unit")
        e2e = _as_mapping(data.get("e2e", {}), "testRequirements.e2e")
        files: list[str] = list(_as_str_tuple(unit.get("testFiles", ()), "unit.testFiles"))
        pattern = unit.get("pattern")
        if isinstance(pattern, str) and pattern.strip() and not files:
            files.append(pattern.strip())
        return cls(
            unit_required=_as_bool(unit.get("required", False), "testRequirements.unit.required"),
            e2e_required=_as_bool(e2e.get("required", False), "testRequirements.e2e.required"),
            test_files=tuple(files),
            e2e_tags=_as_str_tuple(e2e.get("tags", ()), "testRequirements.e2e.tags"),
        )


@dataclass(frozen=True, slots=True)
class Feature:
    """A unit of work with acceptance criteria, consumed read-only."""

    id: str
    description: str
    acceptance: tuple[str, ...]
    module: str = ""
    test_requirements: TestRequirements | None = None
    test_pattern: str | None = None
    e2e_tags: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", _as_str(self.id, "Feature.id"))
        object.__setattr__(
            self, "acceptance", _as_str_tuple(self.acceptance, "Feature.acceptance")
        )
        object.__setattr__(self, "e2e_tags", _as_str_tuple(self.e2e_tags, "Feature.e2e_tags"))

    @property
    def resolved_e2e_tags(self) -> tuple[str, ...]:
        if self.e2e_tags:
            return self.e2e_tags
        if self.test_requirements is not None:
            return self.test_requirements.e2e_tags
        return ()

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Feature:
        requirements_raw = data.get("testRequirements")
        requirements = (
            TestRequirements.from_dict(_as_mapping(requirements_raw, "Feature.testRequirements"))
            if requirements_raw is not None
            else None
        )
        pattern = data.get("testPattern")
        return cls(
            id=_as_str(data.get("id"), "Feature.id"),
            description=_as_text(data.get("description", ""), "Feature.description"),
            module=_as_text(data.get("module", ""), "Feature.module"),
            acceptance=_as_str_tuple(data.get("acceptance", ()), "Feature.acceptance"),
            test_requirements=requirements,
            test_pattern=pattern if isinstance(pattern, str) and pattern.strip() else None,
            e2e_tags=_as_str_tuple(data.get("e2eTags", ()), "Feature.e2eTags"),
        )


@dataclass(frozen=True, slots=True)
class E2EInfo:
    available: bool = False
    command: str | None = None
    framework: str | None = None
    grep_template: str | None = None


@dataclass(frozen=True, slots=True)
class Capabilities:
    """Resolved project capabilities: which checks exist and how to run them."""

    has_tests: bool = False
    test_command: str | None = None
    has_type_check: bool = False
    type_check_command: str | None = None
    has_lint: bool = False
    lint_command: str | None = None
    has_build: bool = False
    build_command: str | None = None
    e2e_info: E2EInfo = field(default_factory=E2EInfo)


@dataclass(frozen=True, slots=True)
class AutomatedCheckResult:
    """Outcome of one automated check. A failed command is data, never an exception."""

    type: CheckType
    success: bool
    output: str = ""
    duration_ms: int = 0
    error_count: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", _as_enum(CheckType, self.type, "AutomatedCheckResult.type"))
        object.__setattr__(
            self, "duration_ms", _as_int(self.duration_ms, "AutomatedCheckResult.duration_ms", minimum=0)
        )

    def to_dict(self) -> dict[str, JSONValue]:
        payload: dict[str, JSONValue] = {
            "type": self.type.value,
            "success": self.success,
            "output": self.output,
            "duration": self.duration_ms,
        }
        if self.error_count is not None:
            payload["errorCount"] = self.error_count
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> AutomatedCheckResult:
        error_count = data.get("errorCount")
        duration = data.get("duration", 0)
        return cls(
            type=_as_enum(CheckType, data.get("type"), "AutomatedCheckResult.type"),
            success=_as_bool(data.get("success"), "AutomatedCheckResult.success"),
            output=_as_text(data.get("output") or "", "AutomatedCheckResult.output"),
            duration_ms=int(duration) if isinstance(duration, (int, float)) else 0,
            error_count=error_count if isinstance(error_count, int) else None,
        )


@dataclass(frozen=True, slots=True)
class CriterionResult:
    criterion: str
    index: int
    satisfied: bool
    reasoning: str
    evidence: tuple[str, ...] = ()
    confidence: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "index", _as_int(self.index, "CriterionResult.index", minimum=0))
        object.__setattr__(
            self, "confidence", _as_unit_float(self.confidence, "CriterionResult.confidence")
        )
        object.__setattr__(
            self, "evidence", _as_str_tuple(self.evidence, "CriterionResult.evidence")
        )

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "criterion": self.criterion,
            "index": self.index,
            "satisfied": self.satisfied,
            "reasoning": self.reasoning,
            "evidence": list(self.evidence),
            "confidence": self.confidence,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> CriterionResult:
        confidence = data.get("confidence", 0.0)
        return cls(
            criterion=_as_text(data.get("criterion", ""), "CriterionResult.criterion"),
            index=_as_int(data.get("index"), "CriterionResult.index", minimum=0),
            satisfied=_as_bool(data.get("satisfied"), "CriterionResult.satisfied"),
            reasoning=_as_text(data.get("reasoning") or "", "CriterionResult.reasoning"),
            evidence=_as_str_tuple(data.get("evidence") or (), "CriterionResult.evidence"),
            confidence=(
                min(1.0, max(0.0, float(confidence)))
                if isinstance(confidence, (int, float)) and not isinstance(confidence, bool)
                else 0.0
            ),
        )


@dataclass(frozen=True, slots=True)
class VerificationResult:
    """One verification attempt. Write-once: the store only ever appends these."""

    feature_id: str
    timestamp: str
    commit_hash: str
    changed_files: tuple[str, ...]
    diff_summary: str
    automated_checks: tuple[AutomatedCheckResult, ...]
    criteria_results: tuple[CriterionResult, ...]
    verdict: Verdict
    verified_by: str
    overall_reasoning: str
    suggestions: tuple[str, ...] = ()
    code_quality_notes: tuple[str, ...] = ()
    related_files_analyzed: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "feature_id", _as_str(self.feature_id, "VerificationResult.feature_id"))
        object.__setattr__(self, "verdict", _as_enum(Verdict, self.verdict, "VerificationResult.verdict"))
        for name in ("changed_files", "suggestions", "code_quality_notes", "related_files_analyzed"):
            object.__setattr__(
                self, name, _as_str_tuple(getattr(self, name), f"VerificationResult.{name}")
            )
        object.__setattr__(self, "automated_checks", tuple(self.automated_checks))
        object.__setattr__(self, "criteria_results", tuple(self.criteria_results))

    @property
    def satisfied_count(self) -> int:
        return sum(1 for item in self.criteria_results if item.satisfied)

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "featureId": self.feature_id,
            "timestamp": self.timestamp,
            "commitHash": self.commit_hash,
            "changedFiles": list(self.changed_files),
            "diffSummary": self.diff_summary,
            "automatedChecks": [item.to_dict() for item in self.automated_checks],
            "criteriaResults": [item.to_dict() for item in self.criteria_results],
            "verdict": self.verdict.value,
            "verifiedBy": self.verified_by,
            "overallReasoning": self.overall_reasoning,
            "suggestions": list(self.suggestions),
            "codeQualityNotes": list(self.code_quality_notes),
            "relatedFilesAnalyzed": list(self.related_files_analyzed),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> VerificationResult:
        checks = data.get("automatedChecks") or []
        criteria = data.get("criteriaResults") or []
        if not isinstance(checks, list):
            _fail("VerificationResult.automatedChecks", "expected list")
        if not isinstance(criteria, list):
            _fail("VerificationResult.criteriaResults", "expected list")
        commit = data.get("commitHash")
        return cls(
            feature_id=_as_str(data.get("featureId"), "VerificationResult.featureId"),
            timestamp=_as_text(data.get("timestamp", ""), "VerificationResult.timestamp"),
            commit_hash=commit if isinstance(commit, str) else "unknown",
            changed_files=_as_str_tuple(data.get("changedFiles") or (), "VerificationResult.changedFiles"),
            diff_summary=_as_text(data.get("diffSummary") or "", "VerificationResult.diffSummary"),
            automated_checks=tuple(
                AutomatedCheckResult.from_dict(_as_mapping(item, "VerificationResult.automatedChecks[]"))
                for item in checks
            ),
            criteria_results=tuple(
                CriterionResult.from_dict(_as_mapping(item, "VerificationResult.criteriaResults[]"))
                for item in criteria
            ),
            verdict=_as_enum(Verdict, data.get("verdict"), "VerificationResult.verdict"),
            verified_by=_as_text(data.get("verifiedBy") or "none", "VerificationResult.verifiedBy"),
            overall_reasoning=_as_text(
                data.get("overallReasoning") or "", "VerificationResult.overallReasoning"
            ),
            suggestions=_as_str_tuple(data.get("suggestions") or (), "VerificationResult.suggestions"),
            code_quality_notes=_as_str_tuple(
                data.get("codeQualityNotes") or (), "VerificationResult.codeQualityNotes"
            ),
            related_files_analyzed=_as_str_tuple(
                data.get("relatedFilesAnalyzed") or (), "VerificationResult.relatedFilesAnalyzed"
            ),
        )


@dataclass(frozen=True, slots=True)
class RunRecord:
    """A verification result tagged with its per-feature run number."""

    run_number: int
    result: VerificationResult

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "run_number", _as_int(self.run_number, "RunRecord.run_number", minimum=1)
        )

    def to_dict(self) -> dict[str, JSONValue]:
        payload = self.result.to_dict()
        payload["runNumber"] = self.run_number
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> RunRecord:
        return cls(
            run_number=_as_int(data.get("runNumber"), "RunRecord.runNumber", minimum=1),
            result=VerificationResult.from_dict(data),
        )


@dataclass(frozen=True, slots=True)
class FeatureIndexEntry:
    feature_id: str
    latest_run: int
    latest_timestamp: str
    latest_verdict: Verdict
    total_runs: int
    pass_count: int
    fail_count: int

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "featureId": self.feature_id,
            "latestRun": self.latest_run,
            "latestTimestamp": self.latest_timestamp,
            "latestVerdict": self.latest_verdict.value,
            "totalRuns": self.total_runs,
            "passCount": self.pass_count,
            "failCount": self.fail_count,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> FeatureIndexEntry:
        return cls(
            feature_id=_as_str(data.get("featureId"), "FeatureIndexEntry.featureId"),
            latest_run=_as_int(data.get("latestRun"), "FeatureIndexEntry.latestRun", minimum=1),
            latest_timestamp=_as_text(
                data.get("latestTimestamp", ""), "FeatureIndexEntry.latestTimestamp"
            ),
            latest_verdict=_as_enum(
                Verdict, data.get("latestVerdict"), "FeatureIndexEntry.latestVerdict"
            ),
            total_runs=_as_int(data.get("totalRuns"), "FeatureIndexEntry.totalRuns", minimum=0),
            pass_count=_as_int(data.get("passCount", 0), "FeatureIndexEntry.passCount", minimum=0),
            fail_count=_as_int(data.get("failCount", 0), "FeatureIndexEntry.failCount", minimum=0),
        )


def _fail(path: str, message: str) -> NoReturn:
    raise ValueError(f"{path}: {message}")


def _as_str(value: object, path: str) -> str:
    if not isinstance(value, str):
        _fail(path, f"expected string, got {type(value).__name__}")
    normalized = value.strip()
    if not normalized:
        _fail(path, "must not be empty")
    return normalized


def _as_text(value: object, path: str) -> str:
    if not isinstance(value, str):
        _fail(path, f"expected string, got {type(value).__name__}")
    return value


def _as_bool(value: object, path: str) -> bool:
    if isinstance(value, bool):
        return value
    _fail(path, f"expected boolean, got {type(value).__name__}")


def _as_int(value: object, path: str, *, minimum: int | None = None) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        _fail(path, f"expected integer, got {type(value).__name__}")
    if minimum is not None and value < minimum:
        _fail(path, f"must be >= {minimum}")
    return value


def _as_unit_float(value: object, path: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        _fail(path, f"expected number, got {type(value).__name__}")
    parsed = float(value)
    if not math.isfinite(parsed) or not (0.0 <= parsed <= 1.0):
        _fail(path, "must be within [0.0, 1.0]")
    return parsed


def _as_mapping(value: object, path: str) -> Mapping[str, object]:
    if not isinstance(value, Mapping):
        _fail(path, f"expected object, got {type(value).__name__}")
    return value


def _as_str_tuple(value: object, path: str) -> tuple[str, ...]:
    if isinstance(value, str) or not isinstance(value, Sequence):
        _fail(path, f"expected list of strings, got {type(value).__name__}")
    items: list[str] = []
    for index, item in enumerate(value):
        if not isinstance(item, str):
            _fail(f"{path}[{index}]", f"expected string, got {type(item).__name__}")
        items.append(item)
    return tuple(items)


def _as_enum(enum_cls: type[TEnum], value: object, path: str) -> TEnum:
    if isinstance(value, enum_cls):
        return value
    if not isinstance(value, str):
        _fail(path, f"expected {enum_cls.__name__} or string, got {type(value).__name__}")
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(item.value for item in enum_cls)
        _fail(path, f"invalid value {value!r}; expected one of: {allowed}")


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
