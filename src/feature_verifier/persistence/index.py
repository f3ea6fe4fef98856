"""
feature-verifier verification index

File: src/feature_verifier/persistence/index.py

Purpose
- Aggregate per-feature summary (`index.json`) kept next to the per-run files.

Functional requirements
- The index is read-modify-written on every save: ``totalRuns`` increments,
  ``passCount``/``failCount`` increment on pass/fail only, and the ``latest*`` fields
  are overwritten.
- A missing index loads as ``None``; a corrupt index is logged and treated as empty.
- Writes are atomic (temp file + replace).
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from feature_verifier.constants import INDEX_VERSION, VERIFICATION_INDEX_FILE
from feature_verifier.domain.models import (
    FeatureIndexEntry,
    JSONValue,
    Verdict,
    VerificationResult,
    utc_timestamp,
)
from feature_verifier.utils.fs import atomic_write

if TYPE_CHECKING:
    from feature_verifier.observability.logging import EventLogger


@dataclass(frozen=True, slots=True)
class VerificationIndex:
    features: Mapping[str, FeatureIndexEntry] = field(default_factory=dict)
    updated_at: str = field(default_factory=utc_timestamp)
    version: str = INDEX_VERSION

    def get(self, feature_id: str) -> FeatureIndexEntry | None:
        return self.features.get(feature_id)

    def with_run(self, result: VerificationResult, run_number: int) -> VerificationIndex:
        """Return a new index with ``result`` recorded as run ``run_number``."""

        existing = self.features.get(result.feature_id)
        passed = 1 if result.verdict is Verdict.PASS else 0
        failed = 1 if result.verdict is Verdict.FAIL else 0
        if existing is None:
            entry = FeatureIndexEntry(
                feature_id=result.feature_id,
                latest_run=run_number,
                latest_timestamp=result.timestamp,
                latest_verdict=result.verdict,
                total_runs=1,
                pass_count=passed,
                fail_count=failed,
            )
        else:
            entry = replace(
                existing,
                latest_run=run_number,
                latest_timestamp=result.timestamp,
                latest_verdict=result.verdict,
                total_runs=existing.total_runs + 1,
                pass_count=existing.pass_count + passed,
                fail_count=existing.fail_count + failed,
            )
        features = dict(self.features)
        features[result.feature_id] = entry
        return VerificationIndex(features=features, updated_at=utc_timestamp(), version=self.version)

    def without(self, feature_id: str) -> VerificationIndex:
        features = {key: value for key, value in self.features.items() if key != feature_id}
        return VerificationIndex(features=features, updated_at=utc_timestamp(), version=self.version)

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "features": {key: entry.to_dict() for key, entry in self.features.items()},
            "updatedAt": self.updated_at,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> VerificationIndex:
        raw_features = data.get("features")
        if not isinstance(raw_features, Mapping):
            raise ValueError("index.features: expected object")
        features: dict[str, FeatureIndexEntry] = {}
        for key, raw_entry in raw_features.items():
            if not isinstance(raw_entry, Mapping):
                raise ValueError(f"index.features.{key}: expected object")
            features[str(key)] = FeatureIndexEntry.from_dict(raw_entry)
        updated_at = data.get("updatedAt")
        version = data.get("version")
        return cls(
            features=features,
            updated_at=updated_at if isinstance(updated_at, str) else utc_timestamp(),
            version=version if isinstance(version, str) else INDEX_VERSION,
        )


def index_path(store_dir: Path) -> Path:
    return store_dir / VERIFICATION_INDEX_FILE


def load_index(
    store_dir: Path,
    *,
    logger: EventLogger | Any | None = None,
) -> VerificationIndex | None:
    path = index_path(store_dir)
    if not path.exists():
        return None
    log = logger if logger is not None else structlog.get_logger(__name__)
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(payload, Mapping):
            raise ValueError(f"expected JSON object, got {type(payload).__name__}")
        return VerificationIndex.from_dict(payload)
    except (OSError, ValueError) as exc:
        log.warning("store_index_corrupt", path=str(path), error=str(exc))
        return VerificationIndex()


def save_index(store_dir: Path, index: VerificationIndex) -> None:
    atomic_write(index_path(store_dir), json.dumps(index.to_dict(), indent=2) + "\n")


__all__ = ["VerificationIndex", "index_path", "load_index", "save_index"]
