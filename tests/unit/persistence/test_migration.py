"""
feature-verifier - unit tests for legacy store migration

File: tests/unit/persistence/test_migration.py

Purpose
- Validate conversion of ``results.json`` into per-feature runs plus ``index.json``.

What this test file should cover
- M legacy features become M run-001 files, the index and a ``.bak`` copy.
- A second migration is a no-op returning ``MIGRATION_NOT_NEEDED``.
- Bad entries are skipped and logged; the rest still migrate.
- Store operations migrate lazily on first use.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from feature_verifier.domain.models import Verdict
from feature_verifier.persistence.migration import (
    MIGRATION_NOT_NEEDED,
    load_legacy_results,
    migrate_legacy_store,
    needs_migration,
)
from feature_verifier.persistence.result_store import ResultStore

from . import legacy_payload, make_result

if TYPE_CHECKING:
    from pathlib import Path


@dataclass(slots=True)
class RecordingLogger:
    events: list[tuple[str, dict[str, object]]] = field(default_factory=list)

    def info(self, event: str, **fields: object) -> None:
        self.events.append((event, fields))

    def warning(self, event: str, **fields: object) -> None:
        self.events.append((event, fields))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]


def _write_legacy(store_dir: Path, payload: object) -> Path:
    store_dir.mkdir(parents=True, exist_ok=True)
    path = store_dir / "results.json"
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    return path


def test_migrates_every_feature_to_run_one(tmp_path: Path) -> None:
    store_dir = tmp_path / "ai" / "verification"
    legacy = {
        "auth.login": make_result("auth.login", verdict=Verdict.PASS),
        "auth.logout": make_result("auth.logout", verdict=Verdict.FAIL),
        "billing.invoice": make_result("billing.invoice", verdict=Verdict.NEEDS_REVIEW),
    }
    original = _write_legacy(store_dir, legacy_payload(legacy))
    original_bytes = original.read_bytes()
    logger = RecordingLogger()

    assert needs_migration(store_dir)
    migrated = migrate_legacy_store(store_dir, logger=logger)

    assert migrated == 3
    for feature_id in legacy:
        assert (store_dir / feature_id / "001.json").is_file()
        assert (store_dir / feature_id / "001.md").is_file()
    index = json.loads((store_dir / "index.json").read_text(encoding="utf-8"))
    assert sorted(index["features"]) == sorted(legacy)
    assert index["features"]["auth.logout"]["failCount"] == 1
    assert index["features"]["billing.invoice"]["totalRuns"] == 1
    assert (store_dir / "results.json.bak").read_bytes() == original_bytes
    assert original.is_file()
    assert logger.names() == ["store_migration_completed"]
    assert not needs_migration(store_dir)
    assert migrate_legacy_store(store_dir, logger=logger) == MIGRATION_NOT_NEEDED


def test_migration_not_needed_without_legacy_file_or_with_index(tmp_path: Path) -> None:
    store_dir = tmp_path / "store"

    assert migrate_legacy_store(store_dir, logger=RecordingLogger()) == MIGRATION_NOT_NEEDED

    _write_legacy(store_dir, legacy_payload({"a": make_result("a")}))
    (store_dir / "index.json").write_text('{"features": {}}', encoding="utf-8")

    assert not needs_migration(store_dir)
    assert migrate_legacy_store(store_dir, logger=RecordingLogger()) == MIGRATION_NOT_NEEDED
    assert not (store_dir / "a").exists()


def test_bad_entries_are_skipped_and_logged(tmp_path: Path) -> None:
    store_dir = tmp_path / "store"
    payload = legacy_payload({"good": make_result("good")})
    results = payload["results"]
    assert isinstance(results, dict)
    results["not-an-object"] = "oops"
    results["bad-verdict"] = {**make_result("bad-verdict").to_dict(), "verdict": "maybe"}
    results["../escape"] = make_result("../escape").to_dict()
    _write_legacy(store_dir, payload)
    logger = RecordingLogger()

    migrated = migrate_legacy_store(store_dir, logger=logger)

    assert migrated == 1
    failed = sorted(
        str(fields["feature_id"])
        for name, fields in logger.events
        if name == "store_migration_feature_failed"
    )
    assert failed == ["../escape", "bad-verdict", "not-an-object"]
    index = json.loads((store_dir / "index.json").read_text(encoding="utf-8"))
    assert list(index["features"]) == ["good"]


def test_feature_id_defaults_to_legacy_key(tmp_path: Path) -> None:
    store_dir = tmp_path / "store"
    entry = make_result("placeholder").to_dict()
    del entry["featureId"]
    _write_legacy(store_dir, {"results": {"search.filters": entry}})

    assert migrate_legacy_store(store_dir, logger=RecordingLogger()) == 1
    assert (store_dir / "search.filters" / "001.json").is_file()


def test_empty_or_corrupt_legacy_store_still_writes_index(tmp_path: Path) -> None:
    empty_dir = tmp_path / "empty"
    corrupt_dir = tmp_path / "corrupt"
    _write_legacy(empty_dir, {"results": {}})
    corrupt_dir.mkdir()
    (corrupt_dir / "results.json").write_text("{not json", encoding="utf-8")

    assert migrate_legacy_store(empty_dir, logger=RecordingLogger()) == 0
    assert migrate_legacy_store(corrupt_dir, logger=RecordingLogger()) == 0
    assert (empty_dir / "index.json").is_file()
    assert (corrupt_dir / "index.json").is_file()
    assert load_legacy_results(corrupt_dir) == {}
    assert migrate_legacy_store(corrupt_dir, logger=RecordingLogger()) == MIGRATION_NOT_NEEDED


def test_store_migrates_lazily_before_saving(tmp_path: Path) -> None:
    store_dir = tmp_path / "ai" / "verification"
    _write_legacy(store_dir, legacy_payload({"auth.login": make_result("auth.login")}))
    logger = RecordingLogger()
    store = ResultStore(tmp_path, logger=logger)

    assert store.needs_migration()
    record = store.save(make_result("auth.login", verdict=Verdict.FAIL, seq=60))

    assert record.run_number == 2
    summary = store.get_summary("auth.login")
    assert summary is not None
    assert summary.total_runs == 2
    assert summary.pass_count == 1
    assert summary.fail_count == 1
    assert logger.names()[0] == "store_migration_completed"
    assert store.migrate_legacy_store() == MIGRATION_NOT_NEEDED


def test_store_reads_trigger_migration(tmp_path: Path) -> None:
    store_dir = tmp_path / "ai" / "verification"
    _write_legacy(store_dir, legacy_payload({"auth.login": make_result("auth.login")}))
    store = ResultStore(tmp_path, logger=RecordingLogger())

    history = store.get_history("auth.login")

    assert [record.run_number for record in history] == [1]
    assert store.has_verification("auth.login")
