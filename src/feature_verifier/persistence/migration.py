"""
feature-verifier legacy store migration

File: src/feature_verifier/persistence/migration.py

Purpose
- Convert the single-file ``results.json`` store (latest result per feature) into the
  per-feature run layout plus ``index.json``.

Functional requirements
- Migration is needed only when ``results.json`` exists and ``index.json`` does not.
- Each embedded result becomes that feature's run ``001``. A feature that fails to
  convert or write is logged and skipped; the rest continue.
- The index is written even when the legacy store is empty, so a second call is a
  no-op returning ``MIGRATION_NOT_NEEDED``.
- The original file is copied to ``results.json.bak``; backup failure is logged only.
"""

from __future__ import annotations

import json
import shutil
from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final

import structlog

from feature_verifier.agent_plane.errors import StoreWriteError
from feature_verifier.constants import LEGACY_BACKUP_FILE, LEGACY_STORE_FILE
from feature_verifier.domain.models import RunRecord, VerificationResult
from feature_verifier.persistence.index import VerificationIndex, index_path, save_index
from feature_verifier.persistence.runs import write_run

if TYPE_CHECKING:
    from feature_verifier.observability.logging import EventLogger

MIGRATION_NOT_NEEDED: Final[int] = -1


def legacy_store_path(store_dir: Path) -> Path:
    return store_dir / LEGACY_STORE_FILE


def needs_migration(store_dir: Path) -> bool:
    return legacy_store_path(store_dir).is_file() and not index_path(store_dir).exists()


def load_legacy_results(store_dir: Path) -> dict[str, object]:
    """Raw ``results`` mapping of the legacy store; ``{}`` when missing or unreadable."""

    try:
        payload = json.loads(legacy_store_path(store_dir).read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return {}
    if not isinstance(payload, Mapping):
        return {}
    results = payload.get("results")
    if not isinstance(results, Mapping):
        return {}
    return dict(results)


def migrate_legacy_store(
    store_dir: Path,
    *,
    logger: EventLogger | Any | None = None,
) -> int:
    """Migrate ``results.json``; returns the migrated feature count or ``MIGRATION_NOT_NEEDED``."""

    log = logger if logger is not None else structlog.get_logger(__name__)
    if not needs_migration(store_dir):
        return MIGRATION_NOT_NEEDED

    index = VerificationIndex()
    migrated = 0
    for feature_id, raw in load_legacy_results(store_dir).items():
        try:
            if not isinstance(raw, Mapping):
                raise ValueError("expected result object")
            result = VerificationResult.from_dict({**raw, "featureId": raw.get("featureId", feature_id)})
            write_run(store_dir, RunRecord(run_number=1, result=result))
        except (OSError, ValueError) as exc:
            log.warning("store_migration_feature_failed", feature_id=feature_id, error=str(exc))
            continue
        index = index.with_run(result, 1)
        migrated += 1

    try:
        save_index(store_dir, index)
    except OSError as exc:
        raise StoreWriteError(f"failed to write migrated index: {exc}") from exc

    try:
        shutil.copyfile(legacy_store_path(store_dir), store_dir / LEGACY_BACKUP_FILE)
    except OSError as exc:
        log.warning("store_backup_failed", path=str(store_dir / LEGACY_BACKUP_FILE), error=str(exc))

    log.info("store_migration_completed", migrated=migrated, store_dir=str(store_dir))
    return migrated


__all__ = [
    "MIGRATION_NOT_NEEDED",
    "legacy_store_path",
    "load_legacy_results",
    "migrate_legacy_store",
    "needs_migration",
]
