"""
feature-verifier result store

File: src/feature_verifier/persistence/result_store.py

Purpose
- Append-only per-feature verification history with an aggregate index.

What should be included in this file
- ``save``: allocate the next run number from the files on disk, write ``NNN.json``
  and ``NNN.md``, then read-modify-write ``index.json``.
- Read queries over the index and run files.
- Lazy migration of the legacy single-file store on the first call that notices it.
- ``*_async`` variants that offload the blocking file I/O via ``asyncio.to_thread``.

Functional requirements
- Run numbers for a feature are contiguous from 1 under a single writer.
- ``needs_review`` runs count towards ``totalRuns`` but neither pass nor fail.
- Disk failures while saving raise ``StoreWriteError``.

Non-functional requirements
- One writer per feature at a time is assumed. No cross-process lock is taken; two
  concurrent saves for the same feature can allocate the same run number.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from feature_verifier.agent_plane.errors import StoreWriteError
from feature_verifier.constants import VERIFICATION_STORE_DIR
from feature_verifier.domain.models import (
    FeatureIndexEntry,
    RunRecord,
    Verdict,
    VerificationResult,
)
from feature_verifier.persistence.index import VerificationIndex, load_index, save_index
from feature_verifier.persistence.migration import migrate_legacy_store, needs_migration
from feature_verifier.persistence.runs import (
    feature_dir,
    list_run_numbers,
    next_run_number,
    read_run,
    run_json_path,
    write_run,
)

if TYPE_CHECKING:
    from feature_verifier.config.schema import StoreSettings
    from feature_verifier.observability.logging import EventLogger


@dataclass(frozen=True, slots=True)
class VerificationStats:
    total: int = 0
    passing: int = 0
    failing: int = 0
    needs_review: int = 0


class ResultStore:
    """Filesystem-backed verification store rooted at ``<project>/<directory>``."""

    def __init__(
        self,
        project_root: str | Path,
        *,
        directory: str | Path = VERIFICATION_STORE_DIR,
        logger: EventLogger | Any | None = None,
    ) -> None:
        self._project_root = Path(project_root)
        self._store_dir = self._project_root / Path(directory)
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @classmethod
    def from_settings(
        cls,
        project_root: str | Path,
        settings: StoreSettings,
        *,
        logger: EventLogger | Any | None = None,
    ) -> ResultStore:
        return cls(project_root, directory=settings.directory, logger=logger)

    @property
    def store_dir(self) -> Path:
        return self._store_dir

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save(self, result: VerificationResult) -> RunRecord:
        """Persist ``result`` as the feature's next run and update the index."""

        self._ensure_migrated()
        try:
            run_number = next_run_number(self._store_dir, result.feature_id)
            record = RunRecord(run_number=run_number, result=result)
            path = write_run(self._store_dir, record)
            index = self._load_index() or VerificationIndex()
            save_index(self._store_dir, index.with_run(result, run_number))
        except OSError as exc:
            raise StoreWriteError(
                f"failed to save verification for {result.feature_id}: {exc}",
                feature_id=result.feature_id,
            ) from exc

        self._logger.info(
            "verification_saved",
            feature_id=result.feature_id,
            run_number=run_number,
            verdict=result.verdict.value,
            path=str(path),
        )
        return record

    def clear_verification_result(self, feature_id: str) -> bool:
        """Drop ``feature_id`` from the index; its run files are kept."""

        index = self.load_index()
        if index is None or index.get(feature_id) is None:
            return False
        try:
            save_index(self._store_dir, index.without(feature_id))
        except OSError as exc:
            raise StoreWriteError(
                f"failed to update index for {feature_id}: {exc}", feature_id=feature_id
            ) from exc
        return True

    def needs_migration(self) -> bool:
        return needs_migration(self._store_dir)

    def migrate_legacy_store(self) -> int:
        return migrate_legacy_store(self._store_dir, logger=self._logger)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def load_index(self) -> VerificationIndex | None:
        self._ensure_migrated()
        return self._load_index()

    def get_summary(self, feature_id: str) -> FeatureIndexEntry | None:
        index = self.load_index()
        return index.get(feature_id) if index is not None else None

    get_feature_summary = get_summary

    def get_history(self, feature_id: str) -> list[RunRecord]:
        """All readable runs for ``feature_id`` in run-number order."""

        self._ensure_migrated()
        records: list[RunRecord] = []
        for run_number in list_run_numbers(self._store_dir, feature_id):
            path = run_json_path(self._store_dir, feature_id, run_number)
            try:
                records.append(read_run(path))
            except (OSError, ValueError) as exc:
                self._logger.warning("store_run_unreadable", path=str(path), error=str(exc))
        return records

    def get_last_verification(self, feature_id: str) -> VerificationResult | None:
        summary = self.get_summary(feature_id)
        if summary is None:
            return None
        path = run_json_path(self._store_dir, feature_id, summary.latest_run)
        try:
            return read_run(path).result
        except (OSError, ValueError) as exc:
            self._logger.warning("store_run_unreadable", path=str(path), error=str(exc))
            return None

    def has_verification(self, feature_id: str) -> bool:
        return self.get_summary(feature_id) is not None

    def get_verification_stats(self) -> VerificationStats:
        index = self.load_index()
        if index is None:
            return VerificationStats()
        verdicts = [entry.latest_verdict for entry in index.features.values()]
        return VerificationStats(
            total=len(verdicts),
            passing=verdicts.count(Verdict.PASS),
            failing=verdicts.count(Verdict.FAIL),
            needs_review=verdicts.count(Verdict.NEEDS_REVIEW),
        )

    def feature_dir(self, feature_id: str) -> Path:
        return feature_dir(self._store_dir, feature_id)

    # ------------------------------------------------------------------
    # Async variants
    # ------------------------------------------------------------------

    async def save_async(self, result: VerificationResult) -> RunRecord:
        return await asyncio.to_thread(self.save, result)

    async def load_index_async(self) -> VerificationIndex | None:
        return await asyncio.to_thread(self.load_index)

    async def get_summary_async(self, feature_id: str) -> FeatureIndexEntry | None:
        return await asyncio.to_thread(self.get_summary, feature_id)

    async def get_history_async(self, feature_id: str) -> list[RunRecord]:
        return await asyncio.to_thread(self.get_history, feature_id)

    async def get_last_verification_async(self, feature_id: str) -> VerificationResult | None:
        return await asyncio.to_thread(self.get_last_verification, feature_id)

    async def has_verification_async(self, feature_id: str) -> bool:
        return await asyncio.to_thread(self.has_verification, feature_id)

    async def get_verification_stats_async(self) -> VerificationStats:
        return await asyncio.to_thread(self.get_verification_stats)

    async def clear_verification_result_async(self, feature_id: str) -> bool:
        return await asyncio.to_thread(self.clear_verification_result, feature_id)

    async def migrate_legacy_store_async(self) -> int:
        return await asyncio.to_thread(self.migrate_legacy_store)

    # ------------------------------------------------------------------

    def _ensure_migrated(self) -> None:
        if needs_migration(self._store_dir):
            migrate_legacy_store(self._store_dir, logger=self._logger)

    def _load_index(self) -> VerificationIndex | None:
        return load_index(self._store_dir, logger=self._logger)


__all__ = ["ResultStore", "VerificationStats"]
