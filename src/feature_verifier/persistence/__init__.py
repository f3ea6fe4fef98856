"""Persistence layer: per-feature run files, aggregate index and legacy migration."""

from feature_verifier.persistence.index import VerificationIndex, load_index, save_index
from feature_verifier.persistence.migration import (
    MIGRATION_NOT_NEEDED,
    migrate_legacy_store,
    needs_migration,
)
from feature_verifier.persistence.report import render_report
from feature_verifier.persistence.result_store import ResultStore, VerificationStats
from feature_verifier.persistence.runs import format_run_number, next_run_number

__all__ = [
    "MIGRATION_NOT_NEEDED",
    "ResultStore",
    "VerificationIndex",
    "VerificationStats",
    "format_run_number",
    "load_index",
    "migrate_legacy_store",
    "needs_migration",
    "next_run_number",
    "render_report",
    "save_index",
]
