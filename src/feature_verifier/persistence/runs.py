"""Per-feature run files: ``<store>/<featureId>/<NNN>.json`` and ``<NNN>.md``."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Final

from feature_verifier.constants import RUN_NUMBER_WIDTH
from feature_verifier.domain.models import RunRecord
from feature_verifier.persistence.report import render_report
from feature_verifier.utils.fs import atomic_write, safe_join

_RUN_FILE: Final[re.Pattern[str]] = re.compile(r"^(\d+)\.json$")


def format_run_number(run_number: int) -> str:
    return f"{run_number:0{RUN_NUMBER_WIDTH}d}"


def feature_dir(store_dir: Path, feature_id: str) -> Path:
    target = safe_join(store_dir, feature_id)
    if target is None or target.resolve() == store_dir.resolve():
        raise ValueError(f"feature_id: {feature_id!r} does not name a directory inside the store")
    return target


def list_run_numbers(store_dir: Path, feature_id: str) -> list[int]:
    directory = feature_dir(store_dir, feature_id)
    if not directory.is_dir():
        return []
    numbers = []
    for entry in directory.iterdir():
        match = _RUN_FILE.match(entry.name)
        if match and entry.is_file():
            numbers.append(int(match.group(1)))
    return sorted(numbers)


def next_run_number(store_dir: Path, feature_id: str) -> int:
    existing = list_run_numbers(store_dir, feature_id)
    return existing[-1] + 1 if existing else 1


def run_json_path(store_dir: Path, feature_id: str, run_number: int) -> Path:
    return feature_dir(store_dir, feature_id) / f"{format_run_number(run_number)}.json"


def write_run(store_dir: Path, record: RunRecord) -> Path:
    """Write both artifacts for ``record``; returns the JSON path."""

    json_path = run_json_path(store_dir, record.result.feature_id, record.run_number)
    atomic_write(json_path, json.dumps(record.to_dict(), indent=2) + "\n")
    atomic_write(json_path.with_suffix(".md"), render_report(record.result, record.run_number))
    return json_path


def read_run(path: Path) -> RunRecord:
    """Raises ``OSError`` or ``ValueError`` for unreadable or malformed files."""

    payload = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ValueError(f"{path}: expected JSON object")
    return RunRecord.from_dict(payload)


__all__ = [
    "feature_dir",
    "format_run_number",
    "list_run_numbers",
    "next_run_number",
    "read_run",
    "run_json_path",
    "write_run",
]
