"""
feature-verifier filesystem utilities

File: src/feature_verifier/utils/fs.py

Purpose
- Atomic writes for the result store and path-traversal-safe reads of project files.

Functional requirements
- Atomic writes use temp files in the destination directory and replace in a single step.
- Reads refuse paths that resolve outside the project root and never raise for
  missing or unreadable files.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from feature_verifier.constants import SOURCE_FILE_EXTENSIONS

if TYPE_CHECKING:
    from collections.abc import Iterable

PathLike = str | os.PathLike[str]

__all__ = [
    "atomic_write",
    "filter_source_files",
    "is_within_root",
    "read_related_files",
    "safe_join",
    "safe_read_text",
]


def atomic_write(path: PathLike, data: bytes | str, *, encoding: str = "utf-8") -> None:
    """
    Atomically write ``data`` to ``path``, creating parent directories.

    The write strategy is:
    1. create temp file in the same directory,
    2. write + flush + fsync file data,
    3. replace target via ``os.replace``.
    """

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target_parent = target.parent.resolve(strict=True)

    fd, temp_name = tempfile.mkstemp(
        prefix=f".{target.name}.",
        suffix=".tmp",
        dir=str(target_parent),
    )
    temp_path = Path(temp_name)

    try:
        mode = "wb" if isinstance(data, bytes) else "w"
        with os.fdopen(fd, mode, encoding=None if isinstance(data, bytes) else encoding) as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_path, target)
    except Exception:
        with contextlib.suppress(OSError):
            temp_path.unlink(missing_ok=True)
        raise


def is_within_root(root: PathLike, candidate: PathLike) -> bool:
    """Return ``True`` if ``candidate`` (relative to ``root`` or absolute) stays inside ``root``.

    Resolution is lexical plus symlink-aware so ``../`` segments and links pointing
    outside the root are both rejected.
    """

    resolved_root = Path(root).resolve(strict=False)
    resolved_target = (resolved_root / Path(candidate)).resolve(strict=False)
    return resolved_target == resolved_root or _is_relative_to(resolved_target, resolved_root)


def safe_join(root: PathLike, relative: PathLike) -> Path | None:
    if not is_within_root(root, relative):
        return None
    return Path(root) / Path(relative)


def safe_read_text(root: PathLike, relative: PathLike) -> str | None:
    """Read ``relative`` under ``root``; ``None`` on traversal, missing or unreadable files."""

    target = safe_join(root, relative)
    if target is None:
        return None
    try:
        return target.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return None


def filter_source_files(paths: Iterable[str]) -> list[str]:
    return [path for path in paths if path.endswith(SOURCE_FILE_EXTENSIONS)]


async def read_related_files(root: PathLike, changed_files: Iterable[str]) -> dict[str, str]:
    """Read changed source files concurrently, silently skipping anything unreadable.

    The returned mapping preserves the order of ``changed_files``.
    """

    candidates = [path for path in filter_source_files(changed_files) if is_within_root(root, path)]
    contents = await asyncio.gather(
        *(asyncio.to_thread(safe_read_text, root, path) for path in candidates)
    )
    return {
        path: content
        for path, content in zip(candidates, contents, strict=True)
        if content is not None
    }


def _is_relative_to(child: Path, parent: Path) -> bool:
    try:
        child.relative_to(parent)
    except ValueError:
        return False
    return True
