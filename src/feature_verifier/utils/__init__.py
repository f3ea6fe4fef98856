"""Utility exports for filesystem and concurrency helpers."""

from feature_verifier.utils.concurrency import (
    BoundedSemaphore,
    Settled,
    WorkerPool,
)
from feature_verifier.utils.fs import (
    atomic_write,
    filter_source_files,
    is_within_root,
    read_related_files,
    safe_join,
    safe_read_text,
)

__all__ = [
    "BoundedSemaphore",
    "Settled",
    "WorkerPool",
    "atomic_write",
    "filter_source_files",
    "is_within_root",
    "read_related_files",
    "safe_join",
    "safe_read_text",
]
