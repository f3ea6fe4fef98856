"""Stable constants shared across verifier planes."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Final

# Store layout (relative to the project root unless overridden by config).
VERIFICATION_STORE_DIR: Final[PurePosixPath] = PurePosixPath("ai/verification")
VERIFICATION_INDEX_FILE: Final[str] = "index.json"
LEGACY_STORE_FILE: Final[str] = "results.json"
LEGACY_BACKUP_FILE: Final[str] = "results.json.bak"
DEFAULT_INIT_SCRIPT: Final[PurePosixPath] = PurePosixPath("ai/init.sh")

# Schema versions for persisted contracts.
STORE_VERSION: Final[str] = "1.0.0"
INDEX_VERSION: Final[str] = "2.0.0"
RUN_NUMBER_WIDTH: Final[int] = 3

# Timeouts in milliseconds.
CHECK_TIMEOUT_MS: Final[int] = 300_000
AI_VERIFICATION_TIMEOUT_MS: Final[int] = 300_000
AI_DEFAULT_TIMEOUT_MS: Final[int] = 300_000

# Retry defaults for agent calls.
DEFAULT_MAX_RETRIES: Final[int] = 3
DEFAULT_BASE_DELAY_MS: Final[int] = 1_000
DEFAULT_MAX_DELAY_MS: Final[int] = 10_000
DEFAULT_JITTER_RATIO: Final[float] = 0.1

# Agent selection.
DEFAULT_AGENT_PRIORITY: Final[tuple[str, ...]] = ("claude", "codex", "gemini")

# Prompt/report truncation.
RELATED_FILE_MAX_CHARS: Final[int] = 5_000
REPORT_OUTPUT_MAX_CHARS: Final[int] = 5_000
SOURCE_FILE_EXTENSIONS: Final[tuple[str, ...]] = (
    ".ts",
    ".tsx",
    ".js",
    ".jsx",
    ".py",
    ".go",
    ".rs",
)

__all__ = [
    "AI_DEFAULT_TIMEOUT_MS",
    "AI_VERIFICATION_TIMEOUT_MS",
    "CHECK_TIMEOUT_MS",
    "DEFAULT_AGENT_PRIORITY",
    "DEFAULT_BASE_DELAY_MS",
    "DEFAULT_INIT_SCRIPT",
    "DEFAULT_JITTER_RATIO",
    "DEFAULT_MAX_DELAY_MS",
    "DEFAULT_MAX_RETRIES",
    "INDEX_VERSION",
    "LEGACY_BACKUP_FILE",
    "LEGACY_STORE_FILE",
    "RELATED_FILE_MAX_CHARS",
    "REPORT_OUTPUT_MAX_CHARS",
    "RUN_NUMBER_WIDTH",
    "SOURCE_FILE_EXTENSIONS",
    "STORE_VERSION",
    "VERIFICATION_INDEX_FILE",
    "VERIFICATION_STORE_DIR",
]
