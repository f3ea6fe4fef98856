"""Git context provider: commit hash, diff and changed files for a working tree.

Every operation degrades to placeholder values instead of raising, so verification
can proceed in directories that are not git repositories.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final, Protocol, runtime_checkable

from feature_verifier.verification_plane.executor import (
    CommandExecutor,
    CommandSpec,
    LocalSubprocessExecutor,
)

UNKNOWN_COMMIT: Final[str] = "unknown"
NO_CHANGES_DIFF: Final[str] = "No changes detected"
UNAVAILABLE_DIFF: Final[str] = "Unable to get git diff"

_GIT_TIMEOUT_SECONDS: Final[float] = 60.0


@dataclass(frozen=True, slots=True)
class GitContext:
    diff: str
    files: tuple[str, ...]
    commit_hash: str

    @classmethod
    def unavailable(cls) -> GitContext:
        return cls(diff=UNAVAILABLE_DIFF, files=(), commit_hash=UNKNOWN_COMMIT)


@runtime_checkable
class GitContextProvider(Protocol):
    async def get_diff(self, cwd: str) -> GitContext: ...

    async def get_commit_hash(self, cwd: str) -> str: ...


class _GitCommandError(Exception):
    pass


class SubprocessGitContext(GitContextProvider):
    """Reads git state by running the ``git`` CLI through a command executor."""

    def __init__(self, *, executor: CommandExecutor | None = None) -> None:
        self._executor = executor if executor is not None else LocalSubprocessExecutor()

    async def get_diff(self, cwd: str) -> GitContext:
        """Diff of the last commit plus uncommitted changes.

        Falls back to uncommitted changes only when ``HEAD~1`` does not exist, and to
        placeholder values when git is unavailable.
        """

        try:
            commit_hash = await self._git(cwd, "rev-parse", "HEAD")
        except _GitCommandError:
            return GitContext.unavailable()

        try:
            diff = await self._git(cwd, "diff", "HEAD~1", "HEAD") + await self._git(
                cwd, "diff", "HEAD"
            )
            names = await self._git(cwd, "diff", "HEAD~1", "HEAD", "--name-only") + (
                "\n" + await self._git(cwd, "diff", "HEAD", "--name-only")
            )
        except _GitCommandError:
            try:
                diff = await self._git(cwd, "diff", "HEAD")
                names = await self._git(cwd, "diff", "HEAD", "--name-only")
            except _GitCommandError:
                return GitContext.unavailable()

        return GitContext(
            diff=diff or NO_CHANGES_DIFF,
            files=_unique_lines(names),
            commit_hash=commit_hash.strip(),
        )

    async def get_commit_hash(self, cwd: str) -> str:
        try:
            return (await self._git(cwd, "rev-parse", "HEAD")).strip() or UNKNOWN_COMMIT
        except _GitCommandError:
            return UNKNOWN_COMMIT

    async def _git(self, cwd: str, *args: str) -> str:
        result = await self._executor.run(
            CommandSpec(argv=("git", *args), cwd=cwd, timeout_seconds=_GIT_TIMEOUT_SECONDS)
        )
        if not result.is_success:
            raise _GitCommandError(result.error or result.stderr.strip() or "git failed")
        return result.stdout


def _unique_lines(text: str) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for line in text.splitlines():
        stripped = line.strip()
        if stripped:
            seen.setdefault(stripped, None)
    return tuple(seen)


__all__ = [
    "GitContext",
    "GitContextProvider",
    "NO_CHANGES_DIFF",
    "SubprocessGitContext",
    "UNAVAILABLE_DIFF",
    "UNKNOWN_COMMIT",
]
