"""
feature-verifier command execution contract.

File: src/feature_verifier/verification_plane/executor.py

Purpose
- Portable async subprocess execution shared by the check scheduler and git context
  provider: one awaitable per command, a hard timeout that kills the process, and
  captured output returned as data.

Functional requirements
- Non-zero exits, spawn failures and timeouts are reported in ``CommandResult``;
  ``run`` never raises for them.
- Shell command strings are executed through the platform shell (``/bin/sh -c`` on
  POSIX, ``cmd.exe /c`` on Windows).
"""

from __future__ import annotations

import asyncio
import os
import time
from collections.abc import Mapping
from contextlib import suppress
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

DEFAULT_MAX_OUTPUT_CHARS = 200_000


def shell_argv(command: str) -> tuple[str, ...]:
    """Wrap a shell command string in the platform shell invocation."""

    if os.name == "nt":
        return ("cmd.exe", "/c", command)
    return ("/bin/sh", "-c", command)


@dataclass(slots=True)
class CommandSpec:
    """Portable command invocation contract."""

    argv: tuple[str, ...]
    cwd: str | None = None
    env: Mapping[str, str] = field(default_factory=dict)
    stdin_text: str | None = None
    timeout_seconds: float | None = None
    inherit_env: bool = True

    def __post_init__(self) -> None:
        self.argv = tuple(self.argv)
        if not self.argv or any(not isinstance(item, str) for item in self.argv):
            raise ValueError("CommandSpec.argv: must be a non-empty sequence of strings")
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ValueError("CommandSpec.timeout_seconds: must be > 0")
        self.env = dict(self.env)

    @classmethod
    def shell(
        cls,
        command: str,
        *,
        cwd: str | None = None,
        env: Mapping[str, str] | None = None,
        timeout_seconds: float | None = None,
    ) -> CommandSpec:
        return cls(
            argv=shell_argv(command),
            cwd=cwd,
            env=dict(env or {}),
            timeout_seconds=timeout_seconds,
        )

    def build_env(self) -> dict[str, str] | None:
        if self.inherit_env:
            if not self.env:
                return None
            env = dict(os.environ)
            env.update(self.env)
            return env
        return dict(self.env)


@dataclass(slots=True)
class CommandResult:
    """Deterministic command execution outcome."""

    argv: tuple[str, ...]
    exit_code: int | None
    stdout: str
    stderr: str
    duration_ms: int
    timed_out: bool = False
    error: str | None = None

    def __post_init__(self) -> None:
        if self.timed_out and self.exit_code is not None:
            raise ValueError("CommandResult.exit_code: must be None when timed_out is true")
        if self.duration_ms < 0:
            raise ValueError("CommandResult.duration_ms: must be >= 0")

    @property
    def is_success(self) -> bool:
        return not self.timed_out and self.error is None and self.exit_code == 0

    @property
    def combined_output(self) -> str:
        """Stdout followed by stderr, plus the spawn/timeout error when present."""

        parts = [self.stdout + self.stderr]
        if self.error:
            parts.append(self.error)
        return "\n".join(part for part in parts if part)


@runtime_checkable
class CommandExecutor(Protocol):
    """Pluggable async command execution interface."""

    async def run(self, spec: CommandSpec) -> CommandResult: ...


class LocalSubprocessExecutor(CommandExecutor):
    """Async local subprocess executor with deterministic capture/timeout behavior."""

    def __init__(
        self,
        *,
        default_timeout_seconds: float | None = None,
        max_output_chars: int | None = DEFAULT_MAX_OUTPUT_CHARS,
    ) -> None:
        if default_timeout_seconds is not None and default_timeout_seconds <= 0:
            raise ValueError("LocalSubprocessExecutor.default_timeout_seconds: must be > 0")
        if max_output_chars is not None and max_output_chars <= 0:
            raise ValueError("LocalSubprocessExecutor.max_output_chars: must be > 0")
        self._default_timeout_seconds = default_timeout_seconds
        self._max_output_chars = max_output_chars

    async def run(self, spec: CommandSpec) -> CommandResult:
        started_ns = time.monotonic_ns()
        timeout = (
            spec.timeout_seconds
            if spec.timeout_seconds is not None
            else self._default_timeout_seconds
        )

        try:
            process = await asyncio.create_subprocess_exec(
                *spec.argv,
                cwd=spec.cwd,
                env=spec.build_env(),
                stdin=(
                    asyncio.subprocess.PIPE
                    if spec.stdin_text is not None
                    else asyncio.subprocess.DEVNULL
                ),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            return CommandResult(
                argv=spec.argv,
                exit_code=None,
                stdout="",
                stderr="",
                duration_ms=_elapsed_ms(started_ns),
                error=str(exc),
            )

        stdin_bytes = spec.stdin_text.encode("utf-8") if spec.stdin_text is not None else None

        try:
            stdout_bytes, stderr_bytes = await _communicate_with_timeout(
                process=process,
                stdin_bytes=stdin_bytes,
                timeout_seconds=timeout,
            )
            timed_out = False
            error_text: str | None = None
            exit_code = process.returncode
        except _CommandTimeoutError as exc:
            stdout_bytes = exc.stdout
            stderr_bytes = exc.stderr
            timed_out = True
            timeout_value = timeout if timeout is not None else 0.0
            error_text = f"command timed out after {timeout_value:.3f}s"
            exit_code = None

        return CommandResult(
            argv=spec.argv,
            exit_code=exit_code,
            stdout=_truncate_text(_normalize_output_text(stdout_bytes), self._max_output_chars),
            stderr=_truncate_text(_normalize_output_text(stderr_bytes), self._max_output_chars),
            duration_ms=_elapsed_ms(started_ns),
            timed_out=timed_out,
            error=error_text,
        )


class _CommandTimeoutError(Exception):
    def __init__(self, *, stdout: bytes, stderr: bytes) -> None:
        super().__init__("command timed out")
        self.stdout = stdout
        self.stderr = stderr


async def _communicate_with_timeout(
    *,
    process: asyncio.subprocess.Process,
    stdin_bytes: bytes | None,
    timeout_seconds: float | None,
) -> tuple[bytes, bytes]:
    try:
        if timeout_seconds is None:
            return await process.communicate(stdin_bytes)
        return await asyncio.wait_for(process.communicate(stdin_bytes), timeout=timeout_seconds)
    except TimeoutError as exc:
        with suppress(ProcessLookupError):
            process.kill()
        stdout_bytes, stderr_bytes = await process.communicate()
        raise _CommandTimeoutError(stdout=stdout_bytes or b"", stderr=stderr_bytes or b"") from exc
    except asyncio.CancelledError:
        with suppress(ProcessLookupError):
            process.kill()
        await process.communicate()
        raise


def _elapsed_ms(started_ns: int) -> int:
    delta_ns = time.monotonic_ns() - started_ns
    if delta_ns < 0:
        return 0
    return delta_ns // 1_000_000


def _normalize_output_text(raw: bytes | None) -> str:
    if not raw:
        return ""
    text = raw.decode("utf-8", errors="replace")
    return text.replace("\r\n", "\n").replace("\r", "\n")


def _truncate_text(text: str, max_chars: int | None) -> str:
    if max_chars is None or len(text) <= max_chars:
        return text
    omitted = len(text) - max_chars
    return f"{text[:max_chars]}\n...[truncated {omitted} chars]"


__all__ = [
    "CommandExecutor",
    "CommandResult",
    "CommandSpec",
    "DEFAULT_MAX_OUTPUT_CHARS",
    "LocalSubprocessExecutor",
    "shell_argv",
]
