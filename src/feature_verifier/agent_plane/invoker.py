"""
feature-verifier agent invoker.

File: src/feature_verifier/agent_plane/invoker.py

Purpose
- Spawn one external AI agent process, deliver the prompt, enforce a timeout and
  return the outcome as data.
- Try agents one at a time in preference order until one succeeds.

Functional requirements
- Process completion is a single awaitable raced against the timeout; the result is
  resolved exactly once.
- On timeout the process receives one graceful terminate signal and the call
  resolves with ``error="Agent timed out"``. There is no forceful kill follow-up.
- Spawn failures and non-zero exits are failed results, never exceptions.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence
from contextlib import suppress
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final

import structlog

from feature_verifier.agent_plane.agents import AgentDescriptor, AgentRegistry, command_exists
from feature_verifier.agent_plane.errors import AgentUnavailableError

if TYPE_CHECKING:
    from feature_verifier.observability.logging import EventLogger

AGENT_TIMED_OUT: Final[str] = "Agent timed out"
NO_AGENTS_AVAILABLE: Final[str] = AgentUnavailableError().detail

# How long to wait for output to drain after the terminate signal.
_TERMINATE_GRACE_SECONDS: Final[float] = 5.0


@dataclass(frozen=True, slots=True)
class AgentCallResult:
    success: bool
    output: str
    error: str | None = None
    agent_used: str | None = None
    duration_ms: int = 0
    timed_out: bool = False


class AgentInvoker:
    """Runs agent CLIs as subprocesses."""

    def __init__(
        self,
        registry: AgentRegistry | None = None,
        *,
        default_timeout_ms: int | None = None,
        logger: EventLogger | Any | None = None,
    ) -> None:
        self._registry = registry if registry is not None else AgentRegistry()
        self._default_timeout_ms = default_timeout_ms
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def registry(self) -> AgentRegistry:
        return self._registry

    @property
    def default_timeout_ms(self) -> int | None:
        return self._default_timeout_ms

    async def invoke(
        self,
        agent: AgentDescriptor,
        prompt: str,
        *,
        cwd: str | None = None,
        timeout_ms: int | None = None,
        verbose: bool = False,
    ) -> AgentCallResult:
        """Run ``agent`` once. ``timeout_ms`` of ``<= 0`` means unbounded.

        ``None`` falls back to the invoker's ``default_timeout_ms`` (itself unbounded
        when unset). ``verbose`` logs the raw agent output at debug level.
        """

        started_ns = time.monotonic_ns()
        if timeout_ms is None:
            timeout_ms = self._default_timeout_ms
        timeout_seconds = timeout_ms / 1000 if timeout_ms is not None and timeout_ms > 0 else None

        try:
            process = await asyncio.create_subprocess_exec(
                *agent.build_argv(prompt),
                cwd=cwd,
                stdin=(
                    asyncio.subprocess.PIPE
                    if agent.prompt_via_stdin
                    else asyncio.subprocess.DEVNULL
                ),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            return self._finish(
                AgentCallResult(
                    success=False,
                    output="",
                    error=str(exc) or type(exc).__name__,
                    agent_used=agent.name,
                    duration_ms=_elapsed_ms(started_ns),
                )
            )

        stdin_bytes = prompt.encode("utf-8") if agent.prompt_via_stdin else None
        completion = asyncio.ensure_future(process.communicate(stdin_bytes))
        try:
            done, _ = await asyncio.wait({completion}, timeout=timeout_seconds)
        except asyncio.CancelledError:
            completion.cancel()
            with suppress(ProcessLookupError):
                process.terminate()
            raise

        if completion not in done:
            with suppress(ProcessLookupError):
                process.terminate()
            stdout_bytes = await _drain_after_terminate(completion)
            self._logger.warning(
                "agent_timed_out", agent=agent.name, timeout_ms=timeout_ms
            )
            return self._finish(
                AgentCallResult(
                    success=False,
                    output=_decode(stdout_bytes),
                    error=AGENT_TIMED_OUT,
                    agent_used=agent.name,
                    duration_ms=_elapsed_ms(started_ns),
                    timed_out=True,
                )
            )

        stdout_bytes, stderr_bytes = completion.result()
        output = _decode(stdout_bytes)
        if verbose:
            self._logger.debug("agent_output", agent=agent.name, output=output)
        if process.returncode == 0:
            return self._finish(
                AgentCallResult(
                    success=True,
                    output=output,
                    agent_used=agent.name,
                    duration_ms=_elapsed_ms(started_ns),
                )
            )
        return self._finish(
            AgentCallResult(
                success=False,
                output=output,
                error=_decode(stderr_bytes).strip() or f"exit code {process.returncode}",
                agent_used=agent.name,
                duration_ms=_elapsed_ms(started_ns),
            )
        )

    async def call_any_available_agent(
        self,
        prompt: str,
        *,
        preferred_order: Sequence[str] | None = None,
        cwd: str | None = None,
        timeout_ms: int | None = None,
        verbose: bool = False,
    ) -> AgentCallResult:
        """Attempt agents sequentially in preference order until one succeeds.

        Unknown and uninstalled names are skipped. The failure result names the last
        agent attempted and carries its error so callers can classify it.
        """

        last: AgentCallResult | None = None
        for name in preferred_order or self._registry.priority:
            agent = self._registry.get(name)
            if agent is None:
                self._logger.info("agent_skipped_unavailable", agent=name, reason="unknown")
                continue
            if not command_exists(agent.executable):
                self._logger.info("agent_skipped_unavailable", agent=name, reason="not_installed")
                continue

            result = await self.invoke(
                agent, prompt, cwd=cwd, timeout_ms=timeout_ms, verbose=verbose
            )
            if result.success:
                return result
            last = result

        if last is None:
            unavailable = AgentUnavailableError()
            self._logger.warning(
                "agents_unavailable", code=unavailable.code, error=unavailable.detail
            )
            return AgentCallResult(success=False, output="", error=unavailable.detail)
        unavailable = AgentUnavailableError(
            f"{NO_AGENTS_AVAILABLE} (last error from {last.agent_used}: {last.error})"
        )
        self._logger.warning("agents_unavailable", code=unavailable.code, error=unavailable.detail)
        return AgentCallResult(
            success=False,
            output="",
            error=unavailable.detail,
            agent_used=last.agent_used,
            duration_ms=last.duration_ms,
            timed_out=last.timed_out,
        )

    def _finish(self, result: AgentCallResult) -> AgentCallResult:
        self._logger.info(
            "agent_invocation_finished",
            agent=result.agent_used,
            success=result.success,
            timed_out=result.timed_out,
            duration_ms=result.duration_ms,
            error=result.error,
        )
        return result


async def _drain_after_terminate(completion: asyncio.Future[tuple[bytes, bytes]]) -> bytes:
    done, _ = await asyncio.wait({completion}, timeout=_TERMINATE_GRACE_SECONDS)
    if completion in done and not completion.cancelled() and completion.exception() is None:
        stdout_bytes, _stderr = completion.result()
        return stdout_bytes or b""
    completion.cancel()
    with suppress(asyncio.CancelledError):
        await completion
    return b""


def _decode(raw: bytes | None) -> str:
    if not raw:
        return ""
    return raw.decode("utf-8", errors="replace")


def _elapsed_ms(started_ns: int) -> int:
    return max(0, (time.monotonic_ns() - started_ns) // 1_000_000)


__all__ = [
    "AGENT_TIMED_OUT",
    "AgentCallResult",
    "AgentInvoker",
    "NO_AGENTS_AVAILABLE",
]
