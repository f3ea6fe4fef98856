"""
feature-verifier automated check scheduler.

File: src/feature_verifier/verification_plane/scheduler.py

Purpose
- Turn resolved project capabilities into an ordered list of check definitions and
  run them sequentially or with bounded fan-out, gating E2E on unit-test success.

Functional requirements
- Fixed definition order: test, typecheck, lint, build, then e2e.
- Sequential mode preserves that order in the result list.
- Parallel mode runs non-E2E checks concurrently; a rejected check becomes a failed
  result without aborting its siblings. E2E runs afterwards, one at a time, and only
  when every unit-test result succeeded; otherwise each E2E entry is synthesized as
  skipped without spawning a process.
- ``CI=true`` is injected for test and e2e checks only.
- Init-script mode delegates every check to the project's init script and yields
  exactly one ``init-script`` result.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final

import structlog

from feature_verifier.constants import CHECK_TIMEOUT_MS, DEFAULT_INIT_SCRIPT
from feature_verifier.domain.models import (
    AutomatedCheckResult,
    Capabilities,
    CheckType,
    E2EInfo,
    E2EMode,
    TestMode,
)
from feature_verifier.utils.concurrency import WorkerPool
from feature_verifier.verification_plane.executor import (
    CommandExecutor,
    CommandSpec,
    LocalSubprocessExecutor,
)

if TYPE_CHECKING:
    from feature_verifier.observability.logging import EventLogger

CI_ENV: Final[Mapping[str, str]] = {"CI": "true"}
E2E_SKIPPED_OUTPUT: Final[str] = "Skipped: unit tests failed"
GREP_PLACEHOLDER: Final[str] = "{grep}"
SMOKE_TAG: Final[str] = "@smoke"

_CI_CHECK_TYPES: Final[frozenset[CheckType]] = frozenset({CheckType.TEST, CheckType.E2E})


@dataclass(frozen=True, slots=True)
class CheckDefinition:
    """One scheduled check: what to run and how to label it."""

    type: CheckType
    command: str
    name: str

    @property
    def is_e2e(self) -> bool:
        return self.type is CheckType.E2E

    @property
    def env(self) -> Mapping[str, str]:
        return CI_ENV if self.type in _CI_CHECK_TYPES else {}


@dataclass(frozen=True, slots=True)
class CheckOptions:
    """Per-run scheduling options."""

    test_mode: TestMode = TestMode.FULL
    selective_test_command: str | None = None
    test_pattern: str | None = None
    skip_e2e: bool = False
    e2e_mode: E2EMode | None = None
    e2e_tags: tuple[str, ...] = ()
    parallel: bool = False
    max_concurrency: int | None = None
    use_init_script: bool = False
    init_script_path: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "test_mode", TestMode(self.test_mode))
        if self.e2e_mode is not None:
            object.__setattr__(self, "e2e_mode", E2EMode(self.e2e_mode))
        object.__setattr__(self, "e2e_tags", tuple(self.e2e_tags))
        if self.max_concurrency is not None and self.max_concurrency <= 0:
            raise ValueError("CheckOptions.max_concurrency: must be > 0")


def determine_e2e_mode(test_mode: TestMode, has_tags: bool) -> E2EMode:
    if has_tags:
        return E2EMode.TAGS
    if test_mode is TestMode.FULL:
        return E2EMode.FULL
    return E2EMode.SMOKE


def build_e2e_command(
    e2e_info: E2EInfo, tags: tuple[str, ...] | list[str], mode: E2EMode
) -> str | None:
    """Resolve the E2E command for ``mode``.

    ``smoke`` and ``tags`` fill the ``{grep}`` placeholder of the grep template; a
    missing template falls back to the plain command.
    """

    if not e2e_info.available or not e2e_info.command:
        return None
    if mode is E2EMode.FULL or not e2e_info.grep_template:
        return e2e_info.command
    pattern = "|".join(tags) if mode is E2EMode.TAGS and tags else SMOKE_TAG
    return e2e_info.grep_template.replace(GREP_PLACEHOLDER, pattern)


def build_check_definitions(
    capabilities: Capabilities, options: CheckOptions
) -> list[CheckDefinition]:
    checks: list[CheckDefinition] = []

    if options.test_mode is not TestMode.SKIP and capabilities.has_tests:
        if options.test_mode is TestMode.QUICK and options.selective_test_command:
            checks.append(
                CheckDefinition(CheckType.TEST, options.selective_test_command, "selective tests")
            )
        elif capabilities.test_command:
            checks.append(CheckDefinition(CheckType.TEST, capabilities.test_command, "tests"))

    if capabilities.has_type_check and capabilities.type_check_command:
        checks.append(
            CheckDefinition(CheckType.TYPECHECK, capabilities.type_check_command, "type check")
        )
    if capabilities.has_lint and capabilities.lint_command:
        checks.append(CheckDefinition(CheckType.LINT, capabilities.lint_command, "linter"))
    if capabilities.has_build and capabilities.build_command:
        checks.append(CheckDefinition(CheckType.BUILD, capabilities.build_command, "build"))

    if not options.skip_e2e and capabilities.e2e_info.available:
        mode = options.e2e_mode or determine_e2e_mode(options.test_mode, bool(options.e2e_tags))
        command = build_e2e_command(capabilities.e2e_info, options.e2e_tags, mode)
        if command:
            if mode is E2EMode.FULL:
                label = "E2E tests (full)"
            elif mode is E2EMode.SMOKE or not options.e2e_tags:
                label = f"E2E tests ({SMOKE_TAG})"
            else:
                label = f"E2E tests ({', '.join(options.e2e_tags)})"
            checks.append(CheckDefinition(CheckType.E2E, command, label))

    return checks


def build_init_script_command(script_path: str, options: CheckOptions) -> str:
    """``"<script>" check`` plus mode flags and the quoted test pattern in quick mode."""

    parts = [f'"{script_path}"', "check"]
    if options.test_mode is TestMode.QUICK:
        parts.append("--quick")
    elif options.test_mode is TestMode.FULL:
        parts.append("--full")
    if options.skip_e2e:
        parts.append("--skip-e2e")
    if options.test_mode is TestMode.QUICK and options.test_pattern:
        parts.append(f'"{options.test_pattern}"')
    return " ".join(parts)


class CheckScheduler:
    """Runs automated checks for one verification attempt."""

    def __init__(
        self,
        *,
        executor: CommandExecutor | None = None,
        timeout_ms: int = CHECK_TIMEOUT_MS,
        logger: EventLogger | Any | None = None,
    ) -> None:
        if timeout_ms <= 0:
            raise ValueError("timeout_ms must be > 0")
        self._executor = executor if executor is not None else LocalSubprocessExecutor()
        self._timeout_seconds = timeout_ms / 1000
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    async def run(
        self,
        cwd: str,
        capabilities: Capabilities,
        options: CheckOptions | None = None,
    ) -> list[AutomatedCheckResult]:
        opts = options or CheckOptions()

        if opts.use_init_script:
            return [await self._run_init_script(cwd, opts)]

        checks = build_check_definitions(capabilities, opts)
        if not checks:
            return []
        if opts.parallel:
            return await self._run_parallel(cwd, checks, opts.max_concurrency)
        return [await self._run_guarded(cwd, check) for check in checks]

    async def run_check(
        self,
        cwd: str,
        check: CheckDefinition,
        extra_env: Mapping[str, str] | None = None,
    ) -> AutomatedCheckResult:
        """Run one check; a non-zero exit is a failed result, never an exception."""

        env = dict(check.env)
        env.update(extra_env or {})
        self._logger.info("check_started", check_type=check.type.value, name=check.name)
        outcome = await self._executor.run(
            CommandSpec.shell(
                check.command, cwd=cwd, env=env, timeout_seconds=self._timeout_seconds
            )
        )
        result = AutomatedCheckResult(
            type=check.type,
            success=outcome.is_success,
            output=outcome.combined_output,
            duration_ms=outcome.duration_ms,
        )
        self._logger.info(
            "check_finished",
            check_type=check.type.value,
            name=check.name,
            success=result.success,
            exit_code=outcome.exit_code,
            timed_out=outcome.timed_out,
            duration_ms=result.duration_ms,
        )
        return result

    async def _run_guarded(self, cwd: str, check: CheckDefinition) -> AutomatedCheckResult:
        try:
            return await self.run_check(cwd, check)
        except Exception as exc:
            return self._crashed(check, exc)

    def _crashed(
        self, check: CheckDefinition, error: BaseException | None
    ) -> AutomatedCheckResult:
        """An executor error turns into a failed result of the check's own type."""

        self._logger.warning(
            "check_crashed", check_type=check.type.value, name=check.name, error=str(error)
        )
        return AutomatedCheckResult(
            type=check.type,
            success=False,
            output=f"Check failed with error: {error}",
            duration_ms=0,
        )

    async def _run_parallel(
        self,
        cwd: str,
        checks: list[CheckDefinition],
        max_concurrency: int | None,
    ) -> list[AutomatedCheckResult]:
        batch = [check for check in checks if not check.is_e2e]
        e2e_checks = [check for check in checks if check.is_e2e]
        results: list[AutomatedCheckResult] = []

        if batch:
            pool: WorkerPool[CheckDefinition, AutomatedCheckResult] = WorkerPool(
                max_concurrency=max_concurrency or len(batch)
            )
            async for settled in pool.run_settled(
                (check, self.run_check(cwd, check)) for check in batch
            ):
                if settled.ok and settled.value is not None:
                    results.append(settled.value)
                else:
                    results.append(self._crashed(settled.key, settled.error))

        if not e2e_checks:
            return results

        unit_tests_passed = all(
            result.success for result in results if result.type is CheckType.TEST
        )
        if not unit_tests_passed:
            self._logger.info("checks_e2e_skipped", count=len(e2e_checks))
            results.extend(
                AutomatedCheckResult(
                    type=CheckType.E2E, success=False, output=E2E_SKIPPED_OUTPUT, duration_ms=0
                )
                for _ in e2e_checks
            )
            return results

        for check in e2e_checks:
            results.append(await self._run_guarded(cwd, check))
        return results

    async def _run_init_script(self, cwd: str, options: CheckOptions) -> AutomatedCheckResult:
        script_path = options.init_script_path or DEFAULT_INIT_SCRIPT.as_posix()
        env: dict[str, str] = {}
        if options.e2e_tags:
            env["E2E_TAGS"] = ",".join(options.e2e_tags)
        check = CheckDefinition(
            CheckType.INIT_SCRIPT,
            build_init_script_command(script_path, options),
            f"init script ({options.test_mode.value})",
        )
        return await self.run_check(cwd, check, env)


__all__ = [
    "CI_ENV",
    "CheckDefinition",
    "CheckOptions",
    "CheckScheduler",
    "E2E_SKIPPED_OUTPUT",
    "GREP_PLACEHOLDER",
    "build_check_definitions",
    "build_e2e_command",
    "build_init_script_command",
    "determine_e2e_mode",
]
