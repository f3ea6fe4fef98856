"""
feature-verifier - unit tests for the automated check scheduler

File: tests/unit/verification_plane/test_check_scheduler.py

Purpose
- Validate check definition order, E2E gating, parallel fault tolerance and
  init-script delegation using a scripted command executor.

What this test file should cover
- Sequential mode preserves test, typecheck, lint, build, e2e order.
- Parallel mode: E2E is synthesized as skipped without spawning when unit tests fail.
- A crashed check becomes a failed result of its own type; siblings still complete.
- ``CI=true`` only for test and e2e checks.
- Init-script mode yields exactly one ``init-script`` result.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

import pytest

from feature_verifier.domain.models import Capabilities, CheckType, E2EInfo, E2EMode
from feature_verifier.domain.models import TestMode as CheckTestMode
from feature_verifier.verification_plane.executor import (
    CommandExecutor,
    CommandResult,
    CommandSpec,
)
from feature_verifier.verification_plane.scheduler import (
    E2E_SKIPPED_OUTPUT,
    CheckOptions,
    CheckScheduler,
    build_check_definitions,
    build_e2e_command,
    build_init_script_command,
    determine_e2e_mode,
)


@dataclass
class FakeExecutor(CommandExecutor):
    """Responds by shell command text; unknown commands succeed with empty output."""

    failing: set[str] = field(default_factory=set)
    raising: set[str] = field(default_factory=set)
    calls: list[CommandSpec] = field(default_factory=list)
    delay_seconds: float = 0.0

    async def run(self, spec: CommandSpec) -> CommandResult:
        self.calls.append(spec)
        command = spec.argv[-1]
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if command in self.raising:
            raise RuntimeError(f"executor crashed on {command}")
        failed = command in self.failing
        return CommandResult(
            argv=spec.argv,
            exit_code=1 if failed else 0,
            stdout=f"ran {command}",
            stderr="boom" if failed else "",
            duration_ms=7,
        )

    def commands(self) -> list[str]:
        return [spec.argv[-1] for spec in self.calls]


@dataclass(slots=True)
class RecordingLogger:
    events: list[tuple[str, dict[str, object]]] = field(default_factory=list)

    def info(self, event: str, **fields: object) -> None:
        self.events.append((event, fields))

    def warning(self, event: str, **fields: object) -> None:
        self.events.append((event, fields))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]


FULL_CAPS = Capabilities(
    has_tests=True,
    test_command="npm test",
    has_type_check=True,
    type_check_command="tsc --noEmit",
    has_lint=True,
    lint_command="eslint .",
    has_build=True,
    build_command="npm run build",
    e2e_info=E2EInfo(
        available=True,
        command="npx playwright test",
        framework="playwright",
        grep_template="npx playwright test --grep '{grep}'",
    ),
)


def test_definitions_follow_fixed_order() -> None:
    checks = build_check_definitions(FULL_CAPS, CheckOptions())

    assert [check.type for check in checks] == [
        CheckType.TEST,
        CheckType.TYPECHECK,
        CheckType.LINT,
        CheckType.BUILD,
        CheckType.E2E,
    ]
    assert checks[-1].command == "npx playwright test"
    assert checks[-1].name == "E2E tests (full)"


def test_definitions_respect_test_mode_and_e2e_options() -> None:
    quick = build_check_definitions(
        FULL_CAPS,
        CheckOptions(
            test_mode=CheckTestMode.QUICK,
            selective_test_command="npm test -- login",
            e2e_tags=("@auth", "@login"),
        ),
    )
    skipped = build_check_definitions(
        FULL_CAPS, CheckOptions(test_mode=CheckTestMode.SKIP, skip_e2e=True)
    )

    assert quick[0].command == "npm test -- login"
    assert quick[0].name == "selective tests"
    assert quick[-1].command == "npx playwright test --grep '@auth|@login'"
    assert [check.type for check in skipped] == [
        CheckType.TYPECHECK,
        CheckType.LINT,
        CheckType.BUILD,
    ]


def test_e2e_mode_and_command_resolution() -> None:
    assert determine_e2e_mode(CheckTestMode.FULL, has_tags=False) is E2EMode.FULL
    assert determine_e2e_mode(CheckTestMode.QUICK, has_tags=False) is E2EMode.SMOKE
    assert determine_e2e_mode(CheckTestMode.FULL, has_tags=True) is E2EMode.TAGS

    info = FULL_CAPS.e2e_info
    assert build_e2e_command(info, (), E2EMode.SMOKE) == "npx playwright test --grep '@smoke'"
    no_template = E2EInfo(available=True, command="cypress run")
    assert build_e2e_command(no_template, ("@x",), E2EMode.TAGS) == "cypress run"
    assert build_e2e_command(E2EInfo(available=False, command="x"), (), E2EMode.FULL) is None


@pytest.mark.parametrize(
    ("options", "expected"),
    [
        (CheckOptions(), '"ai/init.sh" check --full'),
        (
            CheckOptions(test_mode=CheckTestMode.QUICK, test_pattern="auth/*", skip_e2e=True),
            '"ai/init.sh" check --quick --skip-e2e "auth/*"',
        ),
        (CheckOptions(test_mode=CheckTestMode.SKIP), '"ai/init.sh" check'),
    ],
)
def test_init_script_command(options: CheckOptions, expected: str) -> None:
    assert build_init_script_command("ai/init.sh", options) == expected


async def test_sequential_run_preserves_order_and_reports_failures() -> None:
    executor = FakeExecutor(failing={"eslint ."})
    logger = RecordingLogger()
    scheduler = CheckScheduler(executor=executor, logger=logger)

    results = await scheduler.run("/repo", FULL_CAPS)

    assert [result.type for result in results] == [
        CheckType.TEST,
        CheckType.TYPECHECK,
        CheckType.LINT,
        CheckType.BUILD,
        CheckType.E2E,
    ]
    assert [result.success for result in results] == [True, True, False, True, True]
    assert results[2].output == "ran eslint .boom"
    assert results[0].duration_ms == 7
    assert executor.commands()[0] == "npm test"
    assert all(spec.cwd == "/repo" for spec in executor.calls)
    assert logger.names().count("check_started") == 5
    assert logger.names().count("check_finished") == 5


async def test_ci_env_only_for_test_and_e2e() -> None:
    executor = FakeExecutor()
    scheduler = CheckScheduler(executor=executor, logger=RecordingLogger())

    await scheduler.run("/repo", FULL_CAPS)

    env_by_command = {spec.argv[-1]: dict(spec.env) for spec in executor.calls}
    assert env_by_command["npm test"] == {"CI": "true"}
    assert env_by_command["npx playwright test"] == {"CI": "true"}
    assert env_by_command["tsc --noEmit"] == {}
    assert env_by_command["eslint ."] == {}


async def test_no_capabilities_runs_nothing() -> None:
    executor = FakeExecutor()
    scheduler = CheckScheduler(executor=executor, logger=RecordingLogger())

    assert await scheduler.run("/repo", Capabilities()) == []
    assert executor.calls == []


async def test_parallel_skips_e2e_without_spawning_when_unit_tests_fail() -> None:
    executor = FakeExecutor(failing={"npm test"})
    logger = RecordingLogger()
    scheduler = CheckScheduler(executor=executor, logger=logger)

    results = await scheduler.run("/repo", FULL_CAPS, CheckOptions(parallel=True))

    e2e = [result for result in results if result.type is CheckType.E2E]
    assert len(e2e) == 1
    assert e2e[0].success is False
    assert e2e[0].output == E2E_SKIPPED_OUTPUT
    assert e2e[0].duration_ms == 0
    assert "npx playwright test" not in executor.commands()
    assert "checks_e2e_skipped" in logger.names()
    assert results[-1].type is CheckType.E2E


async def test_parallel_runs_e2e_after_batch_when_tests_pass() -> None:
    executor = FakeExecutor(delay_seconds=0.01)
    scheduler = CheckScheduler(executor=executor, logger=RecordingLogger())

    results = await scheduler.run("/repo", FULL_CAPS, CheckOptions(parallel=True))

    assert len(results) == 5
    assert all(result.success for result in results)
    assert executor.commands()[-1] == "npx playwright test"
    assert {result.type for result in results[:4]} == {
        CheckType.TEST,
        CheckType.TYPECHECK,
        CheckType.LINT,
        CheckType.BUILD,
    }


async def test_parallel_rejected_check_becomes_failed_result() -> None:
    executor = FakeExecutor(raising={"tsc --noEmit"})
    scheduler = CheckScheduler(executor=executor, logger=RecordingLogger())
    caps = Capabilities(
        has_tests=True,
        test_command="npm test",
        has_type_check=True,
        type_check_command="tsc --noEmit",
        has_lint=True,
        lint_command="eslint .",
    )

    results = await scheduler.run("/repo", caps, CheckOptions(parallel=True, max_concurrency=2))

    assert len(results) == 3
    failures = [result for result in results if not result.success]
    assert len(failures) == 1
    assert failures[0].type is CheckType.TYPECHECK
    assert failures[0].output.startswith("Check failed with error:")
    assert "executor crashed" in failures[0].output
    assert sorted(executor.commands()) == ["eslint .", "npm test", "tsc --noEmit"]


async def test_parallel_crashed_typecheck_does_not_block_e2e() -> None:
    executor = FakeExecutor(raising={"tsc --noEmit"})
    logger = RecordingLogger()
    scheduler = CheckScheduler(executor=executor, logger=logger)
    caps = Capabilities(
        has_tests=True,
        test_command="npm test",
        has_type_check=True,
        type_check_command="tsc --noEmit",
        e2e_info=FULL_CAPS.e2e_info,
    )

    results = await scheduler.run("/repo", caps, CheckOptions(parallel=True))

    by_type = {result.type: result for result in results}
    assert sorted(by_type, key=lambda check_type: check_type.value) == [
        CheckType.E2E,
        CheckType.TEST,
        CheckType.TYPECHECK,
    ]
    assert by_type[CheckType.TYPECHECK].success is False
    assert by_type[CheckType.E2E].success is True
    assert by_type[CheckType.E2E].output != E2E_SKIPPED_OUTPUT
    assert executor.commands()[-1] == "npx playwright test"
    assert "check_crashed" in logger.names()


async def test_sequential_crashed_check_becomes_failed_result() -> None:
    executor = FakeExecutor(raising={"eslint ."})
    logger = RecordingLogger()
    scheduler = CheckScheduler(executor=executor, logger=logger)

    results = await scheduler.run("/repo", FULL_CAPS)

    assert [result.type for result in results] == [
        CheckType.TEST,
        CheckType.TYPECHECK,
        CheckType.LINT,
        CheckType.BUILD,
        CheckType.E2E,
    ]
    assert [result.success for result in results] == [True, True, False, True, True]
    assert results[2].output == "Check failed with error: executor crashed on eslint ."
    assert results[2].duration_ms == 0
    assert executor.commands()[-2:] == ["npm run build", "npx playwright test"]
    crash_fields = dict(logger.events)["check_crashed"]
    assert crash_fields["check_type"] == "lint"


async def test_init_script_mode_yields_single_result() -> None:
    executor = FakeExecutor()
    scheduler = CheckScheduler(executor=executor, logger=RecordingLogger())
    options = CheckOptions(
        use_init_script=True,
        init_script_path="scripts/init.sh",
        test_mode=CheckTestMode.QUICK,
        test_pattern="login",
        e2e_tags=("@auth", "@smoke"),
    )

    results = await scheduler.run("/repo", FULL_CAPS, options)

    assert len(results) == 1
    assert results[0].type is CheckType.INIT_SCRIPT
    assert executor.commands() == ['"scripts/init.sh" check --quick "login"']
    assert executor.calls[0].env == {"E2E_TAGS": "@auth,@smoke"}


def test_scheduler_rejects_non_positive_timeout() -> None:
    with pytest.raises(ValueError, match="timeout_ms"):
        CheckScheduler(timeout_ms=0)
