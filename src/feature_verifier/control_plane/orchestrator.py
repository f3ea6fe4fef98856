"""
feature-verifier verification orchestrator

File: src/feature_verifier/control_plane/orchestrator.py

Purpose
- Choose a verification mode per feature, drive the check scheduler and the agent
  retry loop, assemble one ``VerificationResult`` and persist it.

Modes
- ``tdd``: the feature requires unit or E2E tests (or the project runs strict TDD).
  Tests decide the verdict; no agent is called. Without declared test files this
  falls back to autonomous AI verification.
- ``ai`` / diff-based: git diff, changed files and their contents are given to the
  agent with a bounded timeout.
- ``ai`` / autonomous: no diff; the agent explores the repository itself, by default
  without a timeout.

Functional requirements
- Check failures, agent failures, parse failures and git unavailability all become
  data in the final result. A verdict is always produced and always saved.
- The only exception surfaced to callers is ``StoreWriteError`` when the result for
  the current feature cannot be persisted.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final

import structlog

from feature_verifier.agent_plane.agents import AgentRegistry
from feature_verifier.agent_plane.invoker import AgentCallResult, AgentInvoker
from feature_verifier.agent_plane.prompts import build_autonomous_prompt, build_verification_prompt
from feature_verifier.agent_plane.response import AgentAnalysis, parse_agent_response
from feature_verifier.agent_plane.retry import RetryCoordinator, RetryPolicy
from feature_verifier.config.schema import VerifierConfig
from feature_verifier.domain.models import (
    AutomatedCheckResult,
    Capabilities,
    CheckType,
    CriterionResult,
    E2EMode,
    Feature,
    TestMode,
    Verdict,
    VerificationMode,
    VerificationResult,
    utc_timestamp,
)
from feature_verifier.control_plane.progress import (
    NullProgressReporter,
    ProgressReporter,
    StepTracker,
)
from feature_verifier.persistence.result_store import ResultStore
from feature_verifier.utils.fs import read_related_files
from feature_verifier.verification_plane.executor import LocalSubprocessExecutor
from feature_verifier.verification_plane.git_context import (
    GitContextProvider,
    SubprocessGitContext,
)
from feature_verifier.verification_plane.scheduler import (
    CheckDefinition,
    CheckOptions,
    CheckScheduler,
    build_e2e_command,
)

if TYPE_CHECKING:
    from feature_verifier.observability.logging import EventLogger

STRICT_TDD: Final[str] = "strict"
TDD_VERIFIER: Final[str] = "tdd"

AI_ANALYSIS_FAILED: Final[str] = "AI analysis failed"
AI_ANALYSIS_FAILED_OVERALL: Final[str] = "AI analysis failed after retries"
AI_EXPLORATION_FAILED: Final[str] = "AI exploration failed"
AI_EXPLORATION_FAILED_OVERALL: Final[str] = "AI exploration failed after retries"
AUTONOMOUS_DIFF_SUMMARY: Final[str] = "Autonomous exploration (no diff)"
AUTONOMOUS_FAILED_DIFF_SUMMARY: Final[str] = "Autonomous exploration failed"
TDD_PASSED_REASONING: Final[str] = "All tests passed - criterion verified by TDD workflow"
TDD_FAILED_REASONING: Final[str] = "Tests failed - criterion not verified"
TDD_FAILED_SUGGESTION: Final[str] = "Review failing tests and fix implementation"


@dataclass(frozen=True, slots=True)
class VerifyOptions:
    """Per-call switches. ``None`` fields fall back to the feature or the config."""

    skip_checks: bool = False
    skip_e2e: bool = False
    test_mode: TestMode = TestMode.FULL
    selective_test_command: str | None = None
    test_pattern: str | None = None
    e2e_mode: E2EMode | None = None
    e2e_tags: tuple[str, ...] | None = None
    autonomous: bool = False
    tdd_mode: str | None = None
    timeout_ms: int | None = None
    parallel: bool | None = None
    verbose: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "test_mode", TestMode(self.test_mode))
        if self.e2e_mode is not None:
            object.__setattr__(self, "e2e_mode", E2EMode(self.e2e_mode))
        if self.e2e_tags is not None:
            object.__setattr__(self, "e2e_tags", tuple(self.e2e_tags))


def determine_verification_mode(feature: Feature, tdd_mode: str | None = None) -> VerificationMode:
    if tdd_mode == STRICT_TDD:
        return VerificationMode.TDD
    if feature.test_requirements is not None and feature.test_requirements.any_required:
        return VerificationMode.TDD
    return VerificationMode.AI


class VerificationOrchestrator:
    """Top-level verification state machine for one project root."""

    def __init__(
        self,
        project_root: str | Path,
        *,
        config: VerifierConfig | None = None,
        scheduler: CheckScheduler | None = None,
        invoker: AgentInvoker | None = None,
        retry: RetryCoordinator | None = None,
        store: ResultStore | None = None,
        git: GitContextProvider | None = None,
        progress: ProgressReporter | None = None,
        logger: EventLogger | Any | None = None,
    ) -> None:
        self._project_root = Path(project_root)
        self._config = config if config is not None else VerifierConfig()
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

        executor = LocalSubprocessExecutor(max_output_chars=self._config.checks.max_output_chars)
        self._scheduler = (
            scheduler
            if scheduler is not None
            else CheckScheduler(
                executor=executor,
                timeout_ms=self._config.timeouts.check_command_ms,
                logger=self._logger,
            )
        )
        self._invoker = (
            invoker
            if invoker is not None
            else AgentInvoker(
                AgentRegistry.from_settings(
                    priority=self._config.agents.priority,
                    descriptors_file=self._config.agents.descriptors_file,
                ),
                default_timeout_ms=self._config.timeouts.ai_default_ms,
                logger=self._logger,
            )
        )
        self._retry = (
            retry
            if retry is not None
            else RetryCoordinator(RetryPolicy.from_settings(self._config.retry), logger=self._logger)
        )
        self._store = (
            store
            if store is not None
            else ResultStore.from_settings(self._project_root, self._config.store, logger=self._logger)
        )
        self._git = git if git is not None else SubprocessGitContext(executor=executor)
        self._progress = progress if progress is not None else NullProgressReporter()

    @property
    def invoker(self) -> AgentInvoker:
        return self._invoker

    @property
    def store(self) -> ResultStore:
        return self._store

    @property
    def cwd(self) -> str:
        return str(self._project_root)

    async def verify(
        self,
        feature: Feature,
        capabilities: Capabilities | None = None,
        options: VerifyOptions | None = None,
    ) -> VerificationResult:
        """Verify ``feature`` in the mode its requirements (or ``options``) select."""

        opts = options or VerifyOptions()
        caps = capabilities or Capabilities()
        mode = determine_verification_mode(feature, opts.tdd_mode)
        self._logger.info(
            "verification_started",
            feature_id=feature.id,
            criteria=len(feature.acceptance),
            test_mode=opts.test_mode.value,
            skip_checks=opts.skip_checks,
            skip_e2e=opts.skip_e2e,
        )
        self._logger.info(
            "verification_mode_selected",
            feature_id=feature.id,
            mode=mode.value,
            autonomous=opts.autonomous,
        )

        if mode is VerificationMode.TDD:
            return await self.verify_tdd(feature, caps, opts)
        if opts.autonomous:
            return await self.verify_autonomous(feature, caps, opts)
        return await self.verify_diff(feature, caps, opts)

    async def verify_diff(
        self,
        feature: Feature,
        capabilities: Capabilities,
        options: VerifyOptions | None = None,
    ) -> VerificationResult:
        opts = options or VerifyOptions()
        steps = ["Get git diff"]
        if not opts.skip_checks:
            steps.append("Run automated checks")
        steps.extend(["Analyze with AI", "Save results"])
        tracker = StepTracker(self._progress, steps)

        context = await self._git.get_diff(self.cwd)
        tracker.complete(True)

        checks = await self._run_checks(feature, capabilities, opts, tracker)

        related = await read_related_files(self._project_root, context.files)
        prompt = build_verification_prompt(feature, context.diff, context.files, checks, related)
        analysis, verified_by, _ = await self._analyze(
            feature,
            prompt,
            timeout_ms=opts.timeout_ms or self._config.timeouts.ai_verification_ms,
            failure_reasoning=AI_ANALYSIS_FAILED,
            failure_overall=AI_ANALYSIS_FAILED_OVERALL,
            verbose=opts.verbose,
        )
        tracker.complete(analysis.verdict is not Verdict.FAIL)

        result = VerificationResult(
            feature_id=feature.id,
            timestamp=utc_timestamp(),
            commit_hash=context.commit_hash,
            changed_files=context.files,
            diff_summary=f"{len(context.files)} files changed",
            automated_checks=tuple(checks),
            criteria_results=analysis.criteria_results,
            verdict=analysis.verdict,
            verified_by=verified_by,
            overall_reasoning=analysis.overall_reasoning,
            suggestions=analysis.suggestions,
            code_quality_notes=analysis.code_quality_notes,
            related_files_analyzed=context.files,
        )
        return await self._save(result, tracker)

    async def verify_autonomous(
        self,
        feature: Feature,
        capabilities: Capabilities,
        options: VerifyOptions | None = None,
    ) -> VerificationResult:
        opts = options or VerifyOptions()
        steps = [] if opts.skip_checks else ["Run automated checks"]
        steps.extend(["AI autonomous exploration", "Save results"])
        tracker = StepTracker(self._progress, steps)

        commit_hash = await self._git.get_commit_hash(self.cwd)
        checks = await self._run_checks(feature, capabilities, opts, tracker)

        prompt = build_autonomous_prompt(self.cwd, feature, checks)
        analysis, verified_by, succeeded = await self._analyze(
            feature,
            prompt,
            timeout_ms=(
                opts.timeout_ms
                if opts.timeout_ms is not None
                else self._config.timeouts.ai_autonomous_ms
            ),
            failure_reasoning=AI_EXPLORATION_FAILED,
            failure_overall=AI_EXPLORATION_FAILED_OVERALL,
            verbose=opts.verbose,
        )
        tracker.complete(analysis.verdict is not Verdict.FAIL)

        result = VerificationResult(
            feature_id=feature.id,
            timestamp=utc_timestamp(),
            commit_hash=commit_hash,
            changed_files=(),
            diff_summary=AUTONOMOUS_DIFF_SUMMARY if succeeded else AUTONOMOUS_FAILED_DIFF_SUMMARY,
            automated_checks=tuple(checks),
            criteria_results=analysis.criteria_results,
            verdict=analysis.verdict,
            verified_by=verified_by,
            overall_reasoning=analysis.overall_reasoning,
            suggestions=analysis.suggestions,
            code_quality_notes=analysis.code_quality_notes,
        )
        return await self._save(result, tracker)

    async def verify_tdd(
        self,
        feature: Feature,
        capabilities: Capabilities,
        options: VerifyOptions | None = None,
    ) -> VerificationResult:
        """Tests-only verification. ``skip_checks`` does not apply here."""

        opts = options or VerifyOptions()
        requirements = feature.test_requirements
        test_files = requirements.test_files if requirements is not None else ()
        if not test_files:
            self._logger.info("verification_tdd_fallback", feature_id=feature.id, reason="no_test_files")
            return await self.verify_autonomous(feature, capabilities, opts)

        commit_hash = await self._git.get_commit_hash(self.cwd)

        unit_command = opts.selective_test_command or capabilities.test_command
        e2e_command: str | None = None
        if (
            not opts.skip_e2e
            and requirements is not None
            and requirements.e2e_required
            and capabilities.e2e_info.available
        ):
            tags = opts.e2e_tags if opts.e2e_tags is not None else feature.resolved_e2e_tags
            e2e_command = build_e2e_command(
                capabilities.e2e_info, tags, E2EMode.TAGS if tags else E2EMode.FULL
            )

        steps = ["Run unit tests"]
        if e2e_command:
            steps.append("Run E2E tests")
        steps.append("Save results")
        tracker = StepTracker(self._progress, steps)

        checks: list[AutomatedCheckResult] = []
        if unit_command:
            unit = await self._scheduler.run_check(
                self.cwd, CheckDefinition(CheckType.TEST, unit_command, "unit tests")
            )
            checks.append(unit)
            tracker.complete(unit.success)
        else:
            tracker.complete(True)
        if e2e_command:
            e2e = await self._scheduler.run_check(
                self.cwd, CheckDefinition(CheckType.E2E, e2e_command, "E2E tests")
            )
            checks.append(e2e)
            tracker.complete(e2e.success)

        failed_runs = sum(1 for check in checks if not check.success)
        passed = failed_runs == 0
        result = VerificationResult(
            feature_id=feature.id,
            timestamp=utc_timestamp(),
            commit_hash=commit_hash,
            changed_files=(),
            diff_summary=f"TDD verification with {len(test_files)} test file(s)",
            automated_checks=tuple(checks),
            criteria_results=tuple(
                CriterionResult(
                    criterion=criterion,
                    index=index,
                    satisfied=passed,
                    reasoning=TDD_PASSED_REASONING if passed else TDD_FAILED_REASONING,
                    evidence=test_files,
                    confidence=1.0 if passed else 0.0,
                )
                for index, criterion in enumerate(feature.acceptance)
            ),
            verdict=Verdict.PASS if passed else Verdict.FAIL,
            verified_by=TDD_VERIFIER,
            overall_reasoning=(
                f"All {len(checks)} test run(s) passed" if passed else f"{failed_runs} test run(s) failed"
            ),
            suggestions=() if passed else (TDD_FAILED_SUGGESTION,),
            related_files_analyzed=test_files,
        )
        return await self._save(result, tracker)

    def check_options(self, feature: Feature, options: VerifyOptions) -> CheckOptions:
        """Scheduler options for ``feature``; init-script mode when the script exists."""

        init_script = self._config.checks.init_script
        tags = options.e2e_tags if options.e2e_tags is not None else feature.resolved_e2e_tags
        return CheckOptions(
            test_mode=options.test_mode,
            selective_test_command=options.selective_test_command,
            test_pattern=options.test_pattern or feature.test_pattern,
            skip_e2e=options.skip_e2e,
            e2e_mode=options.e2e_mode,
            e2e_tags=tags,
            parallel=self._config.checks.parallel if options.parallel is None else options.parallel,
            use_init_script=(self._project_root / init_script).is_file(),
            init_script_path=init_script,
        )

    async def _run_checks(
        self,
        feature: Feature,
        capabilities: Capabilities,
        options: VerifyOptions,
        tracker: StepTracker,
    ) -> list[AutomatedCheckResult]:
        if options.skip_checks:
            return []
        results = await self._scheduler.run(
            self.cwd, capabilities, self.check_options(feature, options)
        )
        tracker.complete(all(result.success for result in results))
        return results

    async def _analyze(
        self,
        feature: Feature,
        prompt: str,
        *,
        timeout_ms: int | None,
        failure_reasoning: str,
        failure_overall: str,
        verbose: bool = False,
    ) -> tuple[AgentAnalysis, str, bool]:
        """Run the agent call under the retry policy.

        Returns the analysis, the verifier name and whether any agent call succeeded.
        """

        async def attempt() -> AgentCallResult:
            return await self._invoker.call_any_available_agent(
                prompt, cwd=self.cwd, timeout_ms=timeout_ms, verbose=verbose
            )

        outcome = await self._retry.with_retry(attempt)
        call = outcome.result
        if not call.success:
            return (
                AgentAnalysis.failed(
                    feature.acceptance,
                    reasoning=f"{failure_reasoning}: {call.error or 'Unknown error'}",
                    overall=failure_overall,
                ),
                call.agent_used or "none",
                False,
            )

        parsed = parse_agent_response(call.output, feature.acceptance)
        if parsed.error is not None:
            self._logger.warning(
                "ai_response_parse_failed",
                feature_id=feature.id,
                agent=call.agent_used,
                code=parsed.error.code,
                error=parsed.error.detail,
            )
        return parsed.analysis_or_fallback(feature.acceptance), call.agent_used or "unknown", True

    async def _save(self, result: VerificationResult, tracker: StepTracker) -> VerificationResult:
        await self._store.save_async(result)
        tracker.complete(True)
        return result


__all__ = [
    "STRICT_TDD",
    "VerificationOrchestrator",
    "VerifyOptions",
    "determine_verification_mode",
]
