"""Verification plane: command execution, check scheduling and git context."""

from feature_verifier.verification_plane.executor import (
    CommandExecutor,
    CommandResult,
    CommandSpec,
    LocalSubprocessExecutor,
    shell_argv,
)
from feature_verifier.verification_plane.git_context import (
    GitContext,
    GitContextProvider,
    SubprocessGitContext,
)
from feature_verifier.verification_plane.scheduler import (
    CheckDefinition,
    CheckOptions,
    CheckScheduler,
    build_check_definitions,
    build_e2e_command,
    build_init_script_command,
    determine_e2e_mode,
)

__all__ = [
    "CheckDefinition",
    "CheckOptions",
    "CheckScheduler",
    "CommandExecutor",
    "CommandResult",
    "CommandSpec",
    "GitContext",
    "GitContextProvider",
    "LocalSubprocessExecutor",
    "SubprocessGitContext",
    "build_check_definitions",
    "build_e2e_command",
    "build_init_script_command",
    "determine_e2e_mode",
    "shell_argv",
]
