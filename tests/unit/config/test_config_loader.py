"""
feature-verifier - unit tests for config loading

File: tests/unit/config/test_config_loader.py

Purpose
- Validate deterministic config loading from defaults, TOML, named env variables and
  caller overrides.

What this test file should cover
- Precedence: overrides > env > file > defaults.
- Each named env variable maps to exactly one value.
- Strict validation with every issue reported.
- Descriptor path normalization relative to the config file.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from feature_verifier.config import load_config
from feature_verifier.config.loader import ConfigLoadError
from feature_verifier.config.schema import (
    VerifierConfig,
    build_config,
    default_config,
    format_timeout,
)


def _write_config(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def test_defaults_without_config_file(tmp_path: Path) -> None:
    config = load_config(tmp_path, environ={})

    assert config == VerifierConfig()
    assert config.timeouts.ai_verification_ms == 300_000
    assert config.timeouts.ai_autonomous_ms == 0
    assert config.retry.max_retries == 3
    assert config.agents.priority == ("claude", "codex", "gemini")
    assert config.checks.parallel is False
    assert config.store.directory == "ai/verification"


def test_precedence_file_env_overrides(tmp_path: Path) -> None:
    _write_config(
        tmp_path / "feature-verifier.toml",
        """
[timeouts]
ai_verification = 120000
check_command = 60000

[retry]
max_retries = 5

[checks]
parallel = true
""".strip(),
    )

    config = load_config(
        tmp_path,
        environ={
            "FEATURE_VERIFIER_MAX_RETRIES": "2",
            "FEATURE_VERIFIER_TIMEOUT_CHECK": "30000",
        },
        overrides={"retry.max_retries": 4},
    )

    assert config.timeouts.ai_verification_ms == 120_000
    assert config.timeouts.check_command_ms == 30_000
    assert config.retry.max_retries == 4
    assert config.checks.parallel is True


def test_named_env_variables_are_independent(tmp_path: Path) -> None:
    config = load_config(
        tmp_path,
        environ={
            "FEATURE_VERIFIER_TIMEOUT_VERIFY": "45000",
            "FEATURE_VERIFIER_TIMEOUT_AUTONOMOUS": "600000",
            "FEATURE_VERIFIER_AGENTS": "Gemini, claude",
            "FEATURE_VERIFIER_LOG_LEVEL": "debug",
            "FEATURE_VERIFIER_PARALLEL_CHECKS": "yes",
            "FEATURE_VERIFIER_UNRELATED": "ignored",
        },
    )

    assert config.timeouts.ai_verification_ms == 45_000
    assert config.timeouts.ai_autonomous_ms == 600_000
    assert config.timeouts.ai_default_ms == 300_000
    assert config.timeouts.check_command_ms == 300_000
    assert config.agents.priority == ("gemini", "claude")
    assert config.logging.level == "DEBUG"
    assert config.checks.parallel is True


@pytest.mark.parametrize(
    ("name", "value", "message"),
    [
        ("FEATURE_VERIFIER_TIMEOUT_VERIFY", "soon", "must be an integer"),
        ("FEATURE_VERIFIER_TIMEOUT_CHECK", "0", "positive"),
        ("FEATURE_VERIFIER_PARALLEL_CHECKS", "sometimes", "must be a boolean"),
    ],
)
def test_invalid_env_values_are_rejected(
    tmp_path: Path, name: str, value: str, message: str
) -> None:
    with pytest.raises(ConfigLoadError, match=message):
        load_config(tmp_path, environ={name: value})


def test_validation_reports_every_issue(tmp_path: Path) -> None:
    _write_config(
        tmp_path / "feature-verifier.toml",
        """
[retry]
max_retries = 0
jitter_ratio = 2.0

[logging]
level = "LOUD"

[bogus]
x = 1
""".strip(),
    )

    with pytest.raises(ConfigLoadError) as excinfo:
        load_config(tmp_path, environ={})

    message = str(excinfo.value)
    assert "retry.max_retries: must be >= 1" in message
    assert "retry.jitter_ratio: must be <= 1.0" in message
    assert "logging.level" in message
    assert "bogus: unknown field" in message


def test_explicit_missing_config_file_is_an_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError, match="not found"):
        load_config(tmp_path, config_path=tmp_path / "missing.toml", environ={})


def test_invalid_toml_is_an_error(tmp_path: Path) -> None:
    _write_config(tmp_path / "feature-verifier.toml", "[timeouts\n")

    with pytest.raises(ConfigLoadError, match="invalid TOML"):
        load_config(tmp_path, environ={})


def test_descriptors_file_is_resolved_relative_to_config(tmp_path: Path) -> None:
    config_path = tmp_path / "config" / "verifier.toml"
    _write_config(config_path, '[agents]\ndescriptors_file = "agents.yaml"\n')

    config = load_config(tmp_path, config_path=config_path, environ={})

    expected = (tmp_path / "config" / "agents.yaml").resolve().as_posix()
    assert config.agents.descriptors_file == expected


def test_to_dict_round_trips_through_build_config() -> None:
    config = build_config(default_config())

    assert build_config(config.to_dict()) == config


@pytest.mark.parametrize(
    ("ms", "expected"),
    [(45_000, "45s"), (300_000, "5m"), (150_000, "2m 30s"), (None, "unbounded"), (0, "unbounded")],
)
def test_format_timeout(ms: int | None, expected: str) -> None:
    assert format_timeout(ms) == expected
