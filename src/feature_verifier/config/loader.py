"""
feature-verifier runtime config loader.

File: src/feature_verifier/config/loader.py

Purpose
- Load the effective ``VerifierConfig`` from defaults, TOML file, named environment
  overrides, and explicit caller overrides.

What should be included in this file
- Precedence logic: overrides > env (FEATURE_VERIFIER_*) > file > defaults.
- TOML loading via ``tomllib``.
- A fixed table of named environment variables, one per value; there is no blanket
  override that applies to every timeout.
- Path normalization of the agent descriptors file relative to the config file.
"""

from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final, Literal

from feature_verifier.config.schema import (
    ConfigValidationError,
    VerifierConfig,
    build_config,
    default_config,
    merge_config,
)

DEFAULT_CONFIG_FILE: Final[str] = "feature-verifier.toml"
ENV_PREFIX: Final[str] = "FEATURE_VERIFIER_"

_BOOLEAN_TRUE: Final[frozenset[str]] = frozenset({"1", "true", "t", "yes", "y", "on"})
_BOOLEAN_FALSE: Final[frozenset[str]] = frozenset({"0", "false", "f", "no", "n", "off"})

ValueType = Literal["str", "int", "bool", "list", "timeout"]


@dataclass(frozen=True, slots=True)
class _Binding:
    path: tuple[str, ...]
    value_type: ValueType


ENV_BINDINGS: Final[dict[str, _Binding]] = {
    f"{ENV_PREFIX}TIMEOUT_VERIFY": _Binding(("timeouts", "ai_verification"), "timeout"),
    f"{ENV_PREFIX}TIMEOUT_AUTONOMOUS": _Binding(("timeouts", "ai_autonomous"), "timeout"),
    f"{ENV_PREFIX}TIMEOUT_DEFAULT": _Binding(("timeouts", "ai_default"), "timeout"),
    f"{ENV_PREFIX}TIMEOUT_CHECK": _Binding(("timeouts", "check_command"), "timeout"),
    f"{ENV_PREFIX}AGENTS": _Binding(("agents", "priority"), "list"),
    f"{ENV_PREFIX}MAX_RETRIES": _Binding(("retry", "max_retries"), "int"),
    f"{ENV_PREFIX}LOG_LEVEL": _Binding(("logging", "level"), "str"),
    f"{ENV_PREFIX}PARALLEL_CHECKS": _Binding(("checks", "parallel"), "bool"),
}


class ConfigLoadError(ValueError):
    """Raised when config cannot be loaded or overrides cannot be coerced."""


def load_config(
    project_root: str | Path | None = None,
    *,
    config_path: str | Path | None = None,
    overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> VerifierConfig:
    """Load effective config with deterministic precedence: overrides > env > file > defaults.

    ``config_path`` defaults to ``feature-verifier.toml`` under ``project_root``; a
    missing default file is not an error, a missing explicit file is.
    """

    root = Path(project_root) if project_root is not None else Path.cwd()
    explicit_path = config_path is not None
    resolved_path = (
        Path(config_path).expanduser().resolve()
        if config_path is not None
        else (root / DEFAULT_CONFIG_FILE).resolve()
    )
    env_map = dict(os.environ if environ is None else environ)

    merged = merge_config(default_config(), _load_toml_file(resolved_path, required=explicit_path))
    merged = merge_config(merged, _collect_env_overrides(env_map))
    merged = merge_config(merged, _materialize_overrides(overrides or {}))
    _normalize_descriptors_path(merged, base_dir=resolved_path.parent)

    try:
        return build_config(merged)
    except ConfigValidationError as exc:
        raise ConfigLoadError(str(exc)) from exc


def _load_toml_file(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigLoadError(f"config file not found: {path}")
        return {}

    try:
        with path.open("rb") as handle:
            parsed = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(f"invalid TOML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigLoadError(f"unable to read config file {path}: {exc}") from exc

    return parsed


def _collect_env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for env_name in sorted(ENV_BINDINGS):
        raw = environ.get(env_name)
        if raw is None:
            continue
        binding = ENV_BINDINGS[env_name]
        _set_nested(overrides, binding.path, _coerce_env(raw, binding, env_name))
    return overrides


def _coerce_env(raw: str, binding: _Binding, env_name: str) -> object:
    value = raw.strip()
    target = ".".join(binding.path)
    if binding.value_type == "str":
        return value
    if binding.value_type == "list":
        return [item.strip().lower() for item in value.split(",") if item.strip()]
    if binding.value_type in ("int", "timeout"):
        try:
            parsed = int(value)
        except ValueError as exc:
            raise ConfigLoadError(f"{env_name} -> {target} must be an integer") from exc
        if binding.value_type == "timeout" and parsed <= 0:
            raise ConfigLoadError(f"{env_name} -> {target} must be a positive number of ms")
        return parsed

    lowered = value.lower()
    if lowered in _BOOLEAN_TRUE:
        return True
    if lowered in _BOOLEAN_FALSE:
        return False
    raise ConfigLoadError(
        f"{env_name} -> {target} must be a boolean (true/false/1/0/yes/no/on/off)"
    )


def _materialize_overrides(overrides: Mapping[str, object]) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    for key in sorted(overrides):
        value = overrides[key]
        path = tuple(part for part in key.split(".") if part)
        if not path:
            raise ConfigLoadError(f"invalid override key {key!r}")
        _set_nested(payload, path, value)
    return payload


def _set_nested(target: dict[str, Any], path: tuple[str, ...], value: object) -> None:
    cursor = target
    for part in path[:-1]:
        next_node = cursor.get(part)
        if not isinstance(next_node, dict):
            next_node = {}
            cursor[part] = next_node
        cursor = next_node
    cursor[path[-1]] = value


def _normalize_descriptors_path(config: dict[str, Any], *, base_dir: Path) -> None:
    agents = config.get("agents")
    if not isinstance(agents, dict):
        return
    raw = agents.get("descriptors_file")
    if not isinstance(raw, str) or not raw.strip():
        return
    candidate = Path(os.path.expandvars(raw)).expanduser()
    if not candidate.is_absolute():
        candidate = base_dir / candidate
    agents["descriptors_file"] = Path(os.path.normpath(str(candidate))).as_posix()


__all__ = [
    "ConfigLoadError",
    "DEFAULT_CONFIG_FILE",
    "ENV_BINDINGS",
    "ENV_PREFIX",
    "load_config",
]
