"""Configuration loading and the immutable ``VerifierConfig`` object."""

from feature_verifier.config.loader import (
    DEFAULT_CONFIG_FILE,
    ENV_PREFIX,
    ConfigLoadError,
    load_config,
)
from feature_verifier.config.schema import (
    AgentSettings,
    CheckSettings,
    ConfigValidationError,
    LoggingSettings,
    RetrySettings,
    StoreSettings,
    TimeoutSettings,
    VerifierConfig,
    format_timeout,
)

__all__ = [
    "AgentSettings",
    "CheckSettings",
    "ConfigLoadError",
    "ConfigValidationError",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "LoggingSettings",
    "RetrySettings",
    "StoreSettings",
    "TimeoutSettings",
    "VerifierConfig",
    "format_timeout",
    "load_config",
]
