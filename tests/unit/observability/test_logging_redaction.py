"""
feature-verifier - unit tests for structured logging and redaction

File: tests/unit/observability/test_logging_redaction.py
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

import pytest

from feature_verifier.observability.logging import (
    LoggingConfig,
    configure_logging,
    get_logger,
    redact_event,
    redact_value,
)

if TYPE_CHECKING:
    from pathlib import Path

REDACTED = "***REDACTED***"


def test_sensitive_keys_are_masked() -> None:
    event = redact_event(
        None,
        "info",
        {
            "event": "agent_invocation_finished",
            "api_key": "abc",
            "agent_prompt": "full prompt text",
            "agent": "claude",
            "nested": {"client_secret": "x", "ok": 1},
        },
    )

    assert event["event"] == "agent_invocation_finished"
    assert event["api_key"] == REDACTED
    assert event["agent_prompt"] == REDACTED
    assert event["agent"] == "claude"
    assert event["nested"] == {"client_secret": REDACTED, "ok": 1}


def test_inline_secrets_in_strings_are_masked() -> None:
    assert redact_value("token=abc123 rest") == f"token={REDACTED} rest"
    assert redact_value("sent Bearer abc.def") == f"sent Bearer {REDACTED}"
    assert REDACTED in str(redact_value("key sk-ant-abcdefghijklmnop here"))
    assert redact_value(["password: hunter2"]) == [f"password:{REDACTED}"]
    assert redact_value(42) == 42


def test_configure_logging_writes_json_lines(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "verifier.jsonl"
    configure_logging(LoggingConfig(level="INFO", json_output=True, log_file=log_file))
    try:
        logger = get_logger("feature_verifier.tests")
        logger.info("verification_saved", feature_id="auth.login", password="hunter2")
        logger.debug("filtered_out")
    finally:
        for handler in logging.getLogger("feature_verifier").handlers:
            handler.flush()

    lines = log_file.read_text(encoding="utf-8").splitlines()
    records = [json.loads(line) for line in lines]
    assert [record["event"] for record in records] == ["verification_saved"]
    assert records[0]["feature_id"] == "auth.login"
    assert records[0]["password"] == REDACTED
    assert records[0]["level"] == "info"
    assert "timestamp" in records[0]


def test_unknown_log_level_is_rejected() -> None:
    with pytest.raises(ValueError, match="unknown log level"):
        configure_logging(LoggingConfig(level="LOUD"))
