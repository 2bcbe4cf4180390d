from __future__ import annotations

import tempfile
from pathlib import Path

import allure
import pytest

from claude_queue.config import Settings

pytestmark = [
    allure.epic("Configuration"),
    allure.feature("Environment Settings"),
]


def test_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("CLAUDE_QUEUE_LOG_ROOT", "CLAUDE_QUEUE_MAX_RETRIES", "CLAUDE_QUEUE_MODEL"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()

    assert settings.log_root == Path(tempfile.gettempdir())
    assert settings.agent.command == "claude"
    assert settings.agent.model is None
    assert settings.solver.max_retries == 3
    assert settings.solver.max_turns == 50
    assert settings.solver.issue_limit == 200
    assert settings.solver.attempt_timeout_seconds == 3600
    assert settings.solver.review_pass is True
    assert settings.planner.interview_max_turns == 10
    settings.validate()


def test_from_env_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("CLAUDE_QUEUE_LOG_ROOT", str(tmp_path))
    monkeypatch.setenv("CLAUDE_QUEUE_MAX_RETRIES", "5")
    monkeypatch.setenv("CLAUDE_QUEUE_ISSUE_LABEL", " ready ")
    monkeypatch.setenv("CLAUDE_QUEUE_MODEL", "")
    monkeypatch.setenv("CLAUDE_QUEUE_REVIEW_PASS", "off")
    monkeypatch.setenv("CLAUDE_QUEUE_CREATE_PR", "yes")

    settings = Settings.from_env()

    assert settings.log_root == tmp_path
    assert settings.solver.max_retries == 5
    assert settings.solver.issue_filter == "ready"
    assert settings.agent.model is None
    assert settings.solver.review_pass is False
    assert settings.solver.create_pr is True


def test_invalid_boolean_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CLAUDE_QUEUE_REVIEW_PASS", "maybe")

    with pytest.raises(ValueError, match="Invalid boolean value for CLAUDE_QUEUE_REVIEW_PASS"):
        Settings.from_env()


def test_validate_rejects_non_positive_retries() -> None:
    settings = Settings()
    settings.solver.max_retries = 0

    with pytest.raises(ValueError, match="CLAUDE_QUEUE_MAX_RETRIES must be > 0"):
        settings.validate()


def test_validate_rejects_empty_agent_command() -> None:
    settings = Settings()
    settings.agent.command = "  "

    with pytest.raises(ValueError, match="must not be empty"):
        settings.validate()


def test_validate_allows_zero_grace_period_but_not_negative() -> None:
    settings = Settings()
    settings.agent.graceful_shutdown_seconds = 0
    settings.validate()

    settings.agent.graceful_shutdown_seconds = -1
    with pytest.raises(ValueError, match="GRACEFUL_SHUTDOWN_SECONDS"):
        settings.validate()
