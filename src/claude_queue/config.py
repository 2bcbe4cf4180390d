"""Runtime configuration for the issue solver and the issue planner."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path


@dataclass(slots=True)
class AgentSettings:
    """How the coding agent CLI is launched."""

    command: str = "claude"
    model: str | None = None
    graceful_shutdown_seconds: int = 10


@dataclass(slots=True)
class SolverSettings:
    """Issue queue settings used by the solve command."""

    max_retries: int = 3
    max_turns: int = 50
    issue_filter: str | None = None
    issue_limit: int = 200
    attempt_timeout_seconds: int = 3_600
    transcript_max_bytes: int = 2_000_000
    label_namespace: str = "claude-queue"
    instructions_file: str = ".claude-queue"
    review_pass: bool = True
    create_pr: bool = True
    report_max_bytes: int = 60_000
    report_item_max_bytes: int = 40_000


@dataclass(slots=True)
class PlannerSettings:
    """Issue creation settings used by the create command."""

    interview_max_turns: int = 10
    generation_timeout_seconds: int = 600
    extra_label: str | None = None


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    log_root: Path = field(default_factory=lambda: Path(tempfile.gettempdir()))
    agent: AgentSettings = field(default_factory=AgentSettings)
    solver: SolverSettings = field(default_factory=SolverSettings)
    planner: PlannerSettings = field(default_factory=PlannerSettings)

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from `CLAUDE_QUEUE_*` environment variables."""

        return cls(
            log_root=Path(os.getenv("CLAUDE_QUEUE_LOG_ROOT", tempfile.gettempdir())),
            agent=AgentSettings(
                command=os.getenv("CLAUDE_QUEUE_AGENT_COMMAND", "claude"),
                model=_env_optional("CLAUDE_QUEUE_MODEL"),
                graceful_shutdown_seconds=int(
                    os.getenv("CLAUDE_QUEUE_GRACEFUL_SHUTDOWN_SECONDS", "10"),
                ),
            ),
            solver=SolverSettings(
                max_retries=int(os.getenv("CLAUDE_QUEUE_MAX_RETRIES", "3")),
                max_turns=int(os.getenv("CLAUDE_QUEUE_MAX_TURNS", "50")),
                issue_filter=_env_optional("CLAUDE_QUEUE_ISSUE_LABEL"),
                issue_limit=int(os.getenv("CLAUDE_QUEUE_ISSUE_LIMIT", "200")),
                attempt_timeout_seconds=int(
                    os.getenv("CLAUDE_QUEUE_ATTEMPT_TIMEOUT_SECONDS", "3600"),
                ),
                transcript_max_bytes=int(
                    os.getenv("CLAUDE_QUEUE_TRANSCRIPT_MAX_BYTES", "2000000"),
                ),
                instructions_file=os.getenv("CLAUDE_QUEUE_INSTRUCTIONS_FILE", ".claude-queue"),
                review_pass=_env_bool("CLAUDE_QUEUE_REVIEW_PASS", default=True),
                create_pr=_env_bool("CLAUDE_QUEUE_CREATE_PR", default=True),
                report_max_bytes=int(os.getenv("CLAUDE_QUEUE_REPORT_MAX_BYTES", "60000")),
                report_item_max_bytes=int(
                    os.getenv("CLAUDE_QUEUE_REPORT_ITEM_MAX_BYTES", "40000"),
                ),
            ),
            planner=PlannerSettings(
                interview_max_turns=int(os.getenv("CLAUDE_QUEUE_INTERVIEW_MAX_TURNS", "10")),
                generation_timeout_seconds=int(
                    os.getenv("CLAUDE_QUEUE_GENERATION_TIMEOUT_SECONDS", "600"),
                ),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error if numeric limits are out of range."""

        if not self.agent.command.strip():
            raise ValueError("CLAUDE_QUEUE_AGENT_COMMAND must not be empty.")
        if self.agent.graceful_shutdown_seconds < 0:
            raise ValueError("CLAUDE_QUEUE_GRACEFUL_SHUTDOWN_SECONDS must be >= 0.")
        positive = {
            "CLAUDE_QUEUE_MAX_RETRIES": self.solver.max_retries,
            "CLAUDE_QUEUE_MAX_TURNS": self.solver.max_turns,
            "CLAUDE_QUEUE_ISSUE_LIMIT": self.solver.issue_limit,
            "CLAUDE_QUEUE_ATTEMPT_TIMEOUT_SECONDS": self.solver.attempt_timeout_seconds,
            "CLAUDE_QUEUE_TRANSCRIPT_MAX_BYTES": self.solver.transcript_max_bytes,
            "CLAUDE_QUEUE_REPORT_MAX_BYTES": self.solver.report_max_bytes,
            "CLAUDE_QUEUE_REPORT_ITEM_MAX_BYTES": self.solver.report_item_max_bytes,
            "CLAUDE_QUEUE_INTERVIEW_MAX_TURNS": self.planner.interview_max_turns,
            "CLAUDE_QUEUE_GENERATION_TIMEOUT_SECONDS": self.planner.generation_timeout_seconds,
        }
        for name, value in positive.items():
            if value <= 0:
                raise ValueError(f"{name} must be > 0.")
        if not self.solver.label_namespace.strip():
            raise ValueError("Label namespace must not be empty.")


def _env_optional(name: str) -> str | None:
    value = os.getenv(name, "").strip()
    return value or None


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
