"""Controller for the create command."""

from __future__ import annotations

import logging
import shutil
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from claude_queue.agent import AgentRunError, CliAgentBackend
from claude_queue.config import Settings
from claude_queue.integrations import GhError, GitHubClient, GitRepo
from claude_queue.planner.creation import create_issues, render_preview
from claude_queue.planner.models import PlannedIssue
from claude_queue.planner.planner import IssuePlanner, PlannerError
from claude_queue.preflight import required_executables, run_preflight

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CreateIssuesCommand:
    """CLI input for issue creation."""

    text: str | None = None
    interactive: bool = False
    label: str | None = None
    model: str | None = None
    cwd: Path | None = None


@dataclass(slots=True)
class PlannerIO:
    """Operator interaction hooks supplied by the CLI layer."""

    emit: Callable[[str], None]
    ask: Callable[[str], str]
    confirm: Callable[[str], bool]
    read_text: Callable[[], str]


class PlannerCliController:
    """Plans issues from text or an interview and creates them after confirmation."""

    def __init__(
        self,
        settings_factory: Callable[[], Settings] = Settings.from_env,
        github_factory: Callable[[Path], GitHubClient] = GitHubClient,
        which: Callable[[str], str | None] = shutil.which,
    ) -> None:
        self._settings_factory = settings_factory
        self._github_factory = github_factory
        self._which = which

    def create(self, command: CreateIssuesCommand, io: PlannerIO) -> int:
        """Return the process exit code: 0 created or declined, 1 on any failure."""

        try:
            settings = self._settings_factory()
            if command.model is not None:
                settings.agent.model = command.model
            if command.label is not None:
                settings.planner.extra_label = command.label
            settings.validate()
        except ValueError as error:
            io.emit(f"Configuration error: {error}")
            return 1

        cwd = command.cwd or Path.cwd()
        github = self._github_factory(cwd)
        io.emit("Preflight Checks")
        preflight = run_preflight(
            repo=GitRepo(cwd),
            github=github,
            executables=required_executables(settings.agent.command)[:2],
            require_clean=False,
            which=self._which,
        )
        for line in preflight.lines():
            io.emit(line)
        if not preflight.ok:
            return 1

        try:
            issues = self._plan(command, settings=settings, github=github, cwd=cwd, io=io)
        except (PlannerError, AgentRunError) as error:
            logger.error("issue planning failed: %s", error)
            io.emit(str(error))
            return 1
        if issues is None:
            io.emit("No input provided")
            return 1

        for line in render_preview(issues):
            io.emit(line)
        if not io.confirm(f"Create {len(issues)} issue(s)?"):
            io.emit("Cancelled.")
            return 0

        create_issues(
            issues,
            creator=github,
            extra_label=settings.planner.extra_label,
            on_progress=io.emit,
        )
        return 0

    def _plan(
        self,
        command: CreateIssuesCommand,
        *,
        settings: Settings,
        github: GitHubClient,
        cwd: Path,
        io: PlannerIO,
    ) -> list[PlannedIssue] | None:
        backend = CliAgentBackend(command=settings.agent.command)

        def generate(prompt: str) -> str:
            return backend.generate(
                prompt,
                model=settings.agent.model,
                cwd=cwd,
                timeout_seconds=settings.planner.generation_timeout_seconds,
            )

        try:
            existing_labels = github.list_labels()
        except GhError as error:
            logger.warning("could not list repository labels: %s", error)
            existing_labels = []

        planner = IssuePlanner(
            generate=generate,
            existing_labels=existing_labels,
            max_turns=settings.planner.interview_max_turns,
            ask=io.ask,
            show=io.emit,
        )
        if command.interactive:
            io.emit("Interactive issue creation")
            io.emit("Answer Claude's questions. Type 'done' to generate issues at any time.")
            return planner.interview()

        text = command.text
        if not text:
            io.emit("Describe what issues you want to create.")
            io.emit("Type or paste your text, then press Ctrl+D when done.")
            text = io.read_text()
        if not text.strip():
            return None
        return planner.plan_from_text(text)
