"""Controller for the solve command."""

from __future__ import annotations

import logging
import shutil
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from claude_queue.agent import CliAgentBackend, ProcessSlot
from claude_queue.config import Settings
from claude_queue.integrations import GhError, GitError, GitHubClient, GitRepo
from claude_queue.preflight import required_executables, run_preflight
from claude_queue.solver.engine import AttemptEngine
from claude_queue.solver.interrupts import INTERRUPT_EXIT_CODE, InterruptHandler, RunInterrupted
from claude_queue.solver.labels import LabelStateMachine, LabelVocabulary
from claude_queue.solver.models import RunState
from claude_queue.solver.prompts import TOOL_NAME, load_project_instructions
from claude_queue.solver.report import completion_lines
from claude_queue.solver.runner import QueueRunner

logger = logging.getLogger(__name__)

RUN_LOG_FILENAME = "run.log"


@dataclass(slots=True)
class SolveCommand:
    """CLI input for one solve run; None keeps the configured value."""

    max_retries: int | None = None
    max_turns: int | None = None
    label: str | None = None
    model: str | None = None
    cwd: Path | None = None


def run_log_dir(log_root: Path, started: datetime) -> Path:
    return log_root / f"{TOOL_NAME}-{started:%Y-%m-%d}-{started:%H%M%S}"


class SolverCliController:
    """Runs the issue queue and reports progress line by line."""

    def __init__(
        self,
        settings_factory: Callable[[], Settings] = Settings.from_env,
        github_factory: Callable[[Path], GitHubClient] = GitHubClient,
        which: Callable[[str], str | None] = shutil.which,
    ) -> None:
        self._settings_factory = settings_factory
        self._github_factory = github_factory
        self._which = which

    def solve(  # noqa: C901, PLR0911
        self,
        command: SolveCommand,
        *,
        emit: Callable[[str], None],
    ) -> int:
        """Return the process exit code: 0 done, 1 preflight or setup failure, 130 interrupted."""

        try:
            settings = self._settings_factory()
            _apply_overrides(settings, command)
            settings.validate()
        except ValueError as error:
            emit(f"Configuration error: {error}")
            return 1

        cwd = command.cwd or Path.cwd()
        repo = GitRepo(cwd)
        github = self._github_factory(cwd)
        emit("Preflight Checks")
        preflight = run_preflight(
            repo=repo,
            github=github,
            executables=required_executables(settings.agent.command),
            which=self._which,
        )
        for line in preflight.lines():
            emit(line)
        if not preflight.ok:
            return 1

        root = repo.toplevel()
        repo = GitRepo(root)
        github = self._github_factory(root)
        started = datetime.now()
        log_dir = run_log_dir(settings.log_root, started)
        log_dir.mkdir(parents=True, exist_ok=True)

        with _run_log(log_dir / RUN_LOG_FILENAME):
            logger.info("run started log_dir=%s", log_dir)
            run_state = RunState(branch="", log_dir=log_dir, started_at=time.time())
            process_slot = ProcessSlot()
            labels = LabelStateMachine(
                editor=github,
                vocabulary=LabelVocabulary(namespace=settings.solver.label_namespace),
            )
            interrupts = InterruptHandler(
                current_item=run_state.current_item_slot(),
                labels=labels,
                process_slot=process_slot,
                log_dir=log_dir,
                branch=run_state.branch,
                solved_count=lambda: len(run_state.solved),
                graceful_shutdown_seconds=settings.agent.graceful_shutdown_seconds,
                on_progress=emit,
            )
            backend = CliAgentBackend(command=settings.agent.command, process_slot=process_slot)
            engine = AttemptEngine(
                repo=repo,
                labels=labels,
                agent=backend,
                commenter=github,
                solver_settings=settings.solver,
                agent_settings=settings.agent,
                log_dir=log_dir,
                project_instructions=load_project_instructions(
                    root,
                    settings.solver.instructions_file,
                ),
                stop_requested=lambda: interrupts.stop_requested,
                on_progress=emit,
            )
            runner = QueueRunner(
                repo=repo,
                github=github,
                labels=labels,
                engine=engine,
                agent=backend,
                settings=settings,
                stop_requested=lambda: interrupts.stop_requested,
                on_progress=emit,
            )

            with interrupts.installed():
                try:
                    runner.ensure_labels()
                    emit("Branch Setup")
                    setup = runner.setup_branch()
                    run_state.branch = setup.branch
                    interrupts.branch = setup.branch
                    emit("Fetching Issues")
                    runner.run(run_state)
                except (RunInterrupted, KeyboardInterrupt):
                    interrupts.request_stop(signal_name="SIGINT")
                    interrupts.finalize()
                    return INTERRUPT_EXIT_CODE
                except (GhError, GitError) as error:
                    logger.error("run aborted: %s", error)
                    _demote_in_flight(run_state, labels, emit)
                    emit(f"Run aborted: {error}")
                    emit(f"Logs: {log_dir}")
                    return 1
                except Exception:
                    logger.exception("run failed")
                    _demote_in_flight(run_state, labels, emit)
                    emit(f"Run failed. Logs: {log_dir}")
                    raise

                if interrupts.stop_requested:
                    interrupts.finalize()
                    return INTERRUPT_EXIT_CODE

            emit(f"{TOOL_NAME} Complete")
            elapsed = time.time() - run_state.started_at
            for line in completion_lines(run_state, duration_seconds=elapsed):
                emit(line)
        return 0


def _demote_in_flight(
    run_state: RunState,
    labels: LabelStateMachine,
    emit: Callable[[str], None],
) -> None:
    item_id = run_state.current_item_slot().take()
    if item_id is None:
        return
    if not labels.demote_best_effort(item_id).ok:
        emit(f"Could not relabel issue #{item_id}; check its labels manually.")


def _apply_overrides(settings: Settings, command: SolveCommand) -> None:
    if command.max_retries is not None:
        settings.solver.max_retries = command.max_retries
    if command.max_turns is not None:
        settings.solver.max_turns = command.max_turns
    if command.label is not None:
        settings.solver.issue_filter = command.label
    if command.model is not None:
        settings.agent.model = command.model


@contextmanager
def _run_log(path: Path) -> Iterator[None]:
    """Mirror package log records into the run directory for the duration of a run."""

    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    package_logger = logging.getLogger("claude_queue")
    previous_level = package_logger.level
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.INFO)
    try:
        yield
    finally:
        package_logger.removeHandler(handler)
        package_logger.setLevel(previous_level)
        handler.close()
