"""Per-item bounded retry loop with checkpoint and rollback."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Protocol

from claude_queue.agent.base import AgentRunRequest, AgentRunResult
from claude_queue.agent.cli_backend import AgentRunError
from claude_queue.config import AgentSettings, SolverSettings
from claude_queue.integrations.git import GitError, GitRepo
from claude_queue.integrations.github import GhError
from claude_queue.solver.classifier import classify_attempt, read_transcript
from claude_queue.solver.interrupts import RunInterrupted
from claude_queue.solver.item_log import ItemLog, attempt_transcript_path, item_log_path
from claude_queue.solver.labels import LabelStateMachine, best_effort
from claude_queue.solver.models import (
    Attempt,
    AttemptOutcome,
    Checkpoint,
    RunState,
    WorkItem,
)
from claude_queue.solver.prompts import TOOL_NAME, build_commit_message, build_solve_prompt

logger = logging.getLogger(__name__)


class CheckpointMismatch(ValueError):
    """A checkpoint was used for an item it was not captured for."""


class AgentRunner(Protocol):
    def run(self, request: AgentRunRequest) -> AgentRunResult: ...


class IssueCommenter(Protocol):
    def comment_issue(self, issue_id: int, body: str) -> None: ...


class AttemptEngine:
    """Drive one item from `in_progress` to a terminal label."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        repo: GitRepo,
        labels: LabelStateMachine,
        agent: AgentRunner,
        commenter: IssueCommenter,
        solver_settings: SolverSettings,
        agent_settings: AgentSettings,
        log_dir: Path,
        project_instructions: str | None = None,
        stop_requested: Callable[[], bool] | None = None,
        on_progress: Callable[[str], None] | None = None,
    ) -> None:
        self.repo = repo
        self.labels = labels
        self.agent = agent
        self.commenter = commenter
        self.solver_settings = solver_settings
        self.agent_settings = agent_settings
        self.log_dir = log_dir
        self.project_instructions = project_instructions
        self._stop_requested = stop_requested or (lambda: False)
        self._on_progress = on_progress

    def process(self, item: WorkItem, run_state: RunState) -> bool:
        """Run up to `max_retries` attempts on `item`; True when it ends solved.

        Raises `RunInterrupted` when a stop signal arrives mid-item. In that
        case `run_state.current_item` is left set for the interrupt handler.
        """

        checkpoint = Checkpoint(item_id=item.id, sha=self.repo.head())
        run_state.current_item = item.id
        try:
            self.labels.claim(item)
        except Exception:
            run_state.current_item = None
            raise

        self._progress(f"Issue #{item.id}: {item.title}")
        try:
            solved = self._attempt_all(item, checkpoint, run_state)
        except (GhError, GitError):
            best_effort(
                lambda: self.restore(item, checkpoint),
                description=f"restore checkpoint for #{item.id}",
            )
            raise
        run_state.current_item = None
        if not solved:
            max_retries = self.solver_settings.max_retries
            self._progress(f"Failed to solve issue #{item.id} after {max_retries} attempts")
        return solved

    def _attempt_all(self, item: WorkItem, checkpoint: Checkpoint, run_state: RunState) -> bool:
        item_log = ItemLog(item_log_path(self.log_dir, item.id))
        item_log.start(item_id=item.id, title=item.title, started_at=datetime.now())

        max_retries = self.solver_settings.max_retries
        solved = False
        for index in range(1, max_retries + 1):
            if self._stop_requested():
                raise RunInterrupted()
            self._progress(f"Attempt {index}/{max_retries}")
            attempt = self.run_attempt(item, checkpoint, index=index, item_log=item_log)
            logger.info(
                "attempt finished item=%s attempt=%s outcome=%s exit_code=%s",
                item.id,
                index,
                attempt.outcome.value,
                attempt.exit_code,
            )
            if attempt.outcome.solves:
                solved = True
                break

        if not solved:
            self.restore(item, checkpoint)

        item_log.finish(solved=solved, max_retries=max_retries, finished_at=datetime.now())
        self.labels.resolve(item, solved=solved)
        self._comment(item, solved=solved, item_log=item_log)
        run_state.record(item)
        return solved

    def restore(self, item: WorkItem, checkpoint: Checkpoint) -> None:
        """Discard tracked edits and untracked files back to the checkpoint."""

        if checkpoint.item_id != item.id:
            raise CheckpointMismatch(
                f"Checkpoint for #{checkpoint.item_id} cannot be used for #{item.id}",
            )
        self.repo.reset_hard(checkpoint.sha)

    def run_attempt(
        self,
        item: WorkItem,
        checkpoint: Checkpoint,
        *,
        index: int,
        item_log: ItemLog,
    ) -> Attempt:
        self.restore(item, checkpoint)
        item_log.attempt(index)
        transcript_path = attempt_transcript_path(self.log_dir, item.id, index)
        request = AgentRunRequest(
            prompt=build_solve_prompt(
                issue_number=item.id,
                project_instructions=self.project_instructions,
            ),
            transcript_path=transcript_path,
            cwd=self.repo.root,
            max_turns=self.solver_settings.max_turns,
            model=self.agent_settings.model,
            timeout_seconds=self.solver_settings.attempt_timeout_seconds,
            shutdown_requested=self._stop_requested,
            graceful_shutdown_seconds=self.agent_settings.graceful_shutdown_seconds,
        )

        try:
            result = self.agent.run(request)
        except AgentRunError as error:
            self._progress(str(error))
            item_log.note(str(error))
            return Attempt(
                index=index,
                transcript_path=transcript_path,
                outcome=AttemptOutcome.PROCESS_ERROR,
            )

        if result.interrupted or self._stop_requested():
            raise RunInterrupted()

        if result.timed_out:
            timeout = self.solver_settings.attempt_timeout_seconds
            self._progress(f"Agent timed out after {timeout}s")
            item_log.note(f"Agent timed out after {timeout}s")

        changed_files = tuple(self.repo.changed_files()) if result.exit_code == 0 else ()
        classification = classify_attempt(
            exit_code=result.exit_code,
            transcript=read_transcript(
                transcript_path,
                max_bytes=self.solver_settings.transcript_max_bytes,
            ),
            changed_files=changed_files,
        )
        outcome = classification.outcome

        if outcome is AttemptOutcome.PROCESS_ERROR:
            self._progress(f"Agent exited with code {result.exit_code}")
            item_log.note(f"Agent exited with code {result.exit_code}")
        elif outcome is AttemptOutcome.NO_CODE_REQUIRED:
            item_log.section("No Code Changes Required", classification.detail or "")
            # Leftover files stay out of later commits.
            self.restore(item, checkpoint)
            self._progress(f"Issue #{item.id} handled (no code changes needed)")
        elif outcome is AttemptOutcome.NO_CHANGES:
            self._progress("No file changes detected")
            item_log.note("No file changes detected")
        else:
            self._progress("Changes detected in:")
            for name in changed_files:
                self._progress(f"  {name}")
            item_log.section("Summary", classification.detail or "")
            item_log.changed_files(changed_files)
            self.repo.commit_all(
                build_commit_message(issue_number=item.id, title=item.title, tool_name=TOOL_NAME),
            )
            self._progress(f"Solved issue #{item.id} on attempt {index}")

        return Attempt(
            index=index,
            transcript_path=transcript_path,
            outcome=outcome,
            exit_code=result.exit_code,
            summary=classification.detail,
            changed_files=changed_files,
        )

    def _comment(self, item: WorkItem, *, solved: bool, item_log: ItemLog) -> None:
        if solved:
            body = item_log.read()
        else:
            body = (
                f"{TOOL_NAME} failed to solve this issue after "
                f"{self.solver_settings.max_retries} attempts."
            )
        best_effort(
            lambda: self.commenter.comment_issue(item.id, body),
            description=f"comment on #{item.id}",
        )

    def _progress(self, message: str) -> None:
        logger.info(message)
        if self._on_progress is not None:
            self._on_progress(message)
