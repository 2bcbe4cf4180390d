"""Queue driver: fetch, filter, process, review and publish."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Protocol

from claude_queue.agent.base import AgentRunRequest
from claude_queue.agent.cli_backend import AgentRunError
from claude_queue.config import Settings
from claude_queue.integrations.git import GitError, GitRepo
from claude_queue.integrations.github import GhError, GitHubIssue, LabelSpec
from claude_queue.solver.engine import AgentRunner, AttemptEngine
from claude_queue.solver.interrupts import RunInterrupted
from claude_queue.solver.labels import LabelStateMachine, derive_status, is_claimed
from claude_queue.solver.models import ItemStatus, RunState, WorkItem
from claude_queue.solver.prompts import REVIEW_PROMPT, TOOL_NAME, build_review_commit_message
from claude_queue.solver.report import build_run_report, cap_report

logger = logging.getLogger(__name__)

REMOTE = "origin"
REPORT_FILENAME = "pr-body.md"
REVIEW_TRANSCRIPT_FILENAME = "review.md"


class QueueGitHub(Protocol):
    """GitHub operations the queue driver uses directly."""

    def default_branch(self) -> str: ...

    def ensure_labels(self, labels: Sequence[LabelSpec]) -> None: ...

    def list_open_issues(
        self,
        *,
        label: str | None = None,
        limit: int = 200,
    ) -> list[GitHubIssue]: ...

    def create_pr(self, *, base: str, head: str, title: str, body_file: Path) -> str: ...


@dataclass(slots=True)
class BranchSetup:
    """Working branch created for one run."""

    branch: str
    base: str


@dataclass(slots=True)
class RunOutcome:
    """What a drained queue produced."""

    run_state: RunState
    report_path: Path | None = None
    pr_url: str | None = None
    review_committed: bool = False


def branch_name(now: datetime, exists: Callable[[str], bool], *, prefix: str = TOOL_NAME) -> str:
    """`<prefix>/<date>`, or `<prefix>/<date>-<HHMMSS>` when that branch already exists."""

    branch = f"{prefix}/{now:%Y-%m-%d}"
    if exists(branch):
        branch = f"{branch}-{now:%H%M%S}"
    return branch


class QueueRunner:
    """Processes every open item sequentially on one working branch."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        repo: GitRepo,
        github: QueueGitHub,
        labels: LabelStateMachine,
        engine: AttemptEngine,
        agent: AgentRunner,
        settings: Settings,
        stop_requested: Callable[[], bool] | None = None,
        on_progress: Callable[[str], None] | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.repo = repo
        self.github = github
        self.labels = labels
        self.engine = engine
        self.agent = agent
        self.settings = settings
        self._stop_requested = stop_requested or (lambda: False)
        self._on_progress = on_progress
        self._clock = clock
        self._base_branch: str | None = None

    def ensure_labels(self) -> None:
        self.github.ensure_labels(self.labels.vocabulary.label_specs())

    def setup_branch(self) -> BranchSetup:
        base = self.github.default_branch()
        now = self._clock()
        dated = f"{TOOL_NAME}/{now:%Y-%m-%d}"
        branch = branch_name(now, self.repo.branch_exists)
        if branch != dated:
            self._progress(f"Branch {dated} already exists, adding timestamp suffix")
        self.repo.fetch(REMOTE, base)
        self.repo.checkout_new_branch(branch, f"{REMOTE}/{base}")
        self._base_branch = base
        self._progress(f"Created branch: {branch}")
        return BranchSetup(branch=branch, base=base)

    def fetch_items(self) -> list[WorkItem]:
        vocabulary = self.labels.vocabulary
        issues = self.github.list_open_issues(
            label=self.settings.solver.issue_filter,
            limit=self.settings.solver.issue_limit,
        )
        return [
            WorkItem(
                id=issue.number,
                title=issue.title,
                body=issue.body,
                status=derive_status(issue.labels, vocabulary),
                labels=set(issue.labels),
            )
            for issue in issues
        ]

    def run(self, run_state: RunState) -> RunOutcome:
        """Drain the queue. Raises `RunInterrupted` on a stop request."""

        outcome = RunOutcome(run_state=run_state)
        items = self.fetch_items()
        if not items:
            self._progress("No open issues found. Going back to sleep.")
            return outcome
        self._progress(f"Found {len(items)} open issue(s)")

        for item in items:
            if self._stop_requested():
                raise RunInterrupted()
            if is_claimed(item.labels, self.labels.vocabulary):
                self._progress(
                    f"Skipping #{item.id} (already has a {self.labels.vocabulary.namespace} label)",
                )
                self.labels.skip(item)
                run_state.record(item)
                continue
            try:
                self.engine.process(item, run_state)
            except (GhError, GitError) as error:
                self._abandon(item, run_state, error)

        if run_state.solved and self.settings.solver.review_pass:
            outcome.review_committed = self.review()

        outcome.report_path = self.write_report(run_state)
        if not run_state.solved:
            self._progress("No issues were solved. No PR created.")
        elif self.settings.solver.create_pr:
            outcome.pr_url = self.publish(run_state, outcome.report_path)
        return outcome

    def review(self) -> bool:
        """One agent pass over the branch; True when it left changes that were committed."""

        self._progress("Final Review & Fix Pass")
        log_dir = self.engine.log_dir
        request = AgentRunRequest(
            prompt=REVIEW_PROMPT,
            transcript_path=log_dir / REVIEW_TRANSCRIPT_FILENAME,
            cwd=self.repo.root,
            max_turns=self.settings.solver.max_turns,
            model=self.settings.agent.model,
            timeout_seconds=self.settings.solver.attempt_timeout_seconds,
            shutdown_requested=self._stop_requested,
            graceful_shutdown_seconds=self.settings.agent.graceful_shutdown_seconds,
        )
        try:
            result = self.agent.run(request)
        except AgentRunError as error:
            logger.warning("review pass could not start: %s", error)
            self._progress(f"Review pass skipped: {error}")
            return False
        if result.interrupted or self._stop_requested():
            raise RunInterrupted()

        changed = self.repo.changed_files()
        if not changed:
            self._progress("Review pass found nothing to fix")
            return False
        self._progress("Review pass made fixes:")
        for name in changed:
            self._progress(f"  {name}")
        self.repo.commit_all(build_review_commit_message(tool_name=TOOL_NAME))
        return True

    def write_report(self, run_state: RunState) -> Path:
        solver = self.settings.solver
        started = datetime.fromtimestamp(run_state.started_at)
        report = build_run_report(
            run_state,
            date=f"{started:%Y-%m-%d}",
            duration_seconds=self._clock().timestamp() - run_state.started_at,
            item_max_bytes=solver.report_item_max_bytes,
        )
        size = len(report.encode("utf-8"))
        if size > solver.report_max_bytes:
            self._progress(f"PR body is {size} bytes, truncating to fit GitHub limits")
            report = cap_report(
                report,
                max_bytes=solver.report_max_bytes,
                log_dir=run_state.log_dir,
            )
        path = run_state.log_dir / REPORT_FILENAME
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(report, "utf-8")
        return path

    def publish(self, run_state: RunState, report_path: Path) -> str:
        base = self._base_branch or self.github.default_branch()
        self.repo.push(REMOTE, run_state.branch)
        self._progress("Pushed branch to origin")
        started = datetime.fromtimestamp(run_state.started_at)
        pr_url = self.github.create_pr(
            base=base,
            head=run_state.branch,
            title=f"{TOOL_NAME}: Automated fixes ({started:%Y-%m-%d})",
            body_file=report_path,
        )
        self._progress(f"Pull request created: {pr_url}")
        return pr_url

    def _abandon(self, item: WorkItem, run_state: RunState, error: Exception) -> None:
        logger.error("issue #%s aborted: %s", item.id, error)
        self._progress(f"Issue #{item.id} aborted: {error}")
        in_flight = run_state.current_item_slot().take()
        if in_flight is not None:
            self.labels.demote_best_effort(in_flight)
        if item.status not in (ItemStatus.SOLVED, ItemStatus.FAILED):
            item.status = ItemStatus.FAILED
            run_state.record(item)

    def _progress(self, message: str) -> None:
        logger.info(message)
        if self._on_progress is not None:
            self._on_progress(message)
