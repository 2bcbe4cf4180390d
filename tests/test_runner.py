from __future__ import annotations

from datetime import datetime
from pathlib import Path

import allure

from claude_queue.agent import CliAgentBackend
from claude_queue.agent.scripted_agent import read_calls
from claude_queue.config import Settings
from claude_queue.integrations.git import GitRepo
from claude_queue.integrations.github import GitHubIssue
from claude_queue.solver.engine import AttemptEngine
from claude_queue.solver.labels import LabelStateMachine
from claude_queue.solver.models import ItemRef, RunState
from claude_queue.solver.runner import QueueRunner, branch_name

pytestmark = [
    allure.epic("Issue Solver"),
    allure.feature("Queue Driver"),
]

NOW = datetime(2026, 5, 4, 10, 11, 12)


def _runner(
    repo: Path,
    github,
    agent_command: str,
    log_dir: Path,
    on_progress=None,
) -> QueueRunner:
    settings = Settings(log_root=log_dir.parent)
    settings.agent.command = agent_command
    settings.agent.graceful_shutdown_seconds = 1
    settings.solver.max_retries = 2
    labels = LabelStateMachine(editor=github)
    backend = CliAgentBackend(command=agent_command)
    engine = AttemptEngine(
        repo=GitRepo(repo),
        labels=labels,
        agent=backend,
        commenter=github,
        solver_settings=settings.solver,
        agent_settings=settings.agent,
        log_dir=log_dir,
    )
    return QueueRunner(
        repo=GitRepo(repo),
        github=github,
        labels=labels,
        engine=engine,
        agent=backend,
        settings=settings,
        on_progress=on_progress,
        clock=lambda: NOW,
    )


def test_branch_name_adds_time_suffix_when_taken() -> None:
    assert branch_name(NOW, lambda _name: False) == "claude-queue/2026-05-04"
    assert branch_name(NOW, lambda _name: True) == "claude-queue/2026-05-04-101112"


def test_full_run_skips_claimed_solves_fails_reviews_and_opens_pr(
    tmp_path: Path,
    git_repo: Path,
    make_fake_github,
    scripted_agent,
    agent_command: str,
    run_git,
) -> None:
    github = make_fake_github(
        [
            GitHubIssue(number=1, title="Fix login bug"),
            GitHubIssue(number=2, title="Old work", labels=["claude-queue:solved"]),
            GitHubIssue(number=3, title="Impossible"),
        ],
    )
    script = scripted_agent(
        {
            "write": {"app.py": "def login(user):\n    return user.ok\n"},
            "output": "CLAUDE_QUEUE_SUMMARY\nChecked the user flag.",
        },
        {"exit_code": 1},
        {"exit_code": 1},
        {
            "write": {"README.md": "# widgets\n\nLogin fixed.\n"},
            "output": "CLAUDE_QUEUE_REVIEW\nTidy.",
        },
    )
    log_dir = tmp_path / "logs" / "claude-queue-run"
    runner = _runner(git_repo, github, agent_command, log_dir)

    runner.ensure_labels()
    setup = runner.setup_branch()
    state = RunState(branch=setup.branch, log_dir=log_dir, started_at=NOW.timestamp() - 65)
    outcome = runner.run(state)

    assert setup.branch == "claude-queue/2026-05-04"
    assert run_git(git_repo, "rev-parse", "--abbrev-ref", "HEAD") == setup.branch
    assert [spec.name for spec in github.ensured] == [
        "claude-queue:in-progress",
        "claude-queue:solved",
        "claude-queue:failed",
    ]
    assert state.solved == [ItemRef(id=1, title="Fix login bug")]
    assert state.failed == [ItemRef(id=3, title="Impossible")]
    assert state.skipped == [ItemRef(id=2, title="Old work")]
    assert all(event[0] != 2 for event in github.label_events)
    assert len(read_calls(script)) == 4

    assert outcome.review_committed
    subjects = run_git(git_repo, "log", "--format=%s", "origin/main..HEAD").splitlines()
    assert subjects == ["chore: final review pass", "fix: resolve #1 - Fix login bug"]
    assert (log_dir / "review.md").exists()

    assert outcome.pr_url == "https://github.com/acme/widgets/pull/1"
    pull_request = github.pull_requests[0]
    assert pull_request["base"] == "main"
    assert pull_request["head"] == setup.branch
    assert pull_request["title"] == "claude-queue: Automated fixes (2026-05-04)"
    assert "| Duration | 0h 1m 5s |" in pull_request["body"]
    assert "<summary>Issue #1 Log</summary>" in pull_request["body"]
    assert run_git(git_repo, "ls-remote", "origin", setup.branch) != ""


def test_nothing_solved_means_no_review_and_no_pr(
    tmp_path: Path,
    git_repo: Path,
    make_fake_github,
    scripted_agent,
    agent_command: str,
) -> None:
    github = make_fake_github([GitHubIssue(number=5, title="Nope")])
    script = scripted_agent({"output": "no idea"}, {"output": "still no idea"})
    log_dir = tmp_path / "logs" / "run"
    lines: list[str] = []
    runner = _runner(git_repo, github, agent_command, log_dir, on_progress=lines.append)

    outcome = runner.run(RunState(branch="claude-queue/x", log_dir=log_dir))

    assert len(read_calls(script)) == 2
    assert outcome.pr_url is None
    assert not outcome.review_committed
    assert github.pull_requests == []
    assert "No issues were solved. No PR created." in lines
    assert outcome.report_path == log_dir / "pr-body.md"


def test_empty_queue(tmp_path: Path, git_repo: Path, fake_github, agent_command: str) -> None:
    lines: list[str] = []
    log_dir = tmp_path / "logs" / "run"
    runner = _runner(git_repo, fake_github, agent_command, log_dir, on_progress=lines.append)

    outcome = runner.run(RunState(branch="b", log_dir=log_dir))

    assert lines == ["No open issues found. Going back to sleep."]
    assert outcome.report_path is None


def test_label_failure_on_one_item_does_not_stop_the_queue(
    tmp_path: Path,
    git_repo: Path,
    make_fake_github,
    scripted_agent,
    agent_command: str,
) -> None:
    github = make_fake_github([GitHubIssue(number=1, title="Blocked")])
    github.fail_label_edits = True
    script = scripted_agent()
    log_dir = tmp_path / "logs" / "run"
    runner = _runner(git_repo, github, agent_command, log_dir)
    state = RunState(branch="b", log_dir=log_dir)

    runner.run(state)

    assert state.failed == [ItemRef(id=1, title="Blocked")]
    assert state.current_item is None
    assert read_calls(script) == []


def test_commit_rejected_mid_item_rolls_back_before_next_commit(
    tmp_path: Path,
    git_repo: Path,
    make_fake_github,
    scripted_agent,
    agent_command: str,
    run_git,
) -> None:
    hook = git_repo / ".git" / "hooks" / "pre-commit"
    hook.write_text(
        "#!/bin/sh\n"
        "if git diff --cached --name-only | grep -q README.md; then\n"
        "  echo 'README is frozen' >&2\n"
        "  exit 1\n"
        "fi\n",
        "utf-8",
    )
    hook.chmod(0o755)
    github = make_fake_github(
        [GitHubIssue(number=1, title="One"), GitHubIssue(number=2, title="Two")],
    )
    script = scripted_agent(
        {
            "write": {"app.py": "def login(user):\n    return user.ok\n"},
            "output": "CLAUDE_QUEUE_SUMMARY\nFixed login.",
        },
        {
            "write": {"README.md": "PARTIAL WORK FROM #2\n", "notes.txt": "scratch\n"},
            "output": "CLAUDE_QUEUE_SUMMARY\nUpdated docs.",
        },
        {"output": "CLAUDE_QUEUE_REVIEW\nNothing to fix."},
    )
    log_dir = tmp_path / "logs" / "run"
    runner = _runner(git_repo, github, agent_command, log_dir)
    state = RunState(branch="b", log_dir=log_dir)

    outcome = runner.run(state)

    assert state.solved == [ItemRef(id=1, title="One")]
    assert state.failed == [ItemRef(id=2, title="Two")]
    assert state.current_item is None
    assert github.labels[2] == {"claude-queue:failed"}
    assert len(read_calls(script)) == 3
    assert not outcome.review_committed
    assert run_git(git_repo, "log", "-1", "--format=%s") == "fix: resolve #1 - One"
    assert run_git(git_repo, "show", "HEAD:README.md") == "# widgets"
    assert run_git(git_repo, "status", "--porcelain") == ""
