"""Shared test fixtures."""

from __future__ import annotations

import json
import subprocess
import sys
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path

import pytest

from claude_queue.agent.scripted_agent import SCRIPT_ENV
from claude_queue.integrations.github import GhError, GitHubIssue, LabelSpec

SCRIPTED_AGENT_COMMAND = f"{sys.executable} -m claude_queue.agent.scripted_agent"


def git(repo: Path, *args: str) -> str:
    proc = subprocess.run(
        ["git", *args],
        cwd=repo,
        text=True,
        capture_output=True,
        check=True,
    )
    return proc.stdout.strip()


class FakeGitHub:
    """In-memory stand-in for `GitHubClient` that records every mutation."""

    def __init__(self, issues: Iterable[GitHubIssue] = ()) -> None:
        self.issues = list(issues)
        self.labels: dict[int, set[str]] = {
            issue.number: set(issue.labels) for issue in self.issues
        }
        self.label_events: list[tuple[int, tuple[str, ...], tuple[str, ...]]] = []
        self.comments: list[tuple[int, str]] = []
        self.ensured: list[LabelSpec] = []
        self.created_issues: list[dict[str, object]] = []
        self.pull_requests: list[dict[str, object]] = []
        self.repo_labels = ["bug", "enhancement"]
        self.authenticated = True
        self.fail_label_edits = False
        self.fail_create_titles: set[str] = set()

    def _error(self, *args: str) -> GhError:
        return GhError(cmd=["gh", *args], exit_code=1, stdout="", stderr="network down")

    def auth_ok(self) -> bool:
        return self.authenticated

    def default_branch(self) -> str:
        return "main"

    def list_open_issues(self, *, label: str | None = None, limit: int = 200) -> list[GitHubIssue]:
        selected = [
            GitHubIssue(
                number=issue.number,
                title=issue.title,
                body=issue.body,
                labels=sorted(self.labels.get(issue.number, set())),
            )
            for issue in self.issues
            if label is None or label in self.labels.get(issue.number, set())
        ]
        return selected[:limit]

    def edit_issue_labels(
        self,
        issue_id: int,
        *,
        add: Sequence[str] = (),
        remove: Sequence[str] = (),
    ) -> None:
        if self.fail_label_edits:
            raise self._error("issue", "edit", str(issue_id))
        self.label_events.append((issue_id, tuple(add), tuple(remove)))
        current = self.labels.setdefault(issue_id, set())
        current.difference_update(remove)
        current.update(add)

    def comment_issue(self, issue_id: int, body: str) -> None:
        self.comments.append((issue_id, body))

    def ensure_labels(self, labels: Sequence[LabelSpec]) -> None:
        self.ensured.extend(labels)

    def list_labels(self) -> list[str]:
        return list(self.repo_labels)

    def create_issue(self, *, title: str, body: str, labels: Sequence[str] = ()) -> str:
        if title in self.fail_create_titles:
            raise self._error("issue", "create", "--title", title)
        self.created_issues.append({"title": title, "body": body, "labels": list(labels)})
        return f"https://github.com/acme/widgets/issues/{100 + len(self.created_issues)}"

    def create_pr(self, *, base: str, head: str, title: str, body_file: Path) -> str:
        self.pull_requests.append(
            {"base": base, "head": head, "title": title, "body": body_file.read_text("utf-8")},
        )
        return "https://github.com/acme/widgets/pull/1"


@pytest.fixture()
def fake_github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture()
def make_fake_github() -> Callable[..., FakeGitHub]:
    return FakeGitHub


@pytest.fixture()
def git_repo(tmp_path: Path) -> Path:
    """Repository with one commit on `main` and an `origin` bare remote."""

    remote = tmp_path / "origin.git"
    subprocess.run(
        ["git", "init", "--bare", "--quiet", "-b", "main", str(remote)],
        check=True,
        capture_output=True,
    )
    repo = tmp_path / "repo"
    repo.mkdir()
    git(repo, "init", "--quiet", "-b", "main")
    git(repo, "config", "user.email", "queue@example.com")
    git(repo, "config", "user.name", "Queue Tests")
    git(repo, "config", "commit.gpgsign", "false")
    (repo / "app.py").write_text("def login(user):\n    return False\n", "utf-8")
    (repo / "README.md").write_text("# widgets\n", "utf-8")
    git(repo, "add", "-A")
    git(repo, "commit", "--quiet", "-m", "initial")
    git(repo, "remote", "add", "origin", str(remote))
    git(repo, "push", "--quiet", "origin", "main")
    return repo


@pytest.fixture()
def scripted_agent(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Callable[..., Path]:
    """Write a step script for the scripted agent and point the agent env at it.

    Returns a function taking the step dicts and returning the script path.
    """

    agent_dir = tmp_path / "agent"
    agent_dir.mkdir()

    def _write(*steps: dict[str, object]) -> Path:
        script = agent_dir / "script.json"
        script.write_text(json.dumps({"steps": list(steps)}), "utf-8")
        monkeypatch.setenv(SCRIPT_ENV, str(script))
        return script

    return _write


@pytest.fixture()
def agent_command() -> str:
    return SCRIPTED_AGENT_COMMAND


@pytest.fixture()
def run_git() -> Callable[..., str]:
    return git
