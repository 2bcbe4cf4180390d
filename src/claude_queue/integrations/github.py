"""GitHub access through the `gh` command line tool."""

from __future__ import annotations

import json
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


@dataclass(slots=True)
class GhError(RuntimeError):
    """Nonzero exit or unreadable output from `gh`."""

    cmd: list[str]
    exit_code: int
    stdout: str
    stderr: str

    def __str__(self) -> str:
        return (
            f"GitHub CLI command failed ({self.exit_code}): {' '.join(self.cmd)}\n"
            f"stderr: {self.stderr.strip()}"
        )


@dataclass(slots=True)
class GitHubIssue:
    """Open issue as returned by `gh issue list`."""

    number: int
    title: str
    body: str = ""
    labels: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class LabelSpec:
    """Label definition pushed with `gh label create --force`."""

    name: str
    color: str
    description: str


class GitHubClient:
    """Runs `gh` subcommands inside one repository checkout."""

    def __init__(self, repo_root: Path | None = None) -> None:
        self.repo_root = repo_root

    def _run(self, args: list[str]) -> str:
        cmd = ["gh", *args]
        proc = subprocess.run(  # noqa: S603
            cmd,
            cwd=self.repo_root,
            text=True,
            capture_output=True,
            check=False,
        )
        if proc.returncode != 0:
            raise GhError(
                cmd=cmd,
                exit_code=proc.returncode,
                stdout=proc.stdout or "",
                stderr=proc.stderr or "",
            )
        return proc.stdout or ""

    def gh_json(self, args: list[str]) -> Any:
        raw = self._run(args)
        if not raw.strip():
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise GhError(["gh", *args], 1, raw, f"Invalid JSON from gh: {exc}") from exc

    def auth_ok(self) -> bool:
        try:
            self._run(["auth", "status"])
        except (GhError, OSError):
            return False
        return True

    def default_branch(self) -> str:
        data = self.gh_json(["repo", "view", "--json", "defaultBranchRef"])
        if not isinstance(data, dict):
            raise GhError(["gh", "repo", "view"], 1, str(data), "Unexpected repo payload")
        name = (data.get("defaultBranchRef") or {}).get("name")
        if not name:
            raise GhError(["gh", "repo", "view"], 1, str(data), "Default branch not reported")
        return str(name)

    def list_open_issues(self, *, label: str | None = None, limit: int = 200) -> list[GitHubIssue]:
        args = [
            "issue",
            "list",
            "--state",
            "open",
            "--json",
            "number,title,body,labels",
            "--limit",
            str(limit),
        ]
        if label:
            args.extend(["--label", label])
        data = self.gh_json(args)
        if not isinstance(data, list):
            return []
        issues: list[GitHubIssue] = []
        for entry in data:
            if not isinstance(entry, dict):
                continue
            issues.append(
                GitHubIssue(
                    number=int(entry["number"]),
                    title=str(entry.get("title") or ""),
                    body=str(entry.get("body") or ""),
                    labels=[
                        str(label_entry["name"])
                        for label_entry in entry.get("labels") or []
                        if isinstance(label_entry, dict) and label_entry.get("name")
                    ],
                ),
            )
        return issues

    def edit_issue_labels(
        self,
        issue_id: int,
        *,
        add: Sequence[str] = (),
        remove: Sequence[str] = (),
    ) -> None:
        if not add and not remove:
            return
        args = ["issue", "edit", str(issue_id)]
        for name in remove:
            args.extend(["--remove-label", name])
        for name in add:
            args.extend(["--add-label", name])
        self._run(args)

    def comment_issue(self, issue_id: int, body: str) -> None:
        self._run(["issue", "comment", str(issue_id), "--body", body])

    def ensure_labels(self, labels: Sequence[LabelSpec]) -> None:
        for spec in labels:
            self._run(
                [
                    "label",
                    "create",
                    spec.name,
                    "--color",
                    spec.color,
                    "--description",
                    spec.description,
                    "--force",
                ],
            )

    def list_labels(self) -> list[str]:
        data = self.gh_json(["label", "list", "--json", "name", "--limit", "500"])
        if not isinstance(data, list):
            return []
        return [
            str(entry["name"]) for entry in data if isinstance(entry, dict) and entry.get("name")
        ]

    def create_issue(self, *, title: str, body: str, labels: Sequence[str] = ()) -> str:
        args = ["issue", "create", "--title", title, "--body", body]
        for name in labels:
            args.extend(["--label", name])
        return self._run(args).strip()

    def create_pr(self, *, base: str, head: str, title: str, body_file: Path) -> str:
        return self._run(
            [
                "pr",
                "create",
                "--base",
                base,
                "--head",
                head,
                "--title",
                title,
                "--body-file",
                str(body_file),
            ],
        ).strip()
