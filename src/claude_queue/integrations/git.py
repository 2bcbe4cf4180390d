"""Working tree operations through the `git` command line tool."""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path


@dataclass(slots=True)
class GitError(RuntimeError):
    """Nonzero exit from `git`."""

    cmd: list[str]
    exit_code: int
    stderr: str

    def __str__(self) -> str:
        return f"git command failed ({self.exit_code}): {' '.join(self.cmd)}\n{self.stderr.strip()}"


class GitRepo:
    """One repository checkout; every command runs with `cwd=root`."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def _run(self, args: list[str], *, check: bool = True) -> subprocess.CompletedProcess[str]:
        cmd = ["git", *args]
        proc = subprocess.run(  # noqa: S603
            cmd,
            cwd=self.root,
            text=True,
            capture_output=True,
            check=False,
        )
        if check and proc.returncode != 0:
            raise GitError(cmd=cmd, exit_code=proc.returncode, stderr=proc.stderr or "")
        return proc

    def is_work_tree(self) -> bool:
        try:
            proc = self._run(["rev-parse", "--is-inside-work-tree"], check=False)
        except OSError:
            return False
        return proc.returncode == 0 and proc.stdout.strip() == "true"

    def toplevel(self) -> Path:
        return Path(self._run(["rev-parse", "--show-toplevel"]).stdout.strip()).resolve()

    def is_clean(self) -> bool:
        return not self._run(["status", "--porcelain"]).stdout.strip()

    def head(self) -> str:
        return self._run(["rev-parse", "HEAD"]).stdout.strip()

    def reset_hard(self, ref: str) -> None:
        """Restore tracked files to `ref` and delete untracked files."""

        self._run(["reset", "--hard", ref, "--quiet"])
        self._run(["clean", "-fd", "--quiet"])

    def changed_files(self) -> list[str]:
        """Modified tracked files (staged or not) followed by untracked files."""

        tracked = self._run(["diff", "--name-only", "HEAD"]).stdout.splitlines()
        untracked = self._run(["ls-files", "--others", "--exclude-standard"]).stdout.splitlines()
        seen: set[str] = set()
        files: list[str] = []
        for name in [*tracked, *untracked]:
            name = name.strip()
            if not name or name in seen:
                continue
            seen.add(name)
            files.append(name)
        return files

    def commit_all(self, message: str) -> str:
        self._run(["add", "-A"])
        self._run(["commit", "-m", message, "--quiet"])
        return self.head()

    def branch_exists(self, branch: str) -> bool:
        proc = self._run(["show-ref", "--verify", "--quiet", f"refs/heads/{branch}"], check=False)
        return proc.returncode == 0

    def fetch(self, remote: str, ref: str) -> None:
        self._run(["fetch", remote, ref, "--quiet"])

    def checkout_new_branch(self, branch: str, start_point: str) -> None:
        self._run(["checkout", "-b", branch, start_point, "--quiet"])

    def push(self, remote: str, branch: str) -> None:
        self._run(["push", remote, branch, "--quiet"])
