"""Environment checks run before the solver or the planner touches anything."""

from __future__ import annotations

import shlex
import shutil
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Protocol

from claude_queue.integrations.git import GitError, GitRepo


class AuthProbe(Protocol):
    def auth_ok(self) -> bool: ...


@dataclass(slots=True)
class PreflightCheck:
    """One named check and its rendered verdict."""

    name: str
    ok: bool
    detail: str

    def render(self) -> str:
        return f"  {self.name} ... {self.detail}"


@dataclass(slots=True)
class PreflightResult:
    """All checks in execution order."""

    checks: list[PreflightCheck] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(check.ok for check in self.checks)

    def lines(self) -> list[str]:
        lines = [check.render() for check in self.checks]
        if not self.ok:
            lines.append("Preflight failed. Aborting.")
        return lines


def required_executables(agent_command: str) -> list[str]:
    """`gh`, the agent binary and `git`, in the order they are reported."""

    agent_argv = shlex.split(agent_command.strip())
    agent = agent_argv[0] if agent_argv else "claude"
    names = ["gh", agent, "git"]
    return list(dict.fromkeys(names))


def run_preflight(
    *,
    repo: GitRepo,
    github: AuthProbe,
    executables: Sequence[str],
    require_clean: bool = True,
    which: Callable[[str], str | None] = shutil.which,
) -> PreflightResult:
    result = PreflightResult()
    for name in executables:
        found = which(name) is not None
        result.checks.append(
            PreflightCheck(name=name, ok=found, detail="found" if found else "NOT FOUND"),
        )

    authenticated = github.auth_ok()
    result.checks.append(
        PreflightCheck(
            name="gh auth",
            ok=authenticated,
            detail="ok" if authenticated else "not authenticated",
        ),
    )

    in_repo = repo.is_work_tree()
    result.checks.append(
        PreflightCheck(
            name="git repo",
            ok=in_repo,
            detail="ok" if in_repo else "not inside a git repository",
        ),
    )

    if require_clean and in_repo:
        try:
            clean = repo.is_clean()
        except GitError:
            clean = False
        result.checks.append(
            PreflightCheck(
                name="working tree",
                ok=clean,
                detail="clean" if clean else "dirty (commit or stash changes first)",
            ),
        )
    return result
