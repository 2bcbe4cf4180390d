"""Thin wrappers around the external `gh` and `git` command line tools."""

from claude_queue.integrations.git import GitError, GitRepo
from claude_queue.integrations.github import GhError, GitHubClient, GitHubIssue

__all__ = [
    "GhError",
    "GitError",
    "GitHubClient",
    "GitHubIssue",
    "GitRepo",
]
