"""Prompt templates sent to the coding agent by the solver."""

from __future__ import annotations

from pathlib import Path

from claude_queue.solver.classifier import NO_CODE_MARKER, REVIEW_MARKER, SUMMARY_MARKER

TOOL_NAME = "claude-queue"

SOLVE_PROMPT = """\
You are an automated assistant solving a GitHub issue in this repository.

First, read the full issue details by running:
  gh issue view {issue_number}

Then:
1. Explore the codebase to understand the project structure and conventions
2. Implement a complete, correct fix for the issue
3. Run any existing tests to verify your fix doesn't break anything
4. If tests fail because of your changes, fix them

Rules:
- Do NOT create any git commits
- Do NOT push anything
- Match the existing code style exactly
- Only change what is necessary to solve the issue
{custom_instructions}
If this issue does NOT require code changes (e.g. it's a question, a request for external action,
a finding, or something that can't be solved with code), output a line that says {no_code_marker}
followed by an explanation of what needs to be done instead.

Otherwise, when you are done, output a line that says {summary_marker} followed by a 2-3 sentence
description of what you changed and why."""

REVIEW_PROMPT = f"""\
You are doing a final review pass on automated code changes in this repository.

Look at all uncommitted and recently committed changes on this branch. For each file that was modified:
1. Read the full file
2. Check for bugs, incomplete implementations, lazy code, missed edge cases, or style inconsistencies
3. Fix anything you find

Rules:
- Do NOT create any git commits
- Do NOT push anything
- Only fix real problems, don't refactor for style preferences
- Match the existing code style exactly

When you are done, output a line that says {REVIEW_MARKER} followed by a brief summary of what you fixed. If nothing needed fixing, say so."""


def load_project_instructions(repo_root: Path, filename: str) -> str | None:
    """Contents of the optional repo-local instruction file, verbatim."""

    path = repo_root / filename
    if not path.is_file():
        return None
    text = path.read_text("utf-8")
    return text if text.strip() else None


def build_solve_prompt(*, issue_number: int, project_instructions: str | None = None) -> str:
    custom = ""
    if project_instructions:
        custom = f"\nAdditional project-specific instructions:\n{project_instructions}"
    return SOLVE_PROMPT.format(
        issue_number=issue_number,
        custom_instructions=custom,
        no_code_marker=NO_CODE_MARKER,
        summary_marker=SUMMARY_MARKER,
    )


def build_commit_message(*, issue_number: int, title: str, tool_name: str) -> str:
    return (
        f"fix: resolve #{issue_number} - {title}\n\n"
        f"Automated fix by {tool_name}.\n"
        f"Closes #{issue_number}"
    )


def build_review_commit_message(*, tool_name: str) -> str:
    return f"chore: final review pass\n\nAutomated review and fixes by {tool_name}."
