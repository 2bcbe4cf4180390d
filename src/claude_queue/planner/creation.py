"""Preview and creation of planned issues."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Protocol

from claude_queue.integrations.github import GhError
from claude_queue.planner.models import PlannedIssue

logger = logging.getLogger(__name__)


class IssueCreator(Protocol):
    def create_issue(self, *, title: str, body: str, labels: Sequence[str] = ()) -> str: ...


@dataclass(slots=True)
class CreationResult:
    """URLs of created issues and the issues whose creation failed."""

    created: list[str] = field(default_factory=list)
    failed: list[tuple[PlannedIssue, str]] = field(default_factory=list)


def render_preview(issues: Sequence[PlannedIssue]) -> list[str]:
    lines = ["Issue Preview", ""]
    for index, issue in enumerate(issues, start=1):
        lines.append(f"  {index}. {issue.title}")
        if issue.labels:
            lines.append(f"     Labels: {', '.join(issue.labels)}")
        lines.append(f"     {issue.first_body_line}")
        lines.append("")
    return lines


def issue_labels(issue: PlannedIssue, extra_label: str | None) -> list[str]:
    labels = list(dict.fromkeys(issue.labels))
    if extra_label and extra_label not in labels:
        labels.append(extra_label)
    return labels


def create_issues(
    issues: Sequence[PlannedIssue],
    *,
    creator: IssueCreator,
    extra_label: str | None = None,
    on_progress: Callable[[str], None] | None = None,
) -> CreationResult:
    """Create issues one by one; a failure is recorded and the batch continues."""

    emit = on_progress or (lambda _line: None)
    result = CreationResult()
    for issue in issues:
        try:
            url = creator.create_issue(
                title=issue.title,
                body=issue.body,
                labels=issue_labels(issue, extra_label),
            )
        except (GhError, OSError) as error:
            logger.error("issue creation failed title=%r: %s", issue.title, error)
            emit(f"Failed to create: {issue.title} ({error})")
            result.failed.append((issue, str(error)))
            continue
        emit(f"Created: {url}")
        result.created.append(url)
    emit(f"Created {len(result.created)} issue(s)")
    if result.failed:
        emit(f"Failed to create {len(result.failed)} issue(s)")
    return result
