"""Label-based status tracking for queue items.

Transitions::

    unclaimed -> in_progress -> solved | failed
    (any queue-owned label at scan time) -> skipped

Normal transitions are fail-fast and raise `GhError`. The interrupt path uses
`demote_best_effort`, which never raises.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Protocol

from claude_queue.integrations.github import LabelSpec
from claude_queue.solver.models import ItemStatus, WorkItem

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "claude-queue"


class LabelEditor(Protocol):
    """Subset of the GitHub client the state machine needs."""

    def edit_issue_labels(
        self,
        issue_id: int,
        *,
        add: Iterable[str] = (),
        remove: Iterable[str] = (),
    ) -> None: ...


@dataclass(frozen=True, slots=True)
class LabelVocabulary:
    """Queue-owned labels within one namespace."""

    namespace: str = DEFAULT_NAMESPACE

    @property
    def in_progress(self) -> str:
        return f"{self.namespace}:in-progress"

    @property
    def solved(self) -> str:
        return f"{self.namespace}:solved"

    @property
    def failed(self) -> str:
        return f"{self.namespace}:failed"

    def owns(self, label: str) -> bool:
        return label.startswith(f"{self.namespace}:")

    def label_specs(self) -> list[LabelSpec]:
        return [
            LabelSpec(self.in_progress, "fbca04", f"{self.namespace} is working on this"),
            LabelSpec(self.solved, "0e8a16", f"Solved by {self.namespace}"),
            LabelSpec(self.failed, "d93f0b", f"{self.namespace} could not solve this"),
        ]


@dataclass(frozen=True, slots=True)
class BestEffortResult:
    """Outcome of a cleanup call that must not raise."""

    ok: bool
    error: str | None = None


def derive_status(labels: Iterable[str], vocabulary: LabelVocabulary) -> ItemStatus:
    """Status implied by an item's labels at fetch time."""

    label_set = set(labels)
    if vocabulary.in_progress in label_set:
        return ItemStatus.IN_PROGRESS
    if vocabulary.solved in label_set:
        return ItemStatus.SOLVED
    if vocabulary.failed in label_set:
        return ItemStatus.FAILED
    if any(vocabulary.owns(label) for label in label_set):
        return ItemStatus.SKIPPED
    return ItemStatus.UNCLAIMED


def is_claimed(labels: Iterable[str], vocabulary: LabelVocabulary) -> bool:
    """True when any queue-owned label is present; such items are never processed."""

    return any(vocabulary.owns(label) for label in labels)


def best_effort(action: Callable[[], object], *, description: str) -> BestEffortResult:
    try:
        action()
    except (RuntimeError, OSError, ValueError) as error:
        logger.warning("best-effort %s failed: %s", description, error)
        return BestEffortResult(ok=False, error=str(error))
    return BestEffortResult(ok=True)


class LabelStateMachine:
    """Applies queue status transitions through label edits."""

    def __init__(self, *, editor: LabelEditor, vocabulary: LabelVocabulary | None = None) -> None:
        self.editor = editor
        self.vocabulary = vocabulary or LabelVocabulary()

    def skip(self, item: WorkItem) -> None:
        """Terminal without ever entering `in_progress`; labels are left untouched."""

        item.status = ItemStatus.SKIPPED

    def claim(self, item: WorkItem) -> None:
        """Enter `in_progress`, clearing stale terminal labels from an earlier run."""

        if item.status is ItemStatus.IN_PROGRESS:
            raise ValueError(f"Item #{item.id} is already in progress")
        stale = [self.vocabulary.solved, self.vocabulary.failed]
        best_effort(
            lambda: self.editor.edit_issue_labels(item.id, remove=stale),
            description=f"stale label removal on #{item.id}",
        )
        item.labels.difference_update(stale)
        self.editor.edit_issue_labels(item.id, add=[self.vocabulary.in_progress])
        item.labels.add(self.vocabulary.in_progress)
        item.status = ItemStatus.IN_PROGRESS

    def resolve(self, item: WorkItem, *, solved: bool) -> None:
        """Leave `in_progress` for exactly one terminal label."""

        if item.status is not ItemStatus.IN_PROGRESS:
            raise ValueError(f"Item #{item.id} is not in progress: {item.status.value}")
        self.editor.edit_issue_labels(item.id, remove=[self.vocabulary.in_progress])
        item.labels.discard(self.vocabulary.in_progress)
        terminal = self.vocabulary.solved if solved else self.vocabulary.failed
        self.editor.edit_issue_labels(item.id, add=[terminal])
        item.labels.add(terminal)
        item.status = ItemStatus.SOLVED if solved else ItemStatus.FAILED

    def demote_best_effort(self, item_id: int) -> BestEffortResult:
        """Move an interrupted item from `in_progress` to `failed` without raising."""

        removed = best_effort(
            lambda: self.editor.edit_issue_labels(item_id, remove=[self.vocabulary.in_progress]),
            description=f"in-progress label removal on #{item_id}",
        )
        added = best_effort(
            lambda: self.editor.edit_issue_labels(item_id, add=[self.vocabulary.failed]),
            description=f"failed label on #{item_id}",
        )
        if removed.ok and added.ok:
            return BestEffortResult(ok=True)
        return BestEffortResult(ok=False, error=removed.error or added.error)
