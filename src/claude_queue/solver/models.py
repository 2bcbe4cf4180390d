"""Domain models for the issue queue."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class ItemStatus(str, Enum):
    """Queue lifecycle of one work item, derived from its labels."""

    UNCLAIMED = "unclaimed"
    IN_PROGRESS = "in_progress"
    SOLVED = "solved"
    FAILED = "failed"
    SKIPPED = "skipped"


class AttemptOutcome(str, Enum):
    """Classification of one agent attempt."""

    SUCCESS = "success"
    NO_CHANGES = "no_changes"
    NO_CODE_REQUIRED = "no_code_required"
    PROCESS_ERROR = "process_error"

    @property
    def solves(self) -> bool:
        return self in (AttemptOutcome.SUCCESS, AttemptOutcome.NO_CODE_REQUIRED)


@dataclass(slots=True)
class WorkItem:
    """One tracked issue."""

    id: int
    title: str
    body: str = ""
    status: ItemStatus = ItemStatus.UNCLAIMED
    labels: set[str] = field(default_factory=set)


@dataclass(frozen=True, slots=True)
class Checkpoint:
    """Commit captured before the first attempt on one item."""

    item_id: int
    sha: str


@dataclass(frozen=True, slots=True)
class Attempt:
    """Classified result of one loop iteration."""

    index: int
    transcript_path: Path
    outcome: AttemptOutcome
    exit_code: int | None = None
    summary: str | None = None
    changed_files: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ItemRef:
    """(id, title) pair recorded in run outcome lists."""

    id: int
    title: str


class CurrentItemSlot:
    """Read/write access to `RunState.current_item` and nothing else."""

    def __init__(self, state: RunState) -> None:
        self._state = state

    def take(self) -> int | None:
        """Return the item in flight and clear it in one step."""

        item_id = self._state.current_item
        self._state.current_item = None
        return item_id


@dataclass(slots=True)
class RunState:
    """Outcome bookkeeping for one solve invocation."""

    branch: str
    log_dir: Path
    started_at: float = field(default_factory=time.time)
    solved: list[ItemRef] = field(default_factory=list)
    failed: list[ItemRef] = field(default_factory=list)
    skipped: list[ItemRef] = field(default_factory=list)
    current_item: int | None = None

    @property
    def processed(self) -> int:
        return len(self.solved) + len(self.failed)

    def current_item_slot(self) -> CurrentItemSlot:
        return CurrentItemSlot(self)

    def record(self, item: WorkItem) -> None:
        """Append an item in a terminal state to its outcome list."""

        ref = ItemRef(id=item.id, title=item.title)
        if item.status is ItemStatus.SOLVED:
            self.solved.append(ref)
        elif item.status is ItemStatus.FAILED:
            self.failed.append(ref)
        elif item.status is ItemStatus.SKIPPED:
            self.skipped.append(ref)
        else:
            raise ValueError(f"Item #{item.id} is not in a terminal state: {item.status.value}")
