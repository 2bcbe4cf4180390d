"""Per-item markdown log kept in the run directory."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from pathlib import Path


def item_log_path(log_dir: Path, item_id: int) -> Path:
    return log_dir / f"issue-{item_id}.md"


def attempt_transcript_path(log_dir: Path, item_id: int, attempt: int) -> Path:
    return log_dir / f"issue-{item_id}-attempt-{attempt}.log"


class ItemLog:
    """Append-only markdown document for one item."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def _append(self, text: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(text)

    def start(self, *, item_id: int, title: str, started_at: datetime) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            f"# Issue #{item_id}: {title}\n\n**Started:** {started_at:%Y-%m-%d %H:%M:%S}\n\n",
            "utf-8",
        )

    def attempt(self, index: int) -> None:
        self._append(f"## Attempt {index}\n\n")

    def note(self, text: str) -> None:
        self._append(f"**{text}**\n\n")

    def section(self, heading: str, body: str) -> None:
        self._append(f"### {heading}\n{body}\n\n")

    def changed_files(self, files: Sequence[str]) -> None:
        listing = "\n".join(f"- `{name}`" for name in files)
        self._append(f"### Changed Files\n{listing}\n\n")

    def finish(self, *, solved: bool, max_retries: int, finished_at: datetime) -> None:
        status = "SOLVED" if solved else f"FAILED after {max_retries} attempts"
        self._append(
            f"**Finished:** {finished_at:%Y-%m-%d %H:%M:%S}\n**Status:** {status}\n",
        )

    def read(self) -> str:
        if not self.path.exists():
            return ""
        return self.path.read_text("utf-8")
