"""Markdown run summary used as the pull request body."""

from __future__ import annotations

import re
from collections.abc import Sequence
from pathlib import Path

from claude_queue.solver.models import ItemRef, RunState

TRUNCATION_NOTICE = "\n\n---\n*Log truncated. Full logs available at: {log_dir}*\n"

_ITEM_LOG_RE = re.compile(r"^issue-(\d+)\.md$")


def format_duration(seconds: float) -> str:
    """`Xh Ym Zs`, the layout used in completion lines and the report."""

    elapsed = max(0, int(seconds))
    return f"{elapsed // 3600}h {(elapsed % 3600) // 60}m {elapsed % 60}s"


def _truncate_bytes(text: str, max_bytes: int) -> str:
    encoded = text.encode("utf-8")
    if len(encoded) <= max_bytes:
        return text
    return encoded[:max_bytes].decode("utf-8", errors="ignore")


def _item_table(title: str, items: Sequence[ItemRef]) -> list[str]:
    if not items:
        return []
    lines = [f"### {title}", "", "| Issue | Title |", "|-------|-------|"]
    lines.extend(f"| #{item.id} | {item.title} |" for item in items)
    lines.append("")
    return lines


def collect_item_logs(log_dir: Path) -> list[tuple[int, Path]]:
    """Per-item logs in the run directory, ordered by item id."""

    if not log_dir.is_dir():
        return []
    found: list[tuple[int, Path]] = []
    for path in log_dir.iterdir():
        match = _ITEM_LOG_RE.match(path.name)
        if match and path.is_file():
            found.append((int(match.group(1)), path))
    return sorted(found)


def build_run_report(
    run_state: RunState,
    *,
    date: str,
    duration_seconds: float,
    item_max_bytes: int = 40_000,
) -> str:
    lines = [
        "## claude-queue Run Summary",
        "",
        "| Metric | Value |",
        "|--------|-------|",
        f"| Date | {date} |",
        f"| Duration | {format_duration(duration_seconds)} |",
        f"| Issues processed | {run_state.processed} |",
        f"| Solved | {len(run_state.solved)} |",
        f"| Failed | {len(run_state.failed)} |",
        f"| Skipped | {len(run_state.skipped)} |",
        "",
    ]
    lines.extend(_item_table("Solved Issues", run_state.solved))
    lines.extend(_item_table("Failed Issues", run_state.failed))
    lines.extend(["---", "", "### Chain Logs", ""])

    for item_id, path in collect_item_logs(run_state.log_dir):
        body = _truncate_bytes(path.read_text("utf-8", errors="replace"), item_max_bytes)
        lines.extend(
            [
                "<details>",
                f"<summary>Issue #{item_id} Log</summary>",
                "",
                body,
                "",
                "</details>",
                "",
            ],
        )
    return "\n".join(lines)


def cap_report(text: str, *, max_bytes: int, log_dir: Path) -> str:
    """Cut `text` so that the result, notice included, fits in `max_bytes`."""

    if len(text.encode("utf-8")) <= max_bytes:
        return text
    notice = TRUNCATION_NOTICE.format(log_dir=log_dir)
    room = max_bytes - len(notice.encode("utf-8"))
    if room <= 0:
        return _truncate_bytes(notice, max_bytes)
    return _truncate_bytes(text, room) + notice


def completion_lines(run_state: RunState, *, duration_seconds: float) -> list[str]:
    """Closing summary printed after the queue drains."""

    lines = [
        f"Duration: {format_duration(duration_seconds)}",
        f"Solved: {len(run_state.solved)}",
    ]
    if run_state.failed:
        lines.append(f"Failed: {len(run_state.failed)}")
    if run_state.skipped:
        lines.append(f"Skipped: {len(run_state.skipped)}")
    lines.append(f"Logs: {run_state.log_dir}")
    return lines
