from __future__ import annotations

from pathlib import Path

import allure

from claude_queue.solver.models import ItemRef, RunState
from claude_queue.solver.report import (
    build_run_report,
    cap_report,
    completion_lines,
    format_duration,
)

pytestmark = [
    allure.epic("Issue Solver"),
    allure.feature("Run Report"),
]


def _state(tmp_path: Path) -> RunState:
    state = RunState(branch="claude-queue/2026-02-02", log_dir=tmp_path)
    state.solved.append(ItemRef(id=42, title="Fix login bug"))
    state.failed.append(ItemRef(id=8, title="Hard one"))
    state.skipped.append(ItemRef(id=3, title="Already labelled"))
    return state


def test_format_duration() -> None:
    assert format_duration(0) == "0h 0m 0s"
    assert format_duration(3725) == "1h 2m 5s"


def test_report_tables_and_item_logs(tmp_path: Path) -> None:
    state = _state(tmp_path)
    (tmp_path / "issue-42.md").write_text("# Issue #42: Fix login bug\n", "utf-8")
    (tmp_path / "issue-8.md").write_text("# Issue #8: Hard one\n", "utf-8")
    (tmp_path / "issue-8-attempt-1.log").write_text("transcript", "utf-8")

    report = build_run_report(state, date="2026-02-02", duration_seconds=61)

    assert report.startswith("## claude-queue Run Summary\n")
    assert "| Duration | 0h 1m 1s |" in report
    assert "| Issues processed | 2 |" in report
    assert "| Skipped | 1 |" in report
    assert "### Solved Issues" in report and "| #42 | Fix login bug |" in report
    assert "### Failed Issues" in report and "| #8 | Hard one |" in report
    assert report.index("<summary>Issue #8 Log</summary>") < report.index(
        "<summary>Issue #42 Log</summary>",
    )
    assert "transcript" not in report


def test_item_log_is_capped(tmp_path: Path) -> None:
    state = _state(tmp_path)
    (tmp_path / "issue-42.md").write_text("x" * 500, "utf-8")

    report = build_run_report(state, date="2026-02-02", duration_seconds=0, item_max_bytes=100)

    assert "x" * 100 in report
    assert "x" * 101 not in report


def test_cap_never_exceeds_limit_and_appends_notice(tmp_path: Path) -> None:
    text = "## claude-queue Run Summary\n" + "é" * 70_000

    capped = cap_report(text, max_bytes=60_000, log_dir=tmp_path)

    assert len(capped.encode("utf-8")) <= 60_000
    assert capped.endswith(f"*Log truncated. Full logs available at: {tmp_path}*\n")
    assert capped.startswith("## claude-queue Run Summary")


def test_cap_leaves_small_reports_alone(tmp_path: Path) -> None:
    assert cap_report("short", max_bytes=60_000, log_dir=tmp_path) == "short"


def test_completion_lines(tmp_path: Path) -> None:
    lines = completion_lines(_state(tmp_path), duration_seconds=7)

    assert lines == [
        "Duration: 0h 0m 7s",
        "Solved: 1",
        "Failed: 1",
        "Skipped: 1",
        f"Logs: {tmp_path}",
    ]
