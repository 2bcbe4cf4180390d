from __future__ import annotations

from pathlib import Path

import allure

from claude_queue.solver.classifier import (
    DEFAULT_SUMMARY,
    NO_CODE_MARKER,
    SUMMARY_MARKER,
    classify_attempt,
    extract_marker_payload,
    read_transcript,
)
from claude_queue.solver.models import AttemptOutcome

pytestmark = [
    allure.epic("Issue Solver"),
    allure.feature("Outcome Classification"),
]


def test_nonzero_exit_is_process_error_even_with_changes() -> None:
    result = classify_attempt(
        exit_code=1,
        transcript="CLAUDE_QUEUE_SUMMARY\nDid it.",
        changed_files=["app.py"],
    )

    assert result.outcome is AttemptOutcome.PROCESS_ERROR
    assert result.detail == "Agent exited with code 1"


def test_no_code_marker_wins_over_changes() -> None:
    transcript = "Looked around.\nCLAUDE_QUEUE_NO_CODE\nThis is a question for the design team.\n"

    result = classify_attempt(exit_code=0, transcript=transcript, changed_files=["notes.txt"])

    assert result.outcome is AttemptOutcome.NO_CODE_REQUIRED
    assert result.detail == "This is a question for the design team."
    assert result.matched_marker == NO_CODE_MARKER


def test_no_code_marker_with_empty_payload_falls_through() -> None:
    result = classify_attempt(exit_code=0, transcript="CLAUDE_QUEUE_NO_CODE\n\n", changed_files=[])

    assert result.outcome is AttemptOutcome.NO_CHANGES


def test_empty_change_set_without_marker_is_no_changes() -> None:
    result = classify_attempt(exit_code=0, transcript="I could not find it.", changed_files=[])

    assert result.outcome is AttemptOutcome.NO_CHANGES
    assert result.detail is None


def test_changes_without_summary_get_placeholder() -> None:
    result = classify_attempt(exit_code=0, transcript="done", changed_files=["app.py"])

    assert result.outcome is AttemptOutcome.SUCCESS
    assert result.detail == DEFAULT_SUMMARY
    assert result.matched_marker is None


def test_summary_payload_is_capped_to_ten_lines() -> None:
    body = "\n".join(f"line {index}" for index in range(1, 16))
    transcript = f"work log\n{SUMMARY_MARKER}\n{body}\n"

    payload = extract_marker_payload(transcript, SUMMARY_MARKER)

    assert payload is not None
    assert payload.splitlines() == [f"line {index}" for index in range(1, 11)]


def test_marker_is_line_anchored_and_tolerates_markdown_decoration() -> None:
    assert extract_marker_payload("I will print CLAUDE_QUEUE_SUMMARY later", SUMMARY_MARKER) is None
    assert (
        extract_marker_payload("**CLAUDE_QUEUE_SUMMARY**: Fixed the login check.", SUMMARY_MARKER)
        == "Fixed the login check."
    )
    assert extract_marker_payload("## CLAUDE_QUEUE_SUMMARY\nFixed.", SUMMARY_MARKER) == "Fixed."


def test_read_transcript_keeps_the_tail(tmp_path: Path) -> None:
    path = tmp_path / "attempt.log"
    path.write_text("A" * 100 + "\nCLAUDE_QUEUE_SUMMARY\nkept", "utf-8")

    text = read_transcript(path, max_bytes=30)

    assert text.endswith("CLAUDE_QUEUE_SUMMARY\nkept")
    assert len(text.encode("utf-8")) <= 30
    assert read_transcript(tmp_path / "missing.log") == ""
