"""Deterministic attempt classification from agent transcripts.

The agent reports structured outcomes only through line-anchored sentinel
markers; everything else in the transcript is an opaque log.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from claude_queue.solver.models import AttemptOutcome

NO_CODE_MARKER = "CLAUDE_QUEUE_NO_CODE"
SUMMARY_MARKER = "CLAUDE_QUEUE_SUMMARY"
REVIEW_MARKER = "CLAUDE_QUEUE_REVIEW"
MARKER_PAYLOAD_MAX_LINES = 10
DEFAULT_SUMMARY = "No summary provided."
DEFAULT_TRANSCRIPT_MAX_BYTES = 2_000_000

# Markdown decoration the agent sometimes wraps around a marker.
_DECORATION = r"[\s*_`#>\-]*"


@lru_cache(maxsize=None)
def marker_pattern(marker: str) -> re.Pattern[str]:
    return re.compile(rf"^{_DECORATION}{marker}\b[\s*_`:\-]*(?P<inline>.*)$")


@dataclass(frozen=True, slots=True)
class AttemptClassification:
    """Outcome plus the payload captured for the item log."""

    outcome: AttemptOutcome
    detail: str | None
    matched_marker: str | None


def read_transcript(path: Path, *, max_bytes: int = DEFAULT_TRANSCRIPT_MAX_BYTES) -> str:
    """Read at most the last `max_bytes` of a transcript."""

    if not path.exists():
        return ""
    size = path.stat().st_size
    with path.open("rb") as handle:
        if size > max_bytes:
            handle.seek(size - max_bytes)
        raw = handle.read()
    return raw.decode("utf-8", errors="replace")


def extract_marker_payload(
    text: str,
    marker: str,
    *,
    max_lines: int = MARKER_PAYLOAD_MAX_LINES,
) -> str | None:
    """Return the text following the first line that starts with `marker`.

    Returns None when the marker is absent and an empty string when it is
    present with nothing after it.
    """

    pattern = marker_pattern(marker)
    lines = text.splitlines()
    for index, line in enumerate(lines):
        match = pattern.match(line)
        if match is None:
            continue
        payload: list[str] = []
        inline = match.group("inline").strip(" *_`")
        if inline:
            payload.append(inline)
        payload.extend(following.rstrip() for following in lines[index + 1 :])
        return "\n".join(payload[:max_lines]).strip()
    return None


def classify_attempt(
    *,
    exit_code: int | None,
    transcript: str,
    changed_files: Sequence[str],
) -> AttemptClassification:
    """Map process result, transcript and change set onto an attempt outcome."""

    if exit_code is None or exit_code != 0:
        return AttemptClassification(
            outcome=AttemptOutcome.PROCESS_ERROR,
            detail=f"Agent exited with code {exit_code}" if exit_code is not None else None,
            matched_marker=None,
        )

    no_code_reason = extract_marker_payload(transcript, NO_CODE_MARKER)
    if no_code_reason:
        return AttemptClassification(
            outcome=AttemptOutcome.NO_CODE_REQUIRED,
            detail=no_code_reason,
            matched_marker=NO_CODE_MARKER,
        )

    if not changed_files:
        return AttemptClassification(
            outcome=AttemptOutcome.NO_CHANGES,
            detail=None,
            matched_marker=None,
        )

    summary = extract_marker_payload(transcript, SUMMARY_MARKER)
    return AttemptClassification(
        outcome=AttemptOutcome.SUCCESS,
        detail=summary or DEFAULT_SUMMARY,
        matched_marker=SUMMARY_MARKER if summary else None,
    )
