"""Data shapes produced by the issue planner."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class PlannedIssue:
    """One issue proposed by the model, not yet created."""

    title: str
    body: str = ""
    labels: tuple[str, ...] = ()

    @property
    def first_body_line(self) -> str:
        for line in self.body.splitlines():
            if line.strip():
                return line.strip()
        return ""


@dataclass(slots=True)
class InterviewState:
    """Transcript of one interview session; resent in full on every turn."""

    max_turns: int = 10
    transcript: list[tuple[str, str]] = field(default_factory=list)
    turn: int = 0

    @property
    def exhausted(self) -> bool:
        return self.turn >= self.max_turns

    def add(self, speaker: str, text: str) -> None:
        self.transcript.append((speaker, text))

    def render(self) -> str:
        return "\n".join(f"{speaker}: {text}" for speaker, text in self.transcript)
