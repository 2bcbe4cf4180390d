"""One-shot and interview-driven issue planning."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from claude_queue.planner.json_extractor import JsonNotFoundError, extract_json_array
from claude_queue.planner.models import InterviewState, PlannedIssue
from claude_queue.planner.prompts import (
    CONTINUE_TURN,
    DONE_REQUEST,
    DONE_TURN,
    FIRST_TURN,
    MAX_TURNS_TURN,
    READY_MARKER,
    build_decompose_prompt,
    build_interview_prompt,
)
from claude_queue.solver.classifier import marker_pattern

logger = logging.getLogger(__name__)

DONE_COMMAND = "done"


class PlannerError(RuntimeError):
    """Model output could not be turned into at least one issue."""


def ready_payload(output: str) -> str | None:
    """Text after the first line carrying the readiness marker, or None without one."""

    lines = output.splitlines()
    pattern = marker_pattern(READY_MARKER)
    for index, line in enumerate(lines):
        match = pattern.match(line)
        if match:
            inline = match.group("inline").strip()
            rest = lines[index + 1 :]
            return "\n".join([inline, *rest] if inline else rest)
    return None


def parse_planned_issues(raw_items: Sequence[object]) -> list[PlannedIssue]:
    issues: list[PlannedIssue] = []
    for position, entry in enumerate(raw_items, start=1):
        if not isinstance(entry, dict):
            logger.warning("ignoring planned issue %s: not an object", position)
            continue
        title = entry.get("title")
        if not isinstance(title, str) or not title.strip():
            logger.warning("ignoring planned issue %s: missing title", position)
            continue
        body = entry.get("body")
        raw_labels = entry.get("labels")
        labels = (
            tuple(label.strip() for label in raw_labels if isinstance(label, str) and label.strip())
            if isinstance(raw_labels, list)
            else ()
        )
        issues.append(
            PlannedIssue(
                title=title.strip(),
                body=body if isinstance(body, str) else "",
                labels=labels,
            ),
        )
    return issues


class IssuePlanner:
    """Turns a description or an interview into planned issues via a text generator."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        generate: Callable[[str], str],
        existing_labels: Sequence[str] = (),
        max_turns: int = 10,
        ask: Callable[[str], str] | None = None,
        show: Callable[[str], None] | None = None,
    ) -> None:
        self.generate = generate
        self.existing_labels = list(existing_labels)
        self.max_turns = max_turns
        self._ask = ask
        self._show = show or (lambda _line: None)

    def plan_from_text(self, text: str) -> list[PlannedIssue]:
        """Single generation call; raises `PlannerError` when nothing usable comes back."""

        self._show("Analyzing text and generating issues...")
        output = self.generate(
            build_decompose_prompt(user_text=text, existing_labels=self.existing_labels),
        )
        return self._parse(output, raw_output=output)

    def interview(self) -> list[PlannedIssue]:
        """Question/answer loop ending on the readiness marker, `done` or the turn ceiling.

        End of input counts as `done`.
        """

        if self._ask is None:
            raise PlannerError("Interview mode needs an input source")
        state = InterviewState(max_turns=self.max_turns)

        while not state.exhausted:
            state.turn += 1
            conversation = state.render()
            output = self.generate(
                build_interview_prompt(
                    existing_labels=self.existing_labels,
                    conversation=conversation,
                    instruction=CONTINUE_TURN if conversation else FIRST_TURN,
                ),
            )
            payload = ready_payload(output)
            if payload is not None:
                return self._parse(payload or output, raw_output=output)

            self._show(f"Claude: {output.strip()}")
            try:
                answer = self._ask("You: ")
            except EOFError:
                answer = DONE_COMMAND
            state.add("Claude", output.strip())
            if answer.strip().lower() == DONE_COMMAND:
                state.add("User", DONE_REQUEST)
                return self._final(state, DONE_TURN)
            state.add("User", answer)

        self._show("Reached maximum interview turns, generating issues with current information...")
        return self._final(state, MAX_TURNS_TURN)

    def _final(self, state: InterviewState, instruction: str) -> list[PlannedIssue]:
        output = self.generate(
            build_interview_prompt(
                existing_labels=self.existing_labels,
                conversation=state.render(),
                instruction=instruction,
            ),
        )
        payload = ready_payload(output)
        return self._parse(payload or output, raw_output=output)

    def _parse(self, text: str, *, raw_output: str) -> list[PlannedIssue]:
        try:
            raw_items = extract_json_array(text)
        except JsonNotFoundError as error:
            logger.error("planner output was not a JSON array: %s", raw_output[:2000])
            raise PlannerError("Failed to parse generated issues as JSON") from error
        issues = parse_planned_issues(raw_items)
        if not issues:
            raise PlannerError("No issues were generated")
        return issues
