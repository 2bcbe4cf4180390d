"""Prompt templates for issue planning."""

from __future__ import annotations

from collections.abc import Sequence

READY_MARKER = "CLAUDE_QUEUE_READY"

DONE_REQUEST = "Please generate the issues now with what you know."

DECOMPOSE_PROMPT = """\
You are a GitHub issue planner. The user wants to create issues for a repository.

Existing labels in the repo: {existing_labels}

The user's description:
{user_text}

Decompose this into a JSON array of well-structured GitHub issues. Each issue should have:
- "title": a clear, concise issue title
- "body": a detailed issue body in markdown (include acceptance criteria where appropriate)
- "labels": an array of label strings (reuse existing repo labels when they fit, or suggest new ones)

Rules:
- Create separate issues for logically distinct tasks
- Each issue should be independently actionable
- Use clear, imperative titles (e.g. "Add dark mode toggle to settings page")
- If the description is vague, make reasonable assumptions and note them in the body

Output ONLY the JSON array, no other text."""

INTERVIEW_PROMPT = f"""\
You are a GitHub issue planner conducting an interview to understand what issues to create for a repository.

Existing labels in the repo: {{existing_labels}}

Your job:
1. Ask focused questions to understand what the user wants to build or fix
2. Ask about priorities, scope, and acceptance criteria
3. When you have enough information, output the marker {READY_MARKER} on its own line, followed by a JSON array of issues

Each issue in the JSON array should have:
- "title": a clear, concise issue title
- "body": a detailed issue body in markdown
- "labels": an array of label strings (reuse existing repo labels when they fit)

Rules:
- Ask one question at a time
- Keep questions short and specific
- After 2-3 questions you should have enough context, don't over-interview
- If the user says "done", immediately generate the issues with what you know
- Output ONLY your question text (no JSON) until you're ready to generate issues
- When ready, output {READY_MARKER} on its own line followed by ONLY the JSON array"""

FIRST_TURN = "Start by asking your first question."
CONTINUE_TURN = (
    f"Continue the interview or, if you have enough information, output {READY_MARKER} "
    "followed by the JSON array."
)
DONE_TURN = (
    "The user wants you to generate the issues now. "
    f"Output {READY_MARKER} followed by the JSON array."
)
MAX_TURNS_TURN = (
    "You've reached the maximum number of questions. "
    f"Output {READY_MARKER} followed by the JSON array now."
)


def _label_list(existing_labels: Sequence[str]) -> str:
    return ",".join(existing_labels)


def build_decompose_prompt(*, user_text: str, existing_labels: Sequence[str]) -> str:
    return DECOMPOSE_PROMPT.format(
        existing_labels=_label_list(existing_labels),
        user_text=user_text,
    )


def build_interview_prompt(
    *,
    existing_labels: Sequence[str],
    conversation: str,
    instruction: str,
) -> str:
    system = INTERVIEW_PROMPT.format(existing_labels=_label_list(existing_labels))
    if not conversation:
        return f"{system}\n\n{instruction}"
    return f"{system}\n\nConversation so far:\n{conversation}\n\n{instruction}"
