"""Recover a JSON array from model output that may carry prose or fences."""

from __future__ import annotations

import json
import re

_FENCED_BLOCK = re.compile(
    r"^```(?:json)?[ \t]*\n(.*?)\n[ \t]*```[ \t]*$",
    re.DOTALL | re.MULTILINE,
)


class JsonNotFoundError(ValueError):
    """No JSON array could be recovered from the text."""


def extract_json_array(text: str) -> list[object]:
    """Return the first JSON array found by, in order: a fenced block, the whole text,
    the span from the first `[` to the last `]`.
    """

    fenced = _FENCED_BLOCK.search(text)
    if fenced is not None:
        parsed = _try_load_list(fenced.group(1))
        if parsed is not None:
            return parsed

    parsed = _try_load_list(text)
    if parsed is not None:
        return parsed

    start = text.find("[")
    end = text.rfind("]")
    if start != -1 and end > start:
        parsed = _try_load_list(text[start : end + 1])
        if parsed is not None:
            return parsed

    raise JsonNotFoundError("No JSON array found in model output")


def _try_load_list(raw: str) -> list[object] | None:
    try:
        parsed = json.loads(raw.strip())
    except json.JSONDecodeError:
        return None
    if not isinstance(parsed, list):
        return None
    return parsed
