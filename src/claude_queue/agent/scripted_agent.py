"""Deterministic stand-in for the agent CLI used by integration tests.

Reads a JSON script from the file named by ``CLAUDE_QUEUE_SCRIPTED_AGENT``::

    {"steps": [
        {"exit_code": 1, "output": "boom"},
        {"output": "nothing to do"},
        {"write": {"app.py": "fixed\\n"}, "output": "CLAUDE_QUEUE_SUMMARY\\nFixed it."}
    ]}

Every invocation consumes the next step. Calls are appended to
``<script>.calls.jsonl`` (argv, prompt, cwd) so tests can inspect prompts.
"""

from __future__ import annotations

import argparse
import json
import os
import sys
import time
from pathlib import Path

SCRIPT_ENV = "CLAUDE_QUEUE_SCRIPTED_AGENT"


def calls_path(script_path: Path) -> Path:
    return script_path.with_name(script_path.name + ".calls.jsonl")


def read_calls(script_path: Path) -> list[dict[str, object]]:
    path = calls_path(script_path)
    if not path.exists():
        return []
    return [json.loads(line) for line in path.read_text("utf-8").splitlines() if line.strip()]


def main(argv: list[str] | None = None) -> int:
    """Play back the next scripted step."""

    parser = argparse.ArgumentParser()
    parser.add_argument("-p", dest="prompt", required=True)
    parser.add_argument("--dangerously-skip-permissions", action="store_true")
    parser.add_argument("--max-turns", type=int, default=None)
    parser.add_argument("--model", default=None)
    args = parser.parse_args(argv)

    script_raw = os.environ.get(SCRIPT_ENV)
    if not script_raw:
        print(f"{SCRIPT_ENV} is not set", file=sys.stderr)
        return 2
    script_path = Path(script_raw)
    steps = json.loads(script_path.read_text("utf-8")).get("steps", [])

    previous = read_calls(script_path)
    index = len(previous)
    with calls_path(script_path).open("a", encoding="utf-8") as handle:
        handle.write(
            json.dumps(
                {
                    "prompt": args.prompt,
                    "max_turns": args.max_turns,
                    "model": args.model,
                    "skip_permissions": args.dangerously_skip_permissions,
                    "cwd": str(Path.cwd()),
                },
            )
            + "\n",
        )
    if index >= len(steps):
        print("scripted agent: no steps left", file=sys.stderr)
        return 3

    step = steps[index]
    for relative, content in (step.get("write") or {}).items():
        target = Path(relative)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, "utf-8")
    if step.get("sleep"):
        time.sleep(float(step["sleep"]))
    output = step.get("output", "")
    if output:
        print(output, flush=True)
    return int(step.get("exit_code", 0))


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
