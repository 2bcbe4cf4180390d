"""Request/result types for one agent invocation."""

from __future__ import annotations

import subprocess
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path


@dataclass(slots=True)
class AgentRunRequest:
    """Inputs required to execute one agent attempt."""

    prompt: str
    transcript_path: Path
    cwd: Path
    max_turns: int | None = None
    model: str | None = None
    timeout_seconds: int | None = None
    skip_permissions: bool = True
    shutdown_requested: Callable[[], bool] | None = None
    graceful_shutdown_seconds: int = 10


@dataclass(slots=True)
class AgentRunResult:
    """Execution outcome of one agent subprocess."""

    exit_code: int
    timed_out: bool
    interrupted: bool
    transcript_path: Path


class ProcessSlot:
    """Holds the single live agent subprocess so a signal can reach it."""

    def __init__(self) -> None:
        self._process: subprocess.Popen[str] | None = None

    @property
    def active(self) -> bool:
        return self._process is not None and self._process.poll() is None

    def attach(self, process: subprocess.Popen[str]) -> None:
        self._process = process

    def release(self) -> None:
        self._process = None

    def terminate(self) -> bool:
        """Ask the live subprocess to stop; returns False when nothing is running."""

        process = self._process
        if process is None or process.poll() is not None:
            return False
        try:
            process.terminate()
        except OSError:
            return False
        return True

    def wait(self, timeout: float | None = None) -> None:
        """Block until the subprocess exits, killing it after `timeout` seconds."""

        process = self._process
        if process is None:
            return
        try:
            process.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            try:
                process.kill()
            except OSError:
                return
            process.wait()
