"""Subprocess-based runner for the coding agent CLI."""

from __future__ import annotations

import shlex
import subprocess
import time
from pathlib import Path

from claude_queue.agent.base import AgentRunRequest, AgentRunResult, ProcessSlot

TIMEOUT_EXIT_CODE = 124
_POLL_SECONDS = 0.1


class AgentRunError(RuntimeError):
    """Agent could not be launched or produced no usable output."""


class CliAgentBackend:
    """Launch the agent CLI in print mode, one prompt per process."""

    def __init__(self, command: str = "claude", process_slot: ProcessSlot | None = None) -> None:
        self.command = command
        self.process_slot = process_slot or ProcessSlot()

    def run(self, request: AgentRunRequest) -> AgentRunResult:
        """Run one foreground attempt, capturing stdout and stderr into the transcript."""

        run_args = build_agent_args(
            command=self.command,
            prompt=request.prompt,
            max_turns=request.max_turns,
            model=request.model,
            skip_permissions=request.skip_permissions,
        )
        request.transcript_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with request.transcript_path.open("w", encoding="utf-8") as transcript_handle:
                process = subprocess.Popen(  # noqa: S603
                    run_args,
                    cwd=request.cwd,
                    stdin=subprocess.DEVNULL,
                    stdout=transcript_handle,
                    stderr=subprocess.STDOUT,
                    text=True,
                )
                self.process_slot.attach(process)
                try:
                    return _wait_with_shutdown(
                        process=process,
                        request=request,
                    )
                finally:
                    self.process_slot.release()
        except FileNotFoundError as error:
            raise AgentRunError(f"Agent command not found: {run_args[0]}") from error
        except OSError as error:
            raise AgentRunError(f"Agent failed to start: {error}") from error

    def generate(
        self,
        prompt: str,
        *,
        model: str | None = None,
        cwd: Path | None = None,
        timeout_seconds: int | None = None,
    ) -> str:
        """Run a single text generation and return its stdout."""

        run_args = build_agent_args(
            command=self.command,
            prompt=prompt,
            max_turns=None,
            model=model,
            skip_permissions=False,
        )
        try:
            completed = subprocess.run(  # noqa: S603
                run_args,
                cwd=cwd,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                timeout=timeout_seconds,
                check=False,
            )
        except subprocess.TimeoutExpired as error:
            raise AgentRunError(f"Agent timed out after {timeout_seconds}s") from error
        except FileNotFoundError as error:
            raise AgentRunError(f"Agent command not found: {run_args[0]}") from error
        except OSError as error:
            raise AgentRunError(f"Agent failed to start: {error}") from error
        if completed.returncode != 0:
            raise AgentRunError(
                f"Agent exited with code {completed.returncode}: {_preview(completed.stderr)}",
            )
        return completed.stdout


def build_agent_args(
    *,
    command: str,
    prompt: str,
    max_turns: int | None,
    model: str | None,
    skip_permissions: bool,
) -> list[str]:
    argv = shlex.split(command.strip())
    if not argv:
        raise AgentRunError("Agent command is empty.")
    argv.extend(["-p", prompt])
    if skip_permissions:
        argv.append("--dangerously-skip-permissions")
    if max_turns is not None:
        argv.extend(["--max-turns", str(max_turns)])
    if model:
        argv.extend(["--model", model])
    return argv


def _wait_with_shutdown(
    *,
    process: subprocess.Popen[str],
    request: AgentRunRequest,
) -> AgentRunResult:
    start_monotonic = time.monotonic()
    shutdown_deadline: float | None = None
    graceful_seconds = max(0, request.graceful_shutdown_seconds)

    while True:
        returncode = process.poll()
        if returncode is not None:
            return AgentRunResult(
                exit_code=returncode,
                timed_out=False,
                interrupted=shutdown_deadline is not None,
                transcript_path=request.transcript_path,
            )

        now = time.monotonic()
        if request.timeout_seconds is not None and now - start_monotonic >= request.timeout_seconds:
            _terminate_process(process)
            return AgentRunResult(
                exit_code=TIMEOUT_EXIT_CODE,
                timed_out=True,
                interrupted=False,
                transcript_path=request.transcript_path,
            )

        if request.shutdown_requested is not None and request.shutdown_requested():
            if shutdown_deadline is None:
                shutdown_deadline = now + graceful_seconds
                try:
                    process.terminate()
                except OSError:
                    pass
            if now >= shutdown_deadline:
                _terminate_process(process)
                return AgentRunResult(
                    exit_code=process.returncode if process.returncode is not None else -15,
                    timed_out=False,
                    interrupted=True,
                    transcript_path=request.transcript_path,
                )

        time.sleep(_POLL_SECONDS)


def _terminate_process(process: subprocess.Popen[str]) -> None:
    try:
        process.terminate()
    except OSError:
        return
    try:
        process.wait(timeout=2)
    except subprocess.TimeoutExpired:
        try:
            process.kill()
        except OSError:
            return
        process.wait(timeout=2)


def _preview(value: str, *, limit: int = 240) -> str:
    compact = value.strip().replace("\n", " ")
    if len(compact) <= limit:
        return compact
    return compact[:limit] + "..."
