"""Signal handling for a solve run.

The signal handler itself only records the request and forwards SIGTERM to
the agent subprocess. Label cleanup happens later in `finalize`, on the main
flow, after the subprocess has exited.
"""

from __future__ import annotations

import logging
import signal
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from claude_queue.agent.base import ProcessSlot
from claude_queue.solver.labels import BestEffortResult, LabelStateMachine
from claude_queue.solver.models import CurrentItemSlot

logger = logging.getLogger(__name__)

INTERRUPT_EXIT_CODE = 130


class RunInterrupted(RuntimeError):
    """Raised on the main flow once a stop signal has been observed."""

    def __init__(self, signal_name: str | None = None) -> None:
        super().__init__(f"Run interrupted by {signal_name or 'signal'}")
        self.signal_name = signal_name


@dataclass(slots=True)
class InterruptReport:
    """What `finalize` did, for tests and the exit summary."""

    demoted_item: int | None
    demotion: BestEffortResult | None
    lines: list[str]


class InterruptHandler:
    """Owns SIGINT/SIGTERM for the duration of a run."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        current_item: CurrentItemSlot,
        labels: LabelStateMachine,
        process_slot: ProcessSlot,
        log_dir: Path,
        branch: str,
        solved_count: Callable[[], int],
        graceful_shutdown_seconds: int = 10,
        on_progress: Callable[[str], None] | None = None,
    ) -> None:
        self.current_item = current_item
        self.labels = labels
        self.process_slot = process_slot
        self.log_dir = log_dir
        self.branch = branch
        self.solved_count = solved_count
        self.graceful_shutdown_seconds = graceful_shutdown_seconds
        self._on_progress = on_progress
        self._stop_requested = False
        self._finalized = False

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    def request_stop(self, *, signal_name: str) -> None:
        if self._stop_requested:
            return
        self._stop_requested = True
        if self.process_slot.terminate():
            logger.info("forwarded termination to agent subprocess signal=%s", signal_name)

    @contextmanager
    def installed(self) -> Iterator[None]:
        if not hasattr(signal, "SIGINT"):
            yield
            return

        original_sigint = signal.getsignal(signal.SIGINT)
        original_sigterm = signal.getsignal(signal.SIGTERM)

        def _handler(signum: int, _: object | None) -> None:
            try:
                name = signal.Signals(signum).name
            except ValueError:
                name = str(signum)
            self.request_stop(signal_name=name)

        try:
            signal.signal(signal.SIGINT, _handler)
            signal.signal(signal.SIGTERM, _handler)
            yield
        except ValueError:
            # Signal handlers can only be installed in main thread.
            yield
        finally:
            try:
                signal.signal(signal.SIGINT, original_sigint)
                signal.signal(signal.SIGTERM, original_sigterm)
            except ValueError:
                pass

    def finalize(self) -> InterruptReport:
        """Stop the agent, demote the item in flight and tell the operator where to look.

        Runs at most once; later calls return an empty report.
        """

        if self._finalized:
            return InterruptReport(demoted_item=None, demotion=None, lines=[])
        self._finalized = True

        if self.process_slot.active:
            self.process_slot.terminate()
            self.process_slot.wait(timeout=self.graceful_shutdown_seconds)

        lines: list[str] = []
        item_id = self.current_item.take()
        demotion: BestEffortResult | None = None
        if item_id is not None:
            lines.append(f"Interrupted while working on issue #{item_id}")
            demotion = self.labels.demote_best_effort(item_id)
            if not demotion.ok:
                lines.append(
                    f"Could not relabel issue #{item_id} ({demotion.error}); "
                    f"check its labels manually.",
                )

        solved = self.solved_count()
        if solved > 0:
            lines.append(f"Run interrupted but {solved} issue(s) were solved.")
            lines.append(f"Branch '{self.branch}' has your commits. Push manually if needed.")
        lines.append(f"Logs saved to: {self.log_dir}")

        for line in lines:
            logger.warning(line)
            if self._on_progress is not None:
                self._on_progress(line)
        return InterruptReport(demoted_item=item_id, demotion=demotion, lines=lines)
