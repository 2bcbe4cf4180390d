"""CLI entrypoint for claude-queue."""

import sys

import rich_click as click

from claude_queue import __version__
from claude_queue.planner.controllers import CreateIssuesCommand, PlannerCliController, PlannerIO
from claude_queue.solver.controllers import SolveCommand, SolverCliController

click.rich_click.USE_MARKDOWN = True
SOLVER_CONTROLLER = SolverCliController()
PLANNER_CONTROLLER = PlannerCliController()


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="claude-queue")
@click.option(
    "--max-retries",
    type=click.IntRange(min=1),
    default=None,
    help="Max attempts per issue. Defaults to CLAUDE_QUEUE_MAX_RETRIES or 3.",
)
@click.option(
    "--max-turns",
    type=click.IntRange(min=1),
    default=None,
    help="Max agent turns per attempt. Defaults to CLAUDE_QUEUE_MAX_TURNS or 50.",
)
@click.option("--label", default=None, help="Only process issues with this label.")
@click.option("--model", default=None, help="Model passed to the agent CLI.")
@click.pass_context
def claude_queue(
    ctx: click.Context,
    max_retries: int | None,
    max_turns: int | None,
    label: str | None,
    model: str | None,
) -> None:
    """Solve open GitHub issues one by one with a coding agent.

    Run `claude-queue create --help` for issue creation.
    """

    if ctx.invoked_subcommand is not None:
        return
    exit_code = SOLVER_CONTROLLER.solve(
        SolveCommand(
            max_retries=max_retries,
            max_turns=max_turns,
            label=label,
            model=model,
        ),
        emit=click.echo,
    )
    ctx.exit(exit_code)


@claude_queue.command("create")
@click.option(
    "-i",
    "--interactive",
    is_flag=True,
    default=False,
    help="Interview mode: the agent asks clarifying questions first.",
)
@click.option("--label", default=None, help="Add this label to every created issue.")
@click.option("--model", default=None, help="Model passed to the agent CLI.")
@click.argument("text", required=False)
@click.pass_context
def create(
    ctx: click.Context,
    interactive: bool,
    label: str | None,
    model: str | None,
    text: str | None,
) -> None:
    """Create GitHub issues from TEXT, from stdin, or from an interview."""

    exit_code = PLANNER_CONTROLLER.create(
        CreateIssuesCommand(
            text=text,
            interactive=interactive,
            label=label,
            model=model,
        ),
        PlannerIO(
            emit=click.echo,
            ask=_ask,
            confirm=_confirm,
            read_text=_read_stdin,
        ),
    )
    ctx.exit(exit_code)


def _ask(prompt: str) -> str:
    try:
        return click.prompt(prompt, default="", show_default=False, prompt_suffix="")
    except click.Abort as error:
        raise EOFError from error


def _confirm(text: str) -> bool:
    try:
        return click.confirm(text, default=False)
    except click.Abort:
        return False


def _read_stdin() -> str:
    return sys.stdin.read()


if __name__ == "__main__":  # pragma: no cover
    claude_queue()
