"""CLI entrypoint for queue-fleet."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import rich_click as click

from queue_fleet import __version__
from queue_fleet.supervisor.controllers import (
    PlanCommand,
    RunCommand,
    SupervisorCliController,
    render_summary_lines,
)
from queue_fleet.supervisor.launcher import LaunchError
from queue_fleet.supervisor.reaper import SignalInstallError

click.rich_click.USE_MARKDOWN = True
SUPERVISOR_CONTROLLER = SupervisorCliController()

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@click.group()
@click.version_option(version=__version__, prog_name="queue-fleet")
@click.option(
    "--log-level",
    type=click.Choice(_LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Supervisor diagnostics level (written to stderr).",
)
def queue_fleet(log_level: str) -> None:
    """Run several queue workers with labeled output and graceful shutdown.

    Queues are given as `NAME COUNT` pairs, e.g. `queue-fleet run high 2 default 3`.
    """

    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _fleet_options(command: Callable[..., Any]) -> Callable[..., Any]:
    decorators = [
        click.argument("queues", nargs=-1),
        click.option(
            "-c",
            "--count",
            type=click.IntRange(min=1),
            default=None,
            help="Run N unnamed workers instead of queue pairs.",
        ),
        click.option(
            "--no-herd",
            is_flag=True,
            default=False,
            help="Invoke the base program directly instead of through the herd shim.",
        ),
        click.option(
            "--use-work",
            is_flag=True,
            default=False,
            help="Use the one-shot `queue:work` subcommand instead of `queue:listen`.",
        ),
        click.option(
            "-t",
            "--timeout",
            "timeout_seconds",
            type=click.IntRange(min=0),
            default=None,
            help="Worker job timeout in seconds; forwarded only when not the default (60).",
        ),
        click.option(
            "-v",
            "--verbose",
            is_flag=True,
            default=False,
            help="Forward a verbosity flag to every worker.",
        ),
    ]
    for decorator in reversed(decorators):
        command = decorator(command)
    return command


@queue_fleet.command("run")
@_fleet_options
@click.option(
    "--grace",
    "graceful_shutdown_seconds",
    type=click.FloatRange(min=0),
    default=None,
    help=(
        "Seconds a worker gets after SIGTERM before it is killed. "
        "0 kills immediately. Defaults to QUEUE_FLEET_GRACEFUL_SHUTDOWN_SECONDS (10)."
    ),
)
def run(  # noqa: PLR0913
    queues: tuple[str, ...],
    count: int | None,
    no_herd: bool,
    use_work: bool,
    timeout_seconds: int | None,
    verbose: bool,
    graceful_shutdown_seconds: float | None,
) -> None:
    """Launch the workers and relay their output until Ctrl+C."""

    try:
        summary = SUPERVISOR_CONTROLLER.run(
            RunCommand(
                queues=queues,
                count=count,
                no_herd=no_herd,
                use_work=use_work,
                timeout_seconds=timeout_seconds,
                verbose=verbose,
                graceful_shutdown_seconds=graceful_shutdown_seconds,
            ),
        )
    except (LaunchError, SignalInstallError, ValueError) as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(render_summary_lines(summary))


@queue_fleet.command("plan")
@_fleet_options
def plan(  # noqa: PLR0913
    queues: tuple[str, ...],
    count: int | None,
    no_herd: bool,
    use_work: bool,
    timeout_seconds: int | None,
    verbose: bool,
) -> None:
    """Print the resolved workers and their commands without launching them."""

    try:
        lines = SUPERVISOR_CONTROLLER.plan(
            PlanCommand(
                queues=queues,
                count=count,
                no_herd=no_herd,
                use_work=use_work,
                timeout_seconds=timeout_seconds,
                verbose=verbose,
            ),
        )
    except ValueError as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    queue_fleet()
