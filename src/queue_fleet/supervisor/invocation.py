"""Concrete command construction for queue workers."""

from __future__ import annotations

import shlex
from dataclasses import dataclass, field

from queue_fleet.config import WorkerCommandSettings


@dataclass(frozen=True, slots=True)
class InvocationOptions:
    """CLI-level switches that shape every worker command."""

    no_herd: bool = False
    use_work: bool = False
    timeout_seconds: int | None = None
    verbose: bool = False
    worker: WorkerCommandSettings = field(default_factory=WorkerCommandSettings)


def build_command(queue: str | None, options: InvocationOptions) -> tuple[str, tuple[str, ...]]:
    """Return ``(program, args)`` for one worker.

    Without ``no_herd`` the shim program becomes the executable and the base
    program moves to the head of its arguments. The trailing arguments are the
    same in both modes.
    """

    worker = options.worker
    subcommand = worker.work_command if options.use_work else worker.listen_command
    trailing: list[str] = [*worker.base_args, subcommand]

    if queue is not None:
        trailing.extend(["--queue", queue])

    timeout = options.timeout_seconds
    if timeout is not None and timeout != worker.default_timeout_seconds:
        trailing.extend(["--timeout", str(timeout)])

    if options.verbose:
        trailing.append(worker.verbose_flag)

    if options.no_herd:
        return worker.base_program, tuple(trailing)
    return worker.shim_program, (worker.base_program, *trailing)


def render_command(program: str, args: tuple[str, ...] | list[str]) -> str:
    return shlex.join([program, *args])
