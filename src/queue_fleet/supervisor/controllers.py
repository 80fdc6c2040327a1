"""Controllers for supervisor CLI commands."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from queue_fleet.config import Settings
from queue_fleet.supervisor.console import SEPARATOR, ConsoleSink
from queue_fleet.supervisor.invocation import InvocationOptions, render_command
from queue_fleet.supervisor.launcher import ProcessLauncher
from queue_fleet.supervisor.models import SupervisorRunSummary, WorkerSpec
from queue_fleet.supervisor.reaper import Supervisor
from queue_fleet.supervisor.resolver import (
    LabelLayout,
    resolve_queue_requests,
    resolve_worker_specs,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class FleetCommand:
    """CLI input shared by ``run`` and ``plan``."""

    queues: tuple[str, ...]
    count: int | None
    no_herd: bool
    use_work: bool
    timeout_seconds: int | None
    verbose: bool


@dataclass(slots=True)
class RunCommand(FleetCommand):
    """CLI input for a supervised run."""

    graceful_shutdown_seconds: float | None = None


@dataclass(slots=True)
class PlanCommand(FleetCommand):
    """CLI input for a dry run that only prints the resolved workers."""


class SupervisorCliController:
    """Business logic behind the ``run`` and ``plan`` commands."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings

    def _load_settings(self) -> Settings:
        settings = self._settings or Settings.from_env()
        settings.validate()
        return settings

    def resolve(self, command: FleetCommand) -> list[WorkerSpec]:
        return self._resolve(command, self._load_settings())

    def _resolve(self, command: FleetCommand, settings: Settings) -> list[WorkerSpec]:
        requests = resolve_queue_requests(
            command.queues,
            command.count,
            default_queue=settings.supervisor.default_queue,
            default_count=settings.supervisor.default_queue_count,
        )
        options = InvocationOptions(
            no_herd=command.no_herd,
            use_work=command.use_work,
            timeout_seconds=command.timeout_seconds,
            verbose=command.verbose,
            worker=settings.worker,
        )
        return resolve_worker_specs(requests, options)

    def plan(self, command: PlanCommand) -> list[str]:
        specs = self.resolve(command)
        layout = LabelLayout.for_specs(specs)
        lines = [
            f"{layout.prefix(spec)}{SEPARATOR}{render_command(spec.program, spec.args)}"
            for spec in specs
        ]
        lines.append(f"{len(specs)} worker(s) resolved.")
        return lines

    def run(
        self,
        command: RunCommand,
        *,
        sink: ConsoleSink | None = None,
    ) -> SupervisorRunSummary:
        """Run the fleet until interrupted. Blocks the calling thread."""

        settings = self._load_settings()
        specs = self._resolve(command, settings)
        grace = command.graceful_shutdown_seconds
        if grace is None:
            grace = settings.supervisor.graceful_shutdown_seconds
        logger.info("Launching %d worker(s); shutdown grace %.1fs.", len(specs), grace)

        async def _main() -> SupervisorRunSummary:
            supervisor = Supervisor(
                specs,
                launcher=ProcessLauncher(stream_limit=settings.supervisor.stream_limit_bytes),
                sink=sink,
                graceful_shutdown_seconds=grace,
            )
            return await supervisor.run()

        return asyncio.run(_main())


def render_summary_lines(summary: SupervisorRunSummary) -> list[str]:
    lines = [f"All {summary.workers} workers stopped."]
    if summary.stream_ended:
        lines.append(f"{summary.stream_ended} worker(s) had already exited before shutdown.")
    if summary.failed:
        lines.append(f"{summary.failed} pump(s) failed; see log for details.")
    return lines
