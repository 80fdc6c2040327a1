"""Supervisor: launch every worker, wait for an interrupt, reap everything."""

from __future__ import annotations

import asyncio
import logging
import signal
from collections.abc import Iterator, Sequence
from contextlib import contextmanager

from queue_fleet.supervisor.cancellation import ShutdownSignal
from queue_fleet.supervisor.console import ConsoleSink
from queue_fleet.supervisor.invocation import render_command
from queue_fleet.supervisor.launcher import LaunchError, ProcessLauncher
from queue_fleet.supervisor.models import (
    PumpExit,
    PumpResult,
    SupervisorRunSummary,
    WorkerHandle,
    WorkerSpec,
)
from queue_fleet.supervisor.pump import OutputPump, stop_child
from queue_fleet.supervisor.resolver import LabelLayout

logger = logging.getLogger(__name__)

_INTERRUPT_SIGNALS = tuple(
    sig for sig in (getattr(signal, "SIGINT", None), getattr(signal, "SIGTERM", None)) if sig
)


class SignalInstallError(RuntimeError):
    """The interrupt listener could not be installed."""


class Supervisor:
    """Owns the worker handles of one run.

    The run is strictly sequenced: launch all, wait for interrupt, cancel
    once, join every pump.
    """

    def __init__(
        self,
        specs: Sequence[WorkerSpec],
        *,
        launcher: ProcessLauncher | None = None,
        sink: ConsoleSink | None = None,
        graceful_shutdown_seconds: float = 0.0,
        shutdown: ShutdownSignal | None = None,
    ) -> None:
        if not specs:
            raise ValueError("Supervisor needs at least one worker spec.")
        self.specs = list(specs)
        self.launcher = launcher or ProcessLauncher()
        self.sink = sink or ConsoleSink()
        self.graceful_shutdown_seconds = graceful_shutdown_seconds
        self.shutdown_signal = shutdown or ShutdownSignal()
        self.layout = LabelLayout.for_specs(self.specs)
        self.handles: list[WorkerHandle] = []
        self.interrupt_signal: str | None = None
        self._interrupted = asyncio.Event()

    async def start(self) -> list[WorkerHandle]:
        """Launch every worker in order; any launch failure aborts the run."""

        for spec in self.specs:
            try:
                process = await self.launcher.launch(spec)
            except LaunchError:
                logger.error(
                    "Aborting startup: worker %d (%s) failed to launch.", spec.id, spec.label
                )
                await self._abort_started()
                raise
            self.handles.append(self._spawn_pump(spec, process))
        return self.handles

    def interrupt(self, signal_name: str = "manual") -> None:
        """Record the external interrupt; repeated calls are ignored."""

        if self._interrupted.is_set():
            logger.info("Already stopping workers; ignoring %s.", signal_name)
            return
        self.interrupt_signal = signal_name
        self._interrupted.set()

    async def wait_for_interrupt(self) -> str | None:
        await self._interrupted.wait()
        return self.interrupt_signal

    async def shutdown(self) -> SupervisorRunSummary:
        """Broadcast cancellation once and join every pump."""

        self.sink.notice(
            f"\nShutdown signal received. Stopping {len(self.handles)} workers...",
        )
        self.shutdown_signal.cancel(self.interrupt_signal)
        return await self.join()

    async def join(self) -> SupervisorRunSummary:
        outcomes = await asyncio.gather(
            *(handle.task for handle in self.handles),
            return_exceptions=True,
        )
        summary = SupervisorRunSummary(workers=len(self.handles))
        for handle, outcome in zip(self.handles, outcomes, strict=True):
            if isinstance(outcome, PumpResult):
                summary.results.append(outcome)
                if outcome.exit is PumpExit.CANCELLED:
                    summary.cancelled += 1
                else:
                    summary.stream_ended += 1
                continue
            summary.failed += 1
            logger.error(
                "Pump for worker %d (%s) failed: %r",
                handle.id,
                handle.label,
                outcome,
            )
        return summary

    async def run(self, *, install_signal_handlers: bool = True) -> SupervisorRunSummary:
        """Start workers, block until SIGINT/SIGTERM, then stop them all."""

        if install_signal_handlers:
            with self._interrupt_handlers():
                return await self._run()
        return await self._run()

    async def _run(self) -> SupervisorRunSummary:
        await self.start()
        await self.wait_for_interrupt()
        return await self.shutdown()

    def _spawn_pump(self, spec: WorkerSpec, process: asyncio.subprocess.Process) -> WorkerHandle:
        if process.stdout is None:
            raise RuntimeError(f"Worker {spec.id} was launched without a stdout pipe.")
        prefix = self.layout.prefix(spec)
        self.sink.write(prefix, f"$ {render_command(spec.program, spec.args)}")
        pump = OutputPump(
            worker_id=spec.id,
            label=spec.label,
            prefix=prefix,
            process=process,
            stream=process.stdout,
            sink=self.sink,
            shutdown=self.shutdown_signal.watch(),
            graceful_shutdown_seconds=self.graceful_shutdown_seconds,
            registry=self.launcher.registry,
        )
        task = asyncio.create_task(pump.run(), name=f"pump-{spec.id}")
        return WorkerHandle(
            id=spec.id,
            label=spec.label,
            process=process,
            stream=process.stdout,
            pump=pump,
            task=task,
        )

    async def _abort_started(self) -> None:
        if not self.handles:
            return
        logger.warning("Stopping %d already started worker(s).", len(self.handles))
        self.shutdown_signal.cancel("launch_failed")
        await self.join()
        for handle in self.handles:
            if handle.process.returncode is None:
                await stop_child(handle.process, stream=handle.stream)

    @contextmanager
    def _interrupt_handlers(self) -> Iterator[None]:
        loop = asyncio.get_running_loop()

        def _notify(sig: signal.Signals) -> None:
            self.interrupt(sig.name)

        installed: list[signal.Signals] = []
        loop_handlers = True
        try:
            for sig in _INTERRUPT_SIGNALS:
                loop.add_signal_handler(sig, _notify, sig)
                installed.append(sig)
        except NotImplementedError:
            # No loop-level signal support (Windows).
            loop_handlers = False
        except (RuntimeError, ValueError) as error:
            for sig in installed:
                loop.remove_signal_handler(sig)
            raise SignalInstallError(f"Cannot listen for interrupt signals: {error}") from error

        if not loop_handlers:
            with self._fallback_signal_handlers(loop):
                yield
            return

        try:
            yield
        finally:
            for sig in installed:
                loop.remove_signal_handler(sig)

    @contextmanager
    def _fallback_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> Iterator[None]:
        originals = {sig: signal.getsignal(sig) for sig in _INTERRUPT_SIGNALS}

        def _handler(signum: int, _: object | None) -> None:
            try:
                name = signal.Signals(signum).name
            except ValueError:
                name = str(signum)
            loop.call_soon_threadsafe(self.interrupt, name)

        try:
            for sig in _INTERRUPT_SIGNALS:
                signal.signal(sig, _handler)
        except ValueError as error:
            # Signal handlers can only be installed in main thread.
            raise SignalInstallError(f"Cannot listen for interrupt signals: {error}") from error

        try:
            yield
        finally:
            for sig, original in originals.items():
                try:
                    signal.signal(sig, original)
                except ValueError:
                    pass
