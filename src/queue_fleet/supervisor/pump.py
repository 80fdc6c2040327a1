"""Per-worker output pump racing line reads against the shutdown signal."""

from __future__ import annotations

import asyncio
import logging

from queue_fleet.supervisor.cancellation import ShutdownWatch
from queue_fleet.supervisor.console import ConsoleSink
from queue_fleet.supervisor.launcher import ChildRegistry
from queue_fleet.supervisor.models import PumpExit, PumpResult, PumpState

logger = logging.getLogger(__name__)

_LINE_END = b"\n"
_DISCARD_CHUNK = 64 * 1024


async def stop_child(
    process: asyncio.subprocess.Process,
    graceful_shutdown_seconds: float = 0.0,
    stream: asyncio.StreamReader | None = None,
) -> int | None:
    """Terminate a child, escalating to a hard kill, and reap it.

    With a zero grace period the child is killed right away. Errors while
    signalling are swallowed: the child may already be gone.

    When ``stream`` is given, whatever the child still writes to it is read
    and thrown away until the child is reaped. ``Process.wait()`` only returns
    once the stdout pipe is closed, which never happens while its reader is
    paused on a full buffer.
    """

    discard = asyncio.ensure_future(_discard_output(stream)) if stream is not None else None
    try:
        return await _signal_and_reap(process, graceful_shutdown_seconds)
    finally:
        if discard is not None:
            if not discard.done():
                discard.cancel()
            await asyncio.gather(discard, return_exceptions=True)


async def _signal_and_reap(
    process: asyncio.subprocess.Process,
    graceful_shutdown_seconds: float,
) -> int | None:
    if process.returncode is None:
        try:
            if graceful_shutdown_seconds > 0:
                process.terminate()
                try:
                    return await asyncio.wait_for(
                        process.wait(),
                        timeout=graceful_shutdown_seconds,
                    )
                except TimeoutError:
                    logger.warning(
                        "Worker pid=%s ignored SIGTERM for %.1fs; killing.",
                        process.pid,
                        graceful_shutdown_seconds,
                    )
            process.kill()
        except ProcessLookupError:
            pass
        except OSError as error:
            logger.debug("Stopping worker pid=%s failed: %s", process.pid, error)
    return await process.wait()


async def _discard_output(stream: asyncio.StreamReader) -> None:
    try:
        while await stream.read(_DISCARD_CHUNK):
            pass
    except OSError as error:
        logger.debug("Discarding worker output stopped: %s", error)


class OutputPump:
    """Relay one worker's stdout to the console until EOF or shutdown.

    States: ``READING -> DRAINING -> TERMINATED`` when the stream ends, or
    ``READING -> CANCELLING -> TERMINATED`` when shutdown is observed first.

    A line longer than the stream limit is skipped with a warning and reading
    carries on. Any other read error ends the stream and stops the child,
    since nobody would relay its output anymore.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        worker_id: int,
        label: str,
        prefix: str,
        process: asyncio.subprocess.Process,
        stream: asyncio.StreamReader,
        sink: ConsoleSink,
        shutdown: ShutdownWatch,
        graceful_shutdown_seconds: float = 0.0,
        registry: ChildRegistry | None = None,
    ) -> None:
        self.worker_id = worker_id
        self.label = label
        self.prefix = prefix
        self.process = process
        self.stream = stream
        self.sink = sink
        self.shutdown = shutdown
        self.graceful_shutdown_seconds = graceful_shutdown_seconds
        self.registry = registry
        self.state = PumpState.READING
        self.lines_emitted = 0
        self.lines_skipped = 0
        self.read_error: OSError | None = None
        self._skipping = False

    async def run(self) -> PumpResult:
        cancelled = asyncio.ensure_future(self.shutdown.wait())
        try:
            shutdown_seen = await self._pump_lines(cancelled)
            if not shutdown_seen:
                self.state = PumpState.DRAINING
                if self.read_error is None:
                    shutdown_seen = await self._await_exit(cancelled)
                else:
                    await stop_child(self.process, self.graceful_shutdown_seconds, self.stream)

            if shutdown_seen:
                self.state = PumpState.CANCELLING
                logger.debug("[%d] Received shutdown signal, stopping worker.", self.worker_id)
                await stop_child(self.process, self.graceful_shutdown_seconds, self.stream)
                exit_reason = PumpExit.CANCELLED
            else:
                exit_reason = PumpExit.STREAM_ENDED
                self._log_stream_end()
        finally:
            if not cancelled.done():
                cancelled.cancel()
            await asyncio.gather(cancelled, return_exceptions=True)
            await self._release_child()
            self.state = PumpState.TERMINATED

        logger.debug("[%d] Cleaned up.", self.worker_id)
        return PumpResult(
            worker_id=self.worker_id,
            label=self.label,
            exit=exit_reason,
            lines_emitted=self.lines_emitted,
            returncode=self.process.returncode,
        )

    async def _pump_lines(self, cancelled: asyncio.Future[None]) -> bool:
        """Return True when shutdown won the race, False on end of stream."""

        while True:
            read = asyncio.ensure_future(self._read_line())
            try:
                done, _ = await asyncio.wait(
                    {read, cancelled},
                    return_when=asyncio.FIRST_COMPLETED,
                )
            finally:
                if not read.done():
                    read.cancel()
                    await asyncio.gather(read, return_exceptions=True)

            if read not in done:
                return True

            try:
                raw = read.result()
            except OSError as error:
                logger.debug("[%d] Stream read failed, stopping worker: %s", self.worker_id, error)
                self.read_error = error
                return False
            if not raw:
                return False
            self._emit(raw)

    async def _read_line(self) -> bytes:
        """Next complete line, skipping over-long ones; ``b""`` at EOF."""

        while True:
            try:
                line = await self.stream.readuntil(_LINE_END)
            except asyncio.IncompleteReadError as error:
                return b"" if self._skipping else error.partial
            except asyncio.LimitOverrunError as error:
                if not self._skipping:
                    self.lines_skipped += 1
                    logger.warning(
                        "Worker %d (%s) wrote a line over the stream limit; skipping it.",
                        self.worker_id,
                        self.label,
                    )
                self._skipping = True
                await self.stream.readexactly(error.consumed)
                continue
            if self._skipping:
                # Tail of the over-long line, up to its newline.
                self._skipping = False
                continue
            return line

    async def _await_exit(self, cancelled: asyncio.Future[None]) -> bool:
        """After EOF wait for the child to exit; True if shutdown came first."""

        exited = asyncio.ensure_future(self.process.wait())
        try:
            done, _ = await asyncio.wait(
                {exited, cancelled},
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            if not exited.done():
                exited.cancel()
        if exited in done:
            return False
        await asyncio.gather(exited, return_exceptions=True)
        return True

    def _emit(self, raw: bytes) -> None:
        line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
        if not line.strip():
            return
        self.sink.write(self.prefix, line)
        self.lines_emitted += 1

    def _log_stream_end(self) -> None:
        returncode = self.process.returncode
        if returncode:
            logger.warning(
                "Worker %d (%s) exited with code %s.",
                self.worker_id,
                self.label,
                returncode,
            )
        else:
            logger.info("Worker %d (%s) output ended.", self.worker_id, self.label)

    async def _release_child(self) -> None:
        if self.process.returncode is None:
            # Pump exiting abnormally; never leave the child behind.
            await stop_child(self.process, stream=self.stream)
        if self.registry is not None:
            self.registry.discard(self.process)
