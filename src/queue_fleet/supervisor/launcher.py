"""Spawn worker processes and make sure none outlives the supervisor."""

from __future__ import annotations

import asyncio
import atexit
import logging
import os
import signal
import threading

from queue_fleet.supervisor.invocation import render_command
from queue_fleet.supervisor.models import WorkerSpec

logger = logging.getLogger(__name__)

DEFAULT_STREAM_LIMIT = 1024 * 1024
_HARD_KILL = getattr(signal, "SIGKILL", signal.SIGTERM)


class LaunchError(RuntimeError):
    """A worker process could not be started. Fatal for the whole run."""

    def __init__(self, message: str, *, spec: WorkerSpec) -> None:
        super().__init__(message)
        self.spec = spec


class ChildRegistry:
    """Track live children and hard-kill leftovers at interpreter exit."""

    def __init__(self) -> None:
        self._children: dict[int, asyncio.subprocess.Process] = {}
        self._lock = threading.Lock()
        self._hook_installed = False

    def register(self, process: asyncio.subprocess.Process) -> None:
        with self._lock:
            self._children[process.pid] = process
            if not self._hook_installed:
                atexit.register(self.kill_all)
                self._hook_installed = True

    def discard(self, process: asyncio.subprocess.Process) -> None:
        with self._lock:
            self._children.pop(process.pid, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._children)

    def kill_all(self) -> int:
        """Send a hard kill to every still-running child. Returns how many were signalled."""

        with self._lock:
            children = list(self._children.values())
            self._children.clear()

        killed = 0
        for process in children:
            if process.returncode is not None:
                continue
            try:
                os.kill(process.pid, _HARD_KILL)
            except OSError as error:
                logger.debug("Leftover child pid=%s already gone: %s", process.pid, error)
                continue
            killed += 1
        if killed:
            logger.warning("Killed %d leftover worker process(es) at exit.", killed)
        return killed


CHILD_REGISTRY = ChildRegistry()


class ProcessLauncher:
    """Start one worker per spec with stdout piped and stderr passed through."""

    def __init__(
        self,
        *,
        registry: ChildRegistry | None = None,
        stream_limit: int = DEFAULT_STREAM_LIMIT,
    ) -> None:
        self.registry = registry if registry is not None else CHILD_REGISTRY
        self.stream_limit = stream_limit

    async def launch(self, spec: WorkerSpec) -> asyncio.subprocess.Process:
        try:
            process = await asyncio.create_subprocess_exec(
                spec.program,
                *spec.args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=None,
                limit=self.stream_limit,
            )
        except FileNotFoundError as error:
            raise LaunchError(
                f"Worker command not found: {spec.program}",
                spec=spec,
            ) from error
        except OSError as error:
            raise LaunchError(
                f"Worker {spec.id} ({spec.label}) failed to start: {error}",
                spec=spec,
            ) from error

        self.registry.register(process)
        logger.info(
            "Started worker %d (%s) pid=%s: %s",
            spec.id,
            spec.label,
            process.pid,
            render_command(spec.program, spec.args),
        )
        return process
