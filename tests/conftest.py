"""Shared test fixtures."""

from __future__ import annotations

import asyncio
import os
import sys
from pathlib import Path

import pytest

from queue_fleet.config import WorkerCommandSettings
from queue_fleet.supervisor.console import ConsoleSink

SRC_DIR = Path(__file__).resolve().parents[1] / "src"
FAKE_WORKER_ARGS = ("-m", "queue_fleet.fake_worker")


@pytest.fixture()
def fake_worker_env(monkeypatch):
    """Point the fleet at the bundled fake worker instead of php artisan."""

    pythonpath = os.environ.get("PYTHONPATH")
    monkeypatch.setenv(
        "PYTHONPATH",
        str(SRC_DIR) if not pythonpath else f"{SRC_DIR}{os.pathsep}{pythonpath}",
    )
    monkeypatch.setenv("QUEUE_FLEET_BASE_PROGRAM", sys.executable)
    monkeypatch.setenv("QUEUE_FLEET_BASE_ARGS", "-m queue_fleet.fake_worker")
    monkeypatch.setenv("QUEUE_FLEET_SHIM_PROGRAM", "env")
    monkeypatch.setenv("QUEUE_FLEET_GRACEFUL_SHUTDOWN_SECONDS", "2")


@pytest.fixture()
def fake_worker_settings(fake_worker_env) -> WorkerCommandSettings:
    return WorkerCommandSettings(base_program=sys.executable, base_args=FAKE_WORKER_ARGS)


class CapturedConsole:
    """Console sink writer that records every emitted line."""

    def __init__(self) -> None:
        self.lines: list[str] = []
        self.sink = ConsoleSink(self.lines.append)

    def job_lines(self) -> list[str]:
        return [line for line in self.lines if " job " in line]


@pytest.fixture()
def console() -> CapturedConsole:
    return CapturedConsole()


class FakeProcess:
    """Minimal stand-in for ``asyncio.subprocess.Process``."""

    def __init__(self, *, pid: int = 4242, ignore_term: bool = False) -> None:
        self.pid = pid
        self.returncode: int | None = None
        self.signals: list[str] = []
        self.ignore_term = ignore_term
        self._exited = asyncio.Event()

    def terminate(self) -> None:
        self.signals.append("TERM")
        if not self.ignore_term:
            self.finish(-15)

    def kill(self) -> None:
        self.signals.append("KILL")
        self.finish(-9)

    def finish(self, returncode: int) -> None:
        if self.returncode is None:
            self.returncode = returncode
            self._exited.set()

    async def wait(self) -> int:
        await self._exited.wait()
        assert self.returncode is not None
        return self.returncode


async def wait_until(predicate, *, timeout: float = 15.0, interval: float = 0.02) -> None:
    """Poll ``predicate`` inside the running loop until it holds."""

    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() >= deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(interval)
