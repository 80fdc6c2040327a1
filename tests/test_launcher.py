from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import allure
import pytest
from conftest import FAKE_WORKER_ARGS

from queue_fleet.supervisor.launcher import ChildRegistry, LaunchError, ProcessLauncher
from queue_fleet.supervisor.models import WorkerSpec

pytestmark = [
    allure.epic("Worker Fleet"),
    allure.feature("Process Launch"),
]


def _fake_spec(*extra: str) -> WorkerSpec:
    return WorkerSpec(
        id=1,
        label="default",
        program=sys.executable,
        args=(*FAKE_WORKER_ARGS, "queue:listen", "--queue", "default", *extra),
        queue="default",
    )


def test_launch_pipes_stdout_and_registers_child(fake_worker_env) -> None:
    registry = ChildRegistry()

    async def _scenario():
        process = await ProcessLauncher(registry=registry).launch(_fake_spec("--exit", "0"))
        assert len(registry) == 1
        assert process.stdout is not None
        output = await asyncio.wait_for(process.stdout.read(), timeout=15)
        returncode = await asyncio.wait_for(process.wait(), timeout=15)
        return output.decode(), returncode

    output, returncode = asyncio.run(_scenario())

    assert "queue:listen default job 1 processed" in output
    assert "queue:listen default job 2 processed" in output
    assert returncode == 0


def test_missing_executable_raises_launch_error() -> None:
    registry = ChildRegistry()
    spec = WorkerSpec(id=3, label="emails", program="queue-fleet-no-such-binary", args=())

    async def _scenario():
        await ProcessLauncher(registry=registry).launch(spec)

    with pytest.raises(LaunchError, match="command not found") as excinfo:
        asyncio.run(_scenario())
    assert excinfo.value.spec is spec
    assert len(registry) == 0


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX permission bits")
def test_non_executable_program_raises_launch_error(tmp_path: Path) -> None:
    script = tmp_path / "worker.sh"
    script.write_text("#!/bin/sh\necho hi\n", "utf-8")
    script.chmod(0o644)
    spec = WorkerSpec(id=1, label="default", program=str(script), args=())

    async def _scenario():
        await ProcessLauncher(registry=ChildRegistry()).launch(spec)

    with pytest.raises(LaunchError, match="failed to start"):
        asyncio.run(_scenario())


def test_registry_kill_all_stops_leftover_children(fake_worker_env) -> None:
    registry = ChildRegistry()

    async def _scenario():
        process = await ProcessLauncher(registry=registry).launch(_fake_spec())
        assert process.stdout is not None
        await asyncio.wait_for(process.stdout.readline(), timeout=15)
        killed = registry.kill_all()
        returncode = await asyncio.wait_for(process.wait(), timeout=15)
        return killed, returncode

    killed, returncode = asyncio.run(_scenario())

    assert killed == 1
    assert returncode != 0
    assert len(registry) == 0


def test_registry_skips_children_that_already_exited(fake_worker_env) -> None:
    registry = ChildRegistry()

    async def _scenario():
        process = await ProcessLauncher(registry=registry).launch(_fake_spec("--exit", "0"))
        await asyncio.wait_for(process.wait(), timeout=15)
        return registry.kill_all()

    assert asyncio.run(_scenario()) == 0
