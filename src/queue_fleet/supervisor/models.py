"""Domain models for worker launch, output pumping and shutdown."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from queue_fleet.supervisor.pump import OutputPump


class PumpState(str, Enum):
    """Lifecycle states of one worker's output pump."""

    READING = "reading"
    DRAINING = "draining"
    CANCELLING = "cancelling"
    TERMINATED = "terminated"


class PumpExit(str, Enum):
    """How a pump reached its terminal state."""

    STREAM_ENDED = "stream_ended"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class QueueRequest:
    """One parsed group of requested workers.

    ``name`` is ``None`` for unnamed workers requested by a flat count.
    """

    name: str | None
    count: int


@dataclass(frozen=True, slots=True)
class WorkerSpec:
    """Resolved, immutable description of one worker to launch."""

    id: int
    label: str
    program: str
    args: tuple[str, ...]
    queue: str | None = None

    @property
    def command(self) -> list[str]:
        return [self.program, *self.args]


@dataclass(slots=True)
class PumpResult:
    """Outcome of one pump loop."""

    worker_id: int
    label: str
    exit: PumpExit
    lines_emitted: int
    returncode: int | None


@dataclass(slots=True)
class WorkerHandle:
    """Supervisor-owned bundle of a running worker: child, stream and pump task."""

    id: int
    label: str
    process: asyncio.subprocess.Process
    stream: asyncio.StreamReader
    pump: OutputPump
    task: asyncio.Task[PumpResult]


@dataclass(slots=True)
class SupervisorRunSummary:
    """Aggregate counts reported once every pump has been joined."""

    workers: int = 0
    stream_ended: int = 0
    cancelled: int = 0
    failed: int = 0
    results: list[PumpResult] = field(default_factory=list)
