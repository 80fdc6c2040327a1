"""Worker fleet supervision: launch, pump output, shut down together.

One asyncio task per worker relays that worker's stdout to a shared console
sink. A single sticky shutdown signal fans out to every pump, and each pump
stops only the child it owns. The supervisor never restarts or health-checks
workers; a dead worker simply ends its stream.
"""

from queue_fleet.supervisor.cancellation import ShutdownSignal, ShutdownWatch
from queue_fleet.supervisor.console import ConsoleSink
from queue_fleet.supervisor.invocation import InvocationOptions, build_command
from queue_fleet.supervisor.launcher import ChildRegistry, LaunchError, ProcessLauncher
from queue_fleet.supervisor.models import (
    PumpExit,
    PumpResult,
    PumpState,
    QueueRequest,
    SupervisorRunSummary,
    WorkerHandle,
    WorkerSpec,
)
from queue_fleet.supervisor.pump import OutputPump, stop_child
from queue_fleet.supervisor.reaper import SignalInstallError, Supervisor
from queue_fleet.supervisor.resolver import LabelLayout, resolve_worker_specs

__all__ = [
    "ChildRegistry",
    "ConsoleSink",
    "InvocationOptions",
    "LabelLayout",
    "LaunchError",
    "OutputPump",
    "ProcessLauncher",
    "PumpExit",
    "PumpResult",
    "PumpState",
    "QueueRequest",
    "ShutdownSignal",
    "ShutdownWatch",
    "SignalInstallError",
    "Supervisor",
    "SupervisorRunSummary",
    "WorkerHandle",
    "WorkerSpec",
    "build_command",
    "resolve_worker_specs",
    "stop_child",
]
