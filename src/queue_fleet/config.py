"""Runtime configuration for the worker fleet."""

from __future__ import annotations

import os
import shlex
from dataclasses import dataclass, field


@dataclass(slots=True)
class WorkerCommandSettings:
    """How a single queue worker is invoked."""

    base_program: str = "php"
    base_args: tuple[str, ...] = ("artisan",)
    shim_program: str = "herd"
    listen_command: str = "queue:listen"
    work_command: str = "queue:work"
    default_timeout_seconds: int = 60
    verbose_flag: str = "-v"


@dataclass(slots=True)
class SupervisorSettings:
    """Fleet-level defaults and shutdown tuning."""

    default_queue: str = "default"
    default_queue_count: int = 2
    graceful_shutdown_seconds: float = 10.0
    stream_limit_bytes: int = 1024 * 1024


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    worker: WorkerCommandSettings = field(default_factory=WorkerCommandSettings)
    supervisor: SupervisorSettings = field(default_factory=SupervisorSettings)

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment, falling back to the Laravel defaults."""

        return cls(
            worker=WorkerCommandSettings(
                base_program=_env_str("QUEUE_FLEET_BASE_PROGRAM", "php"),
                base_args=_env_args("QUEUE_FLEET_BASE_ARGS", ("artisan",)),
                shim_program=_env_str("QUEUE_FLEET_SHIM_PROGRAM", "herd"),
                listen_command=_env_str("QUEUE_FLEET_LISTEN_COMMAND", "queue:listen"),
                work_command=_env_str("QUEUE_FLEET_WORK_COMMAND", "queue:work"),
                default_timeout_seconds=_env_int("QUEUE_FLEET_DEFAULT_TIMEOUT_SECONDS", 60),
                verbose_flag=_env_str("QUEUE_FLEET_VERBOSE_FLAG", "-v"),
            ),
            supervisor=SupervisorSettings(
                default_queue=_env_str("QUEUE_FLEET_DEFAULT_QUEUE", "default"),
                default_queue_count=_env_int("QUEUE_FLEET_DEFAULT_QUEUE_COUNT", 2),
                graceful_shutdown_seconds=_env_float(
                    "QUEUE_FLEET_GRACEFUL_SHUTDOWN_SECONDS",
                    10.0,
                ),
                stream_limit_bytes=_env_int("QUEUE_FLEET_STREAM_LIMIT_BYTES", 1024 * 1024),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error if any setting cannot drive a run."""

        if not self.worker.base_program.strip():
            raise ValueError("QUEUE_FLEET_BASE_PROGRAM must not be empty.")
        if not self.worker.shim_program.strip():
            raise ValueError("QUEUE_FLEET_SHIM_PROGRAM must not be empty.")
        if not self.worker.listen_command.strip():
            raise ValueError("QUEUE_FLEET_LISTEN_COMMAND must not be empty.")
        if not self.worker.work_command.strip():
            raise ValueError("QUEUE_FLEET_WORK_COMMAND must not be empty.")
        if self.worker.default_timeout_seconds < 0:
            raise ValueError("QUEUE_FLEET_DEFAULT_TIMEOUT_SECONDS must be >= 0.")
        if not self.supervisor.default_queue.strip():
            raise ValueError("QUEUE_FLEET_DEFAULT_QUEUE must not be empty.")
        if self.supervisor.default_queue_count <= 0:
            raise ValueError("QUEUE_FLEET_DEFAULT_QUEUE_COUNT must be a positive integer.")
        if self.supervisor.graceful_shutdown_seconds < 0:
            raise ValueError("QUEUE_FLEET_GRACEFUL_SHUTDOWN_SECONDS must be >= 0.")
        if self.supervisor.stream_limit_bytes <= 0:
            raise ValueError("QUEUE_FLEET_STREAM_LIMIT_BYTES must be a positive integer.")


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip()


def _env_args(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return tuple(shlex.split(value))
    except ValueError as error:
        raise ValueError(f"Invalid argument list for {name}: {value!r} ({error})") from error


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value.strip())
    except ValueError as error:
        raise ValueError(f"Invalid integer value for {name}: {value!r}") from error


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value.strip())
    except ValueError as error:
        raise ValueError(f"Invalid number value for {name}: {value!r}") from error
