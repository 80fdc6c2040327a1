"""Shared console sink for labeled worker output."""

from __future__ import annotations

import threading
from collections.abc import Callable

import click

SEPARATOR = "| "


class ConsoleSink:
    """Serialize whole-line writes so prefixes and payloads never interleave."""

    def __init__(self, writer: Callable[[str], None] | None = None) -> None:
        self._writer = writer or click.echo
        self._lock = threading.Lock()

    def write(self, prefix: str, line: str) -> None:
        self._emit(f"{prefix}{SEPARATOR}{line}")

    def notice(self, message: str) -> None:
        self._emit(message)

    def _emit(self, text: str) -> None:
        with self._lock:
            self._writer(text)
