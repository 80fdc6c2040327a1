"""Single write-once shutdown signal broadcast to every pump."""

from __future__ import annotations

import asyncio


class ShutdownWatch:
    """Read-only view of a :class:`ShutdownSignal` handed to one pump."""

    __slots__ = ("_signal",)

    def __init__(self, signal: ShutdownSignal) -> None:
        self._signal = signal

    @property
    def is_set(self) -> bool:
        return self._signal.is_set

    async def wait(self) -> None:
        await self._signal.wait()


class ShutdownSignal:
    """Sticky cancellation flag.

    ``cancel()`` may be called any number of times; only the first call has an
    effect. Readers that check after the fact still see it set.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None

    @property
    def is_set(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str | None = None) -> bool:
        """Set the signal. Returns True only for the call that actually set it."""

        if self._event.is_set():
            return False
        self._reason = reason
        self._event.set()
        return True

    async def wait(self) -> None:
        await self._event.wait()

    def watch(self) -> ShutdownWatch:
        return ShutdownWatch(self)
