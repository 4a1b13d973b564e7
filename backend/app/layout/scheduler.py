"""Tick schedulers driving the layout simulation."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from typing_extensions import Protocol

LOGGER = logging.getLogger(__name__)

TickCallback = Callable[[], None]


class TickScheduler(Protocol):
    """Start/stop handle for a repeating tick callback."""

    @property
    def active(self) -> bool:
        """Return whether a callback is currently scheduled."""

    def start(self, callback: TickCallback) -> None:
        """Begin (or continue) invoking ``callback`` once per tick."""

    def stop(self) -> None:
        """Cancel any pending invocation."""


class ManualTickScheduler:
    """Scheduler advanced explicitly by the caller.

    Used by tests, the CLI and the HTTP layer, which all settle layouts
    synchronously instead of animating them.
    """

    def __init__(self) -> None:
        self._callback: Optional[TickCallback] = None
        self.starts = 0

    @property
    def active(self) -> bool:
        return self._callback is not None

    def start(self, callback: TickCallback) -> None:
        self._callback = callback
        self.starts += 1

    def stop(self) -> None:
        self._callback = None

    def advance(self, ticks: int = 1) -> int:
        """Run up to ``ticks`` callbacks, stopping early if the scheduler stops.

        Returns:
            int: Number of callbacks actually executed.
        """

        executed = 0
        while executed < ticks and self._callback is not None:
            self._callback()
            executed += 1
        return executed


class AsyncioTickScheduler:
    """Scheduler backed by an asyncio event loop timer.

    Each callback runs to completion on the loop thread; the next one is queued
    with ``call_later`` so pointer and HTTP events interleave between ticks.
    """

    def __init__(self, interval_seconds: float, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        if interval_seconds < 0:
            raise ValueError("interval_seconds must not be negative")
        self._interval = interval_seconds
        self._loop = loop
        self._callback: Optional[TickCallback] = None
        self._handle: Optional[asyncio.Handle] = None

    @classmethod
    def factory(
        cls, interval_seconds: float, loop: Optional[asyncio.AbstractEventLoop] = None
    ) -> Callable[[], "AsyncioTickScheduler"]:
        """Return a zero-argument factory suitable for ``KnowledgeGraphView``."""

        return lambda: cls(interval_seconds, loop)

    @property
    def active(self) -> bool:
        return self._callback is not None

    def start(self, callback: TickCallback) -> None:
        """Schedule ``callback``; must be called with a running loop unless one was given."""

        self._callback = callback
        if self._handle is None:
            loop = self._loop or asyncio.get_running_loop()
            self._loop = loop
            self._handle = loop.call_soon(self._run)

    def stop(self) -> None:
        self._callback = None
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _run(self) -> None:
        self._handle = None
        callback = self._callback
        if callback is None:
            return
        try:
            callback()
        except Exception:
            LOGGER.exception("Layout tick failed; stopping scheduler")
            self.stop()
            raise
        if self._callback is not None and self._handle is None and self._loop is not None:
            self._handle = self._loop.call_later(self._interval, self._run)


__all__ = ["AsyncioTickScheduler", "ManualTickScheduler", "TickCallback", "TickScheduler"]
