"""Timer primitives for the scheduler.

The scheduler never sleeps. It arms a single one-shot timer for the next
moment something is due, and re-arms it after every tick. How that timer
is implemented is pluggable:

::

    ┌─────────────────┐   set_timer(cb, delay)   ┌─────────────────┐
    │   Scheduler     │ ───────────────────────► │  Timers         │
    │                 │   clear_timer(handle)    │  (AsyncioTimers │
    │ process_requests│ ◄─────────────────────── │   or a fake)    │
    └─────────────────┘        cb()              └─────────────────┘

``AsyncioTimers`` (the default) uses the running event loop. Tests inject
a fake that records calls and fires callbacks on demand.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from fresh_spine.core.errors import NoEventLoopError

TimerCallback = Callable[[], None]


@runtime_checkable
class Timers(Protocol):
    """Protocol for one-shot timer backends."""

    def set_timer(self, callback: TimerCallback, delay_seconds: float) -> Any:
        """Call ``callback`` once after ``delay_seconds``; return a handle."""
        ...

    def clear_timer(self, handle: Any) -> None:
        """Cancel a handle returned by :meth:`set_timer`."""
        ...


class AsyncioTimers:
    """Timers backed by the running asyncio event loop.

    Without an explicit ``loop``, ``set_timer`` must be called from inside
    the running loop (any coroutine or loop callback).
    """

    name = "asyncio"

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def set_timer(self, callback: TimerCallback, delay_seconds: float) -> asyncio.TimerHandle:
        loop = self._loop or _running_loop()
        return loop.call_later(max(delay_seconds, 0.0), callback)

    def clear_timer(self, handle: asyncio.TimerHandle) -> None:
        handle.cancel()


def _running_loop() -> asyncio.AbstractEventLoop:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        raise NoEventLoopError(
            "AsyncioTimers needs a running event loop: schedule from inside a "
            "coroutine, pass AsyncioTimers(loop=...), or inject another Timers backend"
        ) from None
