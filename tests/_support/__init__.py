"""
Test support utilities for fresh-spine tests.

Helpers that are imported directly by test modules rather than injected
as fixtures: a fixed reference time, a controllable clock and fake timers.
"""

from __future__ import annotations

import itertools
from datetime import UTC, datetime, timedelta
from typing import Any

T0 = datetime(2024, 1, 15, 12, 0, 0, tzinfo=UTC)


def at(seconds: float) -> datetime:
    """A moment ``seconds`` after (or before, if negative) T0."""
    return T0 + timedelta(seconds=seconds)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now += timedelta(seconds=seconds)
        return self.now


class FakeTimers:
    """Timers backend that records armed timers instead of sleeping."""

    def __init__(self):
        self.armed: dict[int, tuple[Any, float]] = {}
        self._handles = itertools.count(1)

    def set_timer(self, callback, delay_seconds: float) -> int:
        handle = next(self._handles)
        self.armed[handle] = (callback, delay_seconds)
        return handle

    def clear_timer(self, handle: int) -> None:
        self.armed.pop(handle, None)

    @property
    def delays(self) -> list[float]:
        return [delay for _, delay in self.armed.values()]

    def fire(self) -> None:
        """Run every armed callback once."""
        armed, self.armed = self.armed, {}
        for callback, _ in armed.values():
            callback()
