"""
Shared pytest fixtures for fresh-spine tests.

This module provides:
- A fixed reference time and a controllable clock
- Fake timers that record delays and fire callbacks on demand
- Settings cache isolation

Usage:
    def test_something(clock, fake_timers):
        scheduler = Scheduler(operations, timers=fake_timers, clock=clock)
        clock.advance(30)
        fake_timers.fire()
"""

from datetime import datetime

import pytest

from fresh_spine.core import settings as settings_module
from tests._support import T0, FakeClock, FakeTimers


@pytest.fixture
def now() -> datetime:
    return T0


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_timers() -> FakeTimers:
    return FakeTimers()


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Each test sees settings loaded from its own environment."""
    settings_module._settings_cache.clear()
    yield
    settings_module._settings_cache.clear()
