"""
Clock utilities (stdlib-only).

Shared time primitives for the scheduler: a timezone-aware UTC clock and
null-tolerant comparisons between two possibly-absent timestamps.

Manifesto:
    Every timing decision in fresh-spine compares "now" against a stored
    timestamp that may not exist yet (never requested, never received).
    Centralising the None handling keeps those comparisons consistent:

    - **utc_now():** Timezone-aware UTC datetime
    - **is_time_earlier():** "Is the new time earlier than the existing one?"
    - **seconds_between():** Signed float seconds from one time to another

Tags:
    timestamps, utc, datetime, clock, fresh-spine, stdlib-only

Doc-Types:
    - API Reference
    - Utility Documentation

STDLIB ONLY - NO PYDANTIC.
"""

from datetime import UTC, datetime, timedelta


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def is_time_earlier(existing: datetime | None, new: datetime | None) -> bool:
    """Check if a new time is earlier than an existing one.

    An absent existing time is "later" than any present new time, so a
    present ``new`` always wins over ``None``. An absent ``new`` never wins.

    Args:
        existing: The time currently held (may be None)
        new: The candidate time (may be None)

    Returns:
        True if ``new`` should replace ``existing``
    """
    if existing is new:
        return False
    if existing is None:
        return new is not None
    if new is None:
        return False
    return new < existing


def seconds_between(start: datetime, end: datetime) -> float:
    """Signed number of seconds from ``start`` to ``end``."""
    return (end - start).total_seconds()


def add_seconds(moment: datetime, seconds: float) -> datetime:
    """Offset a datetime by float seconds."""
    return moment + timedelta(seconds=seconds)
