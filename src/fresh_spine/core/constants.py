"""
Duration constants for expressing requirements.

All durations in fresh-spine are float seconds. Use these to keep
requirement declarations readable::

    Requirement(freshness=5 * MINUTE, timeout=10 * SECOND)

STDLIB ONLY - NO PYDANTIC.
"""

SECOND = 1.0
MINUTE = 60 * SECOND
HOUR = 60 * MINUTE
