"""Update calculation.

Compares merged requirements against cached resource state and reports
which keys need fetching now and how long to wait before checking again.

    calculate_updates(requirements_by_key, state_by_key, now)
        -> UpdateInfo(due_keys=[...], next_check_delay=seconds)

A key that is in flight and still within its timeout is not due, even if
its data is stale. It only becomes due again once the timeout passes.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime

from fresh_spine.core.models import NEVER_FETCHED, ResourceState
from fresh_spine.core.timestamps import seconds_between, utc_now

from .requirements import Requirement

DEFAULT_MIN_UPDATE = 0.5
DEFAULT_MAX_UPDATE = 30.0


@dataclass
class UpdateInfo:
    """Keys due for a fetch and the delay until the next check."""

    due_keys: list[str] = field(default_factory=list)
    next_check_delay: float = DEFAULT_MAX_UPDATE


def calculate_updates(
    requirements_by_key: Mapping[str, Requirement],
    state_by_key: Mapping[str, ResourceState],
    now: datetime | None = None,
    min_update: float = DEFAULT_MIN_UPDATE,
    max_update: float = DEFAULT_MAX_UPDATE,
) -> UpdateInfo:
    """Compute due keys and the next check delay.

    Args:
        requirements_by_key: Merged requirement per key
        state_by_key: Cached state per key (missing keys count as never fetched)
        now: Current time (defaults to utc_now())
        min_update: Lower bound for ``next_check_delay``, in seconds
        max_update: ``next_check_delay`` when nothing is pending sooner

    Returns:
        UpdateInfo with due keys in requirement order
    """
    now = now or utc_now()
    info = UpdateInfo(next_check_delay=max_update)

    for key, requirement in requirements_by_key.items():
        state = state_by_key.get(key) or NEVER_FETCHED
        time_left = get_time_left(requirement, state, now)

        info.next_check_delay = min(info.next_check_delay, time_left)
        if time_left < 0:
            info.due_keys.append(key)

    info.next_check_delay = max(info.next_check_delay, min_update)
    return info


def get_time_left(requirement: Requirement, state: ResourceState, now: datetime) -> float:
    """Seconds until a key is due (negative when overdue)."""
    freshness_left = get_freshness_left(requirement.freshness, state, now)

    if state.is_requested and freshness_left <= 0:
        return get_timeout_left(requirement.effective_timeout, state, now)
    return freshness_left


def get_timeout_left(timeout: float | None, state: ResourceState, now: datetime) -> float:
    """Seconds until an outstanding request times out.

    Returns:
        Remaining seconds, or ``math.inf`` if nothing is outstanding
    """
    if timeout is not None and state.is_requested:
        return timeout - seconds_between(state.last_requested, now)
    return math.inf


def get_freshness_left(freshness: float | None, state: ResourceState, now: datetime) -> float:
    """Seconds until cached data goes stale.

    Never-received data is maximally overdue when a freshness is required,
    and never due when it is not.
    """
    if freshness is None or math.isinf(freshness):
        return math.inf
    if state.last_received is None:
        return -math.inf
    return freshness - seconds_between(state.last_received, now)
