"""Resource inspection summaries.

Compiles a per-key view of a client for debugging: whether each key is
fresh, stale or being fetched, a human summary of the time involved, and
which consumers require it.
"""

from __future__ import annotations

import math
from collections.abc import Hashable, Iterable, Mapping
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from fresh_spine.core.constants import HOUR, MINUTE
from fresh_spine.core.models import NEVER_FETCHED, ResourceState
from fresh_spine.scheduling.requirements import Requirement
from fresh_spine.scheduling.updates import get_freshness_left, get_timeout_left

if TYPE_CHECKING:
    from fresh_spine.client.api_client import ApiClient


class ResourceStatus(str, Enum):
    """How a resource looks against its combined requirement."""

    OVERDUE = "overdue"
    FETCHING = "fetching"
    STALE = "stale"
    FRESH = "fresh"
    NOT_REQUIRED = "not_required"


def resource_info(client: ApiClient, now: datetime | None = None) -> dict[str, dict[str, Any]]:
    """Detailed info for every key the client caches or requires.

    Returns:
        ``{key: {"status", "summary", "data"[, "combined_requirement",
        "consumers_requiring"]}}``
    """
    now = now or client.clock()
    requirements = client.requirements_by_key
    keys = dict.fromkeys([*client.state, *requirements])
    info: dict[str, dict[str, Any]] = {}

    for key in keys:
        state = client.state.get(key, NEVER_FETCHED)
        requirement = requirements.get(key)
        status = get_resource_status(state, requirement, now)

        info[key] = {
            "status": status.value,
            "summary": get_summary(status, state, requirement, now),
            "data": state.data,
        }
        if requirement is not None:
            info[key]["combined_requirement"] = {
                "freshness": seconds_to_string(requirement.freshness),
                "timeout": seconds_to_string(requirement.timeout),
            }
            info[key]["consumers_requiring"] = consumers_requiring(
                client.requirements_by_consumer, key
            )

    return info


def get_resource_status(
    state: ResourceState,
    requirement: Requirement | None,
    now: datetime,
) -> ResourceStatus:
    if requirement is None:
        return ResourceStatus.NOT_REQUIRED
    if state.is_requested:
        if get_timeout_left(requirement.effective_timeout, state, now) < 0:
            return ResourceStatus.OVERDUE
        return ResourceStatus.FETCHING
    if get_freshness_left(requirement.freshness, state, now) < 0:
        return ResourceStatus.STALE
    return ResourceStatus.FRESH


def get_summary(
    status: ResourceStatus,
    state: ResourceState,
    requirement: Requirement | None,
    now: datetime,
) -> str:
    if requirement is None or status == ResourceStatus.NOT_REQUIRED:
        return "Resource is not fetched directly."

    if status == ResourceStatus.OVERDUE:
        timeout_left = get_timeout_left(requirement.effective_timeout, state, now)
        return f"Timed out for {seconds_to_string(-timeout_left)}"
    if status == ResourceStatus.FETCHING:
        timeout_left = get_timeout_left(requirement.effective_timeout, state, now)
        return f"{seconds_to_string(timeout_left)} until timeout"

    freshness_left = get_freshness_left(requirement.freshness, state, now)
    if status == ResourceStatus.STALE:
        if math.isinf(freshness_left):
            return "Never received"
        return f"Stale for {seconds_to_string(-freshness_left)}"
    if math.isinf(freshness_left):
        return "No freshness required"
    return f"Fresh for {seconds_to_string(freshness_left)}"


def seconds_to_string(seconds: float | None) -> str:
    """Render a duration as ``"1 hours 2 mins 3 secs"``.

    Zero or unset durations render as an empty string, infinite ones as "never".
    """
    if not seconds:
        return ""
    if math.isinf(seconds):
        return "never"

    hours, seconds = divmod(seconds, HOUR)
    minutes, seconds = divmod(seconds, MINUTE)
    seconds = round(seconds, 3)

    parts = []
    if hours:
        parts.append(f"{int(hours)} hours")
    if minutes:
        parts.append(f"{int(minutes)} mins")
    if seconds:
        parts.append(f"{seconds:g} secs")
    return " ".join(parts)


def consumers_requiring(
    requirements_by_consumer: Mapping[Hashable, Iterable[tuple[str, Requirement]]],
    key: str,
) -> list[Hashable] | None:
    """Consumers that declared a requirement for ``key``, or None."""
    consumers = [
        consumer
        for consumer, requirements in requirements_by_consumer.items()
        if any(required_key == key for required_key, _ in requirements)
    ]
    return consumers or None
