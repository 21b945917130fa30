"""Requirement merging, update calculation and request scheduling."""

from .request import (
    DEFAULT_READ_OPERATION,
    PENDING_STATUSES,
    SENT_STATUSES,
    TERMINAL_STATUSES,
    RequestStatus,
    ResourceRequest,
    calculate_request_time,
)
from .requirements import (
    DEFAULT_FRESHNESS,
    DEFAULT_TIMEOUT,
    Requirement,
    as_requirement,
    combine_consumer_requirements,
    merge_requirement,
    merge_requirements_for_keys,
)
from .scheduler import Scheduler, SchedulerStats, combine_request_data, group_requests_by_operation
from .timers import AsyncioTimers, Timers
from .updates import (
    DEFAULT_MAX_UPDATE,
    DEFAULT_MIN_UPDATE,
    UpdateInfo,
    calculate_updates,
    get_freshness_left,
    get_time_left,
    get_timeout_left,
)

__all__ = [
    "DEFAULT_FRESHNESS",
    "DEFAULT_MAX_UPDATE",
    "DEFAULT_MIN_UPDATE",
    "DEFAULT_READ_OPERATION",
    "DEFAULT_TIMEOUT",
    "PENDING_STATUSES",
    "SENT_STATUSES",
    "TERMINAL_STATUSES",
    "AsyncioTimers",
    "RequestStatus",
    "Requirement",
    "ResourceRequest",
    "Scheduler",
    "SchedulerStats",
    "Timers",
    "UpdateInfo",
    "as_requirement",
    "calculate_request_time",
    "calculate_updates",
    "combine_consumer_requirements",
    "combine_request_data",
    "get_freshness_left",
    "get_time_left",
    "get_timeout_left",
    "group_requests_by_operation",
    "merge_requirement",
    "merge_requirements_for_keys",
]
