"""
fresh-spine - freshness-driven data scheduling.

Consumers declare how fresh each piece of remote data must be; fresh-spine
decides what to fetch, batches fetches per operation, de-duplicates work
that is already in flight and re-sends requests that time out.

- fresh_spine.core: Errors, logging, settings and timestamps
- fresh_spine.scheduling: Requirements, update calculation, requests, scheduler
- fresh_spine.client: ApiClient façade, resource keys and state reducers
- fresh_spine.devinfo: Optional inspection listener
"""

__version__ = "0.1.0"

from fresh_spine.client import ApiClient, ApiSpec, resource_key, split_resource_key
from fresh_spine.core import (
    HOUR,
    MINUTE,
    SECOND,
    FreshSpineError,
    InvalidRequirementError,
    InvalidTransitionError,
    NoEventLoopError,
    OperationError,
    OperationNotFoundError,
    RequestTimeoutError,
    utc_now,
)
from fresh_spine.core.models import ResourceState
from fresh_spine.core.settings import FreshSpineSettings, get_settings
from fresh_spine.scheduling import (
    AsyncioTimers,
    RequestStatus,
    Requirement,
    ResourceRequest,
    Scheduler,
    Timers,
    UpdateInfo,
    calculate_updates,
    merge_requirement,
)

__all__ = [
    "HOUR",
    "MINUTE",
    "SECOND",
    "ApiClient",
    "ApiSpec",
    "AsyncioTimers",
    "FreshSpineError",
    "FreshSpineSettings",
    "InvalidRequirementError",
    "InvalidTransitionError",
    "NoEventLoopError",
    "OperationError",
    "OperationNotFoundError",
    "RequestStatus",
    "RequestTimeoutError",
    "Requirement",
    "ResourceRequest",
    "ResourceState",
    "Scheduler",
    "Timers",
    "UpdateInfo",
    "calculate_updates",
    "get_settings",
    "merge_requirement",
    "resource_key",
    "split_resource_key",
    "utc_now",
]
