"""Developer inspection of API clients."""

from .recorder import DevInfoRecorder
from .resources import ResourceStatus, resource_info, seconds_to_string

__all__ = ["DevInfoRecorder", "ResourceStatus", "resource_info", "seconds_to_string"]
