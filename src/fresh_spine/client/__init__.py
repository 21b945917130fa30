"""Consumer-facing API client."""

from .api_client import ApiClient, ApiSpec
from .keys import resource_key, split_resource_key
from .state import reduce_received, reduce_requested

__all__ = [
    "ApiClient",
    "ApiSpec",
    "reduce_received",
    "reduce_requested",
    "resource_key",
    "split_resource_key",
]
