"""DevInfoRecorder - injectable inspection listener.

Subscribes to one or more clients and keeps a snapshot of each one
current, keyed by client name. Nothing is global: create a recorder,
attach it to the clients you want to watch, read ``recorder.info``.

Example:
    >>> recorder = DevInfoRecorder()
    >>> recorder.attach(client)
    >>> recorder.info["things"]["resources"]["thing:1"]["status"]
    'fresh'
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fresh_spine.core.logging import get_logger

from .resources import resource_info

if TYPE_CHECKING:
    from fresh_spine.client.api_client import ApiClient

logger = get_logger(__name__)


class DevInfoRecorder:
    """Keeps ``info[client_name]`` current for every attached client."""

    def __init__(self) -> None:
        self.info: dict[str, dict[str, Any]] = {}

    def attach(self, client: ApiClient) -> bool:
        """Start recording a client.

        Returns:
            False if the client was already attached
        """
        if client.subscribe(self.update) is False:
            return False
        logger.debug("devinfo.attached", client=client.get_name())
        self.update(client)
        return True

    def detach(self, client: ApiClient) -> bool:
        if client.unsubscribe(self.update) is False:
            return False
        self.info.pop(client.get_name(), None)
        logger.debug("devinfo.detached", client=client.get_name())
        return True

    def update(self, client: ApiClient) -> None:
        """Refresh the snapshot of one client (the subscription callback)."""
        now = client.clock()
        self.info[client.get_name()] = {
            "uid": client.uid,
            "resources": resource_info(client, now),
            "requests": client.scheduler.snapshot(now),
            "stats": client.scheduler.get_stats().to_dict(),
        }
