"""Resource state model.

A ``ResourceState`` is the client's cached knowledge about one resource
key: when it was last requested, when a response last arrived, and the
data or error that response carried.

It is immutable. Reducers in :mod:`fresh_spine.client.state` return new
instances so that identity comparison is enough to detect change.

STDLIB ONLY - NO PYDANTIC.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class ResourceState:
    """Cached state of one resource key.

    A fresh instance (all ``None``) means "never fetched".
    """

    last_requested: datetime | None = None
    last_received: datetime | None = None
    data: Any = None
    error: Any = field(default=None, compare=False)

    @property
    def is_requested(self) -> bool:
        """True while a request is outstanding (requested after the last response)."""
        if self.last_requested is None:
            return False
        return self.last_received is None or self.last_requested > self.last_received

    def evolve(self, **changes: Any) -> ResourceState:
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "last_requested": self.last_requested.isoformat() if self.last_requested else None,
            "last_received": self.last_received.isoformat() if self.last_received else None,
            "data": self.data,
            "error": str(self.error) if self.error is not None else None,
        }


NEVER_FETCHED = ResourceState()
