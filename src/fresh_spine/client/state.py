"""Resource state reducers.

The client's cache is a ``{key: ResourceState}`` mapping that is never
mutated in place. Each reducer returns a new mapping (or the same one when
nothing changes) so subscribers can detect change with ``is``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from fresh_spine.core.errors import OperationError
from fresh_spine.core.models import NEVER_FETCHED, ResourceState
from fresh_spine.core.timestamps import utc_now

StateByKey = Mapping[str, ResourceState]


def reduce_requested(
    state: StateByKey,
    keys: Iterable[str],
    now: datetime | None = None,
) -> StateByKey:
    """Mark keys as requested at ``now``."""
    now = now or utc_now()
    updates = {key: state.get(key, NEVER_FETCHED).evolve(last_requested=now) for key in keys}
    return {**state, **updates} if updates else state


def reduce_received(
    state: StateByKey,
    results: Mapping[str, Mapping[str, Any]],
    now: datetime | None = None,
) -> StateByKey:
    """Apply ``{key: {"data": ...} | {"error": ...}}`` results received at ``now``.

    Data replaces any previous error. An error keeps the previous data.
    """
    now = now or utc_now()
    updates: dict[str, ResourceState] = {}

    for key, result in results.items():
        current = state.get(key, NEVER_FETCHED)
        if result.get("error") is not None:
            updates[key] = current.evolve(last_received=now, error=as_error(result["error"], key))
        else:
            updates[key] = current.evolve(last_received=now, data=result.get("data"), error=None)

    return {**state, **updates} if updates else state


def as_error(error: Any, key: str | None = None) -> Exception:
    """Wrap a non-exception error value (a message, an API error body) in OperationError."""
    if isinstance(error, Exception):
        return error
    return OperationError(str(error)).with_context(key=key, error_body=error)
