"""Resource request records.

A ``ResourceRequest`` tracks one scheduled fetch (or mutation) of a
resource key through its life:

::

    UNNECESSARY          no fire time; nothing to do
    SCHEDULED ─► OVERDUE fire time in the future / already passed
        │
        ▼ mark_sent()
    IN_FLIGHT ─► TIMED_OUT   (now - time_requested > timeout)
        │            │  mark_sent() again (resend)
        ▼            ▼
    COMPLETE  /  FAILED      mark_complete() / mark_failed()

Status is never stored. ``get_status(now)`` derives it from the record's
timestamps every time, so a record cannot hold a stale status across
ticks.
"""

from __future__ import annotations

import asyncio
import math
from datetime import datetime
from enum import Enum
from typing import Any

from fresh_spine.core.errors import InvalidTransitionError
from fresh_spine.core.logging import get_logger
from fresh_spine.core.models import ResourceState
from fresh_spine.core.timestamps import add_seconds, is_time_earlier, seconds_between, utc_now

from .requirements import Requirement, merge_requirement

logger = get_logger(__name__)

DEFAULT_READ_OPERATION = "read"


class RequestStatus(str, Enum):
    """Derived status of a ResourceRequest."""

    UNNECESSARY = "unnecessary"
    SCHEDULED = "scheduled"
    OVERDUE = "overdue"
    IN_FLIGHT = "in_flight"
    TIMED_OUT = "timed_out"
    COMPLETE = "complete"
    FAILED = "failed"


PENDING_STATUSES = frozenset({RequestStatus.SCHEDULED, RequestStatus.OVERDUE})
SENT_STATUSES = frozenset({RequestStatus.IN_FLIGHT, RequestStatus.TIMED_OUT})
TERMINAL_STATUSES = frozenset({RequestStatus.COMPLETE, RequestStatus.FAILED})


class ResourceRequest:
    """One scheduled, in-flight or finished request for a resource key.

    Args:
        key: Resource key
        requirement: Requirement that triggered the request
        state: Snapshot of the key's cached state
        operation: Operation name (defaults to "read")
        payload: Data to send with the operation (mutations)
        now: Current time (defaults to utc_now())
    """

    def __init__(
        self,
        key: str,
        requirement: Requirement,
        state: ResourceState,
        operation: str = DEFAULT_READ_OPERATION,
        payload: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> None:
        now = now or utc_now()
        self.key = key
        self.operation = operation
        self.payload = dict(payload) if payload else None
        self.time = calculate_request_time(requirement, state, now)
        self.timeout = requirement.effective_timeout
        self.future: asyncio.Future | None = None
        self.time_requested: datetime | None = None
        self.time_completed: datetime | None = None
        self.error: Any = None
        self.send_count = 0
        self.follow_up: tuple[Requirement, dict[str, Any] | None] | None = None

        if self.time is not None:
            logger.debug(
                "request.created",
                key=key,
                operation=operation,
                delay_seconds=seconds_between(now, self.time),
            )

    def __repr__(self) -> str:
        return f"ResourceRequest({self.key!r}, operation={self.operation!r}, status={self.get_status().value})"

    # === Status ===

    def get_status(self, now: datetime | None = None) -> RequestStatus:
        """Derive the current status from the record's timestamps."""
        now = now or utc_now()

        if self.time is None:
            return RequestStatus.UNNECESSARY
        if self.time_requested is not None:
            if self.time_completed is not None:
                return RequestStatus.FAILED if self.error is not None else RequestStatus.COMPLETE
            if seconds_between(self.time_requested, now) > self.timeout:
                return RequestStatus.TIMED_OUT
            return RequestStatus.IN_FLIGHT
        if self.time <= now:
            return RequestStatus.OVERDUE
        return RequestStatus.SCHEDULED

    def is_ready(self, now: datetime | None = None) -> bool:
        """True if the request is scheduled or overdue and its fire time has passed."""
        now = now or utc_now()
        return self.get_status(now) in PENDING_STATUSES and self.get_time_left(now) <= 0

    def is_pending(self, now: datetime | None = None) -> bool:
        return self.get_status(now) in PENDING_STATUSES

    def is_sent(self, now: datetime | None = None) -> bool:
        return self.get_status(now) in SENT_STATUSES

    def is_terminal(self, now: datetime | None = None) -> bool:
        return self.get_status(now) in TERMINAL_STATUSES

    def get_time_left(self, now: datetime | None = None) -> float:
        """Seconds until the fire time (negative once passed, inf if unnecessary)."""
        if self.time is None:
            return math.inf
        return seconds_between(now or utc_now(), self.time)

    def get_timeout_left(self, now: datetime | None = None) -> float | None:
        """Seconds until a sent request times out, or None if not sent."""
        if self.time_requested is None or self.time_completed is not None:
            return None
        return self.timeout - seconds_between(self.time_requested, now or utc_now())

    # === Appending ===

    def append_requirement(
        self,
        requirement: Requirement,
        state: ResourceState,
        now: datetime | None = None,
    ) -> bool:
        """Fold another requirement into a scheduled or overdue request.

        The fire time only ever moves earlier and the timeout only shrinks.

        Returns:
            False (and changes nothing) if the request is not pending
        """
        now = now or utc_now()
        status = self.get_status(now)

        if status not in PENDING_STATUSES:
            logger.debug(
                "request.append_rejected",
                key=self.key,
                operation=self.operation,
                status=status.value,
            )
            return False

        request_time = calculate_request_time(requirement, state, now)
        if is_time_earlier(self.time, request_time):
            self.time = request_time
            logger.debug(
                "request.rescheduled",
                key=self.key,
                operation=self.operation,
                delay_seconds=seconds_between(now, request_time),
            )
        self.timeout = min(self.timeout, requirement.effective_timeout)
        return True

    def append_data(self, payload: dict[str, Any] | None) -> bool:
        """Shallow-merge payload fields into this request's payload.

        Returns:
            True if the payload changed
        """
        if not payload:
            return False
        if self.payload is not None and all(
            name in self.payload and self.payload[name] == value
            for name, value in payload.items()
        ):
            return False

        self.payload = {**(self.payload or {}), **payload}
        return True

    def append(
        self,
        requirement: Requirement,
        state: ResourceState,
        payload: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> bool:
        """Append both a requirement and payload data.

        Returns:
            False if the request is no longer pending
        """
        if not self.append_requirement(requirement, state, now):
            return False
        self.append_data(payload)
        return True

    def add_follow_up(self, requirement: Requirement, payload: dict[str, Any] | None = None) -> None:
        """Remember a requirement that arrived while this request was in flight."""
        if self.follow_up is None:
            self.follow_up = (requirement, dict(payload) if payload else None)
            return

        current_requirement, current_payload = self.follow_up
        merged_payload = {**(current_payload or {}), **(payload or {})} or None
        self.follow_up = (merge_requirement(current_requirement, requirement), merged_payload)

    def has_same_payload(self, payload: dict[str, Any] | None) -> bool:
        return (self.payload or None) == (payload or None)

    # === Transitions ===

    def mark_sent(self, future: asyncio.Future | None, now: datetime | None = None) -> None:
        """Record that this request was handed to its operation.

        Legal when the request is ready, or timed out (a resend).
        """
        now = now or utc_now()
        status = self.get_status(now)

        if not (self.is_ready(now) or status == RequestStatus.TIMED_OUT):
            raise InvalidTransitionError(status.value, RequestStatus.IN_FLIGHT.value).with_context(
                key=self.key, operation=self.operation
            )

        self.future = future
        self.time_requested = now
        self.send_count += 1
        logger.debug(
            "request.sent",
            key=self.key,
            operation=self.operation,
            send_count=self.send_count,
            resend=status == RequestStatus.TIMED_OUT,
        )

    def mark_complete(self, now: datetime | None = None) -> None:
        """Record a successful response."""
        now = now or utc_now()
        self._check_sent(now, RequestStatus.COMPLETE)

        self.future = None
        self.time_completed = now
        logger.debug(
            "request.completed",
            key=self.key,
            operation=self.operation,
            duration_seconds=seconds_between(self.time_requested, now),
        )

    def mark_failed(self, error: Any, now: datetime | None = None) -> None:
        """Record a failed response."""
        now = now or utc_now()
        self._check_sent(now, RequestStatus.FAILED)

        self.future = None
        self.time_completed = now
        self.error = error
        logger.debug(
            "request.failed",
            key=self.key,
            operation=self.operation,
            error=str(error),
        )

    def _check_sent(self, now: datetime, target: RequestStatus) -> None:
        status = self.get_status(now)
        if status not in SENT_STATUSES:
            raise InvalidTransitionError(status.value, target.value).with_context(
                key=self.key, operation=self.operation
            )

    # === Serialization ===

    def to_dict(self, now: datetime | None = None) -> dict[str, Any]:
        """Snapshot for logging and inspection."""
        now = now or utc_now()
        return {
            "key": self.key,
            "operation": self.operation,
            "status": self.get_status(now).value,
            "time": self.time.isoformat() if self.time else None,
            "timeout": self.timeout,
            "time_requested": self.time_requested.isoformat() if self.time_requested else None,
            "time_completed": self.time_completed.isoformat() if self.time_completed else None,
            "send_count": self.send_count,
            "error": str(self.error) if self.error is not None else None,
        }


def calculate_request_time(
    requirement: Requirement,
    state: ResourceState,
    now: datetime,
) -> datetime | None:
    """When a request for this requirement should fire.

    Never-received data is fetched now, received data once its freshness
    expires, and data without a freshness requirement not at all.
    """
    if state.last_received is None:
        return now
    if requirement.freshness is not None and math.isfinite(requirement.freshness):
        return add_seconds(state.last_received, requirement.freshness)
    return None
