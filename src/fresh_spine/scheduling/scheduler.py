"""Request scheduler.

Owns every ``ResourceRequest`` of a client and drives them with a single
one-shot timer.

┌──────────────────────────────────────────────────────────────────────────────┐
│  SCHEDULER                                                                    │
│                                                                               │
│   schedule_request() ─┐                                                       │
│   schedule_mutation ──┼──► requests: [ResourceRequest, ...]                   │
│                       │          │                                            │
│                       │          ▼                                            │
│                       └──► update_delay() ── timers.set_timer(process, delay) │
│                                                                               │
│   process_requests()  (the tick)                                              │
│      1. clean_up()            drop COMPLETE / FAILED records                  │
│      2. send_ready_requests() SCHEDULED / OVERDUE records whose time passed   │
│      3. resend_timeouts()     TIMED_OUT records                               │
│      4. update_delay()        re-arm for the next due moment                  │
│                                                                               │
│   send_requests()                                                             │
│      group by operation ──► on_data_requested(keys)                           │
│                         ──► operation(keys, combined_payload)                 │
│                         ──► mark_sent() every record                          │
│      on resolution     ──► on_data_received({key: result}) per key            │
│                         ──► mark_complete() / mark_failed() per record        │
└──────────────────────────────────────────────────────────────────────────────┘

At most one non-terminal request exists per ``(key, operation)``. A
requirement that arrives while that request is in flight is kept as the
request's follow-up and scheduled once the response lands. A timeout does
not cancel the underlying call. The request is simply sent again, and
whichever response arrives last wins.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from fresh_spine.core.errors import (
    OperationError,
    OperationNotFoundError,
    RequestTimeoutError,
    is_retryable,
)
from fresh_spine.core.logging import LogContext, get_logger
from fresh_spine.core.models import NEVER_FETCHED, ResourceState
from fresh_spine.core.timestamps import utc_now

from .request import (
    DEFAULT_READ_OPERATION,
    PENDING_STATUSES,
    SENT_STATUSES,
    RequestStatus,
    ResourceRequest,
)
from .requirements import Requirement, as_requirement
from .timers import AsyncioTimers, Timers

logger = get_logger(__name__)

ResultsByKey = Mapping[str, Any]
OperationFunc = Callable[[list[str], dict[str, Any] | None], Any]
DataRequestedCallback = Callable[[list[str]], None]
DataReceivedCallback = Callable[[dict[str, Any]], None]


@dataclass
class SchedulerStats:
    """Statistics for a scheduler."""

    tick_count: int = 0
    requests_sent: int = 0
    requests_resent: int = 0
    requests_completed: int = 0
    requests_failed: int = 0
    late_responses: int = 0
    last_tick: datetime | None = None
    last_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "tick_count": self.tick_count,
            "requests_sent": self.requests_sent,
            "requests_resent": self.requests_resent,
            "requests_completed": self.requests_completed,
            "requests_failed": self.requests_failed,
            "late_responses": self.late_responses,
            "last_tick": self.last_tick.isoformat() if self.last_tick else None,
            "last_error": self.last_error,
        }


class Scheduler:
    """Schedules, batches, de-duplicates and re-sends resource requests.

    Example:
        >>> async def read(keys, payload):
        ...     return {key: {"data": await fetch(key)} for key in keys}
        >>>
        >>> async def main():
        ...     scheduler = Scheduler({"read": read}, on_data_received=print, name="things")
        ...     scheduler.schedule_request(Requirement(freshness=60), ResourceState(), "thing:1")
        ...     await asyncio.sleep(1)
    """

    def __init__(
        self,
        operations: Mapping[str, OperationFunc],
        on_data_requested: DataRequestedCallback | None = None,
        on_data_received: DataReceivedCallback | None = None,
        timers: Timers | None = None,
        get_state: Callable[[str], ResourceState] | None = None,
        max_resends: int | None = None,
        clock: Callable[[], datetime] = utc_now,
        name: str = "scheduler",
    ) -> None:
        """Initialize scheduler.

        Args:
            operations: Operation name -> function ``(keys, payload)``
            on_data_requested: Called with the keys of each batch before it is sent
            on_data_received: Called with ``{key: {"data"|"error": ...}}`` per result
            timers: Timer backend (default: AsyncioTimers)
            get_state: Looks up current cached state, used for follow-up requests
            max_resends: Resends allowed per timed-out request (None = unbounded)
            clock: Source of "now" for ticks and responses
            name: Bound as ``scheduler`` on every log record from a tick
        """
        self.operations = dict(operations)
        self.on_data_requested = on_data_requested
        self.on_data_received = on_data_received
        self.timers = timers or AsyncioTimers()
        self.get_state = get_state
        self.max_resends = max_resends
        self.clock = clock
        self.name = name

        self.requests: list[ResourceRequest] = []
        self.timer_handle: Any = None
        self._stats = SchedulerStats()

    # === Timer ===

    def stop(self) -> None:
        """Cancel the next tick, if one is armed."""
        if self.timer_handle is not None:
            logger.debug("scheduler.timer_cancelled")
            self.timers.clear_timer(self.timer_handle)
            self.timer_handle = None

    def update_delay(self, now: datetime | None = None) -> None:
        """(Re)arm the timer for the next moment a request needs attention."""
        self.stop()

        delay = self.get_next_request_delay(now)
        if delay is not None:
            logger.debug("scheduler.timer_armed", delay_seconds=delay)
            self.timer_handle = self.timers.set_timer(self.process_requests, delay)

    def get_next_request_delay(self, now: datetime | None = None) -> float | None:
        """Seconds until the next request is due to be sent or re-sent.

        Returns:
            0 if anything is overdue or timed out, the smallest positive
            delay otherwise, or None when nothing is pending
        """
        now = now or self.clock()
        delay: float | None = None

        for request in self.requests:
            status = request.get_status(now)
            if status in (RequestStatus.OVERDUE, RequestStatus.TIMED_OUT):
                return 0.0
            if status == RequestStatus.SCHEDULED:
                candidate = request.get_time_left(now)
            elif status == RequestStatus.IN_FLIGHT:
                candidate = request.get_timeout_left(now)
            else:
                continue
            delay = candidate if delay is None else min(delay, candidate)

        return None if delay is None else max(delay, 0.0)

    # === Tick ===

    def process_requests(self, now: datetime | None = None) -> None:
        """Process the current collection of requests.

        Called by the timer; there is no need to call this directly.
        """
        now = now or self.clock()
        self._stats.tick_count += 1
        self._stats.last_tick = now

        with LogContext(scheduler=self.name):
            try:
                self.clean_up(now)
                for future in (self.send_ready_requests(now), self.resend_timeouts(now)):
                    future.add_done_callback(self._log_send_failure)
            except Exception as e:
                self._stats.last_error = str(e)
                logger.exception("scheduler.tick_failed", error=str(e))
            finally:
                self.update_delay(now)

    def _log_send_failure(self, future: asyncio.Future) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            self._stats.last_error = str(error)
            logger.warning(
                "scheduler.send_failed",
                error=str(error),
                error_type=type(error).__name__,
                retryable=is_retryable(error),
            )

    # === Lookup ===

    def get_active_request(
        self,
        key: str,
        operation: str = DEFAULT_READ_OPERATION,
        now: datetime | None = None,
    ) -> ResourceRequest | None:
        """Find the non-terminal request for a key and operation, if any."""
        now = now or self.clock()
        for request in self.requests:
            if request.key == key and request.operation == operation and not request.is_terminal(now):
                return request
        return None

    def get_scheduled_request(
        self,
        key: str,
        operation: str = DEFAULT_READ_OPERATION,
        now: datetime | None = None,
    ) -> ResourceRequest | None:
        """Find a request for a key that is either scheduled or overdue."""
        request = self.get_active_request(key, operation, now)
        if request is not None and request.get_status(now or self.clock()) in PENDING_STATUSES:
            return request
        return None

    def get_in_flight_requests(
        self,
        key: str,
        operation: str = DEFAULT_READ_OPERATION,
        now: datetime | None = None,
    ) -> list[ResourceRequest]:
        """Requests for a key which are currently in flight."""
        now = now or self.clock()
        return [
            r for r in self.requests
            if r.key == key and r.operation == operation
            and r.get_status(now) == RequestStatus.IN_FLIGHT
        ]

    def get_ready_requests(self, now: datetime | None = None) -> list[ResourceRequest]:
        now = now or self.clock()
        return [r for r in self.requests if r.is_ready(now)]

    def get_timed_out_requests(self, now: datetime | None = None) -> list[ResourceRequest]:
        now = now or self.clock()
        return [r for r in self.requests if r.get_status(now) == RequestStatus.TIMED_OUT]

    # === Scheduling ===

    def schedule_request(
        self,
        requirement: Requirement | Mapping[str, Any] | None,
        state: ResourceState | None,
        key: str,
        operation: str = DEFAULT_READ_OPERATION,
        payload: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> ResourceRequest:
        """Schedule an operation on a key according to a requirement.

        Args:
            requirement: Freshness/timeout requirement
            state: Snapshot of the key's cached state
            key: Resource key
            operation: Operation name (defaults to "read")
            payload: Data to send with the operation
            now: Current time

        Returns:
            The request now responsible for the key

        Raises:
            OperationNotFoundError: If ``operation`` is not defined
        """
        now = now or self.clock()
        requirement = as_requirement(requirement)
        state = state or NEVER_FETCHED
        self._get_operation(operation)

        request = self._schedule(requirement, state, key, operation, payload, now)
        self.update_delay(now)
        return request

    def schedule_mutation_operation(
        self,
        operation: str,
        keys: Iterable[str],
        payload_by_key: Mapping[str, dict[str, Any]] | None = None,
        now: datetime | None = None,
    ) -> list[ResourceRequest]:
        """Schedule a write-style operation to be sent immediately for each key."""
        now = now or self.clock()
        self._get_operation(operation)
        payload_by_key = payload_by_key or {}

        requests = [
            self._schedule(Requirement(), NEVER_FETCHED, key, operation, payload_by_key.get(key), now)
            for key in keys
        ]
        self.update_delay(now)
        return requests

    def _schedule(
        self,
        requirement: Requirement,
        state: ResourceState,
        key: str,
        operation: str,
        payload: dict[str, Any] | None,
        now: datetime,
    ) -> ResourceRequest:
        existing = self.get_active_request(key, operation, now)
        if existing is None:
            request = ResourceRequest(key, requirement, state, operation, payload, now)
            self.requests.append(request)
            return request

        status = existing.get_status(now)
        if status in SENT_STATUSES:
            if payload and existing.has_same_payload(payload):
                logger.debug("scheduler.duplicate_in_flight", key=key, operation=operation)
            else:
                existing.add_follow_up(requirement, payload)
            return existing

        if status in PENDING_STATUSES:
            existing.append(requirement, state, payload, now)
            return existing

        # An unnecessary request can't take new requirements; supersede it.
        request = ResourceRequest(key, requirement, state, operation, payload, now)
        self.requests[self.requests.index(existing)] = request
        return request

    # === Sending ===

    def send_ready_requests(self, now: datetime | None = None) -> asyncio.Future:
        """Send any scheduled requests that are ready.

        Returns:
            Future resolving to the operation results of each batch
        """
        now = now or self.clock()
        return self.send_requests(self.get_ready_requests(now), now)

    def resend_timeouts(self, now: datetime | None = None) -> asyncio.Future:
        """Re-send requests that timed out.

        When ``max_resends`` is set, requests that already used their
        resends are failed with RequestTimeoutError instead.
        """
        now = now or self.clock()
        timed_out = self.get_timed_out_requests(now)

        if self.max_resends is not None:
            exhausted = [r for r in timed_out if r.send_count > self.max_resends]
            for request in exhausted:
                error = RequestTimeoutError(
                    f"Request timed out after {request.send_count} attempt(s)"
                ).with_context(key=request.key, operation=request.operation)
                self._notify_received({request.key: {"error": error}})
                self._fail(request, error, now)
            timed_out = [r for r in timed_out if r not in exhausted]

        if timed_out:
            logger.info("scheduler.resending", keys=[r.key for r in timed_out])
            self._stats.requests_resent += len(timed_out)
        return self.send_requests(timed_out, now)

    def send_requests(
        self,
        requests: list[ResourceRequest],
        now: datetime | None = None,
    ) -> asyncio.Future:
        """Send a list of requests, one operation call per operation name.

        Raises:
            OperationNotFoundError: If a request names an unknown operation
        """
        now = now or self.clock()
        futures = []

        for operation, operation_requests in group_requests_by_operation(requests).items():
            operation_func = self._get_operation(operation)
            futures.append(self._send_operation(operation, operation_func, operation_requests, now))

        return asyncio.gather(*futures)

    def _send_operation(
        self,
        operation: str,
        operation_func: OperationFunc,
        requests: list[ResourceRequest],
        now: datetime,
    ) -> asyncio.Future:
        keys = list(dict.fromkeys(r.key for r in requests))
        payload = combine_request_data(requests)

        logger.debug("scheduler.sending", operation=operation, keys=keys)
        self._notify_requested(keys)

        try:
            result = operation_func(keys, payload)
        except Exception as error:
            result = _reraise(error)

        future = asyncio.ensure_future(self._receive(operation, requests, result))
        for request in requests:
            request.mark_sent(future, now)
        self._stats.requests_sent += len(requests)
        return future

    async def _receive(
        self,
        operation: str,
        requests: list[ResourceRequest],
        result: Any,
    ) -> dict[str, Any]:
        pending = {r.key: r for r in requests}
        received: dict[str, Any] = {}

        parts = result if isinstance(result, (list, tuple)) else [result]

        try:
            await asyncio.gather(*(self._receive_part(part, pending, received) for part in parts))
        except Exception as error:
            logger.warning(
                "scheduler.operation_failed",
                operation=operation,
                keys=list(pending),
                error=str(error),
                retryable=is_retryable(error),
            )
            for key, request in pending.items():
                self._notify_received({key: {"error": error}})
                self._fail(request, error, self.clock())
            raise

        for key, request in pending.items():
            error = OperationError(f'Operation "{operation}" returned no result for key').with_context(
                operation=operation, key=key
            )
            logger.warning("scheduler.result_missing", operation=operation, key=key)
            self._notify_received({key: {"error": error}})
            self._fail(request, error, self.clock())

        return received

    async def _receive_part(
        self,
        part: Any,
        pending: dict[str, ResourceRequest],
        received: dict[str, Any],
    ) -> None:
        for key, entry in (await _resolve(part) or {}).items():
            entry = _as_entry(entry)
            received[key] = entry
            self._deliver(key, entry, pending.pop(key, None))

    def _deliver(self, key: str, entry: Mapping[str, Any], request: ResourceRequest | None) -> None:
        self._notify_received({key: entry})
        if request is None:
            return

        now = self.clock()
        if request.is_terminal(now):
            # Both an original call and its resend can answer; the last one wins on state.
            self._stats.late_responses += 1
            logger.debug("scheduler.late_response", key=key, operation=request.operation)
            return

        if entry.get("error") is not None:
            self._fail(request, entry["error"], now)
        else:
            request.mark_complete(now)
            self._stats.requests_completed += 1
            self._schedule_follow_up(request, now)

    def _fail(self, request: ResourceRequest, error: Any, now: datetime) -> None:
        if not request.is_sent(now):
            return
        request.mark_failed(error, now)
        self._stats.requests_failed += 1

        # The failure counts as a receipt, so a read follow-up waits out its freshness.
        self._schedule_follow_up(request, now)

    def _schedule_follow_up(self, request: ResourceRequest, now: datetime) -> None:
        if request.follow_up is None:
            return

        requirement, payload = request.follow_up
        request.follow_up = None

        if payload is not None:
            state = NEVER_FETCHED
        elif self.get_state is not None:
            state = self.get_state(request.key)
        else:
            state = ResourceState(
                last_requested=request.time_requested,
                last_received=request.time_completed,
            )

        logger.debug("scheduler.follow_up", key=request.key, operation=request.operation)
        self._schedule(requirement, state, request.key, request.operation, payload, now)
        self.update_delay(now)

    # === Housekeeping ===

    def clean_up(self, now: datetime | None = None) -> None:
        """Clear out completed and failed requests."""
        now = now or self.clock()
        before = len(self.requests)
        self.requests = [r for r in self.requests if not r.is_terminal(now)]
        if len(self.requests) != before:
            logger.debug("scheduler.cleaned_up", removed=before - len(self.requests))

    def get_stats(self) -> SchedulerStats:
        return self._stats

    def snapshot(self, now: datetime | None = None) -> list[dict[str, Any]]:
        """Serialisable view of every tracked request."""
        now = now or self.clock()
        return [r.to_dict(now) for r in self.requests]

    # === Callbacks ===

    def _get_operation(self, operation: str) -> OperationFunc:
        try:
            return self.operations[operation]
        except KeyError:
            raise OperationNotFoundError(operation) from None

    def _notify_requested(self, keys: list[str]) -> None:
        if self.on_data_requested is None:
            logger.debug("scheduler.no_data_requested_handler", keys=keys)
            return
        self.on_data_requested(keys)

    def _notify_received(self, results: dict[str, Any]) -> None:
        if self.on_data_received is None:
            logger.debug("scheduler.no_data_received_handler", keys=list(results))
            return
        self.on_data_received(results)


def group_requests_by_operation(
    requests: Iterable[ResourceRequest],
) -> dict[str, list[ResourceRequest]]:
    """Sort requests into lists keyed by operation name."""
    requests_by_operation: dict[str, list[ResourceRequest]] = {}
    for request in requests:
        requests_by_operation.setdefault(request.operation, []).append(request)
    return requests_by_operation


def combine_request_data(requests: Iterable[ResourceRequest]) -> dict[str, dict[str, Any]] | None:
    """Combine per-request payloads into one ``{key: {...}}`` mapping.

    Returns:
        The combined payload, or None if no request carries data
    """
    combined: dict[str, dict[str, Any]] = {}
    for request in requests:
        if request.key in combined or request.payload:
            combined[request.key] = {**combined.get(request.key, {}), **(request.payload or {})}
    return combined or None


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


async def _reraise(error: Exception) -> None:
    raise error


def _as_entry(entry: Any) -> Mapping[str, Any]:
    if isinstance(entry, Mapping) and ("data" in entry or "error" in entry):
        return entry
    return {"data": entry}
