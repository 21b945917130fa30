"""
ApiClient - consumer-facing façade over the scheduler.

Consumers never talk to the scheduler directly. They run *selectors*
against the client: functions that read cached data and, as a side effect,
declare how fresh that data must be. The client merges those declarations
per key and keeps the scheduler's requests in line with them.

Manifesto:
    - **Declare, don't fetch:** Consumers state requirements; the client
      decides when a fetch actually happens
    - **Strictest consumer wins:** Requirements for one key merge to the
      minimum freshness and timeout
    - **Immutable cache:** State is replaced, never mutated, so a change is
      detected with a single identity check

Architecture:
    ::

        consumer ── select(consumer_id, selector_func)
                        │
                        ▼
        ┌──────────────────────────────────────────────────────────┐
        │ ApiClient                                                 │
        │   requirements_by_consumer ──► requirements_by_key        │
        │                                     │                     │
        │                                     ▼                     │
        │   Scheduler.schedule_request(requirement, state, key)     │
        │                                     │                     │
        │   data_requested(keys) ◄────────────┤                     │
        │   data_received(results) ◄──────────┘                     │
        │        │                                                  │
        │        ▼                                                  │
        │   set_state(new_state) ──► subscribers(client)            │
        └──────────────────────────────────────────────────────────┘

Examples:
    >>> api = ApiSpec(
    ...     name="things",
    ...     operations={"read": read_things},
    ...     selectors={"get_thing": lambda get_data, require_data: (
    ...         lambda requirement, thing_id: require_data(requirement, ["thing", thing_id])
    ...     )},
    ... )
    >>> async def main():
    ...     client = ApiClient(api)  # default timers need the running loop
    ...     client.select("widget", lambda s: s["get_thing"](Requirement(freshness=60), 1))
    ...     await asyncio.sleep(1)
    >>> asyncio.run(main())

Tags:
    api-client, selectors, requirements, subscriptions, fresh-spine

Doc-Types:
    - API Reference
    - Architecture Documentation
"""

from __future__ import annotations

import itertools
from collections.abc import Callable, Hashable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from fresh_spine.core.logging import get_logger
from fresh_spine.core.models import NEVER_FETCHED, ResourceState
from fresh_spine.core.settings import FreshSpineSettings, get_settings
from fresh_spine.core.timestamps import utc_now
from fresh_spine.scheduling.request import DEFAULT_READ_OPERATION
from fresh_spine.scheduling.requirements import (
    DEFAULT_TIMEOUT,
    Requirement,
    as_requirement,
    combine_consumer_requirements,
)
from fresh_spine.scheduling.scheduler import OperationFunc, Scheduler
from fresh_spine.scheduling.timers import Timers
from fresh_spine.scheduling.updates import UpdateInfo, calculate_updates

from .keys import KeyPath, resource_key
from .state import reduce_received, reduce_requested

logger = get_logger(__name__)

_uids = itertools.count(1)

GetData = Callable[..., Any]
RequireData = Callable[..., Any]
SelectorFactory = Callable[[GetData, RequireData], Callable[..., Any]]
MutationFactory = Callable[[Mapping[str, Callable[..., Any]]], Callable[..., Any]]
Subscriber = Callable[["ApiClient"], None]


@dataclass
class ApiSpec:
    """Description of a remote API.

    Attributes:
        name: Display name of the API
        operations: Operation name -> ``fn(keys, payload)`` returning per-key results
        mutations: Mutation name -> ``factory(operations)`` returning the mutation
        selectors: Selector name -> ``factory(get_data, require_data)``
        read_operation_name: Operation used to fetch required keys
    """

    name: str | None = None
    operations: Mapping[str, OperationFunc] = field(default_factory=dict)
    mutations: Mapping[str, MutationFactory] = field(default_factory=dict)
    selectors: Mapping[str, SelectorFactory] = field(default_factory=dict)
    read_operation_name: str = DEFAULT_READ_OPERATION


class ApiClient:
    """Caches resource state for one API and schedules fetches for it."""

    def __init__(
        self,
        api_spec: ApiSpec,
        timers: Timers | None = None,
        settings: FreshSpineSettings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.api_spec = api_spec
        self.settings = settings or get_settings()
        self.clock = clock

        self.uid = next(_uids)
        self.name = api_spec.name
        self.read_operation_name = api_spec.read_operation_name
        self._log = logger.bind(client=self.get_name())

        self.state: Mapping[str, ResourceState] = {}
        self.requirements_by_consumer: dict[Hashable, list[tuple[str, Requirement]]] = {}
        self.requirements_by_key: dict[str, Requirement] = {}
        self._subscribers: dict[Subscriber, None] = {}

        self.scheduler = Scheduler(
            api_spec.operations,
            on_data_requested=self.data_requested,
            on_data_received=self.data_received,
            timers=timers,
            get_state=self.get_resource,
            max_resends=self.settings.max_resends,
            clock=clock,
            name=self.get_name(),
        )
        self.operations = {name: self._mutation_operation(name) for name in api_spec.operations}
        self.mutations = {
            name: factory(self.operations) for name, factory in api_spec.mutations.items()
        }

        self._log.debug("api_client.created", operations=sorted(api_spec.operations))

    def __repr__(self) -> str:
        return f"ApiClient({self.get_name()!r}, keys={len(self.state)})"

    def get_name(self) -> str:
        return self.name or f"UID_{self.uid}"

    # === State ===

    def set_state(self, state: Mapping[str, ResourceState], now: datetime | None = None) -> bool:
        """Replace cached state, notify subscribers and reschedule required keys.

        Returns:
            False if ``state`` is the current state object
        """
        if not self._replace_state(state):
            return False
        self._schedule_required(now or self.clock())
        return True

    def _replace_state(self, state: Mapping[str, ResourceState]) -> bool:
        if state is self.state:
            return False
        self.state = state
        for callback in list(self._subscribers):
            callback(self)
        return True

    def get_resource(self, key: str) -> ResourceState:
        return self.state.get(key, NEVER_FETCHED)

    def get_data(self, path: KeyPath, params: Mapping[str, Any] | None = None) -> Any:
        """Cached data for a path and params, or None."""
        return self.get_resource(resource_key(path, params)).data

    # === Subscriptions ===

    def subscribe(self, callback: Subscriber) -> Subscriber | bool:
        """Call ``callback(client)`` on every state change.

        Returns:
            The callback, or False if it was already subscribed
        """
        if callback in self._subscribers:
            self._log.debug("api_client.subscribe_duplicate", callback=repr(callback))
            return False
        self._subscribers[callback] = None
        return callback

    def unsubscribe(self, callback: Subscriber) -> Subscriber | bool:
        if callback not in self._subscribers:
            self._log.debug("api_client.unsubscribe_unknown", callback=repr(callback))
            return False
        del self._subscribers[callback]
        return callback

    # === Selectors and requirements ===

    def get_selectors(self, requirements: list[tuple[str, Requirement]]) -> dict[str, Callable[..., Any]]:
        """Bind every selector to this client.

        Requirements declared through the bound selectors are appended to
        ``requirements`` as ``(key, Requirement)`` pairs.
        """
        require_data = self._require_data(requirements)
        return {
            name: factory(self.get_data, require_data)
            for name, factory in self.api_spec.selectors.items()
        }

    def _require_data(self, requirements: list[tuple[str, Requirement]]) -> RequireData:
        def require_data(
            requirement: Requirement | Mapping[str, Any] | None,
            path: KeyPath,
            params: Mapping[str, Any] | None = None,
        ) -> Any:
            key = resource_key(path, params)
            requirements.append((key, self._with_default_timeout(as_requirement(requirement))))
            return self.get_data(path, params)

        return require_data

    def _with_default_timeout(self, requirement: Requirement) -> Requirement:
        default_timeout = self.settings.default_timeout_seconds
        if requirement.timeout is None and default_timeout != DEFAULT_TIMEOUT:
            return Requirement(freshness=requirement.freshness, timeout=default_timeout)
        return requirement

    def select(
        self,
        consumer_id: Hashable,
        selector_func: Callable[[dict[str, Callable[..., Any]]], Any],
        now: datetime | None = None,
    ) -> Any:
        """Run a consumer's selector function and record what it required.

        The consumer's previous requirements are replaced by the ones
        declared during this call.

        Returns:
            Whatever ``selector_func`` returns
        """
        requirements: list[tuple[str, Requirement]] = []
        result = selector_func(self.get_selectors(requirements))
        self.set_consumer_requirements(consumer_id, requirements, now)
        return result

    def set_consumer_requirements(
        self,
        consumer_id: Hashable,
        requirements: Iterable[tuple[str, Requirement]],
        now: datetime | None = None,
    ) -> None:
        self.requirements_by_consumer[consumer_id] = list(requirements)
        self._update_requirements(now or self.clock())

    def clear_consumer_requirements(self, consumer_id: Hashable, now: datetime | None = None) -> None:
        """Forget everything a consumer required."""
        if self.requirements_by_consumer.pop(consumer_id, None) is None:
            self._log.debug("api_client.unknown_consumer", consumer=repr(consumer_id))
            return
        self._update_requirements(now or self.clock())

    def _update_requirements(self, now: datetime) -> None:
        self.requirements_by_key = combine_consumer_requirements(self.requirements_by_consumer)
        self._schedule_required(now)

    def _schedule_required(self, now: datetime) -> None:
        for key, requirement in self.requirements_by_key.items():
            self.scheduler.schedule_request(
                requirement,
                self.get_resource(key),
                key,
                self.read_operation_name,
                now=now,
            )

    def get_update_info(self, now: datetime | None = None) -> UpdateInfo:
        """Keys due for a fetch and the delay until the next check."""
        return calculate_updates(
            self.requirements_by_key,
            self.state,
            now or self.clock(),
            min_update=self.settings.min_update_seconds,
            max_update=self.settings.max_update_seconds,
        )

    # === Mutations ===

    def get_mutations(self) -> dict[str, Callable[..., Any]]:
        return self.mutations

    def _mutation_operation(self, operation: str) -> Callable[..., Any]:
        def apply(keys: Iterable[str], payload_by_key: Mapping[str, dict[str, Any]] | None = None):
            return self.scheduler.schedule_mutation_operation(operation, list(keys), payload_by_key)

        return apply

    # === Scheduler callbacks ===

    def data_requested(self, keys: list[str], now: datetime | None = None) -> None:
        """Record that ``keys`` were just sent."""
        self._replace_state(reduce_requested(self.state, keys, now or self.clock()))

    def data_received(self, results: Mapping[str, Mapping[str, Any]], now: datetime | None = None) -> None:
        """Record ``{key: {"data"|"error": ...}}`` results."""
        errors = [key for key, result in results.items() if result.get("error") is not None]
        if errors:
            self._log.info("api_client.error_received", keys=errors)
        self.set_state(reduce_received(self.state, results, now or self.clock()), now)

    def stop(self) -> None:
        """Stop the scheduler's timer. Cached state is kept."""
        self.scheduler.stop()
        self._log.debug("api_client.stopped")
