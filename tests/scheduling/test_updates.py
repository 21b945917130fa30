"""Tests for the update calculator."""

import math
from datetime import timedelta

import pytest

from fresh_spine.core.models import ResourceState
from fresh_spine.scheduling.requirements import Requirement
from fresh_spine.scheduling.updates import (
    calculate_updates,
    get_freshness_left,
    get_time_left,
    get_timeout_left,
)


def ago(now, seconds):
    return now - timedelta(seconds=seconds)


class TestCalculateUpdates:
    """Due keys and next check delay."""

    def test_stale_key_is_due(self, now):
        state = {"thing:1": ResourceState(last_received=ago(now, 62))}
        info = calculate_updates({"thing:1": Requirement(freshness=60)}, state, now)
        assert info.due_keys == ["thing:1"]

    def test_fresh_key_is_not_due(self, now):
        state = {"thing:1": ResourceState(last_received=ago(now, 62))}
        info = calculate_updates({"thing:1": Requirement(freshness=90)}, state, now)
        assert info.due_keys == []
        assert info.next_check_delay == pytest.approx(28)

    def test_in_flight_key_waits_for_timeout(self, now):
        requirements = {"thing:1": Requirement(freshness=120, timeout=10)}
        state = {"thing:1": ResourceState(last_requested=ago(now, 5), last_received=ago(now, 121))}

        info = calculate_updates(requirements, state, now)
        assert info.due_keys == []
        assert info.next_check_delay == pytest.approx(5)

        later = calculate_updates(requirements, state, now + timedelta(seconds=6))
        assert later.due_keys == ["thing:1"]

    def test_never_fetched_key_is_due(self, now):
        info = calculate_updates({"thing:1": Requirement(freshness=60)}, {}, now)
        assert info.due_keys == ["thing:1"]

    def test_no_freshness_is_never_due(self, now):
        info = calculate_updates({"thing:1": Requirement()}, {}, now)
        assert info.due_keys == []
        assert info.next_check_delay == 30.0

    def test_delay_clamped_to_min_update(self, now):
        info = calculate_updates({"thing:1": Requirement(freshness=60)}, {}, now, min_update=0.5)
        assert info.next_check_delay == 0.5

    def test_delay_capped_by_max_update(self, now):
        state = {"thing:1": ResourceState(last_received=now)}
        info = calculate_updates({"thing:1": Requirement(freshness=600)}, state, now, max_update=30)
        assert info.next_check_delay == 30

    def test_idempotent(self, now):
        requirements = {
            "a": Requirement(freshness=60),
            "b": Requirement(freshness=10, timeout=3),
            "c": Requirement(),
        }
        state = {
            "a": ResourceState(last_received=ago(now, 70)),
            "b": ResourceState(last_requested=ago(now, 1), last_received=ago(now, 20)),
        }
        first = calculate_updates(requirements, state, now)
        second = calculate_updates(requirements, state, now)
        assert first == second


class TestTimeLeft:
    def test_freshness_left(self, now):
        state = ResourceState(last_received=ago(now, 20))
        assert get_freshness_left(60, state, now) == pytest.approx(40)
        assert get_freshness_left(None, state, now) == math.inf
        assert get_freshness_left(60, ResourceState(), now) == -math.inf

    def test_timeout_left_only_while_requested(self, now):
        requested = ResourceState(last_requested=ago(now, 4))
        assert get_timeout_left(10, requested, now) == pytest.approx(6)

        answered = ResourceState(last_requested=ago(now, 4), last_received=ago(now, 2))
        assert get_timeout_left(10, answered, now) == math.inf

    def test_time_left_uses_freshness_when_not_stale(self, now):
        state = ResourceState(last_requested=ago(now, 1), last_received=ago(now, 10))
        assert get_time_left(Requirement(freshness=60, timeout=5), state, now) == pytest.approx(50)
