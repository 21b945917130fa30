"""Tests for the resource state reducers."""

from fresh_spine.client.state import as_error, reduce_received, reduce_requested
from fresh_spine.core.errors import OperationError
from fresh_spine.core.models import ResourceState
from tests._support import T0, at


class TestReduceRequested:
    def test_sets_last_requested(self):
        state = reduce_requested({}, ["thing:1"], T0)
        assert state == {"thing:1": ResourceState(last_requested=T0)}

    def test_keeps_other_fields(self):
        before = {"thing:1": ResourceState(last_received=at(-60), data={"id": 1})}
        after = reduce_requested(before, ["thing:1"], T0)
        assert after["thing:1"].data == {"id": 1}
        assert after["thing:1"].is_requested
        assert before["thing:1"].last_requested is None

    def test_no_keys_returns_same_state(self):
        state = {}
        assert reduce_requested(state, [], T0) is state


class TestReduceReceived:
    def test_data(self):
        before = {"thing:1": ResourceState(last_requested=at(-1))}
        after = reduce_received(before, {"thing:1": {"data": {"id": 1}}}, T0)
        assert after is not before
        assert after["thing:1"].last_received == T0
        assert after["thing:1"].data == {"id": 1}
        assert not after["thing:1"].is_requested

    def test_error_keeps_data(self):
        before = {"thing:1": ResourceState(last_received=at(-60), data={"id": 1})}
        after = reduce_received(before, {"thing:1": {"error": "not found"}}, T0)
        assert after["thing:1"].data == {"id": 1}
        assert after["thing:1"].last_received == T0
        assert isinstance(after["thing:1"].error, OperationError)

    def test_data_clears_error(self):
        before = reduce_received({}, {"thing:1": {"error": ValueError("x")}}, at(-5))
        after = reduce_received(before, {"thing:1": {"data": 2}}, T0)
        assert after["thing:1"].error is None


class TestAsError:
    def test_exception_passes_through(self):
        error = ValueError("x")
        assert as_error(error) is error

    def test_wraps_body(self):
        error = as_error({"code": 404}, "thing:1")
        assert isinstance(error, OperationError)
        assert error.context.key == "thing:1"
        assert error.context.metadata["error_body"] == {"code": 404}
