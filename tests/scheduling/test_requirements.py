"""Tests for requirement validation and merging."""

import math

import pytest

from fresh_spine.core.constants import MINUTE, SECOND
from fresh_spine.core.errors import InvalidRequirementError
from fresh_spine.scheduling.requirements import (
    DEFAULT_TIMEOUT,
    Requirement,
    as_requirement,
    combine_consumer_requirements,
    merge_requirement,
    merge_requirements_for_keys,
)


class TestRequirement:
    """Construction and validation."""

    def test_defaults(self):
        r = Requirement()
        assert r.freshness is None
        assert r.timeout is None
        assert r.effective_freshness == math.inf
        assert r.effective_timeout == DEFAULT_TIMEOUT

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"freshness": 0},
            {"freshness": -1},
            {"freshness": math.nan},
            {"freshness": "60"},
            {"freshness": True},
            {"timeout": 0},
            {"timeout": -5},
        ],
    )
    def test_invalid_values_rejected(self, kwargs):
        with pytest.raises(InvalidRequirementError):
            Requirement(**kwargs)

    def test_from_dict(self):
        r = Requirement.from_dict({"freshness": 60, "timeout": 10})
        assert r == Requirement(freshness=60, timeout=10)

    def test_from_dict_rejects_unknown_fields(self):
        with pytest.raises(InvalidRequirementError, match="staleness"):
            Requirement.from_dict({"staleness": 60})

    def test_as_requirement(self):
        r = Requirement(freshness=5)
        assert as_requirement(r) is r
        assert as_requirement(None) == Requirement()
        assert as_requirement({"freshness": 5}) == r
        with pytest.raises(InvalidRequirementError):
            as_requirement(60)


class TestMergeRequirement:
    """The strictest requirement wins."""

    def test_two_consumers_merge_to_smaller_freshness(self):
        merged = merge_requirement(
            merge_requirement(None, Requirement(freshness=90 * SECOND)),
            Requirement(freshness=45 * SECOND),
        )
        assert merged.freshness == 45 * SECOND

    def test_first_merge_fills_default_timeout(self):
        merged = merge_requirement(None, Requirement(freshness=MINUTE))
        assert merged == Requirement(freshness=MINUTE, timeout=DEFAULT_TIMEOUT)

    def test_unset_freshness_stays_unset(self):
        assert merge_requirement(None, Requirement()).freshness is None

    def test_identity_kept_when_nothing_tightens(self):
        existing = Requirement(freshness=30, timeout=10)
        assert merge_requirement(existing, Requirement(freshness=60, timeout=20)) is existing
        assert merge_requirement(existing, Requirement()) is existing

    def test_timeout_tightens(self):
        existing = Requirement(freshness=30, timeout=10)
        merged = merge_requirement(existing, Requirement(timeout=5))
        assert merged == Requirement(freshness=30, timeout=5)

    @pytest.mark.parametrize(
        "first, second",
        [
            (Requirement(freshness=90), Requirement(freshness=45, timeout=30)),
            (Requirement(timeout=5), Requirement(freshness=10)),
            (Requirement(), Requirement(freshness=0.5, timeout=1)),
            (Requirement(freshness=1, timeout=1), Requirement(freshness=2, timeout=2)),
        ],
    )
    def test_merging_never_loosens(self, first, second):
        merged = merge_requirement(merge_requirement(None, first), second)
        for r in (first, second):
            assert merged.effective_freshness <= r.effective_freshness
            assert merged.effective_timeout <= r.effective_timeout


class TestMergeRequirementsForKeys:
    def test_same_mapping_when_unchanged(self):
        existing = {"a": Requirement(freshness=10, timeout=5)}
        assert merge_requirements_for_keys(existing, ["a"], Requirement(freshness=20)) is existing

    def test_new_mapping_when_changed(self):
        existing = {"a": Requirement(freshness=10, timeout=5)}
        updated = merge_requirements_for_keys(existing, ["a", "b"], Requirement(freshness=5))
        assert updated is not existing
        assert updated["a"].freshness == 5
        assert updated["b"].freshness == 5
        assert existing["a"].freshness == 10


class TestCombineConsumerRequirements:
    def test_reduces_per_key(self):
        combined = combine_consumer_requirements(
            {
                "list": [("thing:1", Requirement(freshness=90)), ("thing:2", Requirement(freshness=60))],
                "detail": [("thing:1", Requirement(freshness=45, timeout=5))],
            }
        )
        assert combined["thing:1"] == Requirement(freshness=45, timeout=5)
        assert combined["thing:2"] == Requirement(freshness=60, timeout=DEFAULT_TIMEOUT)

    def test_empty(self):
        assert combine_consumer_requirements({}) == {}
