"""Tests for devinfo resource summaries."""

import math

import pytest

from fresh_spine.client.api_client import ApiClient, ApiSpec
from fresh_spine.core.models import ResourceState
from fresh_spine.core.settings import FreshSpineSettings
from fresh_spine.devinfo.resources import (
    ResourceStatus,
    consumers_requiring,
    get_resource_status,
    resource_info,
    seconds_to_string,
)
from fresh_spine.scheduling.requirements import Requirement
from tests._support import T0, at


async def read(keys, payload):
    return {key: {"data": key} for key in keys}


@pytest.fixture
def client(fake_timers, clock):
    return ApiClient(
        ApiSpec(name="things", operations={"read": read}),
        timers=fake_timers,
        settings=FreshSpineSettings(),
        clock=clock,
    )


class TestSecondsToString:
    @pytest.mark.parametrize(
        "seconds, expected",
        [
            (3723, "1 hours 2 mins 3 secs"),
            (90, "1 mins 30 secs"),
            (60, "1 mins"),
            (1.5, "1.5 secs"),
            (0, ""),
            (None, ""),
            (math.inf, "never"),
        ],
    )
    def test_render(self, seconds, expected):
        assert seconds_to_string(seconds) == expected


class TestResourceStatus:
    """Status of one key against its combined requirement."""

    def test_not_required(self):
        assert get_resource_status(ResourceState(), None, T0) == ResourceStatus.NOT_REQUIRED

    def test_fresh_and_stale(self):
        requirement = Requirement(freshness=60)
        fresh = ResourceState(last_received=at(-30))
        stale = ResourceState(last_received=at(-90))
        assert get_resource_status(fresh, requirement, T0) == ResourceStatus.FRESH
        assert get_resource_status(stale, requirement, T0) == ResourceStatus.STALE

    def test_fetching_and_overdue(self):
        requirement = Requirement(freshness=120, timeout=10)
        fetching = ResourceState(last_requested=at(-5), last_received=at(-121))
        overdue = ResourceState(last_requested=at(-15), last_received=at(-121))
        assert get_resource_status(fetching, requirement, T0) == ResourceStatus.FETCHING
        assert get_resource_status(overdue, requirement, T0) == ResourceStatus.OVERDUE


class TestResourceInfo:
    def test_summaries(self, client):
        client.set_state(
            {
                "fresh": ResourceState(last_received=at(-30), data="f"),
                "stale": ResourceState(last_received=at(-90)),
                "fetching": ResourceState(last_requested=at(-5), last_received=at(-121)),
                "extra": ResourceState(last_received=at(-1), data="x"),
            }
        )
        client.set_consumer_requirements(
            "widget",
            [
                ("fresh", Requirement(freshness=60)),
                ("stale", Requirement(freshness=60)),
                ("fetching", Requirement(freshness=120, timeout=10)),
            ],
        )

        info = resource_info(client, T0)

        assert info["fresh"]["status"] == "fresh"
        assert info["fresh"]["summary"] == "Fresh for 30 secs"
        assert info["fresh"]["data"] == "f"
        assert info["stale"]["summary"] == "Stale for 30 secs"
        assert info["fetching"]["summary"] == "5 secs until timeout"
        assert info["extra"] == {
            "status": "not_required",
            "summary": "Resource is not fetched directly.",
            "data": "x",
        }

    def test_requirement_details(self, client):
        client.set_consumer_requirements("list", [("thing:1", Requirement(freshness=90))])
        client.set_consumer_requirements("detail", [("thing:1", Requirement(freshness=45, timeout=5))])

        info = resource_info(client, T0)["thing:1"]

        assert info["combined_requirement"] == {"freshness": "45 secs", "timeout": "5 secs"}
        assert info["consumers_requiring"] == ["list", "detail"]
        assert info["summary"] == "Never received"

    def test_consumers_requiring_none(self):
        assert consumers_requiring({"a": [("other", Requirement())]}, "thing:1") is None
