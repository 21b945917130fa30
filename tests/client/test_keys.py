"""Tests for resource key serialisation."""

from fresh_spine.client.keys import resource_key, split_resource_key


class TestResourceKey:
    def test_plain_path(self):
        assert resource_key("thing:1") == "thing:1"

    def test_path_segments(self):
        assert resource_key(["sites", 12, "posts"]) == "sites/12/posts"

    def test_params_sorted(self):
        a = resource_key("posts", {"per_page": 10, "page": 2})
        b = resource_key("posts", {"page": 2, "per_page": 10})
        assert a == b == "posts?page=2&per_page=10"

    def test_empty_params_ignored(self):
        assert resource_key("posts", {}) == "posts"

    def test_values_escaped(self):
        assert resource_key("search", {"q": "a b&c"}) == "search?q=a+b%26c"


class TestSplitResourceKey:
    def test_round_trip(self):
        assert split_resource_key("posts?page=2&per_page=10") == ("posts", {"page": "2", "per_page": "10"})

    def test_no_params(self):
        assert split_resource_key("thing:1") == ("thing:1", {})

    def test_repeated_params(self):
        key = resource_key("posts", {"tag": ["a", "b"]})
        assert split_resource_key(key) == ("posts", {"tag": ["a", "b"]})
