"""Tests for fresh_spine.core.timestamps."""

from datetime import UTC, datetime, timedelta

from fresh_spine.core.timestamps import add_seconds, is_time_earlier, seconds_between, utc_now

T = datetime(2024, 1, 15, 12, 0, tzinfo=UTC)


class TestIsTimeEarlier:
    """Comparison of two possibly-absent timestamps."""

    def test_earlier_new_wins(self):
        assert is_time_earlier(T, T - timedelta(seconds=1)) is True

    def test_later_new_loses(self):
        assert is_time_earlier(T, T + timedelta(seconds=1)) is False

    def test_equal_times(self):
        assert is_time_earlier(T, T) is False

    def test_absent_existing(self):
        assert is_time_earlier(None, T) is True

    def test_absent_new(self):
        assert is_time_earlier(T, None) is False
        assert is_time_earlier(None, None) is False


class TestArithmetic:
    def test_seconds_between_is_signed(self):
        assert seconds_between(T, T + timedelta(seconds=90)) == 90.0
        assert seconds_between(T + timedelta(seconds=90), T) == -90.0

    def test_add_seconds(self):
        assert add_seconds(T, 1.5) == T + timedelta(milliseconds=1500)

    def test_utc_now_is_aware(self):
        assert utc_now().tzinfo is not None
