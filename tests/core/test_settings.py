"""Tests for core.settings module.

Covers:
- FreshSpineSettings defaults
- Environment variable override with the FRESH_SPINE_ prefix
- Field validation
- get_settings caching
"""

import pytest
from pydantic import ValidationError

from fresh_spine.core.settings import FreshSpineSettings, get_settings


class TestFreshSpineSettingsDefaults:
    def test_defaults(self):
        s = FreshSpineSettings()
        assert s.log_level == "INFO"
        assert s.json_logs is None
        assert s.min_update_seconds == 0.5
        assert s.max_update_seconds == 30.0
        assert s.default_timeout_seconds == 20.0
        assert s.max_resends is None


class TestFreshSpineSettingsEnvOverride:
    def test_max_resends_from_env(self, monkeypatch):
        monkeypatch.setenv("FRESH_SPINE_MAX_RESENDS", "3")
        assert FreshSpineSettings().max_resends == 3

    def test_update_bounds_from_env(self, monkeypatch):
        monkeypatch.setenv("FRESH_SPINE_MIN_UPDATE_SECONDS", "2")
        monkeypatch.setenv("FRESH_SPINE_MAX_UPDATE_SECONDS", "120")
        s = FreshSpineSettings()
        assert s.min_update_seconds == 2.0
        assert s.max_update_seconds == 120.0

    def test_unprefixed_env_ignored(self, monkeypatch):
        monkeypatch.setenv("MAX_RESENDS", "7")
        assert FreshSpineSettings().max_resends is None


class TestFreshSpineSettingsValidation:
    def test_negative_max_resends_rejected(self):
        with pytest.raises(ValidationError):
            FreshSpineSettings(max_resends=-1)

    def test_zero_min_update_rejected(self):
        with pytest.raises(ValidationError):
            FreshSpineSettings(min_update_seconds=0)


class TestGetSettings:
    def test_cached(self):
        assert get_settings() is get_settings()

    def test_force_reload(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("FRESH_SPINE_LOG_LEVEL", "DEBUG")
        reloaded = get_settings(_force_reload=True)
        assert reloaded is not first
        assert reloaded.log_level == "DEBUG"
