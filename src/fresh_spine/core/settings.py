"""Settings for fresh-spine clients and schedulers.

Timer bounds, default timeouts and the resend policy are read from the
environment so a deployment can tune them without code changes.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.

    - **Pydantic validation:** Type-checked at startup, not runtime
    - **Environment-driven:** Reads ``FRESH_SPINE_*`` env vars and .env files
    - **Sensible defaults:** Works out of the box for development

Examples:
    >>> from fresh_spine.core.settings import FreshSpineSettings
    >>> settings = FreshSpineSettings(max_resends=3)
    >>> settings.min_update_seconds
    0.5

Tags:
    settings, configuration, pydantic, environment, fresh-spine

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from fresh_spine.core.logging import configure_logging


class FreshSpineSettings(BaseSettings):
    """Settings shared by ApiClient and Scheduler.

    Fields
    ──────
    log_level               : Structlog log level
    json_logs               : Force JSON (True) / console (False) log output
    min_update_seconds      : Lower clamp for the next update check
    max_update_seconds      : Next update check when nothing is required
    default_timeout_seconds : Timeout used when a requirement sets none
    max_resends             : Resends allowed per timed-out request (None = unbounded)
    """

    model_config = SettingsConfigDict(
        env_prefix="FRESH_SPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool | None = None

    # ── Update timing ────────────────────────────────────────────
    min_update_seconds: float = Field(default=0.5, gt=0)
    max_update_seconds: float = Field(default=30.0, gt=0)
    default_timeout_seconds: float = Field(default=20.0, gt=0)

    # ── Resend policy ────────────────────────────────────────────
    max_resends: int | None = Field(
        default=None,
        ge=0,
        description="Resends allowed for a timed-out request; None retries indefinitely",
    )

    def apply_logging(self) -> None:
        """Apply ``log_level`` and ``json_logs`` to structlog."""
        configure_logging(level=self.log_level, json_format=self.json_logs)


_settings_cache: dict[str, FreshSpineSettings] = {}


def get_settings(*, _force_reload: bool = False) -> FreshSpineSettings:
    """Load, validate, and cache a :class:`FreshSpineSettings` instance."""
    if _force_reload or "default" not in _settings_cache:
        _settings_cache["default"] = FreshSpineSettings()
    return _settings_cache["default"]
