"""Requirement model and reduction rules.

A requirement is a consumer's tolerance for one resource key:

- ``freshness``: maximum acceptable age of the data, in seconds. ``None``
  means the key is never fetched proactively. Must be positive.
- ``timeout``: how long an in-flight fetch is given before it may be
  re-sent, in seconds. ``None`` means "use the default". Must be positive.

When several consumers require the same key, the strictest one wins: the
merged requirement takes the minimum of each field. Merging keeps object
identity when nothing tightens, so callers can detect change with ``is``.

Example::

    >>> a = Requirement(freshness=90 * SECOND)
    >>> b = Requirement(freshness=45 * SECOND)
    >>> merge_requirement(merge_requirement(None, a), b).freshness
    45.0
"""

from __future__ import annotations

import math
from collections.abc import Hashable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from fresh_spine.core.constants import SECOND
from fresh_spine.core.errors import InvalidRequirementError

DEFAULT_FRESHNESS = math.inf
DEFAULT_TIMEOUT = 20 * SECOND

_FIELDS = ("freshness", "timeout")


@dataclass(frozen=True)
class Requirement:
    """Freshness/timeout tolerance for one resource key."""

    freshness: float | None = None
    timeout: float | None = None

    def __post_init__(self) -> None:
        _check_duration("freshness", self.freshness)
        _check_duration("timeout", self.timeout)

    @property
    def effective_freshness(self) -> float:
        return DEFAULT_FRESHNESS if self.freshness is None else self.freshness

    @property
    def effective_timeout(self) -> float:
        return DEFAULT_TIMEOUT if self.timeout is None else self.timeout

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Requirement:
        """Build a requirement from a ``{"freshness": ..., "timeout": ...}`` mapping.

        Raises:
            InvalidRequirementError: On unknown fields or bad values
        """
        unknown = set(data) - set(_FIELDS)
        if unknown:
            raise InvalidRequirementError(
                f"Unknown requirement fields: {', '.join(sorted(unknown))}"
            )
        return cls(freshness=data.get("freshness"), timeout=data.get("timeout"))

    def to_dict(self) -> dict[str, float | None]:
        return {"freshness": self.freshness, "timeout": self.timeout}


def as_requirement(value: Requirement | Mapping[str, Any] | None) -> Requirement:
    """Coerce a Requirement, a mapping, or None into a Requirement."""
    if value is None:
        return Requirement()
    if isinstance(value, Requirement):
        return value
    if isinstance(value, Mapping):
        return Requirement.from_dict(value)
    raise InvalidRequirementError(f"Cannot use {type(value).__name__} as a requirement")


def merge_requirement(existing: Requirement | None, incoming: Requirement) -> Requirement:
    """Merge an incoming requirement into an existing one.

    Each field becomes the minimum of the two. An unset existing freshness
    counts as "never", an unset existing timeout as ``DEFAULT_TIMEOUT``; unset
    incoming fields never tighten anything.

    Returns:
        ``existing`` itself if neither field shrinks, otherwise a new Requirement
    """
    current_freshness = existing.effective_freshness if existing else DEFAULT_FRESHNESS
    current_timeout = existing.effective_timeout if existing else DEFAULT_TIMEOUT

    freshness = min(current_freshness, _or_inf(incoming.freshness))
    timeout = min(current_timeout, _or_inf(incoming.timeout))

    if existing is not None and freshness == current_freshness and timeout == current_timeout:
        return existing

    return Requirement(
        freshness=freshness if math.isfinite(freshness) else None,
        timeout=timeout,
    )


def merge_requirements_for_keys(
    existing_by_key: Mapping[str, Requirement],
    keys: Iterable[str],
    incoming: Requirement,
) -> Mapping[str, Requirement]:
    """Merge one requirement into every key of a requirement mapping.

    Returns:
        The same mapping object if no key changed, otherwise a new dict
    """
    updated: dict[str, Requirement] | None = None

    for key in keys:
        current = existing_by_key.get(key)
        merged = merge_requirement(current, incoming)
        if merged is not current:
            if updated is None:
                updated = dict(existing_by_key)
            updated[key] = merged

    return existing_by_key if updated is None else updated


def combine_consumer_requirements(
    requirements_by_consumer: Mapping[Hashable, Iterable[tuple[str, Requirement]]],
) -> dict[str, Requirement]:
    """Reduce a ``consumer_id -> [(key, requirement), ...]`` table per key."""
    requirements_by_key: Mapping[str, Requirement] = {}

    for requirements in requirements_by_consumer.values():
        for key, requirement in requirements:
            requirements_by_key = merge_requirements_for_keys(
                requirements_by_key, [key], requirement
            )

    return dict(requirements_by_key)


def _or_inf(value: float | None) -> float:
    return math.inf if value is None else value


def _check_duration(name: str, value: Any) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidRequirementError(
            f"Requirement {name} must be a number of seconds, got {type(value).__name__}"
        )
    if math.isnan(value) or value <= 0:
        raise InvalidRequirementError(f"Requirement {name} out of range: {value!r}")
