"""Resource keys.

A key names one fetchable unit of data: a path plus optional query
parameters. Parameters are serialised in sorted order, so two declarations
for the same path and params always produce the same key::

    >>> resource_key(["sites", 12, "posts"], {"per_page": 10, "page": 2})
    'sites/12/posts?page=2&per_page=10'
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any
from urllib.parse import parse_qsl, urlencode

KeyPath = str | Sequence[Any]


def resource_key(path: KeyPath, params: Mapping[str, Any] | None = None) -> str:
    """Build the resource key for a path and its query parameters."""
    if not isinstance(path, str):
        path = "/".join(str(segment) for segment in path)
    if not params:
        return path
    return f"{path}?{urlencode(sorted(params.items()), doseq=True)}"


def split_resource_key(key: str) -> tuple[str, dict[str, Any]]:
    """Split a key back into its path and params.

    Param values come back as strings; repeated names become lists.
    """
    path, _, query = key.partition("?")
    params: dict[str, Any] = {}

    for name, value in parse_qsl(query, keep_blank_values=True):
        if name not in params:
            params[name] = value
        elif isinstance(params[name], list):
            params[name].append(value)
        else:
            params[name] = [params[name], value]

    return path, params
