"""Header collection helpers.

Header names are compared case-insensitively everywhere in authswap.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional, Union

HeaderInput = Union[Mapping[str, Any], Iterable[Any], None]


def find_header_key(headers: Mapping[str, str], name: str) -> Optional[str]:
    """Find the actual header key (case-insensitive match)."""
    lowered = name.lower()
    for key in headers:
        if key.lower() == lowered:
            return key
    return None


def set_header(headers: dict[str, str], name: str, value: str) -> None:
    """Set a header, replacing any existing key that differs only in case."""
    existing = find_header_key(headers, name)
    if existing is not None:
        del headers[existing]
    headers[name] = value


def remove_header(headers: dict[str, str], name: str) -> bool:
    """Remove a header by case-insensitive name. Returns True if removed."""
    existing = find_header_key(headers, name)
    if existing is None:
        return False
    del headers[existing]
    return True


def normalize_headers(raw: HeaderInput) -> dict[str, str]:
    """Normalize a header collection to a dict.

    Accepts a mapping, a list of ``{"name": ..., "value": ...}`` dicts (HAR
    style) or a list of ``(name, value)`` pairs. Duplicate names are resolved
    last-write-wins, case-insensitively.
    """
    headers: dict[str, str] = {}
    if raw is None:
        return headers

    if isinstance(raw, Mapping):
        pairs: Iterable[Any] = raw.items()
    else:
        pairs = raw

    for item in pairs:
        if isinstance(item, Mapping):
            name = item.get("name")
            value = item.get("value")
        else:
            try:
                name, value = item
            except (TypeError, ValueError):
                continue
        if not name or value is None:
            continue
        set_header(headers, str(name), str(value))

    return headers


def headers_to_list(raw: HeaderInput) -> list[dict[str, str]]:
    """Convert a header collection to a ``[{name, value}]`` list.

    Unlike :func:`normalize_headers` this keeps duplicates, so repeated
    response headers such as ``Set-Cookie`` survive.
    """
    if raw is None:
        return []

    if isinstance(raw, Mapping):
        items: Iterable[Any] = raw.items()
    else:
        items = raw

    result = []
    for item in items:
        if isinstance(item, Mapping):
            name = item.get("name")
            value = item.get("value")
        else:
            try:
                name, value = item
            except (TypeError, ValueError):
                continue
        if not name:
            continue
        result.append({"name": str(name), "value": "" if value is None else str(value)})
    return result


def get_header_values(headers: Iterable[Mapping[str, str]], name: str) -> list[str]:
    """Return every value of a header (case-insensitive) from a name/value list."""
    lowered = name.lower()
    return [
        h.get("value", "")
        for h in headers
        if str(h.get("name", "")).lower() == lowered
    ]
