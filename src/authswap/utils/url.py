"""URL utility functions."""

from __future__ import annotations

import re
from pathlib import PurePosixPath
from urllib.parse import SplitResult, parse_qsl, quote, urlencode, urlsplit, urlunsplit

from ..errors import MalformedURLError

# Characters a URL path segment may carry without percent-encoding
PATH_SAFE_CHARS = "-._~!$&'()*+,;=:@"


def parse_url(url: str) -> SplitResult:
    """Parse an absolute URL.

    Raises:
        MalformedURLError: If the URL is empty, relative, or unparsable
    """
    if not url:
        raise MalformedURLError("Empty URL")
    try:
        parsed = urlsplit(url)
    except ValueError as e:
        raise MalformedURLError(f"Invalid URL '{url}': {e}") from e
    if not parsed.scheme or not parsed.netloc:
        raise MalformedURLError(f"Invalid URL '{url}': not an absolute URL")
    return parsed


def extract_domain(url: str) -> str:
    """Extract the hostname from a URL.

    Returns:
        Lower-cased hostname or empty string if extraction fails
    """
    try:
        return parse_url(url).hostname or ""
    except MalformedURLError:
        return ""


def path_extension(url: str) -> str:
    """Return the lower-cased extension of the URL path, without the dot.

    Examples:
        https://example.com/app.min.js?v=1 -> js
        https://example.com/api/users -> ""
    """
    path = parse_url(url).path.lower()
    return PurePosixPath(path).suffix.lstrip(".")


def has_query_param(url: str, name: str) -> bool:
    """Check whether a query parameter is present in the URL."""
    parsed = parse_url(url)
    return any(key == name for key, _ in parse_qsl(parsed.query, keep_blank_values=True))


def replace_query_param(url: str, name: str, value: str) -> str:
    """Replace a query parameter value.

    The parameter is only replaced when it already exists in the URL; it is
    never added. Repeated occurrences collapse into the first one.
    """
    parsed = parse_url(url)
    params = parse_qsl(parsed.query, keep_blank_values=True)
    if not any(key == name for key, _ in params):
        return url

    updated = []
    replaced = False
    for key, current in params:
        if key == name:
            if not replaced:
                updated.append((key, value))
                replaced = True
            continue
        updated.append((key, current))

    return urlunsplit(parsed._replace(query=urlencode(updated)))


def remove_query_param(url: str, name: str) -> str:
    """Remove every occurrence of a query parameter."""
    parsed = parse_url(url)
    params = parse_qsl(parsed.query, keep_blank_values=True)
    if not any(key == name for key, _ in params):
        return url
    kept = [(key, value) for key, value in params if key != name]
    return urlunsplit(parsed._replace(query=urlencode(kept)))


def replace_path_segment(url: str, name: str, value: str) -> str:
    """Replace the segment that follows ``/<name>/`` in the URL path.

    Examples:
        replace_path_segment("https://x/api/user/123", "user", "456")
            -> https://x/api/user/456
    """
    parsed = parse_url(url)
    pattern = re.compile(rf"/{re.escape(name)}/([^/]+)", re.IGNORECASE)
    replacement = f"/{name}/{quote(str(value), safe=PATH_SAFE_CHARS)}"
    new_path = pattern.sub(lambda _m: replacement, parsed.path, count=1)
    if new_path == parsed.path:
        return url
    return urlunsplit(parsed._replace(path=new_path))
