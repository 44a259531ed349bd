"""Utility functions for authswap."""

from .headers import (
    find_header_key,
    get_header_values,
    headers_to_list,
    normalize_headers,
    remove_header,
    set_header,
)
from .url import extract_domain, parse_url, path_extension
from .formatting import mask_secret, truncate_text

__all__ = [
    "find_header_key",
    "get_header_values",
    "headers_to_list",
    "normalize_headers",
    "remove_header",
    "set_header",
    "extract_domain",
    "parse_url",
    "path_extension",
    "mask_secret",
    "truncate_text",
]
