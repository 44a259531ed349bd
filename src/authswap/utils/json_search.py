"""Breadth-first key search over parsed JSON documents.

Each node is checked for the key directly before its children are visited,
so a match at a shallower level always wins over a deeper one. Traversal
uses an explicit queue and stops descending past ``MAX_DEPTH`` levels, so
hostile, deeply nested server responses cannot exhaust the stack.
"""

from __future__ import annotations

from collections import deque
from typing import Any, Optional

MAX_DEPTH = 64


def find_container(data: Any, key: str, max_depth: int = MAX_DEPTH) -> Optional[dict]:
    """Return the shallowest dict that directly holds ``key``, or None."""
    queue: deque[tuple[Any, int]] = deque([(data, 0)])

    while queue:
        node, depth = queue.popleft()

        if isinstance(node, dict):
            if key in node:
                return node
            children = node.values()
        elif isinstance(node, list):
            children = node
        else:
            continue

        if depth >= max_depth:
            continue
        for child in children:
            if isinstance(child, (dict, list)):
                queue.append((child, depth + 1))

    return None


def find_key(data: Any, key: str) -> Any:
    """Return the value of the first matching key, or None."""
    container = find_container(data, key)
    if container is None:
        return None
    return container[key]


def set_key(data: Any, key: str, value: Any) -> bool:
    """Set the first matching key in place. Returns True if a key was set."""
    container = find_container(data, key)
    if container is None:
        return False
    container[key] = value
    return True


def delete_key(data: Any, key: str) -> bool:
    """Delete the first matching key in place. Returns True if a key was deleted."""
    container = find_container(data, key)
    if container is None:
        return False
    del container[key]
    return True
