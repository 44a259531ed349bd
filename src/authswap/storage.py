"""Session persistence: the sessions file and export/import."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable

from .analyzer.session import Session
from .errors import SessionImportError

logger = logging.getLogger(__name__)

DEFAULT_SESSIONS_FILE = "authswap_sessions.json"


def export_sessions(sessions: Iterable[Session], path: str | Path) -> Path:
    """Write sessions as a JSON array of serialized session records."""
    path = Path(path)
    data = [s.to_dict() for s in sessions]
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    return path


def import_sessions(path: str | Path) -> list[Session]:
    """Read sessions from an exported file.

    Raises:
        SessionImportError: If the file is missing, is not JSON, or holds
            records that cannot be deserialized
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise SessionImportError(f"Sessions file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise SessionImportError(f"Invalid JSON in {path}: {e}") from e
    except OSError as e:
        raise SessionImportError(f"Cannot read {path}: {e}") from e

    if not isinstance(data, list):
        raise SessionImportError(
            f"Expected a JSON array of sessions, got {type(data).__name__}"
        )

    sessions = []
    for i, item in enumerate(data):
        if not isinstance(item, dict):
            raise SessionImportError(f"Session #{i + 1} is not an object")
        try:
            sessions.append(Session.from_dict(item))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise SessionImportError(f"Session #{i + 1} is invalid: {e}") from e
    return sessions


class SessionStore:
    """The working sessions file.

    A missing file means no sessions. A corrupt file is logged and treated as
    empty so the tool stays usable; use ``import_sessions`` for strict reads.
    """

    def __init__(self, path: str | Path = DEFAULT_SESSIONS_FILE) -> None:
        self.path = Path(path)

    def load(self) -> list[Session]:
        if not self.path.exists():
            return []
        try:
            return import_sessions(self.path)
        except SessionImportError as e:
            logger.error("Failed to load sessions: %s", e)
            return []

    def save(self, sessions: Iterable[Session]) -> None:
        export_sessions(sessions, self.path)
        logger.debug("Saved sessions to %s", self.path)
