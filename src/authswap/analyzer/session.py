"""Sessions and parameters used to swap identity on replay.

A Session describes the identity a request is replayed under: headers to
add or remove, and Parameters whose values are extracted from responses and
written into the replayed request.

Serialized sessions use the camelCase keys of the exported-session format so
files written by earlier releases import unchanged. Field presence, not a
version number, governs compatibility: any missing field takes its default.
"""

from __future__ import annotations

import copy
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


def now_ms() -> int:
    return int(time.time() * 1000)


def generate_id(prefix: str) -> str:
    """Generate an opaque unique id such as ``session_1700000000000_1a2b3c4d5``."""
    return f"{prefix}_{now_ms()}_{uuid.uuid4().hex[:9]}"


class ExtractionType(str, Enum):
    """How a parameter obtains its value."""

    STATIC = "static"
    PROMPT = "prompt"
    AUTO = "auto"
    FROM_TO = "fromTo"


@dataclass
class ExtractSources:
    """Sources tried, in order, by auto extraction."""

    cookie: bool = True
    html_input: bool = True
    json: bool = True

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> ExtractSources:
        if not data:
            return cls()
        return cls(
            cookie=bool(data.get("cookie", True)),
            html_input=bool(data.get("htmlInput", True)),
            json=bool(data.get("json", True)),
        )

    def to_dict(self) -> dict[str, bool]:
        return {"cookie": self.cookie, "htmlInput": self.html_input, "json": self.json}


@dataclass
class FromToMarkers:
    """Markers delimiting a value for from/to extraction."""

    start: str = ""
    end: str = ""
    from_headers: bool = True
    from_body: bool = True

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> FromToMarkers:
        if not data:
            return cls()
        return cls(
            start=str(data.get("from") or ""),
            end=str(data.get("to") or ""),
            from_headers=bool(data.get("extractFromHeader", True)),
            from_body=bool(data.get("extractFromBody", True)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "from": self.start,
            "to": self.end,
            "extractFromHeader": self.from_headers,
            "extractFromBody": self.from_body,
        }


@dataclass
class ReplaceTargets:
    """Parts of a request a parameter value is written into.

    ``header`` is off by default: it only rewrites ``{name}`` placeholders,
    e.g. ``Authorization: Bearer {token}``.
    """

    path: bool = True
    url_param: bool = True
    cookie: bool = True
    body: bool = True
    json: bool = True
    header: bool = False

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> ReplaceTargets:
        if not data:
            return cls()
        return cls(
            path=bool(data.get("path", True)),
            url_param=bool(data.get("urlParam", True)),
            cookie=bool(data.get("cookie", True)),
            body=bool(data.get("body", True)),
            json=bool(data.get("json", True)),
            header=bool(data.get("header", False)),
        )

    def to_dict(self) -> dict[str, bool]:
        return {
            "path": self.path,
            "urlParam": self.url_param,
            "cookie": self.cookie,
            "body": self.body,
            "json": self.json,
            "header": self.header,
        }


@dataclass
class Parameter:
    """A named value to extract from responses and replace in requests."""

    name: str
    extraction_type: ExtractionType = ExtractionType.AUTO
    value: Optional[str] = None
    last_extracted: Optional[int] = None
    extract_from: ExtractSources = field(default_factory=ExtractSources)
    from_to: FromToMarkers = field(default_factory=FromToMarkers)
    static_value: str = ""
    replace_in: ReplaceTargets = field(default_factory=ReplaceTargets)
    remove: bool = False  # send the request without it (CSRF-absence testing)

    def __post_init__(self) -> None:
        # Raises ValueError for unknown tags
        self.extraction_type = ExtractionType(self.extraction_type)

    def set_value(self, value: Optional[str]) -> None:
        self.value = value
        self.last_extracted = now_ms()

    def resolved_value(self) -> Optional[str]:
        """Value written into requests; static parameters fall back to their constant."""
        if self.value:
            return self.value
        if self.extraction_type is ExtractionType.STATIC and self.static_value:
            return self.static_value
        return None

    def clone(self) -> Parameter:
        return copy.deepcopy(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Parameter:
        return cls(
            name=str(data["name"]),
            extraction_type=ExtractionType(data.get("extractionType") or "auto"),
            value=data.get("value"),
            last_extracted=data.get("lastExtracted"),
            extract_from=ExtractSources.from_dict(data.get("extractFrom")),
            from_to=FromToMarkers.from_dict(data.get("fromToString")),
            static_value=str(data.get("staticValue") or ""),
            replace_in=ReplaceTargets.from_dict(data.get("replaceIn")),
            remove=bool(data.get("remove", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "extractionType": self.extraction_type.value,
            "value": self.value,
            "lastExtracted": self.last_extracted,
            "extractFrom": self.extract_from.to_dict(),
            "fromToString": self.from_to.to_dict(),
            "staticValue": self.static_value,
            "replaceIn": self.replace_in.to_dict(),
            "remove": self.remove,
        }


@dataclass
class Session:
    """An identity to replay requests under (e.g. Admin, User, Guest)."""

    name: str
    color: str = "#4CAF50"
    id: str = field(default_factory=lambda: generate_id("session"))
    active: bool = True
    privilege: str = "low"
    headers: dict[str, str] = field(default_factory=dict)
    headers_to_remove: list[str] = field(default_factory=list)
    parameters: list[Parameter] = field(default_factory=list)
    drop_original: bool = False
    test_cors: bool = False

    def add_parameter(self, parameter: Parameter) -> None:
        """Add a parameter, replacing any existing parameter with the same name."""
        self.parameters = [p for p in self.parameters if p.name != parameter.name]
        self.parameters.append(parameter)

    def remove_parameter(self, name: str) -> None:
        self.parameters = [p for p in self.parameters if p.name != name]

    def get_parameter(self, name: str) -> Optional[Parameter]:
        for param in self.parameters:
            if param.name == name:
                return param
        return None

    def clone(self, new_name: Optional[str] = None) -> Session:
        """Deep copy under a new id; mutating the clone never affects this session."""
        return Session(
            name=new_name or f"{self.name} (Copy)",
            color=self.color,
            active=self.active,
            privilege=self.privilege,
            headers=dict(self.headers),
            headers_to_remove=list(self.headers_to_remove),
            parameters=[p.clone() for p in self.parameters],
            drop_original=self.drop_original,
            test_cors=self.test_cors,
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Session:
        session = cls(
            name=str(data.get("name") or "Unnamed"),
            color=str(data.get("color") or "#4CAF50"),
            active=bool(data.get("active", True)),
            privilege=str(data.get("privilege") or "low"),
            headers={str(k): str(v) for k, v in (data.get("headers") or {}).items()},
            headers_to_remove=[str(h) for h in data.get("headersToRemove") or []],
            drop_original=bool(data.get("dropOriginal", False)),
            test_cors=bool(data.get("testCORS", False)),
        )
        if data.get("id"):
            session.id = str(data["id"])
        for param_data in data.get("parameters") or []:
            session.add_parameter(Parameter.from_dict(param_data))
        return session

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "active": self.active,
            "parameters": [p.to_dict() for p in self.parameters],
            "headers": dict(self.headers),
            "headersToRemove": list(self.headers_to_remove),
            "dropOriginal": self.drop_original,
            "testCORS": self.test_cors,
            "privilege": self.privilege,
        }


class SessionManager:
    """Holds the configured sessions."""

    def __init__(self) -> None:
        self.sessions: list[Session] = []

    def add_session(self, session: Session) -> None:
        self.sessions.append(session)

    def remove_session(self, session_id: str) -> bool:
        before = len(self.sessions)
        self.sessions = [s for s in self.sessions if s.id != session_id]
        return len(self.sessions) != before

    def get_session(self, session_id: str) -> Optional[Session]:
        for session in self.sessions:
            if session.id == session_id:
                return session
        return None

    def find_session(self, key: str) -> Optional[Session]:
        """Look a session up by id, then by case-insensitive name."""
        found = self.get_session(key)
        if found is not None:
            return found
        for session in self.sessions:
            if session.name.lower() == key.lower():
                return session
        return None

    def get_active_sessions(self) -> list[Session]:
        return [s for s in self.sessions if s.active]

    def toggle_session(self, session_id: str) -> Optional[Session]:
        session = self.get_session(session_id)
        if session is not None:
            session.active = not session.active
        return session

    def to_list(self) -> list[dict[str, Any]]:
        return [s.to_dict() for s in self.sessions]

    def load_list(self, data: list[dict[str, Any]]) -> None:
        """Replace all sessions with deserialized ones."""
        self.sessions = [Session.from_dict(item) for item in data]
