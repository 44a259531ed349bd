"""Data models for captured exchanges and replayed requests."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from ..utils.headers import headers_to_list, normalize_headers


@dataclass
class RequestData:
    """Full HTTP request data for replay."""

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None

    def copy(self) -> RequestData:
        """Return a copy whose header map can be mutated independently."""
        return RequestData(
            method=self.method,
            url=self.url,
            headers=dict(self.headers),
            body=self.body,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "method": self.method,
            "url": self.url,
            "headers": dict(self.headers),
            "body": self.body,
        }


@dataclass
class ResponseData:
    """HTTP response data for comparison.

    Headers are kept as a ``[{name, value}]`` list so repeated headers
    (``Set-Cookie``) are preserved. A response synthesized for a failed
    replay has ``status == 0`` and ``error is True``.
    """

    status: int
    status_text: str = ""
    headers: list[dict[str, str]] = field(default_factory=list)
    body: str = ""
    url: Optional[str] = None
    method: Optional[str] = None
    error: bool = False
    elapsed_ms: float = 0.0

    def __post_init__(self) -> None:
        self.headers = headers_to_list(self.headers)

    @classmethod
    def from_error(
        cls,
        message: str,
        url: Optional[str] = None,
        method: Optional[str] = None,
    ) -> ResponseData:
        """Build the synthetic response used when a replay fails."""
        return cls(
            status=0,
            status_text="Error",
            headers=[],
            body=message,
            url=url,
            method=method,
            error=True,
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ResponseData:
        try:
            status = int(data.get("status") or 0)
        except (TypeError, ValueError):
            status = 0
        return cls(
            status=status,
            status_text=str(data.get("statusText") or ""),
            headers=data.get("headers") or [],
            body=data.get("body") or "",
            url=data.get("url"),
            method=data.get("method"),
            error=bool(data.get("error", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "status": self.status,
            "statusText": self.status_text,
            "headers": [dict(h) for h in self.headers],
            "body": self.body,
        }
        if self.url is not None:
            data["url"] = self.url
        if self.method is not None:
            data["method"] = self.method
        if self.error:
            data["error"] = True
        return data


@dataclass
class CapturedExchange:
    """A request/response pair observed by a capture collaborator.

    ``headers`` may be given as a mapping or as a list of name/value pairs;
    it is normalized to a dict on construction.
    """

    url: str
    method: str = "GET"
    headers: dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None
    response: Optional[ResponseData] = None
    timestamp: str = ""
    auth_comparison: Optional[str] = None
    is_swapped: bool = False

    def __post_init__(self) -> None:
        self.headers = normalize_headers(self.headers)
        if isinstance(self.response, dict):
            self.response = ResponseData.from_dict(self.response)

    def to_request(self) -> RequestData:
        return RequestData(
            method=self.method,
            url=self.url,
            headers=dict(self.headers),
            body=self.body if isinstance(self.body, str) else None,
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CapturedExchange:
        response = data.get("response")
        return cls(
            url=data.get("url", ""),
            method=data.get("method") or "GET",
            headers=data.get("headers") or {},
            body=data.get("body"),
            response=ResponseData.from_dict(response) if response else None,
            timestamp=data.get("timestamp", ""),
            auth_comparison=data.get("authComparison"),
            is_swapped=bool(data.get("isSwapped", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "url": self.url,
            "method": self.method,
            "headers": [{"name": k, "value": v} for k, v in self.headers.items()],
            "body": self.body,
            "response": self.response.to_dict() if self.response else None,
            "timestamp": self.timestamp,
        }
        if self.auth_comparison is not None:
            data["authComparison"] = self.auth_comparison
        if self.is_swapped:
            data["isSwapped"] = True
        return data
