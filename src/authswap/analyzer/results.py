"""Comparison results and the append-only results log."""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Iterator

from ..utils.headers import remove_header, set_header
from .comparison import Classification
from .models import CapturedExchange, ResponseData
from .session import now_ms, generate_id


@dataclass(frozen=True)
class SwappedRequestSummary:
    """What was actually sent under the swapped identity."""

    url: str
    method: str
    headers: dict[str, str] = field(default_factory=dict)
    body: str | None = None
    removed_headers: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "method": self.method,
            "headers": dict(self.headers),
            "removedHeaders": list(self.removed_headers),
        }


@dataclass(frozen=True)
class ComparisonResult:
    """Outcome of testing one exchange. Never mutated after creation."""

    original_exchange: CapturedExchange
    original_response: ResponseData
    swapped_response: ResponseData
    classification: Classification
    swapped_request: SwappedRequestSummary
    id: str = field(default_factory=lambda: generate_id("result"))
    timestamp: int = field(default_factory=now_ms)
    session_name: str | None = None

    @property
    def is_error(self) -> bool:
        return self.swapped_response.error

    def to_swapped_exchange(self) -> CapturedExchange:
        """The swapped request/response as an exchange, for the request history."""
        headers = dict(self.original_exchange.headers)
        for name in self.swapped_request.removed_headers:
            remove_header(headers, name)
        for name, value in self.swapped_request.headers.items():
            set_header(headers, name, value)

        return CapturedExchange(
            url=self.swapped_request.url,
            method=self.swapped_request.method,
            headers=headers,
            body=self.swapped_request.body,
            response=self.swapped_response,
            auth_comparison=self.classification.value,
            is_swapped=True,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "session": self.session_name,
            "comparison": self.classification.value,
            "originalRequest": {
                "url": self.original_exchange.url,
                "method": self.original_exchange.method,
            },
            "originalResponse": {
                "status": self.original_response.status,
                "statusText": self.original_response.status_text,
                "length": len(self.original_response.body or ""),
            },
            "swappedRequest": self.swapped_request.to_dict(),
            "swappedResponse": {
                "status": self.swapped_response.status,
                "statusText": self.swapped_response.status_text,
                "length": len(self.swapped_response.body or ""),
                "error": self.swapped_response.error,
                "body": self.swapped_response.body if self.swapped_response.error else None,
            },
        }


class ResultsLog:
    """Append-only, thread-safe sequence of ComparisonResults.

    Readers get immutable snapshots; there is no update-in-place.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._results: list[ComparisonResult] = []

    def append(self, result: ComparisonResult) -> None:
        with self._lock:
            self._results.append(result)

    def snapshot(self) -> tuple[ComparisonResult, ...]:
        with self._lock:
            return tuple(self._results)

    def clear(self) -> None:
        with self._lock:
            self._results = []

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)

    def __iter__(self) -> Iterator[ComparisonResult]:
        return iter(self.snapshot())


def write_results_file(
    results: Iterable[ComparisonResult],
    output: str | Path,
    source: str | None = None,
) -> Path:
    """Save comparison results to a JSON file."""
    results = list(results)
    counts = {c.value: 0 for c in Classification}
    for r in results:
        counts[r.classification.value] += 1

    output_data = {
        "session": {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "source": source,
        },
        "summary": {"total": len(results), **counts},
        "results": [r.to_dict() for r in results],
        "swappedExchanges": [r.to_swapped_exchange().to_dict() for r in results],
    }

    output = Path(output)
    with open(output, "w", encoding="utf-8") as f:
        json.dump(output_data, f, indent=2, ensure_ascii=False)
    return output
