"""HAR file loader.

Parses HAR (HTTP Archive) JSON files into CapturedExchange records that the
analyzer can replay.
"""

import base64
import binascii
import json
from pathlib import Path
from typing import Optional, Union

from .analyzer.models import CapturedExchange, ResponseData
from .errors import CaptureLoadError


def _header_pairs(raw: list) -> list[dict[str, str]]:
    """Keep name/value header entries, dropping HTTP/2 pseudo-headers."""
    pairs = []
    for header in raw or []:
        if not isinstance(header, dict):
            continue
        name = header.get("name", "")
        if not name or name.startswith(":"):
            continue
        pairs.append({"name": name, "value": str(header.get("value", ""))})
    return pairs


def _response_body(content: dict) -> str:
    text = content.get("text") or ""
    if text and content.get("encoding") == "base64":
        try:
            return base64.b64decode(text).decode("utf-8", errors="replace")
        except (binascii.Error, ValueError):
            return text
    return text


def _parse_har_entry(entry: dict) -> Optional[CapturedExchange]:
    """Parse a single HAR entry into a CapturedExchange.

    Returns:
        The exchange, or None if the entry has no request URL.
    """
    request = entry.get("request") or {}
    url = request.get("url", "")
    if not url:
        return None

    post_data = request.get("postData") or {}
    body = post_data.get("text") or None

    response = None
    raw_response = entry.get("response")
    if raw_response:
        try:
            status = int(raw_response.get("status") or 0)
        except (TypeError, ValueError):
            status = 0
        response = ResponseData(
            status=status,
            status_text=raw_response.get("statusText", ""),
            headers=_header_pairs(raw_response.get("headers", [])),
            body=_response_body(raw_response.get("content") or {}),
        )

    return CapturedExchange(
        url=url,
        method=request.get("method", "GET"),
        headers=_header_pairs(request.get("headers", [])),
        body=body,
        response=response,
        timestamp=entry.get("startedDateTime", ""),
    )


def load_har(har_path: Union[str, Path]) -> list[CapturedExchange]:
    """Load the exchanges recorded in a HAR file, oldest first.

    Raises:
        CaptureLoadError: If the file cannot be read or is not a HAR document
    """
    try:
        with open(har_path, "r", encoding="utf-8") as f:
            har_data = json.load(f)
    except FileNotFoundError as e:
        raise CaptureLoadError(f"HAR file not found: {har_path}") from e
    except json.JSONDecodeError as e:
        raise CaptureLoadError(f"Invalid JSON in {har_path}: {e}") from e
    except OSError as e:
        raise CaptureLoadError(f"Cannot read {har_path}: {e}") from e

    if not isinstance(har_data, dict) or not isinstance(har_data.get("log"), dict):
        raise CaptureLoadError(f"{har_path} is not a HAR file (missing 'log')")

    entries = har_data["log"].get("entries", [])
    if not isinstance(entries, list):
        raise CaptureLoadError(f"{har_path} has no valid 'log.entries' list")

    exchanges = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        exchange = _parse_har_entry(entry)
        if exchange is not None:
            exchanges.append(exchange)

    # Sort by timestamp
    exchanges.sort(key=lambda x: x.timestamp or "")

    return exchanges
