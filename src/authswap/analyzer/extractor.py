"""Parameter extraction from HTTP responses."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

from ..utils.headers import get_header_values
from ..utils.json_search import find_key
from .models import ResponseData
from .session import ExtractionType, Parameter

logger = logging.getLogger(__name__)


class ParameterExtractor:
    """Extracts parameter values from responses.

    Four strategies are supported, selected by ``Parameter.extraction_type``:
    a static constant, a deferred prompt (answered by the caller), automatic
    lookup in cookies / HTML inputs / JSON, and a from/to marker search.
    """

    def extract(self, response: ResponseData, parameter: Parameter) -> Optional[str]:
        """Extract a value for ``parameter`` from ``response``.

        Returns:
            The extracted value, or None when nothing was found

        Raises:
            ValueError: If the parameter carries an unknown extraction type
        """
        extraction_type = parameter.extraction_type

        if extraction_type is ExtractionType.STATIC:
            return parameter.static_value
        if extraction_type is ExtractionType.PROMPT:
            return None
        if extraction_type is ExtractionType.AUTO:
            return self.auto_extract(response, parameter)
        if extraction_type is ExtractionType.FROM_TO:
            return self.from_to_extract(response, parameter)

        raise ValueError(f"Unknown extraction type: {extraction_type!r}")

    def auto_extract(self, response: ResponseData, parameter: Parameter) -> Optional[str]:
        """Try cookie, then HTML input, then JSON; the first hit wins."""
        sources = parameter.extract_from

        if sources.cookie:
            value = self.extract_from_cookie(response, parameter.name)
            if value is not None:
                return value

        if sources.html_input:
            value = self.extract_from_html(response, parameter.name)
            if value is not None:
                return value

        if sources.json:
            value = self.extract_from_json(response, parameter.name)
            if value is not None:
                return value

        return None

    def extract_from_cookie(self, response: ResponseData, name: str) -> Optional[str]:
        """Extract from ``Set-Cookie`` headers: ``sessionId=abc123; Path=/``."""
        pattern = re.compile(rf"{re.escape(name)}=([^;]+)", re.IGNORECASE)
        for header_value in get_header_values(response.headers, "set-cookie"):
            match = pattern.search(header_value)
            if match:
                return match.group(1)
        return None

    def extract_from_html(self, response: ResponseData, name: str) -> Optional[str]:
        """Extract from an input tag: ``<input name="csrf" value="abc123">``."""
        body = response.body
        if not body or not isinstance(body, str):
            return None
        if "<input" not in body.lower():
            return None

        escaped = re.escape(name)
        match = re.search(
            rf"""<input[^>]*name=["']{escaped}["'][^>]*value=["']([^"']+)["']""",
            body,
            re.IGNORECASE,
        )
        if not match:
            # Reverse attribute order: <input value="abc123" name="csrf">
            match = re.search(
                rf"""<input[^>]*value=["']([^"']+)["'][^>]*name=["']{escaped}["']""",
                body,
                re.IGNORECASE,
            )

        return match.group(1) if match else None

    def extract_from_json(self, response: ResponseData, name: str) -> Optional[str]:
        """Extract from a JSON body; the shallowest matching key wins."""
        body = response.body
        if not body or not isinstance(body, str):
            return None

        try:
            data = json.loads(body)
        except (ValueError, RecursionError):
            return None

        return _json_value_to_text(find_key(data, name))

    def from_to_extract(self, response: ResponseData, parameter: Parameter) -> Optional[str]:
        """Extract the text between two markers in headers and/or body."""
        markers = parameter.from_to
        if not markers.start or not markers.end:
            return None

        text = ""
        if markers.from_headers and response.headers:
            text += "\n".join(f"{h['name']}: {h['value']}" for h in response.headers)
        if markers.from_body and response.body:
            text += "\n" + response.body

        from_index = text.find(markers.start)
        if from_index == -1:
            return None

        start_index = from_index + len(markers.start)
        to_index = text.find(markers.end, start_index)
        if to_index == -1:
            return None

        return text[start_index:to_index].strip()


def _json_value_to_text(value: Any) -> Optional[str]:
    """Render a JSON value as the text written into requests."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (bool, dict, list)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return str(value)
