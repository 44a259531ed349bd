"""Request replay under a swapped session."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Optional, Union
from urllib.parse import parse_qsl, urlencode

from ..errors import MalformedURLError
from ..utils.headers import find_header_key, remove_header, set_header
from ..utils.json_search import find_container
from ..utils.url import remove_query_param, replace_path_segment, replace_query_param
from .http_client import DEFAULT_TIMEOUT, Transport
from .models import CapturedExchange, RequestData, ResponseData
from .session import Parameter, Session

logger = logging.getLogger(__name__)


class RequestReplayer:
    """Builds the swapped request for a session and dispatches it.

    The original request is never mutated. Transport failures and timeouts
    are not propagated: they come back as a synthetic response with status 0
    and ``error=True`` so the comparison step can still classify them.
    """

    def __init__(self, transport: Transport, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.transport = transport
        self.timeout = timeout

    def build_request(
        self,
        original: Union[RequestData, CapturedExchange],
        session: Session,
    ) -> RequestData:
        """Apply the session's headers and parameters to a copy of the request."""
        if isinstance(original, CapturedExchange):
            request = original.to_request()
        else:
            request = original.copy()

        for name, value in session.headers.items():
            set_header(request.headers, name, value)

        # Headers the session just added always win over the removal list
        added = {name.lower() for name in session.headers}
        for name in session.headers_to_remove:
            if name.lower() not in added:
                remove_header(request.headers, name)

        for param in session.parameters:
            if param.remove:
                continue
            value = param.resolved_value()
            if value:
                replace_parameter(request, param, value)

        for param in session.parameters:
            if param.remove:
                remove_parameter(request, param)

        return request

    async def send(self, request: RequestData, session: Optional[Session] = None) -> ResponseData:
        """Dispatch a built request, converting any failure into an error response."""
        method = "OPTIONS" if session is not None and session.test_cors else request.method
        outgoing = RequestData(
            method=method,
            url=request.url,
            headers=dict(request.headers),
            body=request.body,
        )

        try:
            response = await asyncio.wait_for(
                self.transport.send(outgoing), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            logger.warning("Replay of %s %s timed out after %ss", method, request.url, self.timeout)
            return ResponseData.from_error(
                f"Request timed out after {self.timeout}s", url=request.url, method=method
            )
        except Exception as e:
            logger.warning("Replay of %s %s failed: %s", method, request.url, e)
            return ResponseData.from_error(str(e), url=request.url, method=method)

        if response.url is None:
            response.url = request.url
        if response.method is None:
            response.method = method
        return response

    async def replay(
        self,
        original: Union[RequestData, CapturedExchange],
        session: Session,
    ) -> ResponseData:
        """Replay a request with a specific session."""
        request = self.build_request(original, session)
        return await self.send(request, session)


# --- Mutation helpers ---


def replace_parameter(request: RequestData, param: Parameter, value: str) -> RequestData:
    """Write ``value`` into every target enabled for ``param`` (in place)."""
    name = param.name
    targets = param.replace_in

    if targets.path:
        _mutate_url(request, lambda url: replace_path_segment(url, name, value))

    if targets.url_param:
        _mutate_url(request, lambda url: replace_query_param(url, name, value))

    if targets.cookie:
        _replace_in_cookie(request.headers, name, value)

    if targets.body and request.body:
        request.body = _replace_in_form(request.body, name, value)

    if targets.json and request.body:
        request.body = _replace_in_json(request.body, name, value)

    if targets.header:
        _replace_header_placeholder(request.headers, name, value)

    return request


def remove_parameter(request: RequestData, param: Parameter) -> RequestData:
    """Delete ``param`` from its url/cookie/body/json targets (in place)."""
    name = param.name
    targets = param.replace_in

    if targets.url_param:
        _mutate_url(request, lambda url: remove_query_param(url, name))

    if targets.cookie:
        _remove_from_cookie(request.headers, name)

    if targets.body and request.body:
        request.body = _remove_from_form(request.body, name)

    if targets.json and request.body:
        request.body = _remove_from_json(request.body, name)

    return request


def _mutate_url(request: RequestData, mutate: Callable[[str], str]) -> None:
    """Apply a URL mutation; a malformed URL makes this step a no-op."""
    try:
        request.url = mutate(request.url)
    except MalformedURLError as e:
        logger.warning("Skipping URL mutation: %s", e)


def _replace_in_cookie(headers: dict[str, str], name: str, value: str) -> None:
    key = find_header_key(headers, "cookie")
    if key is None:
        return

    cookies = []
    for cookie in headers[key].split("; "):
        cookie_name = cookie.split("=", 1)[0]
        cookies.append(f"{name}={value}" if cookie_name == name else cookie)
    headers[key] = "; ".join(cookies)


def _remove_from_cookie(headers: dict[str, str], name: str) -> None:
    key = find_header_key(headers, "cookie")
    if key is None:
        return

    cookies = [c for c in headers[key].split("; ") if c.split("=", 1)[0] != name]
    headers[key] = "; ".join(cookies)


def _replace_in_form(body: str, name: str, value: str) -> str:
    """Replace a field in a url-encoded body, only if it is present."""
    params = parse_qsl(body, keep_blank_values=True)
    if not any(key == name for key, _ in params):
        return body

    updated = []
    replaced = False
    for key, current in params:
        if key == name:
            if not replaced:
                updated.append((key, value))
                replaced = True
            continue
        updated.append((key, current))
    return urlencode(updated)


def _remove_from_form(body: str, name: str) -> str:
    params = parse_qsl(body, keep_blank_values=True)
    if not any(key == name for key, _ in params):
        return body
    return urlencode([(key, current) for key, current in params if key != name])


def _replace_in_json(body: str, name: str, value: str) -> str:
    """Set the shallowest matching key in a JSON body; invalid JSON is left unchanged."""
    try:
        data = json.loads(body)
    except (ValueError, RecursionError):
        return body

    container = find_container(data, name)
    if container is None:
        return body

    container[name] = _coerce_like(container[name], value)
    return json.dumps(data, ensure_ascii=False)


def _remove_from_json(body: str, name: str) -> str:
    try:
        data = json.loads(body)
    except (ValueError, RecursionError):
        return body

    container = find_container(data, name)
    if container is None:
        return body

    del container[name]
    return json.dumps(data, ensure_ascii=False)


def _coerce_like(existing: Any, value: str) -> Any:
    """Preserve an integer field's type when the new value is an integer literal."""
    if isinstance(existing, int) and not isinstance(existing, bool):
        try:
            return int(value)
        except ValueError:
            return value
    return value


def _replace_header_placeholder(headers: dict[str, str], name: str, value: str) -> None:
    """Replace ``{name}`` tokens, e.g. ``Authorization: Bearer {token}``."""
    token = f"{{{name}}}"
    for header_name, header_value in headers.items():
        if token in header_value:
            headers[header_name] = header_value.replace(token, value)
