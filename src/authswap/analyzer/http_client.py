"""HTTP transport used to dispatch replayed requests."""

from __future__ import annotations

import time
from typing import Optional, Protocol

import httpx

from ..errors import NetworkError
from .models import RequestData, ResponseData

DEFAULT_TIMEOUT = 30.0
# Bodies are compared up to this size on both sides
MAX_RESPONSE_BODY = 1024 * 1024  # 1MB

# Managed by the HTTP client itself; captured values go stale after mutation
SKIP_REQUEST_HEADERS = {
    "host", "content-length", "transfer-encoding", "connection",
    "keep-alive", "accept-encoding",
}

# Marks requests sent by authswap so a capturing proxy can skip them
REPLAY_MARKER_HEADER = "X-Authswap-Replay"


class Transport(Protocol):
    """Anything that can send a RequestData and return a ResponseData."""

    async def send(self, request: RequestData) -> ResponseData:
        ...


class HttpxTransport:
    """Async HTTP transport backed by httpx.

    Redirects are not followed so a login redirect is compared as-is.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        verify_ssl: bool = True,
        proxy: Optional[str] = None,
        mark_requests: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._timeout = timeout
        self._verify_ssl = verify_ssl
        self._proxy = proxy
        self._mark_requests = mark_requests
        self._transport = transport

    async def send(self, request: RequestData) -> ResponseData:
        """Send an HTTP request and return the response.

        Args:
            request: The request to send

        Returns:
            ResponseData with status, headers, body, timing

        Raises:
            NetworkError: On connection, timeout or URL errors
        """
        headers = {
            name: value
            for name, value in request.headers.items()
            if name.lower() not in SKIP_REQUEST_HEADERS
        }
        if self._mark_requests:
            headers[REPLAY_MARKER_HEADER] = "1"

        start = time.monotonic()

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                verify=self._verify_ssl,
                proxy=self._proxy,
                follow_redirects=False,
                transport=self._transport,
            ) as client:
                response = await client.request(
                    method=request.method,
                    url=request.url,
                    headers=headers,
                    content=request.body if request.body else None,
                )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise NetworkError(f"{type(e).__name__}: {e}") from e

        elapsed = (time.monotonic() - start) * 1000  # ms

        return ResponseData(
            status=response.status_code,
            status_text=response.reason_phrase,
            headers=list(response.headers.multi_items()),
            body=response.text[:MAX_RESPONSE_BODY],
            url=request.url,
            method=request.method,
            elapsed_ms=elapsed,
        )
