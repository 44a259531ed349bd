"""Pytest fixtures for authswap tests."""

import json
from typing import Optional

import pytest

from authswap.analyzer import (
    AuthAnalyzer,
    CapturedExchange,
    RequestData,
    ResponseData,
)
from authswap.config import AnalyzerConfig, SwapEntry
from authswap.errors import NetworkError


class FakeTransport:
    """Transport double that records requests and replays canned responses.

    ``responses`` items may be a ResponseData or an exception instance, which
    is raised for that call. When the list runs out the last item repeats.
    """

    def __init__(self, responses=None):
        self.responses = list(responses or [ResponseData(status=200, body="ok")])
        self.requests: list[RequestData] = []

    async def send(self, request: RequestData) -> ResponseData:
        self.requests.append(request)
        index = min(len(self.requests) - 1, len(self.responses) - 1)
        item = self.responses[index]
        if isinstance(item, Exception):
            raise item
        return ResponseData(
            status=item.status,
            status_text=item.status_text,
            headers=list(item.headers),
            body=item.body,
        )


def make_exchange(
    url: str = "https://api.example.com/users/1",
    method: str = "GET",
    headers: Optional[dict] = None,
    body: Optional[str] = None,
    status: Optional[int] = 200,
    response_body: str = "Welcome admin",
) -> CapturedExchange:
    response = None
    if status is not None:
        response = ResponseData(status=status, status_text="OK", body=response_body)
    return CapturedExchange(
        url=url,
        method=method,
        headers=headers if headers is not None else {"Cookie": "session=admin", "Accept": "*/*"},
        body=body,
        response=response,
    )


@pytest.fixture
def exchange():
    return make_exchange()


@pytest.fixture
def cookie_config():
    """Enabled config swapping only the cookie, with no inter-request delay."""
    return AnalyzerConfig(
        enabled=True,
        use_cookie=True,
        cookie_value="session=lowpriv",
        bulk_delay=0,
    )


@pytest.fixture
def header_config():
    return AnalyzerConfig(
        enabled=True,
        use_custom_header=True,
        custom_headers=(SwapEntry("Authorization", "Bearer low-token"),),
        bulk_delay=0,
    )


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def analyzer(cookie_config, transport):
    return AuthAnalyzer(config=cookie_config, transport=transport)


@pytest.fixture
def failing_second_transport():
    """Succeeds, fails, then succeeds again."""
    return FakeTransport([
        ResponseData(status=200, body="Welcome admin"),
        NetworkError("ConnectError: connection refused"),
        ResponseData(status=200, body="Welcome admin"),
    ])


@pytest.fixture
def sample_har():
    """Minimal HAR document with three entries (out of order)."""
    return {
        "log": {
            "version": "1.2",
            "entries": [
                {
                    "startedDateTime": "2024-01-01T10:00:02.000Z",
                    "request": {
                        "method": "POST",
                        "url": "https://api.example.com/orders?user_id=7",
                        "headers": [
                            {"name": ":authority", "value": "api.example.com"},
                            {"name": "Cookie", "value": "session=admin"},
                            {"name": "Content-Type", "value": "application/json"},
                        ],
                        "postData": {
                            "mimeType": "application/json",
                            "text": '{"item": 5}',
                        },
                    },
                    "response": {
                        "status": 201,
                        "statusText": "Created",
                        "headers": [
                            {"name": "Set-Cookie", "value": "a=1; Path=/"},
                            {"name": "Set-Cookie", "value": "b=2; Path=/"},
                        ],
                        "content": {"mimeType": "application/json", "text": '{"id": 99}'},
                    },
                },
                {
                    "startedDateTime": "2024-01-01T10:00:01.000Z",
                    "request": {
                        "method": "GET",
                        "url": "https://api.example.com/users/7",
                        "headers": [{"name": "Cookie", "value": "session=admin"}],
                    },
                    "response": {
                        "status": 200,
                        "statusText": "OK",
                        "headers": [],
                        "content": {
                            "mimeType": "text/plain",
                            "text": "V2VsY29tZSBhZG1pbg==",
                            "encoding": "base64",
                        },
                    },
                },
                {
                    "startedDateTime": "2024-01-01T10:00:03.000Z",
                    "request": {
                        "method": "GET",
                        "url": "https://cdn.example.net/app.js",
                        "headers": [],
                    },
                    "response": {
                        "status": 200,
                        "statusText": "OK",
                        "headers": [],
                        "content": {"mimeType": "application/javascript", "text": "var x;"},
                    },
                },
            ],
        }
    }


@pytest.fixture
def har_file(tmp_path, sample_har):
    path = tmp_path / "capture.har"
    path.write_text(json.dumps(sample_har), encoding="utf-8")
    return path
