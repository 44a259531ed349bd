"""Tests for the mitmproxy addon (mocked flows)."""

import json
from unittest.mock import MagicMock, patch

import pytest

from conftest import FakeTransport
from authswap.addon import AuthSwapAddon, exchange_from_flow
from authswap.analyzer import AuthAnalyzer, ResponseData
from authswap.analyzer.http_client import REPLAY_MARKER_HEADER
from authswap.config import AnalyzerConfig


class MockHeaders(dict):
    """Mock mitmproxy headers with items(multi=...)."""

    def items(self, multi=False):
        return list(super().items())


def _flow(url="https://api.example.com/users/1", headers=None, body="Welcome admin", status=200):
    flow = MagicMock()
    flow.request.pretty_url = url
    flow.request.method = "GET"
    flow.request.headers = MockHeaders(headers or {"Cookie": "session=admin"})
    flow.request.get_text.return_value = ""
    flow.request.timestamp_start = 1704103200.0
    if status is None:
        flow.response = None
    else:
        flow.response.status_code = status
        flow.response.reason = "OK"
        flow.response.headers = MockHeaders({"Content-Type": "text/plain"})
        flow.response.get_text.return_value = body
    return flow


@pytest.fixture
def addon(cookie_config):
    transport = FakeTransport([ResponseData(status=200, body="Welcome admin")])
    return AuthSwapAddon(AuthAnalyzer(config=cookie_config, transport=transport))


class TestExchangeFromFlow:
    def test_converts_request_and_response(self):
        exchange = exchange_from_flow(_flow())
        assert exchange.url == "https://api.example.com/users/1"
        assert exchange.method == "GET"
        assert exchange.headers == {"Cookie": "session=admin"}
        assert exchange.body is None
        assert exchange.response.status == 200
        assert exchange.response.body == "Welcome admin"
        assert exchange.timestamp == "2024-01-01T10:00:00+00:00"

    def test_without_response(self):
        assert exchange_from_flow(_flow(status=None)).response is None


class TestResponseHook:
    @pytest.mark.asyncio
    async def test_replays_and_annotates_flow(self, addon):
        flow = _flow()

        addon.response(flow)
        await addon.done()

        assert flow.comment == "authswap: SAME"
        transport = addon.analyzer.transport
        assert transport.requests[0].headers["Cookie"] == "session=lowpriv"
        assert len(addon.analyzer.results) == 1

    @pytest.mark.asyncio
    async def test_own_replays_ignored(self, addon):
        flow = _flow(headers={"Cookie": "session=lowpriv", REPLAY_MARKER_HEADER: "1"})

        addon.response(flow)
        await addon.done()

        assert addon.analyzer.transport.requests == []

    @pytest.mark.asyncio
    async def test_out_of_scope_not_replayed(self, addon):
        addon.analyzer.config = addon.analyzer.config.with_changes(realtime_scope="internal.example")
        flow = _flow()

        addon.response(flow)
        await addon.done()

        assert addon.analyzer.transport.requests == []
        assert len(addon.analyzer.results) == 0

    def test_no_analyzer(self):
        AuthSwapAddon().response(_flow())

    @pytest.mark.asyncio
    async def test_done_writes_results(self, addon, tmp_path):
        output = tmp_path / "results.json"
        addon.output_file = str(output)

        addon.response(_flow())
        await addon.done()

        data = json.loads(output.read_text(encoding="utf-8"))
        assert data["session"]["source"] == "proxy"
        assert data["summary"]["SAME"] == 1
        [swapped] = data["swappedExchanges"]
        assert swapped["isSwapped"] is True
        assert {"name": "Cookie", "value": "session=lowpriv"} in swapped["headers"]


class TestConfigure:
    def test_builds_analyzer_from_options(self, tmp_path):
        cfg = tmp_path / "authswap.yaml"
        cfg.write_text("authswap:\n  enabled: true\n  useCookie: true\n  cookieValue: s=low\n")
        addon = AuthSwapAddon()

        with patch("authswap.addon.ctx") as ctx:
            ctx.options.authswap_config = str(cfg)
            ctx.options.authswap_sessions = str(tmp_path / "sessions.json")
            ctx.options.authswap_output = "out.json"
            addon.configure({"authswap_config", "authswap_sessions", "authswap_output"})

        assert addon.analyzer.config.cookie_value == "s=low"
        assert addon.analyzer.enabled is True
        assert addon.analyzer.transport._mark_requests is True
        assert addon.analyzer.store.path == tmp_path / "sessions.json"
        assert addon.output_file == "out.json"

    def test_disabled_config_warns(self, tmp_path, caplog):
        addon = AuthSwapAddon()
        with patch("authswap.addon.ctx") as ctx:
            ctx.options.authswap_config = ""
            ctx.options.authswap_sessions = str(tmp_path / "sessions.json")
            with patch("authswap.addon.load_config") as load:
                load.return_value = AnalyzerConfig()
                addon.configure({"authswap_config"})

        load.assert_called_once_with(None)
        assert "authswap is disabled" in caplog.text
