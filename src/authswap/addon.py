"""mitmproxy addon: replays proxied exchanges under the swapped identity.

Load it with ``mitmdump -s addon.py`` (``authswap proxy`` does this).
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from mitmproxy import http, ctx

from authswap.analyzer import AuthAnalyzer, CapturedExchange, HttpxTransport, ResponseData
from authswap.analyzer.http_client import REPLAY_MARKER_HEADER
from authswap.analyzer.results import write_results_file
from authswap.config import load_config
from authswap.storage import DEFAULT_SESSIONS_FILE, SessionStore

logger = logging.getLogger(__name__)


def exchange_from_flow(flow: http.HTTPFlow) -> CapturedExchange:
    """Convert a mitmproxy flow into a CapturedExchange."""
    request = flow.request
    response = None
    if flow.response is not None:
        response = ResponseData(
            status=flow.response.status_code,
            status_text=flow.response.reason or "",
            headers=list(flow.response.headers.items(multi=True)),
            body=flow.response.get_text(strict=False) or "",
        )

    timestamp = ""
    if request.timestamp_start:
        timestamp = datetime.fromtimestamp(request.timestamp_start, timezone.utc).isoformat()

    return CapturedExchange(
        url=request.pretty_url,
        method=request.method,
        headers=list(request.headers.items(multi=True)),
        body=request.get_text(strict=False) or None,
        response=response,
        timestamp=timestamp,
    )


class AuthSwapAddon:
    """mitmproxy addon feeding every completed response to the analyzer."""

    def __init__(self, analyzer: Optional[AuthAnalyzer] = None):
        self.analyzer = analyzer
        self.output_file = ""
        self._config_path: Optional[str] = "__uninitialized__"  # sentinel value
        self._tasks: set[asyncio.Task] = set()

    def load(self, loader):
        """mitmproxy addon loader."""
        loader.add_option(
            name="authswap_config",
            typespec=str,
            default="",
            help="Path to authswap config file (YAML)",
        )
        loader.add_option(
            name="authswap_sessions",
            typespec=str,
            default=DEFAULT_SESSIONS_FILE,
            help="Path to the authswap sessions file (JSON)",
        )
        loader.add_option(
            name="authswap_output",
            typespec=str,
            default="",
            help="Write comparison results to this JSON file on shutdown",
        )

    def configure(self, updates):
        """mitmproxy configuration update."""
        if "authswap_config" in updates or "authswap_sessions" in updates:
            config_path = ctx.options.authswap_config or None
            if config_path != self._config_path or "authswap_sessions" in updates:
                self._config_path = config_path
                config = load_config(config_path)
                self.analyzer = AuthAnalyzer(
                    config=config,
                    transport=HttpxTransport(
                        timeout=config.replay_timeout,
                        mark_requests=True,
                    ),
                    store=SessionStore(ctx.options.authswap_sessions),
                )
                logger.info("authswap config loaded: %s", config_path or "default")
                if not config.enabled:
                    logger.warning("authswap is disabled; set 'enabled: true' to replay traffic")

        if "authswap_output" in updates:
            self.output_file = ctx.options.authswap_output

    def response(self, flow: http.HTTPFlow):
        """Queue the completed exchange for replay without holding up the flow."""
        if self.analyzer is None:
            return
        if REPLAY_MARKER_HEADER in flow.request.headers:
            return

        exchange = exchange_from_flow(flow)
        task = asyncio.get_running_loop().create_task(self._process(flow, exchange))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _process(self, flow: http.HTTPFlow, exchange: CapturedExchange) -> None:
        try:
            result = await self.analyzer.process_exchange(exchange, is_automatic=True)
        except Exception:
            logger.exception("authswap failed to process %s", exchange.url)
            return

        if result is None:
            return

        flow.comment = f"authswap: {result.classification.value}"
        logger.info(
            "[authswap] %s %s -> %s (%s vs %s)",
            exchange.method,
            exchange.url,
            result.classification.value,
            result.original_response.status,
            result.swapped_response.status,
        )

    async def done(self):
        """Wait for pending replays, then write the results file."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        if self.analyzer is None or not self.output_file:
            return

        results = self.analyzer.results.snapshot()
        write_results_file(results, self.output_file, source="proxy")
        logger.info("authswap results saved to %s (%d results)", self.output_file, len(results))


# mitmproxy addon entry point
addons = [AuthSwapAddon()]
