"""Analyzer orchestrator: decides what to replay and records the outcome."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, Optional

from .. import config as config_file
from .. import storage
from ..config import AnalyzerConfig
from ..errors import ConfigurationError, MalformedURLError, SessionImportError
from ..utils.url import extract_domain, parse_url, path_extension, replace_query_param
from .comparison import compare_responses
from .events import EventBus, EventName
from .extractor import ParameterExtractor
from .http_client import MAX_RESPONSE_BODY, HttpxTransport, Transport
from .models import CapturedExchange, ResponseData
from .replayer import RequestReplayer
from .results import ComparisonResult, ResultsLog, SwappedRequestSummary
from .session import ExtractionType, Session, SessionManager

logger = logging.getLogger(__name__)

STATIC_EXTENSIONS = frozenset({
    # Scripts
    "js", "mjs", "jsx",
    # Stylesheets
    "css", "scss", "sass", "less",
    # Images
    "jpg", "jpeg", "png", "gif", "svg", "webp", "ico", "bmp", "tiff",
    # Fonts
    "woff", "woff2", "ttf", "otf", "eot",
    # Media
    "mp4", "webm", "ogg", "mp3", "wav", "flac", "aac",
    # Documents
    "pdf", "doc", "docx", "xls", "xlsx", "ppt", "pptx",
    # Archives
    "zip", "rar", "tar", "gz", "7z",
    # Source maps
    "map",
})

_COOKIE_PREFIX_RE = re.compile(r"^cookie:\s*", re.IGNORECASE)
_AUTHORIZATION_PREFIX_RE = re.compile(r"^authorization:\s*", re.IGNORECASE)
_JWT_RE = re.compile(r"^[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+$")


class SkipReason(str, Enum):
    """Why an exchange was not replayed."""

    DISABLED = "analyzer disabled"
    NO_SWAP_METHOD = "no swap method configured"
    REALTIME_DISABLED = "realtime analysis disabled"
    OUT_OF_SCOPE = "URL outside realtime scope"
    NO_RESPONSE = "no captured response"
    STATIC_FILE = "static file"
    FILTERED = "excluded by filters"


@dataclass
class BulkReport:
    """Tally of a bulk replay run."""

    total: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    cancelled: bool = False
    results: list[ComparisonResult] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return self.succeeded + self.failed + self.skipped


ProgressCallback = Callable[[int, int, CapturedExchange, Optional[ComparisonResult]], None]


class AuthAnalyzer:
    """Replays captured exchanges under a swapped identity and classifies them.

    The configuration is an immutable AnalyzerConfig snapshot; ``start``,
    ``stop`` and ``save_config`` replace it. Results go to an append-only
    ResultsLog and are announced on the EventBus.
    """

    def __init__(
        self,
        config: Optional[AnalyzerConfig] = None,
        transport: Optional[Transport] = None,
        sessions: Optional[SessionManager] = None,
        store: Optional[storage.SessionStore] = None,
        events: Optional[EventBus] = None,
        config_path: Optional[Path] = None,
    ) -> None:
        self.config = config or AnalyzerConfig()
        self.transport = transport or HttpxTransport(timeout=self.config.replay_timeout)
        self.replayer = RequestReplayer(self.transport, timeout=self.config.replay_timeout)
        self.extractor = ParameterExtractor()
        self.sessions = sessions or SessionManager()
        self.store = store
        self.events = events or EventBus()
        self.config_path = config_path
        self.results = ResultsLog()

        if sessions is None and store is not None:
            self.sessions.sessions = store.load()

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    # --- State ---

    def start(self) -> None:
        self._set_config(self.config.start())
        logger.info("Analyzer started")
        self.events.emit(EventName.ANALYZER_STARTED)

    def stop(self) -> None:
        self._set_config(self.config.stop())
        logger.info("Analyzer stopped")
        self.events.emit(EventName.ANALYZER_STOPPED)

    def save_config(self, config: AnalyzerConfig) -> None:
        """Validate and apply a new configuration, then start the analyzer.

        Raises:
            ConfigurationError: If the configuration cannot be used
        """
        errors = config.validate()
        if errors:
            raise ConfigurationError("; ".join(errors))
        self.config = config
        self.start()

    def _set_config(self, config: AnalyzerConfig) -> None:
        self.config = config
        self.replayer.timeout = config.replay_timeout
        if self.config_path is not None:
            config_file.save_config(config, self.config_path)

    # --- Gates ---

    def skip_reason(
        self,
        exchange: CapturedExchange,
        is_automatic: bool = False,
    ) -> Optional[SkipReason]:
        """Run the eligibility gates in order; None means the exchange is replayed."""
        config = self.config

        if not config.enabled:
            return SkipReason.DISABLED

        if not config.has_swap_method():
            return SkipReason.NO_SWAP_METHOD

        if is_automatic:
            if not config.enabled_realtime:
                return SkipReason.REALTIME_DISABLED
            if not config.scope_matcher().matches(exchange.url or ""):
                return SkipReason.OUT_OF_SCOPE

        if exchange.response is None:
            return SkipReason.NO_RESPONSE

        if config.filter_static and is_static_file(exchange.url):
            return SkipReason.STATIC_FILE

        if not self.passes_filters(exchange):
            return SkipReason.FILTERED

        return None

    def passes_filters(self, exchange: CapturedExchange) -> bool:
        filters = self.config.filters
        url = exchange.url
        if not url:
            return False

        url_lower = url.lower()
        for ext in filters.exclude_file_types:
            ext = ext.lower()
            if url_lower.endswith(ext) or f"{ext}?" in url_lower:
                return False

        if exchange.method and exchange.method.upper() in filters.exclude_methods:
            return False

        if exchange.response is not None and exchange.response.status in filters.exclude_status_codes:
            return False

        if filters.exclude_paths:
            try:
                path = parse_url(url).path
            except MalformedURLError:
                logger.warning("Invalid URL: %s", url)
                return False
            if any(excluded in path for excluded in filters.exclude_paths):
                return False

        return True

    # --- Swap construction ---

    def build_swap_headers(self) -> dict[str, str]:
        """Headers carrying the swapped identity, from the configuration."""
        headers: dict[str, str] = {}

        if self.config.has_cookie:
            headers["Cookie"] = _COOKIE_PREFIX_RE.sub("", self.config.cookie_value.strip())

        for entry in self.config.valid_custom_headers:
            name = entry.name.strip()
            value = entry.value.strip()
            if name.lower() == "authorization":
                value = _AUTHORIZATION_PREFIX_RE.sub("", value)
                if not value.startswith("Bearer ") and _JWT_RE.match(value):
                    value = f"Bearer {value}"
            headers[name] = value

        return headers

    def swap_url_params(self, url: str) -> str:
        """Swap configured URL parameters that already exist in ``url``."""
        for param in self.config.valid_url_params:
            name = param.name.strip()
            try:
                swapped = replace_query_param(url, name, param.value.strip())
            except MalformedURLError as e:
                logger.warning("Failed to swap URL parameters: %s", e)
                return url
            if swapped == url:
                logger.debug("Skipping parameter %s - not found in original URL", name)
            url = swapped
        return url

    # --- Processing ---

    async def process_exchange(
        self,
        exchange: CapturedExchange,
        is_automatic: bool = False,
    ) -> Optional[ComparisonResult]:
        """Replay ``exchange`` under the configured swap and classify it.

        Returns None when a gate skips the exchange.
        """
        reason = self.skip_reason(exchange, is_automatic)
        if reason is not None:
            logger.debug("Skipped %s %s: %s", exchange.method, exchange.url, reason.value)
            return None

        logger.debug("Testing: %s %s", exchange.method, exchange.url)

        swap_headers = self.build_swap_headers()
        request = exchange.to_request()
        request.url = self.swap_url_params(request.url)

        # The captured cookie belongs to the original identity; a swap cookie,
        # when configured, is re-added by the session headers.
        swap_session = Session(name="swap", headers=swap_headers, headers_to_remove=["Cookie"])
        swapped_response = await self.replayer.replay(request, swap_session)

        summary = SwappedRequestSummary(
            url=request.url,
            method=request.method,
            headers=swap_headers,
            body=request.body,
            removed_headers=_removed_headers(swap_session),
        )
        return self._record(exchange, summary, swapped_response)

    async def test_session(
        self,
        exchange: CapturedExchange,
        session: Session,
    ) -> ComparisonResult:
        """Replay ``exchange`` under a stored session and classify it.

        The enablement and filter gates do not apply to an explicit test.
        Extractable parameters are refreshed from the swapped response so
        the next request carries current values (CSRF tokens and the like).
        """
        request = self.replayer.build_request(exchange, session)
        swapped_response = await self.replayer.send(request, session)
        summary = SwappedRequestSummary(
            url=request.url,
            method="OPTIONS" if session.test_cors else request.method,
            headers=dict(session.headers),
            body=request.body,
            removed_headers=_removed_headers(session),
        )
        result = self._record(exchange, summary, swapped_response, session_name=session.name)
        if session.parameters and not swapped_response.error:
            self.extract_parameters(swapped_response, session)
        return result

    def _record(
        self,
        exchange: CapturedExchange,
        summary: SwappedRequestSummary,
        swapped_response: ResponseData,
        session_name: Optional[str] = None,
    ) -> ComparisonResult:
        original_response = original_response_view(exchange)
        if swapped_response.body and len(swapped_response.body) > MAX_RESPONSE_BODY:
            swapped_response.body = swapped_response.body[:MAX_RESPONSE_BODY]
        classification = compare_responses(original_response, swapped_response)

        result = ComparisonResult(
            original_exchange=exchange,
            original_response=original_response or ResponseData(status=0),
            swapped_response=swapped_response,
            classification=classification,
            swapped_request=summary,
            session_name=session_name,
        )
        self.results.append(result)
        exchange.auth_comparison = classification.value

        logger.info("%s %s: %s", exchange.method, exchange.url, classification.value)
        self.events.emit(EventName.RESULT_PRODUCED, result)
        return result

    def extract_parameters(self, response: ResponseData, session: Session) -> dict[str, str]:
        """Refresh extractable parameter values of ``session`` from ``response``.

        Static and prompt parameters are left alone. Returns the values found.
        """
        extracted = {}
        for param in session.parameters:
            if param.extraction_type in (ExtractionType.STATIC, ExtractionType.PROMPT):
                continue
            value = self.extractor.extract(response, param)
            if value:
                param.set_value(value)
                extracted[param.name] = value
                logger.debug("Extracted %s = %s for %s", param.name, value, session.name)

        self._persist_sessions()
        return extracted

    async def bulk_replay(
        self,
        exchanges: Iterable[CapturedExchange],
        hosts: Optional[Iterable[str]] = None,
        cancel_event: Optional[asyncio.Event] = None,
        on_progress: Optional[ProgressCallback] = None,
        session: Optional[Session] = None,
    ) -> BulkReport:
        """Process exchanges one at a time with ``bulk_delay`` seconds between them.

        A failing exchange is counted and the run continues. Setting
        ``cancel_event`` cancels the in-flight replay and stops the run. With
        ``session`` every exchange goes through ``test_session`` instead of the
        configured swap.
        """
        selected = filter_by_hosts(exchanges, hosts)
        report = BulkReport(total=len(selected))
        logger.info("Starting bulk replay of %d requests", report.total)

        for index, exchange in enumerate(selected):
            if cancel_event is not None and cancel_event.is_set():
                report.cancelled = True
                break

            result = None
            try:
                if session is not None:
                    replay = self.test_session(exchange, session)
                else:
                    replay = self.process_exchange(exchange)
                result, cancelled = await _run_cancellable(replay, cancel_event)
            except Exception:
                logger.exception("Bulk replay error for %s", exchange.url)
                report.failed += 1
            else:
                if cancelled:
                    report.cancelled = True
                    break
                if result is None:
                    report.skipped += 1
                elif result.is_error:
                    report.failed += 1
                    report.results.append(result)
                else:
                    report.succeeded += 1
                    report.results.append(result)

            if on_progress is not None:
                on_progress(index + 1, report.total, exchange, result)

            if index + 1 < report.total and self.config.bulk_delay > 0:
                await asyncio.sleep(self.config.bulk_delay)

        if report.cancelled:
            logger.info("Bulk replay cancelled after %d of %d requests", report.processed, report.total)
        else:
            logger.info(
                "Bulk replay done: %d succeeded, %d failed, %d skipped",
                report.succeeded, report.failed, report.skipped,
            )
        return report

    def clear_results(self) -> None:
        self.results.clear()
        self.events.emit(EventName.RESULTS_CLEARED)

    # --- Sessions ---

    def add_session(self, session: Session) -> None:
        self.sessions.add_session(session)
        self._persist_sessions()
        self.events.emit(EventName.SESSION_ADDED, session)

    def remove_session(self, session_id: str) -> bool:
        removed = self.sessions.remove_session(session_id)
        if removed:
            self._persist_sessions()
            self.events.emit(EventName.SESSION_REMOVED, session_id)
        return removed

    def update_session(self, session: Session) -> None:
        self._persist_sessions()
        self.events.emit(EventName.SESSION_UPDATED, session)

    def toggle_session(self, session_id: str) -> Optional[Session]:
        session = self.sessions.toggle_session(session_id)
        if session is not None:
            self._persist_sessions()
            self.events.emit(EventName.SESSION_TOGGLED, session_id)
        return session

    def export_sessions(self, path: str | Path) -> Path:
        return storage.export_sessions(self.sessions.sessions, path)

    def import_sessions(self, path: str | Path) -> bool:
        """Replace the sessions with those in an exported file.

        Returns False, leaving the current sessions untouched, when the file
        cannot be imported.
        """
        try:
            imported = storage.import_sessions(path)
        except SessionImportError as e:
            logger.error("Import failed: %s", e)
            return False

        self.sessions.sessions = imported
        self._persist_sessions()
        self.events.emit(EventName.SESSIONS_IMPORTED, len(imported))
        return True

    def _persist_sessions(self) -> None:
        if self.store is not None:
            self.store.save(self.sessions.sessions)


def _removed_headers(session: Session) -> tuple[str, ...]:
    added = {name.lower() for name in session.headers}
    return tuple(name for name in session.headers_to_remove if name.lower() not in added)


def is_static_file(url: str) -> bool:
    """Check whether the URL path ends in a static-asset extension."""
    if not url:
        return False
    try:
        return path_extension(url) in STATIC_EXTENSIONS
    except MalformedURLError:
        return False


def original_response_view(exchange: CapturedExchange) -> Optional[ResponseData]:
    """Snapshot of the captured response used as the comparison baseline."""
    response = exchange.response
    if response is None:
        return None
    return ResponseData(
        status=response.status or 0,
        status_text=response.status_text or "",
        headers=list(response.headers),
        body=(response.body or "")[:MAX_RESPONSE_BODY],
        url=exchange.url,
        method=exchange.method,
    )


def filter_by_hosts(
    exchanges: Iterable[CapturedExchange],
    hosts: Optional[Iterable[str]] = None,
) -> list[CapturedExchange]:
    """Keep exchanges whose hostname contains any of ``hosts`` (all when empty)."""
    wanted = [h.strip().lower() for h in hosts or [] if h and h.strip()]
    if not wanted:
        return list(exchanges)

    selected = []
    for exchange in exchanges:
        hostname = extract_domain(exchange.url).lower()
        if hostname and any(h in hostname for h in wanted):
            selected.append(exchange)
    return selected


async def _run_cancellable(coro, cancel_event: Optional[asyncio.Event]):
    """Await ``coro`` unless ``cancel_event`` fires first.

    Returns ``(result, cancelled)``. On cancellation the task is cancelled and
    awaited before returning.
    """
    task = asyncio.ensure_future(coro)
    if cancel_event is None:
        return await task, False

    waiter = asyncio.ensure_future(cancel_event.wait())
    try:
        done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        waiter.cancel()

    if task in done:
        return task.result(), False

    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task
    return None, True
