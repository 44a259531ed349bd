"""Tests for the event bus and the results log."""

import json
import threading

import pytest

from conftest import make_exchange
from authswap.analyzer import (
    Classification,
    ComparisonResult,
    EventBus,
    EventName,
    ResponseData,
    ResultsLog,
    SwappedRequestSummary,
    write_results_file,
)


def _result(classification=Classification.SAME, swapped=None, session_name=None, removed_headers=()):
    exchange = make_exchange()
    return ComparisonResult(
        original_exchange=exchange,
        original_response=exchange.response,
        swapped_response=swapped or ResponseData(status=200, body="Welcome admin"),
        classification=classification,
        swapped_request=SwappedRequestSummary(
            url=exchange.url,
            method=exchange.method,
            headers={"Cookie": "session=low"},
            removed_headers=removed_headers,
        ),
        session_name=session_name,
    )


class TestEventBus:
    def test_emit_to_listeners(self):
        bus = EventBus()
        seen = []
        bus.on(EventName.SESSION_ADDED, seen.append)
        bus.emit(EventName.SESSION_ADDED, "payload")
        bus.emit(EventName.SESSION_REMOVED, "other")
        assert seen == ["payload"]

    def test_string_event_names(self):
        bus = EventBus()
        seen = []
        bus.on("result-produced", seen.append)
        bus.emit(EventName.RESULT_PRODUCED, 1)
        assert seen == [1]

    def test_off(self):
        bus = EventBus()
        seen = []
        bus.on(EventName.RESULTS_CLEARED, seen.append)
        bus.off(EventName.RESULTS_CLEARED, seen.append)
        bus.off(EventName.RESULTS_CLEARED, seen.append)
        bus.emit(EventName.RESULTS_CLEARED)
        assert seen == []

    def test_failing_listener_isolated(self, caplog):
        bus = EventBus()
        seen = []

        def broken(_payload):
            raise RuntimeError("boom")

        bus.on(EventName.ANALYZER_STARTED, broken)
        bus.on(EventName.ANALYZER_STARTED, seen.append)
        bus.emit(EventName.ANALYZER_STARTED, "x")

        assert seen == ["x"]
        assert "analyzer-started" in caplog.text

    def test_unknown_event_rejected(self):
        with pytest.raises(ValueError):
            EventBus().on("nope", print)


class TestComparisonResult:
    def test_frozen(self):
        result = _result()
        with pytest.raises(AttributeError):
            result.classification = Classification.DIFFERENT

    def test_is_error(self):
        assert not _result().is_error
        assert _result(Classification.DIFFERENT, ResponseData.from_error("boom")).is_error

    def test_to_swapped_exchange(self):
        exchange = _result(Classification.SIMILAR).to_swapped_exchange()
        assert exchange.is_swapped is True
        assert exchange.auth_comparison == "SIMILAR"
        assert exchange.headers == {"Accept": "*/*", "Cookie": "session=low"}
        assert exchange.response.body == "Welcome admin"

    def test_to_dict(self):
        data = _result(Classification.DIFFERENT, ResponseData.from_error("refused"), "Low").to_dict()
        assert data["comparison"] == "DIFFERENT"
        assert data["session"] == "Low"
        assert data["originalRequest"] == {"url": "https://api.example.com/users/1", "method": "GET"}
        assert data["originalResponse"]["length"] == len("Welcome admin")
        assert data["swappedResponse"]["error"] is True
        assert data["swappedResponse"]["body"] == "refused"


class TestResultsLog:
    def test_append_snapshot_clear(self):
        log = ResultsLog()
        first, second = _result(), _result()
        log.append(first)
        snapshot = log.snapshot()
        log.append(second)

        assert snapshot == (first,)
        assert list(log) == [first, second]
        assert len(log) == 2

        log.clear()
        assert len(log) == 0
        assert snapshot == (first,)

    def test_concurrent_appends(self):
        log = ResultsLog()
        result = _result()

        def worker():
            for _ in range(200):
                log.append(result)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(log) == 800


class TestWriteResultsFile:
    def test_summary_and_results(self, tmp_path):
        results = [
            _result(Classification.SAME),
            _result(Classification.SAME),
            _result(Classification.DIFFERENT, ResponseData(status=403)),
        ]
        path = write_results_file(results, tmp_path / "out.json", source="capture.har")

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["session"]["source"] == "capture.har"
        assert data["summary"] == {
            "total": 3, "SAME": 2, "SIMILAR": 0, "DIFFERENT": 1, "ERROR": 0,
        }
        assert [r["comparison"] for r in data["results"]] == ["SAME", "SAME", "DIFFERENT"]

    def test_swapped_exchanges_history(self, tmp_path):
        result = _result(removed_headers=("Accept",))
        path = write_results_file([result], tmp_path / "out.json")

        data = json.loads(path.read_text(encoding="utf-8"))
        [exchange] = data["swappedExchanges"]
        assert exchange["isSwapped"] is True
        assert exchange["authComparison"] == "SAME"
        assert exchange["headers"] == [{"name": "Cookie", "value": "session=low"}]
        assert exchange["response"]["body"] == "Welcome admin"
        assert data["results"][0]["swappedRequest"]["removedHeaders"] == ["Accept"]

    def test_empty(self, tmp_path):
        path = write_results_file([], tmp_path / "out.json")
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["summary"]["total"] == 0
        assert data["results"] == []
        assert data["swappedExchanges"] == []
