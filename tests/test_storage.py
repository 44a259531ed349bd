"""Tests for session persistence."""

import json

import pytest

from authswap.analyzer.session import Parameter, Session
from authswap.errors import SessionImportError
from authswap.storage import SessionStore, export_sessions, import_sessions


class TestExportImport:
    def test_export_writes_array(self, tmp_path):
        path = export_sessions([Session(name="A"), Session(name="B")], tmp_path / "out.json")
        data = json.loads(path.read_text(encoding="utf-8"))
        assert [s["name"] for s in data] == ["A", "B"]

    def test_round_trip(self, tmp_path):
        sessions = [Session(
            name="Low",
            headers={"Cookie": "s=1"},
            parameters=[Parameter(name="csrf", value="v")],
        )]
        path = export_sessions(sessions, tmp_path / "out.json")
        assert import_sessions(path) == sessions

    @pytest.mark.parametrize("content, message", [
        ("{not json", "Invalid JSON"),
        ('{"name": "A"}', "JSON array"),
        ('["A"]', "not an object"),
        ('[{"name": "A", "parameters": [{"value": "x"}]}]', "invalid"),
        ('[{"name": "A", "headers": ["x"]}]', "invalid"),
        ('[{"name": "A", "parameters": [{"name": "p", "extractionType": "magic"}]}]', "invalid"),
    ])
    def test_import_errors(self, tmp_path, content, message):
        path = tmp_path / "in.json"
        path.write_text(content, encoding="utf-8")
        with pytest.raises(SessionImportError, match=message):
            import_sessions(path)

    def test_import_missing_file(self, tmp_path):
        with pytest.raises(SessionImportError, match="not found"):
            import_sessions(tmp_path / "missing.json")


class TestSessionStore:
    def test_missing_file_is_empty(self, tmp_path):
        assert SessionStore(tmp_path / "sessions.json").load() == []

    def test_save_load(self, tmp_path):
        store = SessionStore(tmp_path / "sessions.json")
        store.save([Session(name="A")])
        assert [s.name for s in store.load()] == ["A"]

    def test_corrupt_file_is_empty(self, tmp_path, caplog):
        path = tmp_path / "sessions.json"
        path.write_text("{broken", encoding="utf-8")
        assert SessionStore(path).load() == []
        assert "Failed to load sessions" in caplog.text
