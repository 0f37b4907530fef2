"""Tests for JSON log records tagged with the log entry / video in flight."""
import json
import logging

from tracker.core.logging import IngestContext, StructuredFormatter


def _record(message="hello"):
    return logging.LogRecord("tracker.test", logging.INFO, __file__, 1, message, None, None)


class TestStructuredFormatter:
    def test_plain_record(self):
        data = json.loads(StructuredFormatter().format(_record()))
        assert data["level"] == "INFO"
        assert data["message"] == "hello"
        assert "log_entry_id" not in data

    def test_context_ids_are_attached_and_reset(self):
        formatter = StructuredFormatter()
        with IngestContext(log_entry_id="log-1") as ctx:
            assert json.loads(formatter.format(_record()))["log_entry_id"] == "log-1"
            ctx.bind_video("vid-1")
            data = json.loads(formatter.format(_record()))
            assert (data["log_entry_id"], data["video_id"]) == ("log-1", "vid-1")

        data = json.loads(formatter.format(_record()))
        assert "log_entry_id" not in data
        assert "video_id" not in data
