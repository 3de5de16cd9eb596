import json
import logging
import sys

from scanview.utils.log import JSONFormatter, get_logger


class TestJSONFormatter:

    def test_record_fields(self):
        record = logging.LogRecord("scanview.x", logging.WARNING, __file__, 1, "hello %s", ("there",), None)
        payload = json.loads(JSONFormatter().format(record))
        assert payload["level"] == "WARNING"
        assert payload["logger"] == "scanview.x"
        assert payload["message"] == "hello there"
        assert "exception" not in payload

    def test_traceback_included(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = logging.LogRecord("scanview.x", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())
        payload = json.loads(JSONFormatter().format(record))
        assert "RuntimeError: boom" in payload["exception"]


class TestGetLogger:

    def test_level_from_environment(self, monkeypatch):
        monkeypatch.setenv("SCANVIEW_LOG_LEVEL", "debug")
        assert get_logger("scanview.test.env").level == logging.DEBUG

    def test_explicit_level_wins(self, monkeypatch):
        monkeypatch.setenv("SCANVIEW_LOG_LEVEL", "debug")
        assert get_logger("scanview.test.explicit", logging.WARNING).level == logging.WARNING

    def test_handlers_attached_once(self):
        first = get_logger("scanview.test.once")
        second = get_logger("scanview.test.once")
        assert first is second
        assert len(second.handlers) == 1
