"""
Unit tests for log formatting
"""

import json
import logging

from common.logging_setup import JsonFormatter, TextFormatter, get_logger


def _record(level=logging.WARNING, msg="skipping invalid dimensions line", ctx=None):
    rec = logging.LogRecord("mapbundle.header", level, __file__, 42, msg, None, None)
    if ctx is not None:
        rec.extra = ctx
    return rec


class TestJsonFormatter:
    """Structured JSON lines"""

    def test_basic_fields(self):
        """Test timestamp, level, name and message fields"""
        out = json.loads(JsonFormatter().format(_record(ctx={"line": "abc"})))
        assert out["lvl"] == "WARNING"
        assert out["name"] == "mapbundle.header"
        assert out["msg"] == "skipping invalid dimensions line"
        assert out["extra"] == {"line": "abc"}
        assert "src" not in out

    def test_debug_records_carry_source(self):
        """Test DEBUG records carry module and line"""
        out = json.loads(JsonFormatter().format(_record(level=logging.DEBUG)))
        assert out["src"].endswith(":42")

    def test_non_serialisable_context(self):
        """Test context values that are not JSON serialisable"""
        out = json.loads(JsonFormatter().format(_record(ctx={"path": object()})))
        assert isinstance(out["extra"]["path"], str)


class TestTextFormatter:
    """Plain lines for terminals"""

    def test_context_appended(self):
        """Test context is appended as key=value"""
        line = TextFormatter().format(_record(ctx={"width": 3, "height": 2}))
        assert "mapbundle.header: skipping invalid dimensions line" in line
        assert line.endswith("width=3 height=2")


class TestGetLogger:
    """Root logger configuration"""

    def test_root_configured_once(self):
        """Test the root logger gets a single handler"""
        get_logger("mapbundle.a")
        handlers = list(logging.getLogger().handlers)
        get_logger("mapbundle.b")
        assert logging.getLogger().handlers == handlers
