from __future__ import annotations

import json
import logging
import os
import sys
import time
from typing import IO, Optional


TEXT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
_CONFIGURED_ATTR = "_mapbundle_configured"


class JsonFormatter(logging.Formatter):
    """
    One JSON object per record:
      { "t": 1700000000123, "lvl": "WARNING", "name": "mapbundle.header",
        "msg": "skipping invalid dimensions line", "extra": {"line": "abc"} }

    Records at DEBUG also carry "src": "<module>:<lineno>" so tokenizer
    traces can be matched to the state function that emitted them.
    """

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload = {
            "t": int(record.created * 1000),
            "lvl": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        if record.levelno <= logging.DEBUG:
            payload["src"] = f"{record.module}:{record.lineno}"
        # context passed as extra={"extra": {...}}
        ctx = getattr(record, "extra", None)
        if isinstance(ctx, dict):
            payload["extra"] = ctx
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable lines for interactive CLI use; context appended as key=value."""

    def __init__(self) -> None:
        super().__init__(TEXT_FORMAT)
        self.converter = time.gmtime

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        line = super().format(record)
        ctx = getattr(record, "extra", None)
        if isinstance(ctx, dict) and ctx:
            line += " " + " ".join(f"{k}={v}" for k, v in ctx.items())
        return line


def _level_from_name(name: str) -> int:
    lvl = getattr(logging, name.upper(), None)
    return lvl if isinstance(lvl, int) else logging.INFO


def setup_logging(level: Optional[str] = None, fmt: Optional[str] = None, stream: Optional[IO[str]] = None) -> None:
    """
    Configure the root logger once.

    Level:  explicit `level`, then env LOG_LEVEL, then INFO.
    Format: explicit `fmt` ("json" or "text"), then env LOG_FORMAT, then json.

    Later calls only adjust the level, so modules can call get_logger() at
    import time and the CLI can still apply --log-level afterwards.
    """
    root = logging.getLogger()
    if getattr(root, _CONFIGURED_ATTR, False):
        if level:
            root.setLevel(_level_from_name(level))
        return

    kind = (fmt or os.environ.get("LOG_FORMAT") or "json").lower()
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(TextFormatter() if kind == "text" else JsonFormatter())

    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(_level_from_name(level or os.environ.get("LOG_LEVEL") or "INFO"))
    setattr(root, _CONFIGURED_ATTR, True)


def get_logger(name: str) -> logging.Logger:
    """Module logger; configures the root logger on first use."""
    setup_logging()
    return logging.getLogger(name)
