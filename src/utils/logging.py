"""Shared logging configuration and logger factory."""

from __future__ import annotations

import json
import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict


_LOG_ROOT = Path(os.environ.get("BW_TAGGER_LOG_DIR", Path.cwd() / "log"))


class _StructuredFormatter(logging.Formatter):
    """Formatter that renders records as single-line JSON objects (JSONL-friendly)."""

    def format(self, record: logging.LogRecord) -> str:
        standard_keys = logging.makeLogRecord({}).__dict__.keys()
        extras: Dict[str, Any] = {
            key: value for key, value in record.__dict__.items() if key not in standard_keys and key != "stack_info"
        }

        payload: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        if extras:
            payload.update(extras)

        try:
            return json.dumps(payload, ensure_ascii=False, sort_keys=True)
        except TypeError:
            # Extra fields that are not JSON-serializable are rendered as strings.
            safe_payload: Dict[str, Any] = {
                key: (str(value) if not isinstance(value, (str, int, float, bool, type(None))) else value)
                for key, value in payload.items()
            }
            return json.dumps(safe_payload, ensure_ascii=False, sort_keys=True)


class _ConsoleFormatter(logging.Formatter):
    """Formatter for console output that renders ``extra`` fields as key=value pairs."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        standard_keys = logging.makeLogRecord({}).__dict__.keys()
        ignore_keys = set(standard_keys) | {"stack_info", "asctime", "message"}
        extras: Dict[str, Any] = {key: value for key, value in record.__dict__.items() if key not in ignore_keys}

        if not extras:
            return base

        parts = [f"{key}={value!r}" for key, value in sorted(extras.items())]
        return f"{base} | " + " ".join(parts)


class _StructuredAdapter(logging.LoggerAdapter):
    """Adapter that merges per-call ``extra`` into the adapter's base ``extra``."""

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


def _configure_root_logger() -> None:
    """Configure the root logger with console and file handlers if needed."""

    root = logging.getLogger()
    if root.handlers:
        return

    root.setLevel(logging.INFO)

    console_handler = logging.StreamHandler()
    console_formatter = _ConsoleFormatter("[lychee-bw-tagger] %(asctime)s %(levelname)s %(name)s %(message)s")
    console_handler.setFormatter(console_formatter)
    root.addHandler(console_handler)

    try:
        _LOG_ROOT.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            _LOG_ROOT / "bw_tagger.log",
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_formatter = _StructuredFormatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        file_handler.setFormatter(file_formatter)
        root.addHandler(file_handler)
    except OSError:
        # Console logging is enough when the log directory is not writable.
        root.debug("file_logging_unavailable", extra={"log_root": str(_LOG_ROOT)})


def get_logger(name: str, extra: Dict[str, Any] | None = None) -> logging.LoggerAdapter:
    """Return a structured logger adapter for the given name.

    The first call configures a simple root handler. Callers can pass a base
    ``extra`` mapping that is attached to every log record emitted through the
    returned adapter.
    """

    _configure_root_logger()
    logger = logging.getLogger(name)
    return _StructuredAdapter(logger, extra or {})


__all__ = ["get_logger"]
