"""structlog wiring — console/JSON output plus capture into the LogStore.

Learn: structlog processors are plain callables in a chain. LogCapture
sits just before the renderer, so it sees the fully bound event dict
(request_id from contextvars, level, timestamp) and turns it into a
LogEntry for the ring buffer. The renderer still gets the dict unchanged.

Lines logged while the store is pushing an entry to live-tail
subscribers are not captured again, otherwise a failing delivery that
logs a warning would feed itself forever.
"""

import logging
import sys
import threading
from typing import Any

import structlog

from vendora_realtime.config import Settings
from vendora_realtime.logs.store import LogEntry, LogStore

# structlog method name → LogEntry level
_LEVELS = {
    "critical": "ERROR",
    "exception": "ERROR",
    "error": "ERROR",
    "warning": "WARN",
    "warn": "WARN",
    "info": "INFO",
    "debug": "DEBUG",
}

_SKIP_KEYS = {"event", "level", "timestamp", "exc_info", "stack_info"}


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_jsonable(v) for v in value]
    return str(value)


def _exception_summary(exc_info: Any) -> str | None:
    if exc_info is True:
        exc_info = sys.exc_info()
    if isinstance(exc_info, tuple):
        exc_info = exc_info[1]
    if isinstance(exc_info, BaseException):
        return f"{type(exc_info).__name__}: {exc_info}"
    return None


class LogCapture:
    """structlog processor that copies every emitted line into a LogStore."""

    def __init__(self, store: LogStore):
        self.store = store
        self._local = threading.local()

    def __call__(self, logger, method_name: str, event_dict: dict) -> dict:
        if getattr(self._local, "active", False):
            return event_dict

        context = {
            key: _jsonable(value)
            for key, value in event_dict.items()
            if key not in _SKIP_KEYS
        }
        summary = _exception_summary(event_dict.get("exc_info"))
        if summary:
            context["exception"] = summary

        entry = LogEntry(
            level=_LEVELS.get(method_name, "INFO"),
            message=str(event_dict.get("event", "")),
            context=context or None,
        )

        self._local.active = True
        try:
            self.store.append(entry)
        finally:
            self._local.active = False
        return event_dict


def configure_logging(settings: Settings, store: LogStore) -> LogCapture:
    """Install the structlog pipeline. Returns the capture processor."""
    capture = LogCapture(store)
    renderer = (
        structlog.processors.JSONRenderer()
        if settings.log_json
        else structlog.dev.ConsoleRenderer()
    )
    level = logging.getLevelName(settings.log_level)
    if not isinstance(level, int):
        level = logging.INFO

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            capture,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=False,
    )
    return capture
