"""Log ring buffer — fixed-capacity, most-recent-first.

Learn: The store is a plain service object built once in create_app()
and handed to whoever needs it (the logging processor, the log tail,
the /logs endpoint). There is no module-level buffer.

append() inserts at the front and evicts the oldest entry once the
buffer is full, then notifies listeners with exactly the new entry.
Listeners run after the lock is released so a listener that logs (or
reads the snapshot) cannot deadlock the store. A listener that raises
is logged and skipped; the others still run.
"""

import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import structlog

logger = structlog.get_logger()

# Ordered most to least severe
LOG_LEVELS = ("ERROR", "WARN", "INFO", "DEBUG")

DEFAULT_CAPACITY = 200


@dataclass(frozen=True)
class LogEntry:
    """One captured log line."""

    level: str
    message: str
    context: Optional[dict[str, Any]] = None
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def __post_init__(self):
        if self.level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {self.level}")

    def to_dict(self) -> dict[str, Any]:
        data = {
            "timestamp": self.timestamp,
            "level": self.level,
            "message": self.message,
        }
        if self.context:
            data["context"] = self.context
        return data


LogListener = Callable[[LogEntry], None]


class LogStore:
    """Bounded in-memory log buffer with append listeners."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._entries: deque[LogEntry] = deque(maxlen=capacity)
        self._listeners: list[LogListener] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def append(self, entry: LogEntry) -> None:
        """Insert at the front, evicting the oldest, then notify listeners."""
        with self._lock:
            # appendleft on a full bounded deque drops from the right (oldest)
            self._entries.appendleft(entry)
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(entry)
            except Exception:
                # Reported through structlog; the capture processor is
                # already active on this thread, so this is not re-captured.
                logger.exception("logs.listener_failed", listener=repr(listener))

    def snapshot(self) -> list[LogEntry]:
        """Current contents, most recent first."""
        with self._lock:
            return list(self._entries)

    def add_listener(self, listener: LogListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: LogListener) -> None:
        with self._lock:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass
