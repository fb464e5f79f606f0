"""Live tail — push new log entries to connections in the logs-ui room."""

from vendora_realtime.logs.store import LogEntry, LogStore
from vendora_realtime.realtime.connection import Connection
from vendora_realtime.realtime.registry import LOGS_ROOM, SubscriptionRegistry

HISTORY_EVENT = "logs:history"
NEW_EVENT = "logs:new"


class LogTail:
    def __init__(self, store: LogStore, registry: SubscriptionRegistry):
        self.store = store
        self.registry = registry
        store.add_listener(self._on_append)

    def _on_append(self, entry: LogEntry) -> None:
        self.registry.broadcast(LOGS_ROOM, NEW_EVENT, entry.to_dict())

    def subscribe(self, connection: Connection) -> bool:
        """Join the tail and backfill the current buffer.

        Returns False when the connection is no longer registered.
        """
        if not self.registry.join(connection, LOGS_ROOM):
            return False
        connection.send(HISTORY_EVENT, [e.to_dict() for e in self.store.snapshot()])
        return True

    def unsubscribe(self, connection: Connection) -> None:
        self.registry.leave(connection, LOGS_ROOM)

    def close(self) -> None:
        self.store.remove_listener(self._on_append)
