"""A live connection as the registry sees it — id, identity, rooms, outbox.

Learn: send() is synchronous and non-blocking. Frames go into a bounded
asyncio.Queue that the transport's writer task drains. A full queue
means the peer stopped reading; the connection is closed rather than
letting it slow down everyone else's broadcast.

send() may be called from another thread (e.g. a log line emitted in a
worker thread). In that case the frame is handed to the owning loop with
call_soon_threadsafe, because asyncio.Queue is not thread-safe.
"""

import asyncio
import threading
import time
import uuid
from typing import Any, Optional

from vendora_realtime.auth.identity import Identity

DEFAULT_OUTBOX_SIZE = 256


class ConnectionClosedError(Exception):
    """Raised when sending to a connection that can no longer receive."""


class Connection:
    def __init__(
        self,
        connection_id: Optional[str] = None,
        *,
        outbox_size: int = DEFAULT_OUTBOX_SIZE,
    ):
        self.id = connection_id or uuid.uuid4().hex
        self.identity: Optional[Identity] = None
        self.rooms: set[str] = set()
        self.connected_at = time.time()
        self.outbox: asyncio.Queue[Optional[dict[str, Any]]] = asyncio.Queue(
            maxsize=outbox_size
        )
        self.closed = False
        try:
            self._loop: Optional[asyncio.AbstractEventLoop] = asyncio.get_running_loop()
        except RuntimeError:
            self._loop = None
        self._loop_thread = threading.get_ident() if self._loop else None

    @property
    def is_guest(self) -> bool:
        return bool(self.identity and self.identity.anonymous)

    def send(self, event_type: str, data: Any = None) -> None:
        """Queue a frame for delivery. Raises ConnectionClosedError."""
        if self.closed:
            raise ConnectionClosedError(self.id)
        frame = {"type": event_type, "data": data}
        if self._loop is None or threading.get_ident() == self._loop_thread:
            self._enqueue(frame)
        else:
            try:
                self._loop.call_soon_threadsafe(self._enqueue, frame)
            except RuntimeError as e:  # loop already closed
                self.closed = True
                raise ConnectionClosedError(self.id) from e

    def _enqueue(self, frame: dict[str, Any]) -> None:
        if self.closed:
            return
        try:
            self.outbox.put_nowait(frame)
        except asyncio.QueueFull:
            self.close()
            raise ConnectionClosedError(f"{self.id}: outbox full")

    def close(self) -> None:
        """Stop accepting frames and wake the writer so it can exit."""
        if self.closed:
            return
        self.closed = True
        # Drop pending frames so the sentinel always fits
        while not self.outbox.empty():
            self.outbox.get_nowait()
        self.outbox.put_nowait(None)

    def describe(self) -> dict[str, Any]:
        """Debug view of this connection."""
        identity = self.identity
        return {
            "id": self.id,
            "user_id": identity.user_id if identity else None,
            "role": identity.role if identity else None,
            "anonymous": identity.anonymous if identity else None,
            "rooms": sorted(self.rooms),
            "connected_at": self.connected_at,
        }
