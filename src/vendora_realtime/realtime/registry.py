"""Subscription registry — rooms, membership, and fan-out.

Learn: This is the single source of truth for "who receives what".
Room names:
    user:<id>     one per identity (a user may have several tabs open)
    role:<name>   one per role, e.g. role:admin, role:guest
    broadcast     every admitted connection
    logs-ui       operators tailing the server log (opt-in)

Concurrency: membership mutations (admit/join/leave/remove) hold the
lock for the whole change, so nobody sees a half-updated room.
broadcast() copies the member list under the lock and delivers outside
it, so a slow fan-out on one room never blocks another room. A
connection that changes membership during a broadcast may or may not get
that one event; a connection is never left in a room after remove().
"""

import threading
from typing import Any, Optional

import structlog

from vendora_realtime.auth.identity import Identity
from vendora_realtime.realtime.connection import Connection, ConnectionClosedError

logger = structlog.get_logger()

BROADCAST_ROOM = "broadcast"
LOGS_ROOM = "logs-ui"


def user_room(user_id: str) -> str:
    return f"user:{user_id}"


def role_room(role: str) -> str:
    return f"role:{role}"


def identity_rooms(identity: Identity) -> set[str]:
    """The rooms an identity belongs to on admission.

    Guests carry the "guest" role label but get no role room: they only
    ever receive broadcast events and anything addressed to their own id.
    """
    rooms = {user_room(identity.user_id), BROADCAST_ROOM}
    if identity.role and not identity.anonymous:
        rooms.add(role_room(identity.role))
    return rooms


class SubscriptionRegistry:
    """In-memory room membership for the live connections of this process."""

    def __init__(self):
        self._connections: dict[str, Connection] = {}
        self._rooms: dict[str, set[str]] = {}
        # Re-entrant: a log line emitted while holding the lock may fan
        # out to logs-ui from the same thread.
        self._lock = threading.RLock()

    # ─── Membership ───────────────────────────────────────

    def admit(self, connection: Connection, identity: Identity) -> set[str]:
        """Register a connection and join its identity rooms atomically.

        Any previous membership of the same connection is replaced.
        Returns the rooms joined.
        """
        rooms = identity_rooms(identity)
        with self._lock:
            self._drop_memberships(connection)
            connection.identity = identity
            self._connections[connection.id] = connection
            for room in rooms:
                self._rooms.setdefault(room, set()).add(connection.id)
            connection.rooms = set(rooms)
        return rooms

    def join(self, connection: Connection, room: str) -> bool:
        """Add a registered connection to a room. Idempotent.

        Returns False (and changes nothing) when the connection is not
        registered, e.g. it was already removed.
        """
        with self._lock:
            if self._connections.get(connection.id) is not connection:
                return False
            self._rooms.setdefault(room, set()).add(connection.id)
            connection.rooms.add(room)
            return True

    def leave(self, connection: Connection, room: str) -> None:
        """Remove a connection from one room. Idempotent."""
        with self._lock:
            members = self._rooms.get(room)
            if members is not None:
                members.discard(connection.id)
                if not members:
                    del self._rooms[room]
            connection.rooms.discard(room)

    def remove(self, connection: Connection) -> None:
        """Forget a connection and all its memberships. Idempotent."""
        with self._lock:
            self._drop_memberships(connection)
            if self._connections.get(connection.id) is connection:
                del self._connections[connection.id]

    def _drop_memberships(self, connection: Connection) -> None:
        for room in list(connection.rooms):
            members = self._rooms.get(room)
            if members is not None:
                members.discard(connection.id)
                if not members:
                    del self._rooms[room]
        connection.rooms.clear()

    # ─── Fan-out ──────────────────────────────────────────

    def members(self, room: str) -> list[Connection]:
        with self._lock:
            return [
                self._connections[cid]
                for cid in sorted(self._rooms.get(room, ()))
                if cid in self._connections
            ]

    def broadcast(self, room: str, event_type: str, data: Any = None) -> int:
        """Deliver a frame to every member of a room, best effort.

        Returns the number of connections the frame was queued for. A
        failing connection is skipped; it never fails the broadcast.
        """
        delivered = 0
        for connection in self.members(room):
            try:
                connection.send(event_type, data)
                delivered += 1
            except ConnectionClosedError:
                logger.debug(
                    "registry.delivery_skipped",
                    room=room,
                    event_type=event_type,
                    connection_id=connection.id,
                )
            except Exception:
                logger.exception(
                    "registry.delivery_failed",
                    room=room,
                    event_type=event_type,
                    connection_id=connection.id,
                )
        return delivered

    # ─── Introspection ────────────────────────────────────

    def get(self, connection_id: str) -> Optional[Connection]:
        with self._lock:
            return self._connections.get(connection_id)

    def room_size(self, room: str) -> int:
        with self._lock:
            return len(self._rooms.get(room, ()))

    def rooms(self) -> dict[str, int]:
        """Room name → member count."""
        with self._lock:
            return {room: len(members) for room, members in sorted(self._rooms.items())}

    def snapshot(self) -> list[dict[str, Any]]:
        """Per-connection identity and membership, for /debug."""
        with self._lock:
            return [c.describe() for c in self._connections.values()]

    def stats(self) -> dict[str, Any]:
        with self._lock:
            connections = list(self._connections.values())
        guests = sum(1 for c in connections if c.is_guest)
        unique_users = sorted(
            {c.identity.user_id for c in connections if c.identity}
        )
        return {
            "total": len(connections),
            "users": len(connections) - guests,
            "guests": guests,
            "unique_users": unique_users,
        }
