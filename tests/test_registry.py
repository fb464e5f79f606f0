"""Subscription registry tests — room invariants, idempotency, fan-out."""

import pytest

from helpers import drain
from vendora_realtime.auth.identity import Identity
from vendora_realtime.realtime.connection import Connection, ConnectionClosedError
from vendora_realtime.realtime.registry import (
    BROADCAST_ROOM,
    LOGS_ROOM,
    SubscriptionRegistry,
    identity_rooms,
)


@pytest.fixture()
def registry():
    return SubscriptionRegistry()


def _admit(registry, conn_id, user_id, role=None, anonymous=False):
    conn = Connection(conn_id)
    registry.admit(conn, Identity(user_id=user_id, role=role, anonymous=anonymous))
    return conn


# ─── Admission ───────────────────────────────────────────


def test_admit_joins_user_broadcast_and_role_rooms(registry):
    conn = _admit(registry, "c1", "42", role="admin")
    assert conn.rooms == {"user:42", BROADCAST_ROOM, "role:admin"}
    assert registry.room_size("user:42") == 1
    assert registry.room_size("role:admin") == 1
    assert registry.room_size(BROADCAST_ROOM) == 1


def test_admit_without_role_has_no_role_room(registry):
    conn = _admit(registry, "c1", "42")
    assert conn.rooms == {"user:42", BROADCAST_ROOM}


def test_guest_joins_no_role_room(registry):
    conn = _admit(registry, "abc", "guest_abc", role="guest", anonymous=True)
    assert conn.rooms == {"user:guest_abc", BROADCAST_ROOM}
    assert registry.room_size("role:guest") == 0


def test_identity_rooms_matches_admit(registry):
    identity = Identity(user_id="9", role="vendor")
    conn = Connection("c9")
    assert registry.admit(conn, identity) == identity_rooms(identity) == conn.rooms


def test_readmit_replaces_previous_rooms(registry):
    conn = _admit(registry, "c1", "42", role="admin")
    registry.join(conn, LOGS_ROOM)
    registry.admit(conn, Identity(user_id="43", role="customer"))
    assert conn.rooms == {"user:43", BROADCAST_ROOM, "role:customer"}
    assert registry.room_size("user:42") == 0
    assert registry.room_size(LOGS_ROOM) == 0


def test_several_tabs_share_user_room(registry):
    _admit(registry, "tab1", "42")
    _admit(registry, "tab2", "42")
    assert registry.room_size("user:42") == 2
    assert registry.stats()["unique_users"] == ["42"]


# ─── join / leave ────────────────────────────────────────


def test_join_and_leave_are_idempotent(registry):
    conn = _admit(registry, "c1", "42")
    assert registry.join(conn, LOGS_ROOM) is True
    assert registry.join(conn, LOGS_ROOM) is True
    assert registry.room_size(LOGS_ROOM) == 1

    registry.leave(conn, LOGS_ROOM)
    registry.leave(conn, LOGS_ROOM)
    registry.leave(conn, "never-joined")
    assert registry.room_size(LOGS_ROOM) == 0
    assert LOGS_ROOM not in conn.rooms


def test_join_for_unregistered_connection_is_noop(registry):
    conn = Connection("ghost")
    assert registry.join(conn, LOGS_ROOM) is False
    assert registry.room_size(LOGS_ROOM) == 0
    assert conn.rooms == set()


# ─── remove ──────────────────────────────────────────────


def test_remove_drops_every_membership(registry):
    conn = _admit(registry, "c1", "42", role="admin")
    registry.join(conn, LOGS_ROOM)
    registry.remove(conn)

    assert conn.rooms == set()
    assert registry.rooms() == {}
    assert registry.get("c1") is None
    assert registry.stats()["total"] == 0


def test_remove_is_idempotent(registry):
    conn = _admit(registry, "c1", "42")
    registry.remove(conn)
    registry.remove(conn)
    assert registry.rooms() == {}


def test_remove_never_admitted_connection(registry):
    other = _admit(registry, "c2", "7")
    registry.remove(Connection("c1"))
    assert registry.rooms() == {"broadcast": 1, "user:7": 1}
    assert other.rooms == {"user:7", BROADCAST_ROOM}


def test_no_rejoin_after_remove(registry):
    conn = _admit(registry, "c1", "42")
    registry.remove(conn)
    registry.join(conn, BROADCAST_ROOM)
    assert registry.room_size(BROADCAST_ROOM) == 0


# ─── broadcast ───────────────────────────────────────────


def test_broadcast_reaches_only_room_members(registry):
    admin = _admit(registry, "a", "1", role="admin")
    customer = _admit(registry, "b", "2", role="customer")

    assert registry.broadcast("role:admin", "order:created", {"id": 5}) == 1
    assert drain(admin) == [{"type": "order:created", "data": {"id": 5}}]
    assert drain(customer) == []

    assert registry.broadcast(BROADCAST_ROOM, "product:updated", {"id": 1}) == 2
    assert len(drain(admin)) == 1
    assert len(drain(customer)) == 1


def test_broadcast_to_empty_room(registry):
    assert registry.broadcast("role:nobody", "x", {}) == 0


def test_closed_connection_does_not_stop_broadcast(registry):
    first = _admit(registry, "a", "1")
    dead = _admit(registry, "b", "2")
    last = _admit(registry, "c", "3")
    dead.close()

    assert registry.broadcast(BROADCAST_ROOM, "stock:updated", {}) == 2
    assert len(drain(first)) == 1
    assert len(drain(last)) == 1


class ExplodingConnection(Connection):
    def send(self, event_type, data=None):
        raise RuntimeError("socket went away")


def test_failing_send_does_not_stop_broadcast(registry):
    good = _admit(registry, "a", "1")
    bad = ExplodingConnection("b")
    registry.admit(bad, Identity(user_id="2"))

    assert registry.broadcast(BROADCAST_ROOM, "stock:updated", {}) == 1
    assert len(drain(good)) == 1


def test_full_outbox_closes_connection(registry):
    conn = Connection("slow", outbox_size=2)
    registry.admit(conn, Identity(user_id="1"))
    registry.broadcast(BROADCAST_ROOM, "a", {})
    registry.broadcast(BROADCAST_ROOM, "b", {})
    assert registry.broadcast(BROADCAST_ROOM, "c", {}) == 0
    assert conn.closed
    with pytest.raises(ConnectionClosedError):
        conn.send("d")


def test_members_in_consistent_order(registry):
    for cid in ("c", "a", "b"):
        _admit(registry, cid, cid)
    assert [c.id for c in registry.members(BROADCAST_ROOM)] == ["a", "b", "c"]


# ─── Introspection ───────────────────────────────────────


def test_snapshot_and_stats(registry):
    _admit(registry, "u1", "1", role="admin")
    _admit(registry, "g1", "guest_g1", role="guest", anonymous=True)

    snap = {c["id"]: c for c in registry.snapshot()}
    assert snap["u1"]["role"] == "admin"
    assert snap["u1"]["rooms"] == ["broadcast", "role:admin", "user:1"]
    assert snap["g1"]["anonymous"] is True

    stats = registry.stats()
    assert stats == {
        "total": 2,
        "users": 1,
        "guests": 1,
        "unique_users": ["1", "guest_g1"],
    }
    # read-only
    assert registry.room_size(BROADCAST_ROOM) == 2
