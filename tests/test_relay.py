"""Event relay tests — timestamps, unknown events, targeting, batches."""

import pytest

from helpers import drain
from vendora_realtime.auth.identity import Identity
from vendora_realtime.events.types import STOCK_UPDATED, describe_event
from vendora_realtime.realtime.connection import Connection
from vendora_realtime.realtime.registry import SubscriptionRegistry
from vendora_realtime.services.relay import (
    BATCH_ITEM_FAILED,
    SERVER_TIMESTAMP_KEY,
    EventRelay,
)


@pytest.fixture()
def registry():
    return SubscriptionRegistry()


@pytest.fixture()
def admin(registry):
    conn = Connection("admin-tab")
    registry.admit(conn, Identity(user_id="1", role="admin"))
    return conn


@pytest.fixture()
def customer(registry):
    conn = Connection("customer-tab")
    registry.admit(conn, Identity(user_id="42", role="customer"))
    return conn


def test_relay_stamps_and_broadcasts(registry, admin, customer):
    relay = EventRelay(registry, clock=lambda: 1_700_000_000_000)
    data = {"product_id": 7, "old_quantity": 5, "new_quantity": 3}

    result = relay.relay(STOCK_UPDATED, data)

    assert result == {
        "broadcasted": True,
        "event": STOCK_UPDATED,
        "timestamp": 1_700_000_000_000,
        "recipients": 2,
    }
    frames = drain(admin)
    assert frames == [{
        "type": STOCK_UPDATED,
        "data": {**data, SERVER_TIMESTAMP_KEY: 1_700_000_000_000},
    }]
    # Caller's dict is not mutated
    assert SERVER_TIMESTAMP_KEY not in data


def test_timestamps_never_go_backwards(registry):
    ticks = iter([1000, 2000, 1500, 2500])
    relay = EventRelay(registry, clock=lambda: next(ticks))
    stamps = [relay.relay("product:updated", {})["timestamp"] for _ in range(4)]
    assert stamps == [1000, 2000, 2000, 2500]


def test_unknown_event_forwarded_and_logged(registry, admin, log_store):
    relay = EventRelay(registry)
    result = relay.relay("invoice:paid", {"id": 3})

    assert result["broadcasted"] is True
    assert drain(admin)[0]["type"] == "invoice:paid"
    warnings = [e for e in log_store.snapshot() if e.level == "WARN"]
    assert any(
        e.message == "relay.unknown_event_type" and e.context["event_type"] == "invoice:paid"
        for e in warnings
    )


def test_known_event_logs_readable_line(registry, log_store):
    EventRelay(registry).relay(STOCK_UPDATED, {"product_id": 7, "old_quantity": 5, "new_quantity": 3})
    messages = [e.message for e in log_store.snapshot()]
    assert "[STOCK] Stock updated for product ID 7: 5 -> 3" in messages


def test_relay_to_user_room(registry, admin, customer):
    relay = EventRelay(registry)
    result = relay.relay("order:updated", {"id": 9, "status": "shipped"}, user_id=42)
    assert result["recipients"] == 1
    assert drain(customer)[0]["data"]["status"] == "shipped"
    assert drain(admin) == []


def test_relay_to_role_room(registry, admin, customer):
    relay = EventRelay(registry)
    relay.relay("order:created", {"id": 10}, role="admin")
    assert len(drain(admin)) == 1
    assert drain(customer) == []


def test_relay_with_no_recipients_still_succeeds(registry):
    result = EventRelay(registry).relay("product:created", {"id": 1})
    assert result["broadcasted"] is True
    assert result["recipients"] == 0


# ─── Batches ─────────────────────────────────────────────


class FlakyRegistry(SubscriptionRegistry):
    """Fails every broadcast of one event type."""

    def __init__(self, failing_event):
        super().__init__()
        self.failing_event = failing_event

    def broadcast(self, room, event_type, data=None):
        if event_type == self.failing_event:
            raise RuntimeError("internal failure")
        return super().broadcast(room, event_type, data)


def test_batch_item_failure_does_not_abort_siblings():
    registry = FlakyRegistry("order:created")
    relay = EventRelay(registry)

    results = relay.relay_batch([
        {"event": "product:created", "data": {"id": 1}},
        {"event": "order:created", "data": {"id": 2}},
        {"event": "stock:updated", "data": {"product_id": 1}},
    ])

    assert len(results) == 3
    assert results[0]["broadcasted"] is True
    assert results[0]["event"] == "product:created"
    assert results[1] == {"error": BATCH_ITEM_FAILED, "event": "order:created"}
    assert results[2]["broadcasted"] is True
    assert results[2]["event"] == "stock:updated"


def test_batch_preserves_order_and_timestamps(registry):
    ticks = iter([30, 10, 40])
    relay = EventRelay(registry, clock=lambda: next(ticks))
    results = relay.relay_batch([{"event": f"e{i}"} for i in range(3)])
    assert [r["event"] for r in results] == ["e0", "e1", "e2"]
    assert [r["timestamp"] for r in results] == [30, 30, 40]


def test_batch_malformed_items_reported_per_item(registry):
    results = EventRelay(registry).relay_batch([
        {"data": {"id": 1}},
        "not an object",
        {"event": "product:deleted", "data": None},
    ])
    assert results[0] == {"error": "Event type is required", "event": None}
    assert results[1] == {"error": "Invalid event payload", "event": None}
    assert results[2]["broadcasted"] is True


# ─── Event descriptions ──────────────────────────────────


@pytest.mark.parametrize("event_type,data,expected", [
    ("user:login", {"name": "Ada", "email": "a@v.test", "user_type": "admin"},
     'User "Ada" (a@v.test) logged in [admin]'),
    ("product:created", {"id": 4, "name": "Lamp"}, 'Product created: "Lamp" (ID: 4)'),
    ("category:deleted", {"id": 2}, "Category deleted: ID 2"),
    ("order:updated", {"order_number": "A-17", "status": "paid"}, "Order updated: #A-17 -> paid"),
    ("stock:updated", {"product_id": 1, "quantity": 9}, "Stock updated for product ID 1: ? -> 9"),
])
def test_describe_known_events(event_type, data, expected):
    assert describe_event(event_type, data).message == expected


def test_describe_unknown_event():
    assert describe_event("invoice:paid", {}) is None
