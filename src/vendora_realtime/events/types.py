"""Event type constants and log formatting for known events.

Learn: Centralizing event types as constants prevents typos and
makes it easy to discover all event types the backend emits.
The set is open-ended: anything not listed here is still relayed,
it just gets a generic log line and an "unknown event" warning.
"""

from typing import Any, NamedTuple, Optional

# ─── Auth ────────────────────────────────────────────────

USER_LOGIN = "user:login"
USER_LOGOUT = "user:logout"

# ─── Catalogue ───────────────────────────────────────────

PRODUCT_CREATED = "product:created"
PRODUCT_UPDATED = "product:updated"
PRODUCT_DELETED = "product:deleted"
STOCK_UPDATED = "stock:updated"

CATEGORY_CREATED = "category:created"
CATEGORY_UPDATED = "category:updated"
CATEGORY_DELETED = "category:deleted"

# ─── Orders ──────────────────────────────────────────────

ORDER_CREATED = "order:created"
ORDER_UPDATED = "order:updated"

SYNC_EVENTS = frozenset({
    USER_LOGIN,
    USER_LOGOUT,
    PRODUCT_CREATED,
    PRODUCT_UPDATED,
    PRODUCT_DELETED,
    STOCK_UPDATED,
    CATEGORY_CREATED,
    CATEGORY_UPDATED,
    CATEGORY_DELETED,
    ORDER_CREATED,
    ORDER_UPDATED,
})


def is_known_event(event_type: str) -> bool:
    return event_type in SYNC_EVENTS


class EventSummary(NamedTuple):
    tag: str
    message: str
    context: dict[str, Any]


def _u(value: Any) -> Any:
    return value if value not in (None, "") else "unknown"


def _q(value: Any) -> Any:
    return "?" if value is None else value


def describe_event(event_type: str, data: dict[str, Any]) -> Optional[EventSummary]:
    """Human-readable log line for a known event, None for anything else."""
    user_id = data.get("user_id")

    if event_type == USER_LOGIN:
        return EventSummary(
            "LOGIN",
            f'User "{_u(data.get("name"))}" ({_u(data.get("email"))}) logged in '
            f'[{_u(data.get("user_type"))}]',
            {"user_id": user_id, "email": data.get("email"), "role": data.get("user_type")},
        )
    if event_type == USER_LOGOUT:
        return EventSummary(
            "LOGOUT",
            f'User "{_u(data.get("name"))}" ({_u(data.get("email"))}) logged out',
            {"user_id": user_id, "email": data.get("email")},
        )

    if event_type == STOCK_UPDATED:
        new_quantity = data.get("new_quantity", data.get("quantity"))
        return EventSummary(
            "STOCK",
            f"Stock updated for product ID {_u(data.get('product_id'))}: "
            f"{_q(data.get('old_quantity'))} -> {_q(new_quantity)}",
            {"product_id": data.get("product_id"), "user_id": user_id},
        )

    if event_type in (ORDER_CREATED, ORDER_UPDATED):
        number = _u(data.get("order_number") or data.get("id"))
        if event_type == ORDER_CREATED:
            message = f"Order created: #{number}"
        else:
            message = f"Order updated: #{number} -> {_u(data.get('status'))}"
        return EventSummary("ORDER", message, {"order_id": data.get("id"), "user_id": user_id})

    for prefix, tag, key in (
        ("product:", "PRODUCT", "product_id"),
        ("category:", "CATEGORY", "category_id"),
    ):
        if event_type in SYNC_EVENTS and event_type.startswith(prefix):
            noun = tag.capitalize()
            action = event_type.split(":", 1)[1]
            if action == "deleted":
                message = f"{noun} deleted: ID {_u(data.get('id'))}"
            else:
                message = f'{noun} {action}: "{_u(data.get("name"))}" (ID: {_u(data.get("id"))})'
            return EventSummary(tag, message, {key: data.get("id"), "user_id": user_id})

    return None
