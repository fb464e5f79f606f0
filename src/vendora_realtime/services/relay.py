"""Event relay — stamp verified events and fan them out.

Learn: The relay trusts its caller: by the time an event gets here the
webhook signature has been checked. Payloads are opaque. Unknown event
types are forwarded anyway (the backend may ship new events before this
service learns about them) and only logged as a warning.

Every relayed event gets a server timestamp (epoch ms) at relay time.
Timestamps never go backwards within one relay, even if the wall clock
does, so clients can order events by it.
"""

import json
import threading
import time
from typing import Any, Callable, Optional, Union

import structlog
from pydantic import ValidationError

from vendora_realtime.events.types import describe_event, is_known_event
from vendora_realtime.realtime.registry import (
    BROADCAST_ROOM,
    SubscriptionRegistry,
    role_room,
    user_room,
)
from vendora_realtime.schemas.events import EventSubmission, submission_error

logger = structlog.get_logger()

SERVER_TIMESTAMP_KEY = "_serverTimestamp"

BATCH_ITEM_FAILED = "Failed to process event"


def _now_ms() -> int:
    return int(time.time() * 1000)


class EventRelay:
    def __init__(
        self,
        registry: SubscriptionRegistry,
        *,
        clock: Callable[[], int] = _now_ms,
    ):
        self.registry = registry
        self._clock = clock
        self._last_timestamp = 0
        self._lock = threading.Lock()

    def _stamp(self) -> int:
        with self._lock:
            self._last_timestamp = max(self._last_timestamp, self._clock())
            return self._last_timestamp

    def relay(
        self,
        event_type: str,
        data: Optional[dict[str, Any]] = None,
        *,
        user_id: Optional[Union[int, str]] = None,
        role: Optional[str] = None,
    ) -> dict[str, Any]:
        """Relay one event. Returns the per-event success payload."""
        data = data or {}
        if not is_known_event(event_type):
            logger.warning("relay.unknown_event_type", event_type=event_type)

        summary = describe_event(event_type, data)
        if summary:
            logger.info(f"[{summary.tag}] {summary.message}", **summary.context)
        else:
            preview = json.dumps(data, default=str)[:300]
            logger.info(f"[WEBHOOK] Event: {event_type}", data=preview)

        if user_id is not None:
            room = user_room(str(user_id))
        elif role:
            room = role_room(role)
        else:
            room = BROADCAST_ROOM

        timestamp = self._stamp()
        enriched = {**data, SERVER_TIMESTAMP_KEY: timestamp}

        recipients = self.registry.broadcast(room, event_type, enriched)
        if recipients:
            logger.info("relay.broadcast", event_type=event_type, room=room, recipients=recipients)
        else:
            logger.warning("relay.no_recipients", event_type=event_type, room=room)

        return {
            "broadcasted": True,
            "event": event_type,
            "timestamp": timestamp,
            "recipients": recipients,
        }

    def relay_submission(self, submission: EventSubmission) -> dict[str, Any]:
        return self.relay(
            submission.event,
            submission.data,
            user_id=submission.user_id,
            role=submission.role,
        )

    def relay_batch(self, items: list[Any]) -> list[dict[str, Any]]:
        """Relay items in order; a failing item never aborts the rest."""
        results = []
        for item in items:
            event_type = item.get("event") if isinstance(item, dict) else None
            try:
                submission = EventSubmission.model_validate(item)
            except ValidationError as e:
                results.append({"error": submission_error(e), "event": event_type})
                continue

            try:
                results.append(self.relay_submission(submission))
            except Exception:
                logger.exception("relay.batch_item_failed", event_type=submission.event)
                results.append({"error": BATCH_ITEM_FAILED, "event": submission.event})

        logger.info("relay.batch_processed", count=len(items))
        return results
