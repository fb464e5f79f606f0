"""Webhooks API — signed event submissions from the Laravel backend.

Learn: Two endpoints, same pipeline:
1. verified_body dependency checks X-Webhook-Signature over the raw body
2. the JSON body is parsed and validated (400 on a bad shape)
3. EventRelay stamps and broadcasts

/batch relays each item independently; one bad item shows up as
{error, event} in its slot and the rest still go out.
"""

import json
from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError

from vendora_realtime.api.deps import get_services, verified_body
from vendora_realtime.schemas.events import (
    BatchSubmission,
    EventSubmission,
    submission_error,
)
from vendora_realtime.services import Services

logger = structlog.get_logger()

router = APIRouter()


def _parse_json(body: bytes) -> Any:
    try:
        return json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError):
        raise HTTPException(status_code=400, detail="Invalid JSON body")


@router.post("/events")
async def receive_event(
    body: bytes = Depends(verified_body),
    services: Services = Depends(get_services),
):
    """Relay one event to connected clients."""
    try:
        submission = EventSubmission.model_validate(_parse_json(body))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=submission_error(e))

    try:
        result = services.relay.relay_submission(submission)
    except Exception:
        logger.exception("webhook.processing_failed", event_type=submission.event)
        raise HTTPException(status_code=500, detail="Failed to process webhook")

    logger.info("webhook.processed", event_type=submission.event)
    return {"success": True, **result}


@router.post("/batch")
async def receive_batch(
    body: bytes = Depends(verified_body),
    services: Services = Depends(get_services),
):
    """Relay several events in order, reporting per-item results."""
    try:
        batch = BatchSubmission.model_validate(_parse_json(body))
    except ValidationError:
        raise HTTPException(status_code=400, detail="Events array is required")

    results = services.relay.relay_batch(batch.events)
    return {"success": True, "processed": len(results), "results": results}
