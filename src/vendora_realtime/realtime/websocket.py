"""WebSocket endpoint — admission, room membership, and live delivery.

Learn: Each client connects to /ws?token=<sanctum token> (or
/ws?guest=true for public events). The handler:
1. Authenticates through the SessionAuthenticator (the only await
   before the connection exists anywhere)
2. Admits the connection into its rooms in the SubscriptionRegistry
3. Runs a writer task (outbox → socket) and a reader task (client commands)
4. Removes the connection from every room on disconnect

This is a long-lived connection — one per browser tab.
"""

import asyncio
import json
import time
from typing import Any, Optional

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from vendora_realtime.auth.identity import AuthenticationRejected
from vendora_realtime.realtime.connection import Connection
from vendora_realtime.realtime.registry import SubscriptionRegistry
from vendora_realtime.services import Services

logger = structlog.get_logger()
router = APIRouter()

# Close code for refused handshakes (application range 4000-4999)
AUTH_FAILED_CLOSE_CODE = 4001


def _handshake(websocket: WebSocket) -> tuple[Optional[str], bool]:
    """Credential and guest flag from the handshake request."""
    token = websocket.query_params.get("token")
    if not token:
        authorization = websocket.headers.get("authorization", "")
        if authorization.startswith("Bearer "):
            token = authorization[7:]
    guest = websocket.query_params.get("guest", "").lower() in ("1", "true", "yes")
    return token or None, guest


def _log_stats(registry: SubscriptionRegistry, label: str) -> None:
    stats = registry.stats()
    logger.info(
        f"[STATS] {label}: {stats['total']} "
        f"({stats['users']} users, {stats['guests']} guests)"
    )


def handle_client_message(services: Services, connection: Connection, message: Any) -> None:
    """Dispatch one client command frame."""
    if not isinstance(message, dict):
        return
    msg_type = message.get("type")

    if msg_type == "ping":
        connection.send("pong", {"timestamp": int(time.time() * 1000)})
    elif msg_type in ("logs:subscribe", "logs:request"):
        if services.log_tail.subscribe(connection):
            logger.debug("ws.logs_subscribed", connection_id=connection.id)
    elif msg_type == "logs:unsubscribe":
        services.log_tail.unsubscribe(connection)
        logger.debug("ws.logs_unsubscribed", connection_id=connection.id)
    else:
        logger.debug("ws.unknown_message", connection_id=connection.id, type=msg_type)


@router.websocket("/ws")
async def live_websocket(websocket: WebSocket):
    """WebSocket endpoint for live events and the log tail.

    Learn: Two concurrent tasks run:
    1. Writer — drains the connection outbox to the socket
    2. Reader — handles ping and logs:* commands from the client

    When either side finishes, both tasks are cancelled cleanly and the
    connection leaves every room.
    """
    services: Services = websocket.app.state.services
    registry = services.registry
    connection = Connection(outbox_size=services.settings.outbox_size)

    # ── Authentication ──────────────────────────────────────
    token, guest = _handshake(websocket)
    try:
        identity = await services.authenticator.authenticate(connection.id, token, guest)
    except AuthenticationRejected as e:
        await websocket.close(code=AUTH_FAILED_CLOSE_CODE, reason=e.reason)
        return

    # ── Connection accepted ─────────────────────────────────
    kind = "GUEST" if identity.anonymous else "USER"
    log = logger.bind(connection_id=connection.id, user_id=identity.user_id)

    async def writer():
        """Forward queued frames to the WebSocket client."""
        try:
            while True:
                frame = await connection.outbox.get()
                if frame is None:
                    return
                await websocket.send_text(json.dumps(frame, default=str))
        except asyncio.CancelledError:
            pass
        except Exception as e:
            log.debug("ws.send_failed", error=str(e))

    async def reader():
        """Handle incoming client commands."""
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(message.get("code", 1000))
                text = message.get("text")
                if text is None:
                    # Binary frames are not part of the protocol
                    continue
                try:
                    command = json.loads(text)
                except json.JSONDecodeError:
                    continue
                handle_client_message(services, connection, command)
        except WebSocketDisconnect as e:
            log.info(f"[{kind}] {identity.user_id} disconnected", code=e.code)
        except asyncio.CancelledError:
            pass

    await websocket.accept()
    rooms = registry.admit(connection, identity)
    writer_task = reader_task = None

    try:
        log.info(f"[{kind}] {identity.user_id} connected", rooms=sorted(rooms))
        _log_stats(registry, "Total connections")

        connection.send("connected", {
            "connection_id": connection.id,
            "identity": identity.to_dict(),
            "rooms": sorted(rooms),
        })

        writer_task = asyncio.create_task(writer())
        reader_task = asyncio.create_task(reader())

        # Wait for either to finish (usually client disconnect)
        done, pending = await asyncio.wait(
            [writer_task, reader_task],
            return_when=asyncio.FIRST_COMPLETED,
        )
        for task in done:
            if not task.cancelled() and task.exception() is not None:
                log.error("ws.task_failed", exc_info=task.exception())
    finally:
        for task in (writer_task, reader_task):
            if task is not None and not task.done():
                task.cancel()
        registry.remove(connection)
        connection.close()
        _log_stats(registry, "Remaining connections")
        if websocket.client_state == WebSocketState.CONNECTED:
            await websocket.close()
