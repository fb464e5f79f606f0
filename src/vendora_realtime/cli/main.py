"""Vendora Realtime CLI — run the server and poke it from a shell.

Usage:
    vendora-realtime serve                              # Run the server (uvicorn)
    vendora-realtime sign payload.json                  # Print the webhook signature
    echo '{"event":"ping"}' | vendora-realtime sign -   # ...for stdin
    vendora-realtime send stock:updated -d '{"product_id": 7}'   # Signed POST /events
    vendora-realtime health                             # Connection counts
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys
from typing import Optional

import click
import httpx

from vendora_realtime import __version__
from vendora_realtime.services.signature import (
    SIGNATURE_HEADER,
    ServiceMisconfigured,
    SignatureVerifier,
)

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_SERVER_URL = "http://localhost:3001"


def _server_url() -> str:
    return os.environ.get("VENDORA_SERVER_URL", DEFAULT_SERVER_URL).rstrip("/")


def _client() -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the realtime server."""
    return httpx.AsyncClient(base_url=_server_url(), timeout=10.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

    Offloads to a thread when an event loop is already running (e.g.
    CliRunner inside an async test).
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _verifier(secret: Optional[str]) -> SignatureVerifier:
    secret = secret or os.environ.get("VENDORA_WEBHOOK_SECRET")
    if not secret:
        click.secho(
            "Error: --secret required (or set VENDORA_WEBHOOK_SECRET env var)",
            fg="red",
            err=True,
        )
        sys.exit(1)
    return SignatureVerifier(secret)


def _pretty_json(data: dict | list) -> str:
    return json.dumps(data, indent=2, default=str)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="vendora-realtime")
def main():
    """Vendora Realtime — webhook-to-WebSocket event bridge."""


@main.command()
@click.option("--host", default=None, help="Bind address (default: VENDORA_HOST)")
@click.option("--port", type=int, default=None, help="Port (default: VENDORA_PORT)")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the HTTP + WebSocket server."""
    import uvicorn

    from vendora_realtime.config import settings

    uvicorn.run(
        "vendora_realtime.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


@main.command()
@click.argument("payload", type=click.File("rb"))
@click.option("--secret", "-s", help="Shared secret (or set VENDORA_WEBHOOK_SECRET)")
def sign(payload, secret: Optional[str]):
    """Print the X-Webhook-Signature for the exact bytes of PAYLOAD ('-' for stdin)."""
    verifier = _verifier(secret)
    try:
        click.echo(verifier.sign(payload.read()))
    except ServiceMisconfigured as e:
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(1)


@main.command()
@click.argument("event")
@click.option("--data", "-d", default="{}", help="JSON payload for the event")
@click.option("--user-id", help="Deliver only to this user's room")
@click.option("--role", help="Deliver only to this role's room")
@click.option("--secret", "-s", help="Shared secret (or set VENDORA_WEBHOOK_SECRET)")
def send(event: str, data: str, user_id: Optional[str], role: Optional[str],
         secret: Optional[str]):
    """Sign and POST an EVENT to a running server's /events endpoint."""
    try:
        payload = json.loads(data)
    except json.JSONDecodeError as e:
        click.secho(f"Error: --data is not valid JSON ({e})", fg="red", err=True)
        sys.exit(1)

    submission: dict = {"event": event, "data": payload}
    if user_id:
        submission["user_id"] = user_id
    if role:
        submission["role"] = role

    body = json.dumps(submission).encode()
    signature = _verifier(secret).sign(body)
    _run(_send_impl(body, signature))


async def _send_impl(body: bytes, signature: str):
    async with _client() as c:
        r = await c.post(
            "/events",
            content=body,
            headers={"Content-Type": "application/json", SIGNATURE_HEADER: signature},
        )
    color = "green" if r.is_success else "red"
    click.secho(f"HTTP {r.status_code}", fg=color)
    click.echo(_pretty_json(r.json()))
    if not r.is_success:
        sys.exit(1)


@main.command()
def health():
    """Show connection and room counts of a running server."""
    _run(_health_impl())


async def _health_impl():
    async with _client() as c:
        try:
            r = await c.get("/health")
        except httpx.ConnectError:
            click.secho(f"Server not reachable at {_server_url()}", fg="red", err=True)
            sys.exit(1)
    data = r.json()
    click.secho(f"Status: {data.get('status')}", bold=True)
    click.echo(
        f"Connections: {data.get('connections')} "
        f"({data.get('users')} users, {data.get('guests')} guests)"
    )
    for room, count in (data.get("rooms") or {}).items():
        click.echo(f"  {room.ljust(32)} {count}")


if __name__ == "__main__":
    main()
