#!/usr/bin/env python3
"""
Vendora Realtime Stock Feed Example.

Plays the part of the Laravel backend: signs and posts a product
creation, a few stock movements, and one batch, then prints the
server's connection counts. Open http://localhost:3001/logs/ui in a
browser while it runs to watch the log tail.

Run with: VENDORA_WEBHOOK_SECRET=... python examples/stock_feed.py

Requires: pip install httpx
Server must be running: http://localhost:3001
"""

import hashlib
import hmac
import json
import os
import sys
import time

import httpx

BASE = os.environ.get("VENDORA_SERVER_URL", "http://localhost:3001")
SECRET = os.environ.get("VENDORA_WEBHOOK_SECRET", "")


def signature(payload: bytes) -> str:
    """HMAC-SHA256 hex digest of the exact request body."""
    return hmac.new(SECRET.encode(), payload, hashlib.sha256).hexdigest()


def post_signed(client: httpx.Client, path: str, body: dict) -> dict:
    payload = json.dumps(body).encode()
    resp = client.post(
        path,
        content=payload,
        headers={"Content-Type": "application/json", "X-Webhook-Signature": signature(payload)},
    )
    if resp.status_code != 200:
        print(f"ERROR: {path} returned {resp.status_code} {resp.text}")
        sys.exit(1)
    return resp.json()


def main():
    if not SECRET:
        print("ERROR: set VENDORA_WEBHOOK_SECRET to the server's shared secret")
        sys.exit(1)

    client = httpx.Client(base_url=BASE, timeout=10)

    # ── Product appears ───────────────────────────────────────────
    print("═" * 60)
    print("STEP 1: Announce a new product")
    print("═" * 60)
    result = post_signed(client, "/events", {
        "event": "product:created",
        "data": {"id": 7, "name": "Desk Lamp", "price": 39.9},
    })
    print(f"  {result['event']} → {result['recipients']} connection(s)")

    # ── Stock drains ──────────────────────────────────────────────
    print("\n" + "═" * 60)
    print("STEP 2: Stream stock movements")
    print("═" * 60)
    quantity = 10
    for _ in range(4):
        old, quantity = quantity, quantity - 3
        result = post_signed(client, "/events", {
            "event": "stock:updated",
            "data": {"product_id": 7, "old_quantity": old, "new_quantity": quantity},
        })
        print(f"  {old} -> {quantity}  (ts {result['timestamp']})")
        time.sleep(0.5)

    # ── Batch for admins only ─────────────────────────────────────
    print("\n" + "═" * 60)
    print("STEP 3: Batch an order and a restock, admins only")
    print("═" * 60)
    batch = post_signed(client, "/batch", {"events": [
        {"event": "order:created", "data": {"id": 31, "order_number": "A-31"}, "role": "admin"},
        {"event": "stock:updated", "data": {"product_id": 7, "new_quantity": 25}, "role": "admin"},
    ]})
    for item in batch["results"]:
        print(f"  {item.get('event')}: {item.get('recipients', item.get('error'))}")

    # ── Who was listening ─────────────────────────────────────────
    health = client.get("/health").json()
    print(
        f"\nConnections: {health['connections']} "
        f"({health['users']} users, {health['guests']} guests)"
    )


if __name__ == "__main__":
    main()
