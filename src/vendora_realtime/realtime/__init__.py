"""Real-time infrastructure — subscription registry + WebSocket.

Learn: Events flow through two stages:
1. Relay/LogTail → SubscriptionRegistry.broadcast(room) → per-connection outbox
2. Outbox → writer task → WebSocket client

Broadcast never waits on the network: it only queues frames. The
registry knows nothing about WebSockets, so another transport only
needs its own writer loop.
"""
