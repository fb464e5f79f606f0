"""Vendora Realtime — webhook-to-WebSocket event bridge.

Receives signed domain events from the Vendora backend, fans them out to
live WebSocket connections grouped into rooms, and streams the server's
own recent log lines to operators who opt into the live tail.
"""

__version__ = "1.0.0"
