"""Operational log buffer — recent log lines kept in memory for operators.

Learn: Log lines flow through two channels:
1. structlog → LogCapture processor → LogStore ring (last 200 lines)
2. LogStore listener → LogTail → "logs-ui" room → WebSocket clients

Nothing is persisted; a restart starts with an empty buffer.
"""
