"""Health and debug endpoints.

Learn: /health is cheap and safe to expose (counts only). /debug lists
every connection's identity and rooms, so it is only mounted when
VENDORA_DEBUG_ENDPOINTS is on (default: development only).
"""

import time

from fastapi import APIRouter, Depends

from vendora_realtime import __version__
from vendora_realtime.api.deps import get_services, require_debug_endpoints
from vendora_realtime.services import Services

router = APIRouter()


@router.get("/")
async def root():
    """Service banner with the endpoint map."""
    return {
        "name": "Vendora WebSocket Server",
        "version": __version__,
        "status": "running",
        "endpoints": {
            "websocket": "/ws",
            "health": "/health",
            "events": "/events (POST)",
            "batch": "/batch (POST)",
            "logs": "/logs",
            "logs_ui": "/logs/ui",
        },
    }


@router.get("/health")
async def health_check(services: Services = Depends(get_services)):
    """Connection and room counts."""
    stats = services.registry.stats()
    return {
        "status": "ok",
        "version": __version__,
        "timestamp": int(time.time() * 1000),
        "connections": stats["total"],
        "users": stats["users"],
        "guests": stats["guests"],
        "uniqueUsers": len(stats["unique_users"]),
        "rooms": services.registry.rooms(),
    }


@router.get("/debug", dependencies=[Depends(require_debug_endpoints)])
async def debug_snapshot(services: Services = Depends(get_services)):
    """Per-connection identity, role and room membership."""
    stats = services.registry.stats()
    return {
        "connections": services.registry.snapshot(),
        "rooms": services.registry.rooms(),
        "unique_users": stats["unique_users"],
        "log_buffer": {
            "size": len(services.log_store),
            "capacity": services.log_store.capacity,
        },
    }
