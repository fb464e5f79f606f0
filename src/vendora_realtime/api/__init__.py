"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Paths sit at the root (no /api prefix) because the Laravel
backend and the log viewer address them directly. The webhook routes
authenticate with a body signature instead of a user identity, so no
router-level auth dependency is applied here.
"""

from fastapi import APIRouter

from vendora_realtime.api.health import router as health_router
from vendora_realtime.api.logs import router as logs_router
from vendora_realtime.api.webhooks import router as webhooks_router

api_router = APIRouter()

api_router.include_router(health_router, tags=["health"])
api_router.include_router(webhooks_router, tags=["webhooks"])
api_router.include_router(logs_router, tags=["logs"])
