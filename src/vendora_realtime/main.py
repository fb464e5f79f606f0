"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. All long-lived services (log store, registry, relay,
authenticator) are built here, once, and hung on app.state; the
lifespan only reports startup/shutdown and closes the identity
client. Middleware, CORS, error handlers and routers are registered here.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from vendora_realtime import __version__
from vendora_realtime.api import api_router
from vendora_realtime.auth.identity import HttpIdentityValidator, IdentityValidator
from vendora_realtime.config import Settings, settings as default_settings
from vendora_realtime.logs.capture import configure_logging
from vendora_realtime.logs.store import LogStore
from vendora_realtime.services import build_services

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` runs
    at shutdown.
    """
    services = app.state.services
    logger.info(
        "vendora.starting",
        version=__version__,
        environment=services.settings.environment,
        port=services.settings.port,
        auth_api_url=services.settings.auth_api_url,
    )
    if not services.settings.webhook_secret:
        logger.error("vendora.webhook_secret_missing", hint="set VENDORA_WEBHOOK_SECRET")

    yield

    logger.info("vendora.shutdown")
    services.log_tail.close()
    aclose = getattr(services.validator, "aclose", None)
    if aclose is not None:
        await aclose()


# ─── Error rendering ─────────────────────────────────────


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "Invalid request"},
    )


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("vendora.unhandled_error", path=request.url.path)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "Internal server error"},
    )


def create_app(
    settings: Optional[Settings] = None,
    identity_validator: Optional[IdentityValidator] = None,
) -> FastAPI:
    """Build and return the FastAPI application."""
    settings = settings or default_settings

    log_store = LogStore(capacity=settings.log_buffer_size)
    configure_logging(settings, log_store)

    if identity_validator is None:
        identity_validator = HttpIdentityValidator(
            settings.auth_api_url,
            timeout=settings.auth_timeout_seconds,
        )

    app = FastAPI(
        title="Vendora Realtime",
        description="Webhook-to-WebSocket event bridge for the Vendora backend",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.services = build_services(settings, identity_validator, log_store)

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: RequestId → Security → CORS → handler

    from vendora_realtime.middleware.request_id import RequestIdMiddleware
    from vendora_realtime.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Webhook-Signature", "X-Request-ID", "Authorization"],
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)

    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(api_router)

    from vendora_realtime.realtime.websocket import router as ws_router
    app.include_router(ws_router)

    return app


# Default app instance (used by uvicorn: vendora_realtime.main:app)
app = create_app()
