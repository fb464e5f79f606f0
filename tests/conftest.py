"""Test fixtures — a fresh app per test around a fake identity authority.

Learn: create_app() accepts settings and an IdentityValidator, so tests
never reach a real Laravel API. FakeIdentityValidator maps tokens to
identities and records every call, which lets tests assert that guest
admission never touches the authority.

HTTP tests use httpx.AsyncClient over ASGITransport (no lifespan, no
network). WebSocket tests use Starlette's TestClient, which runs the app
in a portal thread and supports websocket_connect().
"""

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from helpers import WEBHOOK_SECRET, FakeIdentityValidator
from vendora_realtime.auth.identity import Identity
from vendora_realtime.config import Settings
from vendora_realtime.logs.capture import configure_logging
from vendora_realtime.logs.store import LogStore
from vendora_realtime.main import create_app


@pytest.fixture()
def settings():
    return Settings(
        webhook_secret=WEBHOOK_SECRET,
        environment="development",
        log_level="INFO",
    )


@pytest.fixture()
def validator():
    return FakeIdentityValidator({
        "admin-token": Identity(user_id="1", role="admin", email="admin@vendora.test", name="Ada"),
        "customer-token": Identity(user_id="42", role="customer"),
        "norole-token": Identity(user_id="77"),
    })


@pytest.fixture()
def app(settings, validator):
    return create_app(settings=settings, identity_validator=validator)


@pytest.fixture()
def services(app):
    return app.state.services


@pytest.fixture()
def log_store():
    """A LogStore wired into structlog on its own, without an app."""
    store = LogStore()
    configure_logging(Settings(log_level="DEBUG"), store)
    return store


@pytest_asyncio.fixture()
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture()
def ws_client(app):
    with TestClient(app) as tc:
        yield tc
