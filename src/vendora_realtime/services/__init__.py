"""Service container — every long-lived collaborator, built once per app.

Learn: create_app() builds one Services instance and stores it on
app.state. Routes and the WebSocket handler reach it through
api.deps.get_services, so tests can build an app around a fake identity
validator without patching module globals.
"""

from dataclasses import dataclass

from vendora_realtime.auth.identity import IdentityValidator
from vendora_realtime.auth.session import SessionAuthenticator
from vendora_realtime.config import Settings
from vendora_realtime.logs.store import LogStore
from vendora_realtime.logs.tail import LogTail
from vendora_realtime.realtime.registry import SubscriptionRegistry
from vendora_realtime.services.relay import EventRelay
from vendora_realtime.services.signature import SignatureVerifier


@dataclass
class Services:
    settings: Settings
    log_store: LogStore
    registry: SubscriptionRegistry
    log_tail: LogTail
    validator: IdentityValidator
    authenticator: SessionAuthenticator
    verifier: SignatureVerifier
    relay: EventRelay


def build_services(
    settings: Settings,
    validator: IdentityValidator,
    log_store: LogStore,
) -> Services:
    registry = SubscriptionRegistry()
    return Services(
        settings=settings,
        log_store=log_store,
        registry=registry,
        log_tail=LogTail(log_store, registry),
        validator=validator,
        authenticator=SessionAuthenticator(validator, allow_guests=settings.allow_guests),
        verifier=SignatureVerifier(settings.webhook_secret),
        relay=EventRelay(registry),
    )
