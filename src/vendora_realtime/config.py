"""Application configuration via environment variables.

Uses pydantic-settings to load config from env vars with VENDORA_ prefix.
No YAML files, no file-based config — just env vars (12-factor app style).

Learn: the webhook secret is deliberately optional here. A missing secret
does not stop the process; the webhook endpoints answer 500 until an
operator sets it, so health checks and the log viewer keep working.
"""

from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All app configuration. Set via VENDORA_* env vars."""

    # Webhooks (shared with the Laravel backend)
    webhook_secret: Optional[str] = None

    # External identity authority (Laravel Sanctum)
    auth_api_url: str = "http://localhost:8000/api"
    auth_timeout_seconds: float = 5.0
    allow_guests: bool = True

    # Server
    environment: str = "development"
    host: str = "0.0.0.0"
    port: int = 3001

    # CORS
    cors_origins: list[str] = ["*"]

    # Logging
    log_level: str = "INFO"
    log_json: bool = False
    log_buffer_size: int = 200

    # Live connections
    outbox_size: int = 256  # queued frames per connection before it is dropped

    # /debug exposes identities; on by default only in development
    debug_endpoints: Optional[bool] = None

    model_config = {"env_prefix": "VENDORA_"}

    @model_validator(mode="after")
    def resolve_debug_endpoints(self):
        """Default the debug endpoint to the environment when not set."""
        if self.debug_endpoints is None:
            self.debug_endpoints = self.environment == "development"
        self.log_level = self.log_level.upper()
        if self.log_level == "WARN":
            self.log_level = "WARNING"
        return self


# Singleton — import this everywhere
settings = Settings()
