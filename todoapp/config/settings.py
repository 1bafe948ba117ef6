"""Application settings via Pydantic BaseSettings."""

from __future__ import annotations

import warnings
from functools import lru_cache

from pydantic_settings import BaseSettings

INSECURE_SECRET_KEY = "change-me-in-production"  # nosec B105

SESSION_MAX_AGE = 7 * 24 * 60 * 60  # 7 days


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Database
    database_url: str = "sqlite+aiosqlite:///./todos.db"

    # App
    secret_key: str = INSECURE_SECRET_KEY
    debug: bool = False
    log_level: str = "INFO"
    allowed_origins: list[str] = ["http://localhost:3000", "http://localhost:8000"]
    timezone: str = "Asia/Singapore"

    # Sessions
    session_max_age: int = SESSION_MAX_AGE

    # WebAuthn relying party (rp_id / origin derived from the request when unset)
    rp_name: str = "Todo App"
    rp_id: str | None = None
    origin: str | None = None
    challenge_ttl_seconds: int = 300
    registration_timeout_ms: int = 60000

    # Per-IP request cap on /api/ paths
    rate_limit_requests: int = 60
    rate_limit_window_seconds: int = 60

    def resolve_rp_id(self, host: str | None) -> str:
        """Return the configured RP ID, or the request host without its port."""
        if self.rp_id:
            return self.rp_id
        if not host:
            return "localhost"
        return host.split(":")[0]

    def resolve_origin(self, scheme: str, host: str | None) -> str:
        """Return the configured origin, or one built from the request."""
        if self.origin:
            return self.origin
        return f"{scheme}://{host or 'localhost'}"


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    settings = Settings()
    if settings.secret_key == INSECURE_SECRET_KEY:
        warnings.warn(
            "SECRET_KEY is using the insecure default. "
            "Set SECRET_KEY environment variable for production.",
            UserWarning,
            stacklevel=2,
        )
    return settings
