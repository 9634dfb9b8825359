"""Runtime settings for the relay engine.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.
    Request defaults (timeout, user agent) and cache capacity live here so
    that every request client and cached step agrees on them.

    - **Pydantic validation:** Type-checked at startup, not at request time
    - **Environment-driven:** ``RELAY_*`` env vars and ``.env`` files
    - **Sensible defaults:** Works out of the box for development

Examples:
    >>> from relay.core.settings import get_settings
    >>> get_settings().request_timeout
    5.0

Tags:
    settings, configuration, pydantic, environment, relay
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RelaySettings(BaseSettings):
    """Settings shared by the request client, caches, and logging.

    Fields
    ──────
    request_timeout : Per-request timeout in seconds for partner API calls
    user_agent      : User-Agent header sent with every partner request
    cache_max_keys  : Capacity of each cached-request step's cache
    log_level       : Structlog log level
    log_json        : Force JSON (True) or console (False) logs; None = auto
    service_name    : ``service.name`` stamped on every log line
    """

    model_config = SettingsConfigDict(
        env_prefix="RELAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Requests ─────────────────────────────────────────────────
    request_timeout: float = Field(default=5.0, gt=0)
    user_agent: str = "relay"

    # ── Caching ──────────────────────────────────────────────────
    cache_max_keys: int = Field(default=1000, ge=1)

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    log_json: bool | None = None
    service_name: str = "relay"


_settings: RelaySettings | None = None


def get_settings(*, _force_reload: bool = False) -> RelaySettings:
    """Load, validate, and cache a :class:`RelaySettings` instance."""
    global _settings
    if _settings is None or _force_reload:
        _settings = RelaySettings()
    return _settings


__all__ = ["RelaySettings", "get_settings"]
