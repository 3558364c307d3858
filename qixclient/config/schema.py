"""Configuration schema using Pydantic.

A single data model with defaults, persisted to ~/.qixclient/config.json and
overridable from QLIK_* environment variables.
"""

from __future__ import annotations

from urllib.parse import urlparse

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from qixclient.utils.exceptions import ConfigurationError

ALLOWED_SCHEMES = ("http", "https", "ws", "wss")


class EngineConfig(BaseModel):
    """Engine session tuning."""
    connect_timeout: float = 10.0  # seconds, handshake + upgrade
    call_timeout: float = 30.0  # seconds, default per-call deadline
    ping_interval: float | None = 20.0  # websocket keepalive; None disables
    max_frame_bytes: int | None = 64 * 1024 * 1024  # large hypercube pages exceed the 1 MiB default
    page_height: int = 1000
    page_width: int = 100
    max_rows: int = 10_000
    hypercube_path: str = "/qHyperCubeDef"


class Config(BaseSettings):
    """Root configuration for qixclient."""
    api_key: str = ""
    tenant_url: str = ""  # e.g. "https://tenant.eu.qlikcloud.com"
    connection_id: str | None = None  # default data connection, passed through untouched
    engine: EngineConfig = Field(default_factory=EngineConfig)

    model_config = SettingsConfigDict(
        env_prefix="QLIK_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    def validate_settings(self) -> "Config":
        """Raise ConfigurationError unless the API key and tenant URL are usable."""
        if not self.api_key or not self.api_key.strip():
            raise ConfigurationError("API key is required", field="api_key")
        if not self.tenant_url or not self.tenant_url.strip():
            raise ConfigurationError("Tenant URL is required", field="tenant_url")
        parsed = urlparse(self.tenant_url.strip())
        if parsed.scheme not in ALLOWED_SCHEMES or not parsed.hostname:
            raise ConfigurationError(f"Invalid tenant URL: {self.tenant_url}", field="tenant_url")
        return self

    def base_url(self) -> str:
        return self.tenant_url.strip().rstrip("/")

    def headers(self) -> dict[str, str]:
        """Headers for the websocket upgrade request."""
        return {"Authorization": f"Bearer {self.api_key}"}

    def merge(self, **overrides: object) -> "Config":
        """Return a copy with every non-empty override applied."""
        update = {k: v for k, v in overrides.items() if v not in (None, "") and k in type(self).model_fields}
        return self.model_copy(update=update)
