"""Configuration management using pydantic-settings."""

from __future__ import annotations

from functools import lru_cache
from typing import TYPE_CHECKING, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from apiauth.client.signer import Credential


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="APIAUTH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Client
    base_url: str = Field(
        default="http://localhost:8090",
        description="Base URL of the remote service",
    )
    credential_kind: Literal["hmac", "basic", "bearer"] = Field(
        default="hmac",
        description="Authentication scheme used by the client",
    )
    credential_secret: str | None = Field(
        default=None,
        description="HMAC secret, Basic credential or Bearer token for the client",
    )
    hmac_algorithm: str = Field(
        default="sha1",
        description="Hash algorithm used for HMAC signatures (both sides)",
    )
    http_timeout: float = Field(
        default=30.0,
        description="HTTP request timeout in seconds",
    )

    # Service
    auth_mode: Literal["none", "hmac"] = Field(
        default="hmac",
        description="Authentication mode for service endpoints",
    )
    hmac_secrets: tuple[str, ...] = Field(
        default=(),
        description="Accepted HMAC secrets (JSON list)",
    )
    hmac_max_skew_seconds: int = Field(
        default=300,
        description="Max difference (seconds) between DateTime header and server clock",
    )
    auth_exempt_paths: tuple[str, ...] = Field(
        default=("/health",),
        description="Paths exempt from HMAC auth",
    )
    path_prefix: str = Field(
        default="",
        description="Mount prefix stripped from the request path before verification",
    )
    supported_methods: tuple[str, ...] = Field(
        default=("GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"),
        description="HTTP methods the service answers",
    )
    access_control_origin: str = Field(
        default="*",
        description="Value of Access-Control-Allow-Origin",
    )
    access_control_headers: tuple[str, ...] = Field(
        default=("Content-Type", "Accept"),
        description="Headers listed in Access-Control-Allow-Headers",
    )
    service_host: str = Field(
        default="0.0.0.0",
        description="Host for the service HTTP server",
    )
    service_port: int = Field(
        default=8090,
        description="Port for the service HTTP server",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Log level",
    )
    log_json: bool = Field(
        default=False,
        description="Emit JSON log lines",
    )

    @property
    def credential(self) -> Credential | None:
        """Client credential built from credential_kind/credential_secret."""
        from apiauth.client.signer import Credential

        return Credential.from_config(self.credential_kind, self.credential_secret)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
