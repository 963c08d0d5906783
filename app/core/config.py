"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI routes, the upstream client and
the maintenance scripts share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Optional

import os

from pydantic import AnyHttpUrl, Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_API_VERSION = "2025-06-26"
DEFAULT_SCOPES = (
    "openid",
    "offline_access",
    "offline",
    "read:self",
    "read:chat",
    "read:creator",
    "read:fan",
    "read:insights",
    "read:media",
)


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


class _EnvSettings(BaseSettings):
    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")


class FanvueSettings(_EnvSettings):
    """Upstream API access configuration."""

    api_key: Optional[str] = Field(
        None,
        alias="FANVUE_API_KEY",
        description="Static API key used when no OAuth session is present.",
    )
    api_version: str = Field(DEFAULT_API_VERSION, alias="FANVUE_API_VERSION")
    api_base_url: str = Field("https://api.fanvue.com", alias="FANVUE_API_BASE_URL")
    request_timeout: float = Field(30.0, alias="FANVUE_REQUEST_TIMEOUT")


class OAuthSettings(_EnvSettings):
    """OAuth client registration and PKCE flow configuration."""

    client_id: Optional[str] = Field(None, alias="FANVUE_OAUTH_CLIENT_ID")
    client_secret: Optional[str] = Field(None, alias="FANVUE_OAUTH_CLIENT_SECRET")
    redirect_uri: Optional[AnyHttpUrl] = Field(None, alias="FANVUE_OAUTH_REDIRECT_URI")
    authorize_url: str = Field(
        "https://auth.fanvue.com/oauth2/auth", alias="FANVUE_OAUTH_AUTHORIZE_URL"
    )
    token_url: str = Field(
        "https://auth.fanvue.com/oauth2/token", alias="FANVUE_OAUTH_TOKEN_URL"
    )
    state_ttl_seconds: int = Field(600, alias="OAUTH_STATE_TTL")
    scopes: Annotated[tuple[str, ...], NoDecode] = Field(
        DEFAULT_SCOPES, alias="FANVUE_OAUTH_SCOPES"
    )

    @field_validator("scopes", mode="before")
    @classmethod
    def _split_scopes(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        """Support providing scopes as a comma or space separated string."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(value)
        return tuple(scope for scope in value.replace(",", " ").split() if scope)

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret and self.redirect_uri)


class PowerBISettings(_EnvSettings):
    """Credentials accepted from Power BI refreshes."""

    api_key: Optional[str] = Field(
        None,
        alias="POWERBI_API_KEY",
        description="Shared secret Power BI passes as the apiKey query parameter.",
    )


class ServiceAccountSettings(_EnvSettings):
    """Long-lived tokens captured from an agency login for unattended use."""

    access_token: Optional[str] = Field(None, alias="SERVICE_ACCESS_TOKEN")
    refresh_token: Optional[str] = Field(None, alias="SERVICE_REFRESH_TOKEN")


class RateLimitSettings(_EnvSettings):
    """Knobs that keep fan-out requests under the upstream rate limit."""

    max_retries: int = Field(3, alias="FANVUE_MAX_RETRIES", ge=0)
    backoff_base_seconds: float = Field(1.0, alias="FANVUE_BACKOFF_BASE", ge=0)
    page_delay_seconds: float = Field(0.1, alias="FANVUE_PAGE_DELAY", ge=0)
    batch_size: int = Field(3, alias="FANVUE_BATCH_SIZE", ge=1)
    batch_delay_seconds: float = Field(2.0, alias="FANVUE_BATCH_DELAY", ge=0)


class AppSettings(_EnvSettings):
    """Root settings object for the FastAPI application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )

    environment: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="APP_LOG_LEVEL")
    frontend_base_url: Optional[HttpUrl] = Field(
        None,
        alias="FRONTEND_BASE_URL",
        description="Dashboard URL the OAuth callback redirects back to.",
    )
    fanvue: FanvueSettings = Field(default_factory=FanvueSettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    powerbi: PowerBISettings = Field(default_factory=PowerBISettings)
    service_account: ServiceAccountSettings = Field(
        default_factory=ServiceAccountSettings
    )
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)

    @property
    def secure_cookies(self) -> bool:
        return self.environment.lower() == "production"


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "DEFAULT_API_VERSION",
    "FanvueSettings",
    "OAuthSettings",
    "PowerBISettings",
    "RateLimitSettings",
    "ServiceAccountSettings",
    "get_settings",
]
