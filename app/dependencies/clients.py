"""
Factory functions to provide upstream clients and services as FastAPI dependencies.

Every client is built per request: the OAuth tokens live in the caller's
cookies, so nothing token-bearing is shared between requests.
"""

from __future__ import annotations

from enum import Enum
from typing import AsyncIterator, Optional

import httpx
from fastapi import Depends, Query, Request, Response

from app.clients import ConfigurationMissingError, FanvueClient, FanvueOAuthClient
from app.clients.fanvue import CREATORS
from app.core.config import AppSettings
from app.dependencies.config import SettingsDependency, get_retry_config
from app.models.tokens import TokenPair
from app.services import (
    AuthenticationRequiredError,
    CreatorAggregator,
    EngagementService,
    MockPowerBISource,
    PowerBIService,
    TokenManager,
)
from app.services.session import tokens_from_cookies, write_token_cookies
from app.utils.http import RetryConfig


class FeedSource(str, Enum):
    """Where a Power BI feed gets its data and credentials."""

    hybrid = "hybrid"
    service = "service"
    public = "public"


async def get_http_client(
    settings: AppSettings = SettingsDependency,
) -> AsyncIterator[httpx.AsyncClient]:
    """Provide an HTTP client scoped to the current request."""
    async with httpx.AsyncClient(timeout=settings.fanvue.request_timeout) as client:
        yield client


def get_fanvue_oauth_client(
    http_client: httpx.AsyncClient = Depends(get_http_client),
    settings: AppSettings = SettingsDependency,
) -> FanvueOAuthClient:
    """Provide the Fanvue OAuth client."""
    return FanvueOAuthClient(settings.oauth, http_client=http_client)


def get_token_manager(
    request: Request,
    response: Response,
    oauth_client: FanvueOAuthClient = Depends(get_fanvue_oauth_client),
    settings: AppSettings = SettingsDependency,
) -> Optional[TokenManager]:
    """Token manager for the caller's cookie session, or ``None`` without one.

    Refreshed tokens are written back onto the outgoing response.
    """
    tokens = tokens_from_cookies(request.cookies)
    if tokens is None:
        return None

    def persist(pair: TokenPair) -> None:
        write_token_cookies(response, pair, secure=settings.secure_cookies)

    return TokenManager(tokens, oauth_client, on_refresh=persist)


def build_fanvue_client(
    http_client: httpx.AsyncClient,
    settings: AppSettings,
    retry_config: RetryConfig,
    *,
    token_manager: Optional[TokenManager] = None,
    api_key: Optional[str] = None,
) -> FanvueClient:
    return FanvueClient(
        http_client,
        base_url=settings.fanvue.api_base_url,
        api_version=settings.fanvue.api_version,
        api_key=api_key,
        token_manager=token_manager,
        retry_config=retry_config,
        page_delay=settings.rate_limit.page_delay_seconds,
    )


def get_fanvue_client(
    http_client: httpx.AsyncClient = Depends(get_http_client),
    token_manager: Optional[TokenManager] = Depends(get_token_manager),
    retry_config: RetryConfig = Depends(get_retry_config),
    settings: AppSettings = SettingsDependency,
) -> FanvueClient:
    """Upstream client for the caller: cookie session first, then the static key."""
    if token_manager is not None:
        return build_fanvue_client(
            http_client, settings, retry_config, token_manager=token_manager
        )
    if settings.fanvue.api_key:
        return build_fanvue_client(
            http_client, settings, retry_config, api_key=settings.fanvue.api_key
        )
    if settings.oauth.is_configured:
        raise AuthenticationRequiredError("Not authenticated")
    raise ConfigurationMissingError("API key not configured")


def get_aggregator(
    client: FanvueClient = Depends(get_fanvue_client),
    settings: AppSettings = SettingsDependency,
) -> CreatorAggregator:
    """Provide a creator aggregator bound to the caller's client."""
    return CreatorAggregator(
        client,
        batch_size=settings.rate_limit.batch_size,
        batch_delay=settings.rate_limit.batch_delay_seconds,
    )


def get_engagement_service(
    aggregator: CreatorAggregator = Depends(get_aggregator),
) -> EngagementService:
    """Provide the chat/message rollup service."""
    return EngagementService(aggregator)


def build_service_account_client(
    http_client: httpx.AsyncClient,
    settings: AppSettings,
    retry_config: RetryConfig,
) -> FanvueClient:
    """Client authenticated with the server-side service account tokens.

    A refreshed pair lives only as long as this client.
    """
    account = settings.service_account
    if not account.access_token:
        raise ConfigurationMissingError("Service account not configured")
    tokens = TokenPair(access_token=account.access_token, refresh_token=account.refresh_token)
    oauth_client = FanvueOAuthClient(settings.oauth, http_client=http_client)
    return build_fanvue_client(
        http_client,
        settings,
        retry_config,
        token_manager=TokenManager(tokens, oauth_client),
    )


def get_powerbi_source(
    source: FeedSource,
    request: Request,
    response: Response,
    api_key: Optional[str] = Query(
        default=None,
        alias="apiKey",
        description="Power BI key; when it matches, the static Fanvue API key is used.",
    ),
    http_client: httpx.AsyncClient = Depends(get_http_client),
    retry_config: RetryConfig = Depends(get_retry_config),
    settings: AppSettings = SettingsDependency,
):
    """Resolve ``/powerbi/{source}`` to a live feed builder or the mock source."""
    if source is FeedSource.public:
        return MockPowerBISource()

    def service(client: FanvueClient, authentication: str, **kwargs) -> PowerBIService:
        aggregator = CreatorAggregator(
            client,
            batch_size=settings.rate_limit.batch_size,
            batch_delay=settings.rate_limit.batch_delay_seconds,
        )
        return PowerBIService(aggregator, authentication=authentication, **kwargs)

    if source is FeedSource.service:
        client = build_service_account_client(http_client, settings, retry_config)
        return service(client, "serviceAccount", creators_endpoint=CREATORS)

    expected = settings.powerbi.api_key
    if api_key and expected and api_key == expected:
        if not settings.fanvue.api_key:
            raise ConfigurationMissingError("Fanvue API key not configured")
        client = build_fanvue_client(
            http_client, settings, retry_config, api_key=settings.fanvue.api_key
        )
        return service(client, "apiKey")

    oauth_client = FanvueOAuthClient(settings.oauth, http_client=http_client)
    token_manager = get_token_manager(request, response, oauth_client, settings)
    if token_manager is None:
        raise AuthenticationRequiredError("Not authenticated")
    client = build_fanvue_client(
        http_client, settings, retry_config, token_manager=token_manager
    )
    return service(client, "oauth")


__all__ = [
    "FeedSource",
    "build_fanvue_client",
    "build_service_account_client",
    "get_aggregator",
    "get_engagement_service",
    "get_fanvue_client",
    "get_fanvue_oauth_client",
    "get_http_client",
    "get_powerbi_source",
    "get_token_manager",
]
