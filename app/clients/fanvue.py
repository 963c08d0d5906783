"""
Authenticated client for the Fanvue REST API.

Requests carry either the static API key header pair or an OAuth bearer token.
In OAuth mode a 401 triggers one refresh through the ``TokenManager`` and the
original request is retried once with the new token.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from http import HTTPStatus
from typing import TYPE_CHECKING, Any, Callable, Collection, Dict, Mapping, Optional

import httpx

from app.utils.http import RetryConfig, request_with_retry
from app.utils.pagination import (
    ContinuationStrategy,
    CursorStrategy,
    PageNumberStrategy,
    PageResult,
    paginate,
)

if TYPE_CHECKING:
    from app.services.token_manager import TokenManager

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-Fanvue-API-Key"
API_VERSION_HEADER = "X-Fanvue-API-Version"


class ConfigurationMissingError(Exception):
    """Raised before any network call when credentials are not configured."""


class FanvueAPIError(Exception):
    """Non-OK upstream response surfaced to the caller with its status and body."""

    def __init__(self, status_code: int, body: Any = None, *, path: str = "") -> None:
        super().__init__(f"Fanvue API error: {status_code}")
        self.status_code = status_code
        self.body = body
        self.path = path

    @classmethod
    def from_response(cls, response: httpx.Response, *, path: str = "") -> "FanvueAPIError":
        try:
            body: Any = response.json()
        except ValueError:
            body = response.text
        return cls(response.status_code, body, path=path)


@dataclass(frozen=True)
class ResourceEndpoint:
    """An upstream collection and the pagination scheme it speaks."""

    name: str
    path_template: str
    strategy: Callable[[], ContinuationStrategy]

    def path(self, **ids: str) -> str:
        return self.path_template.format(**ids)


CREATORS = ResourceEndpoint("creators", "/creators", PageNumberStrategy)
AGENCY_CREATORS = ResourceEndpoint("creators", "/agencies/creators", PageNumberStrategy)
EARNINGS = ResourceEndpoint(
    "earnings", "/creators/{creator_uuid}/insights/earnings", CursorStrategy
)
AGENCY_EARNINGS = ResourceEndpoint(
    "earnings", "/agencies/creators/{creator_uuid}/insights/earnings", CursorStrategy
)
FOLLOWERS = ResourceEndpoint(
    "followers", "/creators/{creator_uuid}/followers", PageNumberStrategy
)
AGENCY_FOLLOWERS = ResourceEndpoint(
    "followers", "/agencies/creators/{creator_uuid}/followers", PageNumberStrategy
)
SUBSCRIBERS = ResourceEndpoint(
    "subscribers", "/creators/{creator_uuid}/subscribers", PageNumberStrategy
)
AGENCY_SUBSCRIBERS = ResourceEndpoint(
    "subscribers", "/agencies/creators/{creator_uuid}/subscribers", PageNumberStrategy
)
CHATS = ResourceEndpoint("chats", "/creators/{creator_uuid}/chats", PageNumberStrategy)
CHAT_MESSAGES = ResourceEndpoint(
    "messages", "/chats/{chat_uuid}/messages", PageNumberStrategy
)
CREATOR_CHAT_MESSAGES = ResourceEndpoint(
    "messages", "/creators/{creator_uuid}/chats/{chat_uuid}/messages", PageNumberStrategy
)


class FanvueClient:
    """Issue GET requests against the upstream API with retry and refresh."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        base_url: str = "https://api.fanvue.com",
        api_version: str,
        api_key: Optional[str] = None,
        token_manager: Optional[TokenManager] = None,
        retry_config: Optional[RetryConfig] = None,
        page_delay: float = 0.1,
    ) -> None:
        if token_manager is None and not api_key:
            raise ConfigurationMissingError("API key not configured")
        self._http = http_client
        self._base_url = base_url.rstrip("/")
        self._api_version = api_version
        self._api_key = api_key
        self._tokens = token_manager
        self._retry = retry_config or RetryConfig()
        self._page_delay = page_delay

    @property
    def auth_mode(self) -> str:
        return "oauth" if self._tokens is not None else "apiKey"

    @property
    def token_manager(self) -> Optional[TokenManager]:
        return self._tokens

    @property
    def retry_config(self) -> RetryConfig:
        return self._retry

    def _headers(self) -> Dict[str, str]:
        headers = {
            API_VERSION_HEADER: self._api_version,
            "Content-Type": "application/json",
        }
        if self._tokens is not None:
            headers["Authorization"] = self._tokens.authorization_header()
        else:
            headers[API_KEY_HEADER] = self._api_key or ""
        return headers

    async def _send(self, path: str, params: Optional[Mapping[str, Any]]) -> httpx.Response:
        return await request_with_retry(
            self._http.get,
            f"{self._base_url}{path}",
            params=dict(params or {}),
            headers=self._headers(),
            retry_config=self._retry,
        )

    async def get(self, path: str, params: Optional[Mapping[str, Any]] = None) -> httpx.Response:
        """GET ``path``; statuses other than 429/401 are returned unchanged."""
        used = self._tokens.tokens if self._tokens is not None else None
        response = await self._send(path, params)
        if response.status_code != HTTPStatus.UNAUTHORIZED or self._tokens is None:
            return response
        if not self._tokens.can_refresh:
            return response

        self._tokens.mark_expired()
        await self._tokens.refresh(stale=used)
        return await self._send(path, params)

    async def get_json(
        self,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """GET ``path`` and decode the body, raising ``FanvueAPIError`` when not OK."""
        response = await self.get(path, params)
        if not response.is_success:
            logger.error("Fanvue API error on %s: %d", path, response.status_code)
            raise FanvueAPIError.from_response(response, path=path)
        return response.json()

    async def paginate(
        self,
        endpoint: ResourceEndpoint,
        *,
        ids: Optional[Mapping[str, str]] = None,
        params: Optional[Mapping[str, Any]] = None,
        max_pages: int = 5,
        page_size: int = 50,
        strategy: Optional[ContinuationStrategy] = None,
        accept_statuses: Collection[int] = (),
    ) -> PageResult:
        return await paginate(
            self.get,
            endpoint.path(**(ids or {})),
            strategy or endpoint.strategy(),
            params=params,
            page_size=page_size,
            max_pages=max_pages,
            page_delay=self._page_delay,
            accept_statuses=accept_statuses,
            sleep=self._retry.sleep,
        )


__all__ = [
    "AGENCY_CREATORS",
    "AGENCY_EARNINGS",
    "AGENCY_FOLLOWERS",
    "AGENCY_SUBSCRIBERS",
    "API_KEY_HEADER",
    "API_VERSION_HEADER",
    "CHATS",
    "CHAT_MESSAGES",
    "CREATORS",
    "CREATOR_CHAT_MESSAGES",
    "ConfigurationMissingError",
    "EARNINGS",
    "FOLLOWERS",
    "FanvueAPIError",
    "FanvueClient",
    "ResourceEndpoint",
    "SUBSCRIBERS",
]
