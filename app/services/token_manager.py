"""
Per-request OAuth token lifecycle: refresh on 401, never shared across requests.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Callable, Optional

from app.clients.fanvue_auth import (
    FanvueOAuthClient,
    OAuthConfigurationError,
    OAuthTokenExchangeError,
)
from app.models.tokens import TokenPair

logger = logging.getLogger(__name__)

AUTHORIZE_PATH = "/api/auth/authorize"


class TokenState(str, Enum):
    NO_TOKENS = "no_tokens"
    VALID = "valid"
    EXPIRED_NEEDS_REFRESH = "expired_needs_refresh"
    REFRESH_FAILED = "refresh_failed"


class AuthenticationRequiredError(Exception):
    """The session cannot be recovered without the user re-authorizing."""

    def __init__(self, message: str, *, authorization_url: str = AUTHORIZE_PATH) -> None:
        super().__init__(message)
        self.authorization_url = authorization_url


class TokenManager:
    """Hold the current token pair for one request and refresh it on demand.

    ``on_refresh`` receives each new pair so the caller can persist it (for
    example by rewriting the session cookies).
    """

    def __init__(
        self,
        tokens: Optional[TokenPair],
        oauth_client: Optional[FanvueOAuthClient],
        *,
        on_refresh: Optional[Callable[[TokenPair], None]] = None,
    ) -> None:
        self._tokens = tokens
        self._oauth = oauth_client
        self._on_refresh = on_refresh
        self._state = TokenState.VALID if tokens else TokenState.NO_TOKENS
        self.refresh_count = 0
        self._lock = asyncio.Lock()

    @property
    def state(self) -> TokenState:
        return self._state

    @property
    def tokens(self) -> Optional[TokenPair]:
        return self._tokens

    @property
    def can_refresh(self) -> bool:
        return bool(
            self._tokens
            and self._tokens.can_refresh
            and self._oauth is not None
            and self._state is not TokenState.REFRESH_FAILED
        )

    def authorization_header(self) -> str:
        if self._tokens is None:
            raise AuthenticationRequiredError("No valid authentication tokens available")
        return self._tokens.authorization_header

    def mark_expired(self) -> None:
        if self._tokens is not None:
            self._state = TokenState.EXPIRED_NEEDS_REFRESH

    async def refresh(self, stale: Optional[TokenPair] = None) -> TokenPair:
        """Exchange the refresh token for a new pair, or fail for good.

        Concurrent callers that saw the same ``stale`` pair share one refresh.
        """
        async with self._lock:
            if stale is not None and self._tokens is not None and self._tokens != stale:
                self._state = TokenState.VALID
                return self._tokens
            return await self._refresh_locked()

    async def _refresh_locked(self) -> TokenPair:
        tokens, oauth = self._tokens, self._oauth
        if not self.can_refresh or tokens is None or oauth is None:
            self._state = TokenState.REFRESH_FAILED
            raise AuthenticationRequiredError("Session expired and cannot be refreshed")

        self._state = TokenState.EXPIRED_NEEDS_REFRESH
        logger.info("Access token expired, attempting refresh")
        try:
            refreshed = await oauth.refresh_token(tokens.refresh_token or "")
        except (OAuthTokenExchangeError, OAuthConfigurationError) as exc:
            self._state = TokenState.REFRESH_FAILED
            logger.warning("Token refresh failed: %s", exc)
            raise AuthenticationRequiredError("Token refresh failed") from exc

        self.refresh_count += 1
        self._tokens = refreshed
        self._state = TokenState.VALID
        if self._on_refresh is not None:
            self._on_refresh(refreshed)
        return refreshed


__all__ = [
    "AUTHORIZE_PATH",
    "AuthenticationRequiredError",
    "TokenManager",
    "TokenState",
]
