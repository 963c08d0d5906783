"""
Fanvue OAuth utilities.

These helpers manage the PKCE authorization flow and the token refresh
lifecycle against the Fanvue authorization server.
"""

from __future__ import annotations

import base64
import hmac
import logging
import secrets
from hashlib import sha256
from typing import Any, Dict
from urllib.parse import urlencode

import httpx

from fastapi import status

from app.core.config import OAuthSettings
from app.models.tokens import TokenPair

logger = logging.getLogger(__name__)


def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def generate_code_verifier() -> str:
    """Random 32-byte PKCE verifier, base64url encoded without padding."""
    return _b64url(secrets.token_bytes(32))


def compute_code_challenge(verifier: str) -> str:
    """S256 code challenge for a verifier."""
    return _b64url(sha256(verifier.encode("ascii")).digest())


def generate_state() -> str:
    return _b64url(secrets.token_bytes(32))


def states_match(expected: str | None, received: str | None) -> bool:
    if not expected or not received:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), received.encode("utf-8"))


class OAuthConfigurationError(Exception):
    """Raised when the OAuth client registration is incomplete."""


class OAuthTokenExchangeError(Exception):
    """Raised when the token endpoint returns an error."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class FanvueOAuthClient:
    """Build Fanvue authorization URLs and exchange or refresh tokens."""

    def __init__(
        self,
        oauth_settings: OAuthSettings,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._oauth = oauth_settings
        self._http = http_client
        self._timeout = timeout

    @property
    def is_configured(self) -> bool:
        return self._oauth.is_configured

    def build_authorization_url(self, *, state: str, code_challenge: str) -> str:
        """Construct the Fanvue OAuth consent URL."""
        if not self._oauth.client_id or not self._oauth.redirect_uri:
            raise OAuthConfigurationError("OAuth configuration missing")

        params = {
            "client_id": self._oauth.client_id,
            "redirect_uri": str(self._oauth.redirect_uri),
            "response_type": "code",
            "scope": " ".join(self._oauth.scopes),
            "state": state,
            "code_challenge": code_challenge,
            "code_challenge_method": "S256",
        }
        return f"{self._oauth.authorize_url}?{urlencode(params)}"

    async def exchange_authorization_code(self, code: str, *, code_verifier: str) -> TokenPair:
        """Exchange an authorization code (plus its PKCE verifier) for tokens."""
        if not self.is_configured:
            raise OAuthConfigurationError("OAuth configuration missing")

        payload = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": str(self._oauth.redirect_uri),
            "code_verifier": code_verifier,
        }
        token_payload = await self._post_token(payload)
        return TokenPair.from_token_response(token_payload)

    async def refresh_token(self, refresh_token: str) -> TokenPair:
        """Refresh the access token using a refresh token."""
        if not self._oauth.client_id or not self._oauth.client_secret:
            raise OAuthConfigurationError("OAuth configuration missing")

        payload = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        }
        token_payload = await self._post_token(payload)
        return TokenPair.from_token_response(
            token_payload, previous_refresh_token=refresh_token
        )

    async def _post_token(self, form: Dict[str, str]) -> Dict[str, Any]:
        # client_secret_basic: credentials go in the Authorization header.
        auth = httpx.BasicAuth(self._oauth.client_id or "", self._oauth.client_secret or "")

        try:
            if self._http is not None:
                response = await self._http.post(self._oauth.token_url, data=form, auth=auth)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(self._oauth.token_url, data=form, auth=auth)
        except httpx.HTTPError as exc:
            logger.error("Token endpoint unreachable for %s grant: %s", form["grant_type"], exc)
            raise OAuthTokenExchangeError("Could not reach the Fanvue token endpoint.") from exc

        if response.status_code != status.HTTP_200_OK:
            logger.error(
                "Token endpoint rejected %s grant with status %d",
                form["grant_type"],
                response.status_code,
            )
            raise OAuthTokenExchangeError(response.text, status_code=response.status_code)

        try:
            token_payload = response.json()
        except ValueError as exc:
            raise OAuthTokenExchangeError(
                "Token endpoint returned a non-JSON body.", status_code=response.status_code
            ) from exc
        if not isinstance(token_payload, dict) or not token_payload.get("access_token"):
            raise OAuthTokenExchangeError("Incomplete token payload returned from Fanvue.")
        return token_payload


__all__ = [
    "FanvueOAuthClient",
    "OAuthConfigurationError",
    "OAuthTokenExchangeError",
    "compute_code_challenge",
    "generate_code_verifier",
    "generate_state",
    "states_match",
]
