"""Cookie-backed session storage for OAuth tokens and PKCE values."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Mapping, Optional

from fastapi import Response

from app.models.tokens import TokenPair

ACCESS_TOKEN_COOKIE = "fanvue_access_token"
REFRESH_TOKEN_COOKIE = "fanvue_refresh_token"
TOKEN_TYPE_COOKIE = "fanvue_token_type"
CODE_VERIFIER_COOKIE = "oauth_code_verifier"
STATE_COOKIE = "oauth_state"

TOKEN_COOKIES = (ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE, TOKEN_TYPE_COOKIE)
PKCE_COOKIES = (CODE_VERIFIER_COOKIE, STATE_COOKIE)

DEFAULT_ACCESS_TOKEN_MAX_AGE = 3600
REFRESH_TOKEN_MAX_AGE = 30 * 24 * 60 * 60


def tokens_from_cookies(cookies: Mapping[str, str]) -> Optional[TokenPair]:
    access_token = cookies.get(ACCESS_TOKEN_COOKIE)
    if not access_token:
        return None
    return TokenPair(
        access_token=access_token,
        refresh_token=cookies.get(REFRESH_TOKEN_COOKIE) or None,
        token_type=cookies.get(TOKEN_TYPE_COOKIE) or "Bearer",
    )


def _access_max_age(tokens: TokenPair) -> int:
    if tokens.expires_at is None:
        return DEFAULT_ACCESS_TOKEN_MAX_AGE
    remaining = (tokens.expires_at - datetime.now(timezone.utc)).total_seconds()
    return max(int(remaining), 0) or DEFAULT_ACCESS_TOKEN_MAX_AGE


def write_token_cookies(response: Response, tokens: TokenPair, *, secure: bool) -> None:
    common = {"httponly": True, "secure": secure, "samesite": "lax"}
    response.set_cookie(
        ACCESS_TOKEN_COOKIE, tokens.access_token, max_age=_access_max_age(tokens), **common
    )
    if tokens.refresh_token:
        response.set_cookie(
            REFRESH_TOKEN_COOKIE,
            tokens.refresh_token,
            max_age=REFRESH_TOKEN_MAX_AGE,
            **common,
        )
    response.set_cookie(
        TOKEN_TYPE_COOKIE, tokens.token_type, max_age=REFRESH_TOKEN_MAX_AGE, **common
    )


def clear_token_cookies(response: Response) -> None:
    for name in TOKEN_COOKIES:
        response.delete_cookie(name)


def write_pkce_cookies(
    response: Response, *, code_verifier: str, state: str, max_age: int, secure: bool
) -> None:
    common = {"httponly": True, "secure": secure, "samesite": "lax", "max_age": max_age}
    response.set_cookie(CODE_VERIFIER_COOKIE, code_verifier, **common)
    response.set_cookie(STATE_COOKIE, state, **common)


def clear_pkce_cookies(response: Response) -> None:
    for name in PKCE_COOKIES:
        response.delete_cookie(name)


__all__ = [
    "ACCESS_TOKEN_COOKIE",
    "CODE_VERIFIER_COOKIE",
    "PKCE_COOKIES",
    "REFRESH_TOKEN_COOKIE",
    "STATE_COOKIE",
    "TOKEN_COOKIES",
    "TOKEN_TYPE_COOKIE",
    "clear_pkce_cookies",
    "clear_token_cookies",
    "tokens_from_cookies",
    "write_pkce_cookies",
    "write_token_cookies",
]
