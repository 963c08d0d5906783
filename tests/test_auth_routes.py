try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from app.services.session import (
    ACCESS_TOKEN_COOKIE,
    CODE_VERIFIER_COOKIE,
    REFRESH_TOKEN_COOKIE,
    STATE_COOKIE,
)

pytestmark = pytest.mark.anyio("asyncio")

FRONTEND = "https://dashboard.example.com"


def _cookie_values(response: httpx.Response) -> dict[str, str]:
    values = {}
    for header in response.headers.get_list("set-cookie"):
        name, _, rest = header.partition("=")
        values[name] = rest.split(";", 1)[0]
    return values


def _redirect_query(response: httpx.Response) -> dict[str, list[str]]:
    location = response.headers["location"]
    assert location.startswith(f"{FRONTEND}/?")
    return parse_qs(urlparse(location).query)


async def test_authorize_redirects_with_pkce_cookies(api_client):
    response = await api_client.get("/api/auth/authorize")

    assert response.status_code == 302
    location = urlparse(response.headers["location"])
    assert f"{location.scheme}://{location.netloc}{location.path}" == (
        "https://auth.fanvue.com/oauth2/auth"
    )
    query = parse_qs(location.query)
    assert query["code_challenge_method"] == ["S256"]
    assert query["client_id"] == ["test-client-id"]

    cookies = _cookie_values(response)
    assert cookies[STATE_COOKIE] == query["state"][0]
    assert len(cookies[CODE_VERIFIER_COOKIE]) == 43


async def test_authorize_can_return_json(api_client):
    response = await api_client.get("/api/auth/authorize", params={"redirect": "false"})

    assert response.status_code == 200
    body = response.json()
    assert body["authorizationUrl"].startswith("https://auth.fanvue.com/oauth2/auth?")
    assert _cookie_values(response)[STATE_COOKIE] == body["state"]


async def test_authorize_without_oauth_configuration(api_client, api_settings):
    api_settings.oauth.client_secret = None

    response = await api_client.get("/api/auth/authorize")

    assert response.status_code == 500
    assert response.json() == {"error": "OAuth configuration missing"}


async def test_callback_rejects_state_mismatch_before_exchange(api_client, upstream):
    api_client.cookies.set(STATE_COOKIE, "expected-state")
    api_client.cookies.set(CODE_VERIFIER_COOKIE, "verifier")

    response = await api_client.get(
        "/api/auth/callback", params={"code": "abc", "state": "forged-state"}
    )

    assert response.status_code == 302
    assert _redirect_query(response) == {"error": ["invalid_state"]}
    assert upstream.requests == []


async def test_callback_requires_code_and_state(api_client, upstream):
    response = await api_client.get("/api/auth/callback", params={"code": "abc"})

    assert _redirect_query(response) == {"error": ["missing_parameters"]}
    assert upstream.requests == []


async def test_callback_forwards_upstream_error(api_client):
    response = await api_client.get(
        "/api/auth/callback",
        params={"error": "access_denied", "error_description": "User said no"},
    )

    assert _redirect_query(response) == {
        "error": ["access_denied"],
        "details": ["User said no"],
    }


async def test_callback_requires_verifier_cookie(api_client, upstream):
    api_client.cookies.set(STATE_COOKIE, "s1")

    response = await api_client.get("/api/auth/callback", params={"code": "abc", "state": "s1"})

    assert _redirect_query(response) == {"error": ["missing_verifier"]}
    assert upstream.requests == []


async def test_callback_exchanges_code_and_sets_session(api_client, upstream):
    upstream.routes["/oauth2/token"] = (
        200,
        {"access_token": "acc-1", "refresh_token": "ref-1", "expires_in": 3600},
    )
    api_client.cookies.set(STATE_COOKIE, "s1")
    api_client.cookies.set(CODE_VERIFIER_COOKIE, "verifier-1")

    response = await api_client.get("/api/auth/callback", params={"code": "abc", "state": "s1"})

    assert response.status_code == 302
    assert _redirect_query(response) == {"success": ["true"]}
    cookies = _cookie_values(response)
    assert cookies[ACCESS_TOKEN_COOKIE] == "acc-1"
    assert cookies[REFRESH_TOKEN_COOKIE] == "ref-1"
    assert cookies[STATE_COOKIE] in ('""', "")

    exchange = upstream.requests[0]
    form = parse_qs(exchange.content.decode())
    assert form["grant_type"] == ["authorization_code"]
    assert form["code"] == ["abc"]
    assert form["code_verifier"] == ["verifier-1"]
    assert exchange.headers["authorization"].startswith("Basic ")


async def test_callback_reports_failed_exchange(api_client, upstream):
    upstream.routes["/oauth2/token"] = (400, {"error": "invalid_grant"})
    api_client.cookies.set(STATE_COOKIE, "s1")
    api_client.cookies.set(CODE_VERIFIER_COOKIE, "verifier-1")

    response = await api_client.get("/api/auth/callback", params={"code": "abc", "state": "s1"})

    query = _redirect_query(response)
    assert query["error"] == ["token_exchange_failed"]
    assert ACCESS_TOKEN_COOKIE not in _cookie_values(response)


async def test_status_reflects_cookie_session(api_client):
    anonymous = await api_client.get("/api/auth/status")
    assert anonymous.json() == {
        "authenticated": False,
        "hasRefreshToken": False,
        "authMode": None,
        "authorizationUrl": "/api/auth/authorize",
    }

    api_client.cookies.set(ACCESS_TOKEN_COOKIE, "acc")
    api_client.cookies.set(REFRESH_TOKEN_COOKIE, "ref")
    signed_in = await api_client.get("/api/auth/status")

    assert signed_in.json()["authenticated"] is True
    assert signed_in.json()["hasRefreshToken"] is True
    assert signed_in.json()["authMode"] == "oauth"


async def test_logout_clears_session_cookies(api_client):
    response = await api_client.get("/api/auth/logout")

    assert response.json() == {"success": True}
    headers = response.headers.get_list("set-cookie")
    cleared = [h for h in headers if h.startswith(f"{ACCESS_TOKEN_COOKIE}=")]
    assert cleared and "Max-Age=0" in cleared[0]
