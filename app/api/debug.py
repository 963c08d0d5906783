"""
Diagnostics for deployment issues. Responses report presence and upstream
status codes only; token and key values never leave the server.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Annotated, Any

import httpx
from fastapi import APIRouter, Depends, Request

from app.clients import ConfigurationMissingError
from app.dependencies import (
    build_fanvue_client,
    build_service_account_client,
    get_app_settings,
    get_http_client,
    get_retry_config,
    get_token_manager,
)
from app.services.session import ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE, TOKEN_TYPE_COOKIE
from app.services.token_manager import AuthenticationRequiredError
from app.utils.dates import to_iso_z
from app.utils.http import RateLimitExceededError

router = APIRouter(prefix="/debug", tags=["debug"])
logger = logging.getLogger(__name__)

PROBE_PATH = "/creators"


def _now() -> str:
    return to_iso_z(datetime.now(timezone.utc))


async def _probe(client: Any) -> dict:
    """One small upstream request, reduced to its outcome."""
    try:
        response = await client.get(PROBE_PATH, {"page": 1, "size": 1})
    except (AuthenticationRequiredError, RateLimitExceededError, httpx.HTTPError) as exc:
        return {"success": False, "error": type(exc).__name__}
    return {"success": response.is_success, "status": response.status_code}


@router.get("/env")
async def debug_env(settings: Annotated[Any, Depends(get_app_settings)]) -> dict:
    return {
        "timestamp": _now(),
        "environment": settings.environment,
        "hasFanvueApiKey": bool(settings.fanvue.api_key),
        "apiVersion": settings.fanvue.api_version,
        "hasPowerbiApiKey": bool(settings.powerbi.api_key),
        "oauthConfigured": settings.oauth.is_configured,
        "hasServiceAccessToken": bool(settings.service_account.access_token),
        "hasServiceRefreshToken": bool(settings.service_account.refresh_token),
        "secureCookies": settings.secure_cookies,
    }


@router.get("/cookies")
async def debug_cookies(request: Request) -> dict:
    return {
        "timestamp": _now(),
        "cookies": {
            ACCESS_TOKEN_COOKIE: bool(request.cookies.get(ACCESS_TOKEN_COOKIE)),
            REFRESH_TOKEN_COOKIE: bool(request.cookies.get(REFRESH_TOKEN_COOKIE)),
            TOKEN_TYPE_COOKIE: request.cookies.get(TOKEN_TYPE_COOKIE) or None,
        },
        "cookieCount": len(request.cookies),
    }


@router.get("/auth")
async def debug_auth(
    token_manager: Annotated[Any, Depends(get_token_manager)],
    http_client: Annotated[Any, Depends(get_http_client)],
    retry_config: Annotated[Any, Depends(get_retry_config)],
    settings: Annotated[Any, Depends(get_app_settings)],
) -> dict:
    """Report the cookie session and whether it can reach the upstream API."""
    report: dict = {
        "timestamp": _now(),
        "hasAccessToken": token_manager is not None,
        "hasRefreshToken": bool(token_manager and token_manager.can_refresh),
        "fanvueApiTest": None,
    }
    if token_manager is not None:
        client = build_fanvue_client(
            http_client, settings, retry_config, token_manager=token_manager
        )
        report["fanvueApiTest"] = await _probe(client)
        report["tokenState"] = token_manager.state.value
    return report


@router.get("/service-account")
async def debug_service_account(
    http_client: Annotated[Any, Depends(get_http_client)],
    retry_config: Annotated[Any, Depends(get_retry_config)],
    settings: Annotated[Any, Depends(get_app_settings)],
) -> dict:
    account = settings.service_account
    report: dict = {
        "timestamp": _now(),
        "hasServiceAccessToken": bool(account.access_token),
        "hasServiceRefreshToken": bool(account.refresh_token),
        "hasClientId": bool(settings.oauth.client_id),
        "hasClientSecret": bool(settings.oauth.client_secret),
        "fanvueApiTest": None,
    }
    try:
        client = build_service_account_client(http_client, settings, retry_config)
    except ConfigurationMissingError:
        return report
    report["fanvueApiTest"] = await _probe(client)
    return report


__all__ = ["router"]
