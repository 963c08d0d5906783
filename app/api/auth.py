"""
OAuth session routes: PKCE authorization, code callback, status and logout.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated, Any
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from app.clients import ConfigurationMissingError
from app.clients.fanvue_auth import (
    OAuthConfigurationError,
    OAuthTokenExchangeError,
    compute_code_challenge,
    generate_code_verifier,
    generate_state,
    states_match,
)
from app.dependencies import get_app_settings, get_fanvue_oauth_client
from app.schemas import AuthStatus, OAuthCallbackParams
from app.services.session import (
    CODE_VERIFIER_COOKIE,
    STATE_COOKIE,
    clear_pkce_cookies,
    clear_token_cookies,
    tokens_from_cookies,
    write_pkce_cookies,
    write_token_cookies,
)
from app.services.token_manager import AUTHORIZE_PATH

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)


def _frontend_redirect(settings: Any, **params: str) -> RedirectResponse:
    base = str(settings.frontend_base_url or "").rstrip("/")
    query = urlencode(params)
    return RedirectResponse(url=f"{base}/?{query}", status_code=HTTPStatus.FOUND)


@router.get("/authorize")
async def start_oauth_flow(
    oauth_client: Annotated[Any, Depends(get_fanvue_oauth_client)],
    settings: Annotated[Any, Depends(get_app_settings)],
    redirect: bool = Query(
        default=True,
        description="When false, return the authorization URL as JSON instead of redirecting.",
    ),
) -> Response:
    """Start the PKCE flow and send the browser to the Fanvue consent screen."""
    if not oauth_client.is_configured:
        raise ConfigurationMissingError("OAuth configuration missing")

    code_verifier = generate_code_verifier()
    state = generate_state()
    authorization_url = oauth_client.build_authorization_url(
        state=state, code_challenge=compute_code_challenge(code_verifier)
    )

    response: Response
    if redirect:
        response = RedirectResponse(url=authorization_url, status_code=HTTPStatus.FOUND)
    else:
        response = JSONResponse({"authorizationUrl": authorization_url, "state": state})
    write_pkce_cookies(
        response,
        code_verifier=code_verifier,
        state=state,
        max_age=settings.oauth.state_ttl_seconds,
        secure=settings.secure_cookies,
    )
    return response


@router.get("/callback")
async def handle_oauth_callback(
    request: Request,
    params: Annotated[OAuthCallbackParams, Depends()],
    oauth_client: Annotated[Any, Depends(get_fanvue_oauth_client)],
    settings: Annotated[Any, Depends(get_app_settings)],
    error_description: str | None = Query(default=None),
) -> RedirectResponse:
    """Exchange the authorization code and store the tokens in cookies."""
    if params.error:
        logger.error("OAuth error received from Fanvue: %s", params.error)
        return _frontend_redirect(
            settings,
            error=params.error,
            details=error_description or "No details provided",
        )
    if not params.complete:
        return _frontend_redirect(settings, error="missing_parameters")

    if not states_match(request.cookies.get(STATE_COOKIE), params.state):
        logger.warning("OAuth state mismatch; refusing token exchange")
        return _frontend_redirect(settings, error="invalid_state")

    code_verifier = request.cookies.get(CODE_VERIFIER_COOKIE)
    if not code_verifier:
        return _frontend_redirect(settings, error="missing_verifier")

    if not oauth_client.is_configured:
        return _frontend_redirect(settings, error="oauth_config_missing")

    try:
        tokens = await oauth_client.exchange_authorization_code(
            params.code, code_verifier=code_verifier
        )
    except OAuthConfigurationError:
        return _frontend_redirect(settings, error="oauth_config_missing")
    except OAuthTokenExchangeError as exc:
        return _frontend_redirect(settings, error="token_exchange_failed", details=str(exc))

    logger.info("OAuth token exchange succeeded")
    response = _frontend_redirect(settings, success="true")
    write_token_cookies(response, tokens, secure=settings.secure_cookies)
    clear_pkce_cookies(response)
    return response


@router.get("/status")
async def auth_status(request: Request) -> dict:
    tokens = tokens_from_cookies(request.cookies)
    status = AuthStatus(
        authenticated=tokens is not None,
        has_refresh_token=bool(tokens and tokens.can_refresh),
        auth_mode="oauth" if tokens else None,
    )
    return {**status.model_dump(by_alias=True), "authorizationUrl": AUTHORIZE_PATH}


@router.get("/logout")
async def logout(response: Response) -> dict:
    clear_token_cookies(response)
    return {"success": True}


__all__ = ["router"]
