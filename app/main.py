"""
FastAPI application entrypoint for the Fanvue agency dashboard API.
"""

from __future__ import annotations

import logging
from http import HTTPStatus

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.api.routes import router as api_router
from app.clients import ConfigurationMissingError, FanvueAPIError
from app.core.config import get_settings
from app.core.logging import configure_logging
from app.services.token_manager import AuthenticationRequiredError
from app.utils.http import RateLimitExceededError

logger = logging.getLogger(__name__)


async def _rate_limited(request: Request, exc: RateLimitExceededError) -> JSONResponse:
    return JSONResponse(
        {"error": "Rate limit exceeded. Please wait a moment and try again."},
        status_code=HTTPStatus.TOO_MANY_REQUESTS,
    )


async def _authentication_required(
    request: Request, exc: AuthenticationRequiredError
) -> JSONResponse:
    return JSONResponse(
        {"error": str(exc), "authorizationUrl": exc.authorization_url},
        status_code=HTTPStatus.UNAUTHORIZED,
    )


async def _upstream_error(request: Request, exc: FanvueAPIError) -> JSONResponse:
    return JSONResponse(
        {"error": f"Fanvue API error: {exc.status_code}", "details": exc.body},
        status_code=exc.status_code,
    )


async def _configuration_missing(
    request: Request, exc: ConfigurationMissingError
) -> JSONResponse:
    logger.error("Configuration missing: %s", exc)
    return JSONResponse({"error": str(exc)}, status_code=HTTPStatus.INTERNAL_SERVER_ERROR)


async def _transport_error(request: Request, exc: httpx.HTTPError) -> JSONResponse:
    logger.error("Upstream transport failure on %s: %s", request.url.path, exc)
    return JSONResponse(
        {"error": "Failed to reach the Fanvue API"}, status_code=HTTPStatus.BAD_GATEWAY
    )


async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s", request.url.path)
    return JSONResponse(
        {"error": str(exc) or "Internal server error"},
        status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
    )


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Fanvue Agency Dashboard API",
        version="0.1.0",
        description="Aggregating proxy over the Fanvue creator API.",
    )
    app.include_router(api_router, prefix="/api")
    app.add_exception_handler(RateLimitExceededError, _rate_limited)
    app.add_exception_handler(AuthenticationRequiredError, _authentication_required)
    app.add_exception_handler(FanvueAPIError, _upstream_error)
    app.add_exception_handler(ConfigurationMissingError, _configuration_missing)
    app.add_exception_handler(httpx.HTTPError, _transport_error)
    app.add_exception_handler(Exception, _unhandled)
    return app


app = create_app()

__all__ = ["app", "create_app"]
