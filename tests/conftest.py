"""Pytest configuration shared across the suite."""

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

import copy
from typing import Callable

import httpx
import pytest

from app.clients.fanvue import FanvueClient
from app.utils.http import RetryConfig


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


class SleepRecorder:
    """Stand-in for ``asyncio.sleep`` that records delays instead of waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def make_client(sleeper: SleepRecorder) -> Callable[..., FanvueClient]:
    """Build a ``FanvueClient`` whose upstream is answered by ``handler``."""

    def factory(handler, **kwargs) -> FanvueClient:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        kwargs.setdefault("api_version", "2025-06-26")
        if "token_manager" not in kwargs:
            kwargs.setdefault("api_key", "test-api-key")
        kwargs.setdefault("retry_config", RetryConfig(max_retries=3, sleep=sleeper))
        return FanvueClient(http_client, **kwargs)

    return factory


class FakeFanvue:
    """MockTransport handler answering by URL path; unknown paths get a 404.

    Route values are ``(status, body)`` tuples or callables taking the request.
    """

    def __init__(self) -> None:
        self.routes: dict = {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, json={"error": "not found"})
        if callable(route):
            return route(request)
        status, body = route
        return httpx.Response(status, json=body)

    def paths(self) -> list[str]:
        return [request.url.path for request in self.requests]


@pytest.fixture
def upstream() -> FakeFanvue:
    return FakeFanvue()


@pytest.fixture
def api_settings():
    from app.core.config import get_settings

    return copy.deepcopy(get_settings())


@pytest.fixture
def api_overrides(upstream: FakeFanvue, api_settings, sleeper: SleepRecorder):
    """Point the app at the fake upstream with instant backoff."""
    from app import dependencies
    from app.main import app

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(upstream))

    app.dependency_overrides.clear()
    app.dependency_overrides.update(
        {
            dependencies.get_http_client: lambda: http_client,
            dependencies.get_retry_config: lambda: RetryConfig(max_retries=3, sleep=sleeper),
            dependencies.get_app_settings: lambda: api_settings,
        }
    )

    yield upstream

    app.dependency_overrides.clear()


@pytest.fixture
async def api_client(api_overrides):
    from app.main import app

    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://testserver",
    ) as test_client:
        yield test_client
