"""HTTP utilities providing rate-limit retry/backoff semantics."""

from __future__ import annotations

import asyncio
import logging
from http import HTTPStatus
from typing import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

Sleeper = Callable[[float], Awaitable[None]]


class RateLimitExceededError(Exception):
    """Raised when the upstream keeps answering 429 after every retry."""

    def __init__(self, url: str, retries: int) -> None:
        super().__init__(f"Rate limit exceeded after {retries} retries")
        self.url = url
        self.retries = retries


class RetryConfig:
    def __init__(
        self,
        *,
        max_retries: int = 3,
        backoff_base: float = 1.0,
        sleep: Sleeper | None = None,
    ) -> None:
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.sleep = sleep or asyncio.sleep

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the given zero-based attempt: 2s, 4s, 8s..."""
        return float(2 ** (attempt + 1)) * self.backoff_base


async def request_with_retry(
    func: Callable[..., Awaitable[httpx.Response]],
    *args,
    retry_config: RetryConfig | None = None,
    **kwargs,
) -> httpx.Response:
    """Issue a request, retrying only when the upstream rate limits us.

    Any status other than 429 is handed back unchanged so each caller can
    apply its own policy (a 404 is an acceptable stop for some endpoints and
    an error for others).
    """
    config = retry_config or RetryConfig()
    url = str(args[0]) if args else str(kwargs.get("url", ""))

    for attempt in range(config.max_retries + 1):
        response = await func(*args, **kwargs)
        if response.status_code != HTTPStatus.TOO_MANY_REQUESTS:
            return response
        if attempt == config.max_retries:
            break
        delay = config.delay_for(attempt)
        logger.warning(
            "Rate limited on %s, retrying in %.1fs (attempt %d/%d)",
            url,
            delay,
            attempt + 1,
            config.max_retries + 1,
        )
        await config.sleep(delay)

    raise RateLimitExceededError(url, config.max_retries)


__all__ = ["RateLimitExceededError", "RetryConfig", "Sleeper", "request_with_retry"]
