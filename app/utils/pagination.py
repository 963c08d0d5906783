"""Pagination over the two addressing schemes the upstream API mixes.

Page-addressed endpoints take ``page`` + ``size`` and answer with
``{data, pagination: {hasMore | hasNextPage}}``; cursor-addressed endpoints
take ``cursor`` + ``size`` and answer with ``{data, nextCursor}``. A single
``paginate`` loop drives both through a continuation strategy.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Collection, Dict, List, Mapping, Optional

import httpx
from pydantic import ValidationError

from app.schemas.fanvue import CursorEnvelope, PageEnvelope
from app.utils.http import Sleeper

logger = logging.getLogger(__name__)

PageFetcher = Callable[[str, Dict[str, Any]], Awaitable[httpx.Response]]

DEFAULT_PAGE_SIZE = 50
DEFAULT_PAGE_DELAY = 0.1


@dataclass
class PageResult:
    records: List[Dict[str, Any]] = field(default_factory=list)
    pages_fetched: int = 0
    has_more: bool = False
    error_status: Optional[int] = None

    @property
    def total_count(self) -> int:
        return len(self.records)

    @property
    def failed(self) -> bool:
        """True when the very first page came back with an error status."""
        return self.pages_fetched == 0 and self.error_status is not None


class ContinuationStrategy(ABC):
    """Decides request parameters for each page and whether to keep going."""

    @abstractmethod
    def first_params(self) -> Dict[str, Any]:
        ...

    @abstractmethod
    def advance(self, payload: Any) -> tuple[List[Dict[str, Any]], bool]:
        """Consume one response body; return its records and whether more remain."""

    @abstractmethod
    def next_params(self) -> Dict[str, Any]:
        ...


class PageNumberStrategy(ContinuationStrategy):
    def __init__(self, *, start_page: int = 1) -> None:
        self._page = start_page

    def first_params(self) -> Dict[str, Any]:
        return {"page": self._page}

    def advance(self, payload: Any) -> tuple[List[Dict[str, Any]], bool]:
        envelope = PageEnvelope.model_validate(payload)
        more = bool(envelope.pagination and envelope.pagination.more)
        return envelope.data, more and bool(envelope.data)

    def next_params(self) -> Dict[str, Any]:
        self._page += 1
        return {"page": self._page}


class CursorStrategy(ContinuationStrategy):
    def __init__(self, *, cursor: Optional[str] = None) -> None:
        self._cursor = cursor

    def first_params(self) -> Dict[str, Any]:
        return {"cursor": self._cursor} if self._cursor else {}

    def advance(self, payload: Any) -> tuple[List[Dict[str, Any]], bool]:
        envelope = CursorEnvelope.model_validate(payload)
        self._cursor = envelope.next_cursor
        return envelope.data, self._cursor is not None

    def next_params(self) -> Dict[str, Any]:
        return {"cursor": self._cursor}


async def paginate(
    fetch: PageFetcher,
    path: str,
    strategy: ContinuationStrategy,
    *,
    params: Optional[Mapping[str, Any]] = None,
    page_size: int = DEFAULT_PAGE_SIZE,
    max_pages: int = 5,
    page_delay: float = DEFAULT_PAGE_DELAY,
    accept_statuses: Collection[int] = (),
    sleep: Sleeper | None = None,
) -> PageResult:
    """Fetch up to ``max_pages`` pages and concatenate their records in order.

    A non-OK status stops the loop and the pages gathered so far are returned
    with ``error_status`` set; statuses in ``accept_statuses`` stop it
    silently. Rate-limit and authentication exceptions propagate.
    """
    sleep = sleep or asyncio.sleep
    base_params = {key: value for key, value in (params or {}).items() if value is not None}
    base_params["size"] = page_size

    result = PageResult()
    page_params = strategy.first_params()
    more = True

    while more and result.pages_fetched < max_pages:
        response = await fetch(path, {**base_params, **page_params})
        if response.status_code in accept_statuses:
            more = False
            break
        if not response.is_success:
            logger.warning(
                "Stopping pagination of %s at page %d: upstream status %d",
                path,
                result.pages_fetched + 1,
                response.status_code,
            )
            result.error_status = response.status_code
            more = False
            break

        try:
            records, more = strategy.advance(response.json())
        except (ValueError, ValidationError):
            logger.warning("Unparseable page %d from %s", result.pages_fetched + 1, path)
            result.error_status = response.status_code
            more = False
            break

        result.records.extend(records)
        result.pages_fetched += 1

        if more and result.pages_fetched < max_pages:
            page_params = strategy.next_params()
            await sleep(page_delay)

    result.has_more = more
    return result


__all__ = [
    "ContinuationStrategy",
    "CursorStrategy",
    "PageFetcher",
    "PageNumberStrategy",
    "PageResult",
    "paginate",
]
