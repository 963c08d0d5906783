"""
Fan-out across the agency's creators and merge of the per-creator results.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, TypeVar

import httpx

from app.clients.fanvue import (
    CREATORS,
    EARNINGS,
    FOLLOWERS,
    SUBSCRIBERS,
    AGENCY_FOLLOWERS,
    AGENCY_SUBSCRIBERS,
    FanvueAPIError,
    FanvueClient,
    ResourceEndpoint,
)
from app.schemas.fanvue import Creator, EarningsItem
from app.services.token_manager import AuthenticationRequiredError
from app.utils.http import RateLimitExceededError
from app.utils.pagination import ContinuationStrategy, PageResult

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

FALLBACK_STATUSES = (HTTPStatus.FORBIDDEN, HTTPStatus.NOT_FOUND)
_SKIPPABLE_ERRORS = (RateLimitExceededError, FanvueAPIError, httpx.HTTPError)


@dataclass
class CreatorCollection:
    records: List[Dict[str, Any]] = field(default_factory=list)
    creators_processed: int = 0
    failed_creators: List[str] = field(default_factory=list)
    pages_fetched: int = 0

    @property
    def total_records(self) -> int:
        return len(self.records)


@dataclass
class CreatorStats:
    creator: Creator
    revenue: float = 0.0
    transactions: int = 0
    followers: int = 0
    subscribers: int = 0
    earnings: List[EarningsItem] = field(default_factory=list)

    @property
    def average_transaction_value(self) -> float:
        return self.revenue / self.transactions if self.transactions else 0.0


def decorate(record: Mapping[str, Any], creator: Creator) -> Dict[str, Any]:
    """Tag an upstream record with the creator it was fetched for."""
    return {
        **record,
        "creatorUuid": creator.uuid,
        "creatorName": creator.name or creator.display_name,
        "creatorHandle": creator.handle,
    }


def revenue_in_dollars(items: Sequence[EarningsItem]) -> float:
    return sum(item.net for item in items) / 100


class CreatorAggregator:
    """Run paginated fetches for every creator and merge the results."""

    def __init__(
        self,
        client: FanvueClient,
        *,
        batch_size: int = 3,
        batch_delay: float = 2.0,
    ) -> None:
        self._client = client
        self._batch_size = max(batch_size, 1)
        self._batch_delay = batch_delay

    @property
    def client(self) -> FanvueClient:
        return self._client

    async def list_creators(
        self, endpoint: ResourceEndpoint = CREATORS, *, size: int = 50
    ) -> List[Creator]:
        """First page of the agency's creators; a non-OK status is an error."""
        payload = await self._client.get_json(endpoint.path(), {"page": 1, "size": size})
        return [Creator.model_validate(item) for item in payload.get("data") or []]

    async def fetch_with_fallback(
        self,
        primary: ResourceEndpoint,
        fallback: ResourceEndpoint,
        *,
        ids: Mapping[str, str],
        params: Optional[Mapping[str, Any]] = None,
        max_pages: int = 5,
    ) -> PageResult:
        """Try ``primary``; when its first page is 403/404 use ``fallback`` instead."""
        result = await self._client.paginate(primary, ids=ids, params=params, max_pages=max_pages)
        if result.failed and result.error_status in FALLBACK_STATUSES:
            logger.info(
                "%s unavailable (%d), falling back to %s",
                primary.path(**ids),
                result.error_status,
                fallback.path(**ids),
            )
            result = await self._client.paginate(
                fallback, ids=ids, params=params, max_pages=max_pages
            )
        return result

    async def collect(
        self,
        creators: Sequence[Creator],
        endpoint: ResourceEndpoint,
        *,
        params: Optional[Mapping[str, Any]] = None,
        max_pages: int = 5,
        strategy: Optional[Callable[[], ContinuationStrategy]] = None,
    ) -> CreatorCollection:
        """Paginate ``endpoint`` per creator into one decorated, ordered list.

        One creator failing is logged and skipped; the rest still contribute.
        """
        collection = CreatorCollection(creators_processed=len(creators))
        for creator in creators:
            try:
                result = await self._client.paginate(
                    endpoint,
                    ids={"creator_uuid": creator.uuid},
                    params=params,
                    max_pages=max_pages,
                    strategy=strategy() if strategy else None,
                )
            except _SKIPPABLE_ERRORS as exc:
                logger.warning("Skipping creator %s for %s: %s", creator.uuid, endpoint.name, exc)
                collection.failed_creators.append(creator.uuid)
                continue

            if result.error_status is not None:
                logger.warning(
                    "Error fetching %s for creator %s: %d",
                    endpoint.name,
                    creator.uuid,
                    result.error_status,
                )
                if result.failed:
                    collection.failed_creators.append(creator.uuid)
            collection.records.extend(decorate(record, creator) for record in result.records)
            collection.pages_fetched += result.pages_fetched
        return collection

    async def gather_in_batches(
        self,
        items: Sequence[T],
        worker: Callable[[T], Awaitable[R]],
    ) -> List[R | BaseException]:
        """Run ``worker`` concurrently within batches, pausing between batches.

        Results line up with ``items``; failures come back as exceptions,
        except an expired session which aborts the whole fan-out.
        """
        results: List[R | BaseException] = []
        sleep = self._client.retry_config.sleep
        for start in range(0, len(items), self._batch_size):
            batch = items[start : start + self._batch_size]
            outcomes = await asyncio.gather(
                *(worker(item) for item in batch), return_exceptions=True
            )
            for outcome in outcomes:
                if isinstance(outcome, AuthenticationRequiredError):
                    raise outcome
            results.extend(outcomes)
            if start + self._batch_size < len(items):
                logger.debug("Waiting %.1fs between creator batches", self._batch_delay)
                await sleep(self._batch_delay)
        return results

    async def creator_stats(
        self,
        creator: Creator,
        *,
        earnings_params: Optional[Mapping[str, Any]] = None,
        earnings_endpoint: ResourceEndpoint = EARNINGS,
        followers_endpoints: tuple[ResourceEndpoint, ...] = (AGENCY_FOLLOWERS, FOLLOWERS),
        subscribers_endpoints: tuple[ResourceEndpoint, ...] = (
            AGENCY_SUBSCRIBERS,
            SUBSCRIBERS,
        ),
        earnings_pages: int = 3,
        audience_pages: int = 2,
    ) -> CreatorStats:
        """Revenue, transactions, followers and subscribers for one creator.

        Each of the three lookups fails independently and then counts as zero.
        """
        ids = {"creator_uuid": creator.uuid}

        async def audience(endpoints: tuple[ResourceEndpoint, ...]) -> PageResult:
            if len(endpoints) > 1:
                return await self.fetch_with_fallback(
                    endpoints[0], endpoints[1], ids=ids, max_pages=audience_pages
                )
            return await self._client.paginate(endpoints[0], ids=ids, max_pages=audience_pages)

        earnings_res, followers_res, subscribers_res = await asyncio.gather(
            self._client.paginate(
                earnings_endpoint, ids=ids, params=earnings_params, max_pages=earnings_pages
            ),
            audience(followers_endpoints),
            audience(subscribers_endpoints),
            return_exceptions=True,
        )

        stats = CreatorStats(creator=creator)
        for outcome in (earnings_res, followers_res, subscribers_res):
            if isinstance(outcome, AuthenticationRequiredError):
                raise outcome

        if isinstance(earnings_res, PageResult) and not earnings_res.failed:
            stats.earnings = [EarningsItem.model_validate(item) for item in earnings_res.records]
            stats.revenue = revenue_in_dollars(stats.earnings)
            stats.transactions = len(stats.earnings)
        else:
            logger.warning("Earnings unavailable for creator %s", creator.uuid)
        if isinstance(followers_res, PageResult) and not followers_res.failed:
            stats.followers = followers_res.total_count
        if isinstance(subscribers_res, PageResult) and not subscribers_res.failed:
            stats.subscribers = subscribers_res.total_count
        return stats


__all__ = [
    "CreatorAggregator",
    "CreatorCollection",
    "CreatorStats",
    "decorate",
    "revenue_in_dollars",
]
