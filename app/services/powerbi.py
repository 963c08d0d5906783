"""
Power BI feeds: a per-creator summary and a transaction-level earnings table.

Both feeds flatten upstream data into rows with date components Power BI can
use for time intelligence. A deterministic mock source serves the same shapes
without touching the upstream API.
"""

from __future__ import annotations

import hashlib
import logging
import random
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from app.clients.fanvue import (
    AGENCY_CREATORS,
    AGENCY_EARNINGS,
    AGENCY_FOLLOWERS,
    AGENCY_SUBSCRIBERS,
    ResourceEndpoint,
)
from app.schemas.fanvue import Creator, EarningsItem
from app.services.aggregation import CreatorAggregator, CreatorStats
from app.utils.dates import (
    default_window,
    iso_week,
    js_weekday,
    quarter,
    to_iso_z,
)

logger = logging.getLogger(__name__)

FEED_VERSION = "1.0"
SUMMARY_AUDIENCE_PAGES = 1
SUMMARY_EARNINGS_PAGES = 1
DETAIL_EARNINGS_PAGES = 3

MOCK_SOURCES = ("subscription", "tip", "message", "content", "premium")
MOCK_PLATFORM_SHARE = 0.85
MOCK_CREATORS: Sequence[Dict[str, Any]] = (
    {
        "creatorId": "e507b598-4347-4ea5-b27d-4367ea351ab9",
        "creatorName": "Ellie May",
        "creatorHandle": "ellalxox",
        "totalRevenue": 3904.44,
        "totalTransactions": 150,
        "totalFollowers": 1234,
        "totalSubscribers": 567,
        "avgTransactionValue": 26.03,
    },
    {
        "creatorId": "a1b2c3d4-e5f6-7890-abcd-ef1234567890",
        "creatorName": "Carys",
        "creatorHandle": "carys_official",
        "totalRevenue": 1213.87,
        "totalTransactions": 89,
        "totalFollowers": 892,
        "totalSubscribers": 234,
        "avgTransactionValue": 13.64,
    },
    {
        "creatorId": "b2c3d4e5-f6a7-8901-bcde-f23456789012",
        "creatorName": "Léo",
        "creatorHandle": "leo_creator",
        "totalRevenue": 819.01,
        "totalTransactions": 45,
        "totalFollowers": 2341,
        "totalSubscribers": 123,
        "avgTransactionValue": 18.20,
    },
    {
        "creatorId": "c3d4e5f6-a7b8-9012-cdef-345678901234",
        "creatorName": "Molly",
        "creatorHandle": "molly_vip",
        "totalRevenue": 2567.33,
        "totalTransactions": 78,
        "totalFollowers": 1567,
        "totalSubscribers": 445,
        "avgTransactionValue": 32.91,
    },
    {
        "creatorId": "d4e5f6a7-b8c9-0123-def0-456789012345",
        "creatorName": "Sophia",
        "creatorHandle": "sophia_premium",
        "totalRevenue": 1892.15,
        "totalTransactions": 112,
        "totalFollowers": 987,
        "totalSubscribers": 298,
        "avgTransactionValue": 16.89,
    },
)


def resolve_window(start: Optional[str], end: Optional[str]) -> tuple[str, str]:
    """Bare ``YYYY-MM-DD`` bounds, defaulting to the last 30 days."""
    default_start, default_end = default_window()
    return start or default_start, end or default_end


def earnings_params(start: str, end: str) -> Dict[str, str]:
    return {"startDate": f"{start}T00:00:00Z", "endDate": f"{end}T23:59:59Z"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _metadata(start: str, end: str, authentication: str, **extra: Any) -> Dict[str, Any]:
    return {
        "generatedAt": to_iso_z(_utcnow()),
        "startDate": start,
        "endDate": end,
        **extra,
        "apiVersion": FEED_VERSION,
        "authentication": authentication,
    }


def _date_columns(moment: datetime) -> Dict[str, int]:
    return {
        "year": moment.year,
        "month": moment.month,
        "day": moment.day,
        "dayOfWeek": js_weekday(moment),
        "weekOfYear": iso_week(moment),
        "quarter": quarter(moment),
    }


def summary_row(stats: CreatorStats, *, generated_at: Optional[datetime] = None) -> Dict[str, Any]:
    creator = stats.creator
    return {
        "creatorId": creator.uuid,
        "creatorName": creator.display_name or "Unknown",
        "creatorHandle": creator.handle or "unknown",
        "totalRevenue": round(stats.revenue, 2),
        "totalTransactions": stats.transactions,
        "totalFollowers": stats.followers,
        "totalSubscribers": stats.subscribers,
        "avgTransactionValue": round(stats.average_transaction_value, 2),
        "lastUpdated": to_iso_z(generated_at or _utcnow()),
    }


def transaction_row(
    creator: Creator, raw: Dict[str, Any], item: EarningsItem
) -> Optional[Dict[str, Any]]:
    """One earnings transaction as a Power BI row; undated items are dropped."""
    if item.date is None:
        return None
    date_value = raw.get("date")
    row: Dict[str, Any] = {
        "transactionId": f"{creator.uuid}-{date_value}",
        "creatorId": creator.uuid,
        "creatorName": creator.display_name or "Unknown",
        "creatorHandle": creator.handle or "unknown",
        "date": date_value,
        "grossAmount": item.gross / 100,
        "netAmount": item.net / 100,
        "source": item.source or "unknown",
    }
    row.update(_date_columns(item.date))
    return row


class PowerBIService:
    """Build both feeds from live upstream data.

    ``authentication`` is reported in the feed metadata; ``creators_endpoint``
    lets the service-account source list creators from the creator scope.
    """

    def __init__(
        self,
        aggregator: CreatorAggregator,
        *,
        authentication: str,
        creators_endpoint: ResourceEndpoint = AGENCY_CREATORS,
    ) -> None:
        self._aggregator = aggregator
        self._client = aggregator.client
        self._authentication = authentication
        self._creators_endpoint = creators_endpoint

    @property
    def authentication(self) -> str:
        return self._authentication

    async def creators_summary(
        self, start: Optional[str] = None, end: Optional[str] = None
    ) -> Dict[str, Any]:
        start, end = resolve_window(start, end)
        logger.info("Power BI creators summary %s to %s (%s)", start, end, self._authentication)
        creators = await self._aggregator.list_creators(self._creators_endpoint)
        params = earnings_params(start, end)

        async def worker(creator: Creator) -> CreatorStats:
            return await self._aggregator.creator_stats(
                creator,
                earnings_params=params,
                earnings_endpoint=AGENCY_EARNINGS,
                followers_endpoints=(AGENCY_FOLLOWERS,),
                subscribers_endpoints=(AGENCY_SUBSCRIBERS,),
                earnings_pages=SUMMARY_EARNINGS_PAGES,
                audience_pages=SUMMARY_AUDIENCE_PAGES,
            )

        outcomes = await self._aggregator.gather_in_batches(creators, worker)
        generated_at = _utcnow()
        rows = []
        for creator, outcome in zip(creators, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning("Summary failed for creator %s: %s", creator.uuid, outcome)
                continue
            rows.append(summary_row(outcome, generated_at=generated_at))

        return {
            "metadata": _metadata(start, end, self._authentication, totalCreators=len(rows)),
            "data": rows,
        }

    async def earnings_detail(
        self,
        start: Optional[str] = None,
        end: Optional[str] = None,
        *,
        creator_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        start, end = resolve_window(start, end)
        logger.info("Power BI earnings detail %s to %s (%s)", start, end, self._authentication)
        if creator_id:
            creators = [
                Creator(uuid=creator_id, displayName="Filtered Creator", handle="filtered")
            ]
        else:
            creators = await self._aggregator.list_creators(self._creators_endpoint)

        collection = await self._aggregator.collect(
            creators,
            AGENCY_EARNINGS,
            params=earnings_params(start, end),
            max_pages=DETAIL_EARNINGS_PAGES,
        )
        by_uuid = {creator.uuid: creator for creator in creators}
        rows: List[Dict[str, Any]] = []
        for record in collection.records:
            creator = by_uuid[record["creatorUuid"]]
            try:
                item = EarningsItem.model_validate(record)
            except ValidationError as exc:
                logger.warning("Skipping malformed earnings record for %s: %s", creator.uuid, exc)
                continue
            row = transaction_row(creator, record, item)
            if row is not None:
                rows.append(row)

        return {
            "metadata": _metadata(
                start,
                end,
                self._authentication,
                totalTransactions=len(rows),
                totalCreators=len(creators),
            ),
            "data": rows,
        }


class MockPowerBISource:
    """Fixed creators and generated transactions for wiring up reports.

    Transactions are seeded from the requested window so the same query always
    returns the same rows.
    """

    authentication = "none"

    def __init__(self, *, today: Optional[datetime] = None) -> None:
        self._today = today

    def _now(self) -> datetime:
        return self._today or _utcnow()

    @staticmethod
    def _rng(*parts: Optional[str]) -> random.Random:
        digest = hashlib.sha256("|".join(p or "" for p in parts).encode("utf-8")).hexdigest()
        return random.Random(int(digest[:16], 16))

    def _metadata(self, start: str, end: str, **extra: Any) -> Dict[str, Any]:
        metadata = _metadata(start, end, self.authentication, **extra)
        metadata["dataSource"] = "mock"
        return metadata

    async def creators_summary(
        self, start: Optional[str] = None, end: Optional[str] = None
    ) -> Dict[str, Any]:
        start, end = resolve_window(start, end)
        stamp = to_iso_z(self._now())
        rows = [{**creator, "lastUpdated": stamp} for creator in MOCK_CREATORS]
        return {
            "metadata": self._metadata(start, end, totalCreators=len(rows)),
            "data": rows,
        }

    async def earnings_detail(
        self,
        start: Optional[str] = None,
        end: Optional[str] = None,
        *,
        creator_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        start, end = resolve_window(start, end)
        targets = [
            creator
            for creator in MOCK_CREATORS
            if creator_id is None or creator["creatorId"] == creator_id
        ]
        rng = self._rng(start, end, creator_id)
        anchor = self._now().replace(hour=12, minute=0, second=0, microsecond=0)

        rows: List[Dict[str, Any]] = []
        for creator in targets:
            for index in range(rng.randint(5, 15)):
                moment = anchor - timedelta(days=rng.randrange(30))
                gross = rng.random() * 100 + 10
                row = {
                    "transactionId": f"{creator['creatorId']}-{int(moment.timestamp() * 1000)}-{index}",
                    "creatorId": creator["creatorId"],
                    "creatorName": creator["creatorName"],
                    "creatorHandle": creator["creatorHandle"],
                    "date": to_iso_z(moment),
                    "grossAmount": round(gross, 2),
                    "netAmount": round(gross * MOCK_PLATFORM_SHARE, 2),
                    "source": rng.choice(MOCK_SOURCES),
                }
                row.update(_date_columns(moment))
                rows.append(row)

        return {
            "metadata": self._metadata(
                start, end, totalTransactions=len(rows), totalCreators=len(targets)
            ),
            "data": rows,
        }


__all__ = [
    "DETAIL_EARNINGS_PAGES",
    "MOCK_CREATORS",
    "MockPowerBISource",
    "PowerBIService",
    "earnings_params",
    "resolve_window",
    "summary_row",
    "transaction_row",
]
