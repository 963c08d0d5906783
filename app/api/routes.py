"""
FastAPI routes for the Fanvue agency dashboard.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from http import HTTPStatus
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query

from app.api import auth, debug, powerbi
from app.clients.fanvue import (
    AGENCY_FOLLOWERS,
    AGENCY_SUBSCRIBERS,
    EARNINGS,
    FOLLOWERS,
    SUBSCRIBERS,
    FanvueAPIError,
    ResourceEndpoint,
)
from app.dependencies import get_aggregator, get_engagement_service, get_fanvue_client
from app.services.aggregation import CreatorStats
from app.utils.dates import DateRange, normalize_range
from app.utils.pagination import PageNumberStrategy, PageResult

router = APIRouter()
router.include_router(auth.router)
router.include_router(powerbi.router)
router.include_router(debug.router)
logger = logging.getLogger(__name__)

FAN_ENGAGEMENT_START = "2025-01-01"
OVERVIEW_LOOKBACK_DAYS = 30
OVERVIEW_LOOKAHEAD_DAYS = 7


def _raise_if_failed(result: PageResult, path: str) -> None:
    if result.failed:
        raise FanvueAPIError(result.error_status or HTTPStatus.BAD_GATEWAY, path=path)


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get("/profile")
async def get_profile(client: Annotated[Any, Depends(get_fanvue_client)]) -> dict:
    return await client.get_json("/users/me")


@router.get("/creators")
async def list_creators(
    client: Annotated[Any, Depends(get_fanvue_client)],
    page: int = Query(default=1, ge=1),
    size: int = Query(default=15, ge=1, le=50),
) -> dict:
    return await client.get_json("/creators", {"page": page, "size": size})


@router.get("/earnings")
async def get_earnings(
    client: Annotated[Any, Depends(get_fanvue_client)],
    start_date: str | None = Query(default=None, alias="startDate"),
    end_date: str | None = Query(default=None, alias="endDate"),
    cursor: str | None = Query(default=None),
    size: int = Query(default=50, ge=1, le=50),
) -> dict:
    """Earnings of the authenticated account, one upstream page at a time."""
    params = {
        **normalize_range(start_date, end_date).as_dict(),
        "cursor": cursor,
        "size": size,
    }
    return await client.get_json(
        "/insights/earnings", {k: v for k, v in params.items() if v is not None}
    )


@router.get("/subscribers")
async def get_subscribers(
    client: Annotated[Any, Depends(get_fanvue_client)],
    page: int = Query(default=1, ge=1),
    size: int = Query(default=50, ge=1, le=50),
) -> dict:
    return await client.get_json("/subscribers", {"page": page, "size": size})


@router.get("/creators/{creator_uuid}/earnings")
async def get_creator_earnings(
    creator_uuid: str,
    client: Annotated[Any, Depends(get_fanvue_client)],
    start_date: str | None = Query(default=None, alias="startDate"),
    end_date: str | None = Query(default=None, alias="endDate"),
    max_pages: int = Query(
        default=5, ge=1, alias="maxPages", description="Upper bound on upstream pages."
    ),
) -> dict:
    """Cursor-paginated earnings for one creator."""
    result = await client.paginate(
        EARNINGS,
        ids={"creator_uuid": creator_uuid},
        params=normalize_range(start_date, end_date).as_dict(),
        max_pages=max_pages,
    )
    _raise_if_failed(result, EARNINGS.path(creator_uuid=creator_uuid))
    return {
        "data": result.records,
        "totalCount": result.total_count,
        "hasMore": result.has_more,
        "pagesFetched": result.pages_fetched,
    }


async def _creator_audience(
    aggregator: Any,
    creator_uuid: str,
    primary: ResourceEndpoint,
    fallback: ResourceEndpoint,
    max_pages: int,
) -> dict:
    ids = {"creator_uuid": creator_uuid}
    result = await aggregator.fetch_with_fallback(primary, fallback, ids=ids, max_pages=max_pages)
    _raise_if_failed(result, fallback.path(**ids))
    return {
        "data": result.records,
        "pagination": {
            "page": 1,
            "size": result.total_count,
            "hasMore": result.has_more,
            "pagesFetched": result.pages_fetched,
        },
    }


@router.get("/creators/{creator_uuid}/followers")
async def get_creator_followers(
    creator_uuid: str,
    aggregator: Annotated[Any, Depends(get_aggregator)],
    max_pages: int = Query(default=3, ge=1, alias="maxPages"),
) -> dict:
    """Followers via the agency endpoint, falling back to the creator endpoint."""
    return await _creator_audience(
        aggregator, creator_uuid, AGENCY_FOLLOWERS, FOLLOWERS, max_pages
    )


@router.get("/creators/{creator_uuid}/subscribers")
async def get_creator_subscribers(
    creator_uuid: str,
    aggregator: Annotated[Any, Depends(get_aggregator)],
    max_pages: int = Query(default=3, ge=1, alias="maxPages"),
) -> dict:
    return await _creator_audience(
        aggregator, creator_uuid, AGENCY_SUBSCRIBERS, SUBSCRIBERS, max_pages
    )


@router.get("/creators/{creator_uuid}/message-volume")
async def get_message_volume(
    creator_uuid: str,
    service: Annotated[Any, Depends(get_engagement_service)],
    start_date: str | None = Query(default=None, alias="startDate"),
    end_date: str | None = Query(default=None, alias="endDate"),
) -> dict:
    date_range = normalize_range(start_date, end_date, default_to_window=True)
    return await service.message_volume(creator_uuid, date_range)


@router.get("/all-earnings")
async def get_all_earnings(
    aggregator: Annotated[Any, Depends(get_aggregator)],
    start_date: str | None = Query(default=None, alias="startDate"),
    end_date: str | None = Query(default=None, alias="endDate"),
    max_pages: int = Query(default=5, ge=1, alias="maxPages"),
) -> dict:
    """Earnings of every creator in one flat list tagged with the creator."""
    date_range = normalize_range(start_date, end_date)
    creators = await aggregator.list_creators()
    collection = await aggregator.collect(
        creators,
        EARNINGS,
        params=date_range.as_dict(),
        max_pages=max_pages,
        strategy=PageNumberStrategy,
    )
    return {
        "data": collection.records,
        "totalRecords": collection.total_records,
        "creatorsProcessed": collection.creators_processed,
        "dateRange": date_range.as_dict(),
    }


async def _all_records(aggregator: Any, endpoint: ResourceEndpoint, max_pages: int) -> dict:
    creators = await aggregator.list_creators()
    collection = await aggregator.collect(creators, endpoint, max_pages=max_pages)
    return {
        "data": collection.records,
        "totalRecords": collection.total_records,
        "creatorsProcessed": collection.creators_processed,
    }


@router.get("/all-followers")
async def get_all_followers(
    aggregator: Annotated[Any, Depends(get_aggregator)],
    max_pages: int = Query(default=5, ge=1, alias="maxPages"),
) -> dict:
    return await _all_records(aggregator, FOLLOWERS, max_pages)


@router.get("/all-subscribers")
async def get_all_subscribers(
    aggregator: Annotated[Any, Depends(get_aggregator)],
    max_pages: int = Query(default=5, ge=1, alias="maxPages"),
) -> dict:
    return await _all_records(aggregator, SUBSCRIBERS, max_pages)


@router.get("/message-analytics")
async def get_message_analytics(
    aggregator: Annotated[Any, Depends(get_aggregator)],
    service: Annotated[Any, Depends(get_engagement_service)],
    start_date: str | None = Query(default=None, alias="startDate"),
    end_date: str | None = Query(default=None, alias="endDate"),
    max_pages: int = Query(default=3, ge=1, alias="maxPages"),
) -> dict:
    date_range = normalize_range(start_date, end_date, default_to_window=True)
    creators = await aggregator.list_creators()
    return await service.message_analytics(creators, date_range, max_pages=max_pages)


@router.get("/fan-engagement")
async def get_fan_engagement(
    aggregator: Annotated[Any, Depends(get_aggregator)],
    service: Annotated[Any, Depends(get_engagement_service)],
    start_date: str | None = Query(default=None, alias="startDate"),
    end_date: str | None = Query(default=None, alias="endDate"),
    min_messages: int = Query(default=1, ge=0, alias="minMessages"),
) -> dict:
    """Per-fan engagement scored across every creator the fan wrote to."""
    date_range = normalize_range(
        start_date or FAN_ENGAGEMENT_START,
        end_date or datetime.now(timezone.utc).date().isoformat(),
    )
    creators = await aggregator.list_creators()
    report = await service.fan_engagement(creators, date_range, min_messages=min_messages)
    report["dateRange"] = date_range.as_dict()
    return report


def _overview_row(stats: CreatorStats) -> dict:
    creator = stats.creator
    return {
        "creatorUuid": creator.uuid,
        "creatorName": creator.label,
        "creatorHandle": creator.handle,
        "revenue": round(stats.revenue, 2),
        "transactions": stats.transactions,
        "followers": stats.followers,
        "subscribers": stats.subscribers,
        "averageTransactionValue": round(stats.average_transaction_value, 2),
        "hasError": False,
    }


@router.get("/agency/overview")
async def get_agency_overview(
    aggregator: Annotated[Any, Depends(get_aggregator)],
    size: int = Query(default=15, ge=1, le=50),
) -> dict:
    """Revenue, transactions and audience per creator, fetched in batches."""
    today = datetime.now(timezone.utc).date()
    window = DateRange(
        start=f"{(today - timedelta(days=OVERVIEW_LOOKBACK_DAYS)).isoformat()}T00:00:00.000Z",
        end=f"{(today + timedelta(days=OVERVIEW_LOOKAHEAD_DAYS)).isoformat()}T23:59:59.999Z",
    )
    creators = await aggregator.list_creators(size=size)

    async def worker(creator):
        return await aggregator.creator_stats(creator, earnings_params=window.as_dict())

    outcomes = await aggregator.gather_in_batches(creators, worker)

    rows = []
    totals = {
        "totalRevenue": 0.0,
        "totalTransactions": 0,
        "totalFollowers": 0,
        "totalSubscribers": 0,
        "totalCreators": len(creators),
    }
    for creator, outcome in zip(creators, outcomes):
        if isinstance(outcome, BaseException):
            logger.warning("Overview failed for creator %s: %s", creator.uuid, outcome)
            rows.append(
                {
                    "creatorUuid": creator.uuid,
                    "creatorName": creator.label,
                    "creatorHandle": creator.handle,
                    "hasError": True,
                    "errorMessage": str(outcome),
                }
            )
            continue
        rows.append(_overview_row(outcome))
        totals["totalRevenue"] += outcome.revenue
        totals["totalTransactions"] += outcome.transactions
        totals["totalFollowers"] += outcome.followers
        totals["totalSubscribers"] += outcome.subscribers

    totals["totalRevenue"] = round(totals["totalRevenue"], 2)
    return {"creators": rows, "totals": totals, "dateRange": window.as_dict()}


__all__ = ["router"]
