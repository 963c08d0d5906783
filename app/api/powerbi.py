"""
Power BI feed routes.

``/powerbi/{source}/...`` where ``source`` selects how the feed is produced:
``hybrid`` (Power BI key or browser session), ``service`` (server-side
service account) or ``public`` (mock data).
"""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query

from app.dependencies import get_powerbi_source

router = APIRouter(prefix="/powerbi", tags=["powerbi"])


@router.get("/{source}/creators-summary")
async def creators_summary(
    feed: Annotated[Any, Depends(get_powerbi_source)],
    start_date: str | None = Query(default=None, alias="startDate"),
    end_date: str | None = Query(default=None, alias="endDate"),
) -> dict:
    """One row per creator with revenue, transactions and audience totals."""
    return await feed.creators_summary(start_date, end_date)


@router.get("/{source}/earnings-detail")
async def earnings_detail(
    feed: Annotated[Any, Depends(get_powerbi_source)],
    start_date: str | None = Query(default=None, alias="startDate"),
    end_date: str | None = Query(default=None, alias="endDate"),
    creator_id: str | None = Query(
        default=None, alias="creatorId", description="Restrict the feed to one creator."
    ),
) -> dict:
    """One row per earnings transaction with Power BI date columns."""
    return await feed.earnings_detail(start_date, end_date, creator_id=creator_id)


__all__ = ["router"]
