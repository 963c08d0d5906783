try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

from typing import Any

import httpx
import pytest

from app.utils.pagination import CursorStrategy, PageNumberStrategy, paginate


class RecordingFetcher:
    """Serve scripted pages and remember the params of every request."""

    def __init__(self, *pages: tuple[int, Any]) -> None:
        self.pages = list(pages)
        self.requests: list[dict] = []

    async def __call__(self, path: str, params: dict) -> httpx.Response:
        self.requests.append(dict(params))
        status, body = self.pages[min(len(self.requests), len(self.pages)) - 1]
        return httpx.Response(status, json=body, request=httpx.Request("GET", path))


def _page(*ids: int, more: bool = True, key: str = "hasMore") -> dict:
    return {"data": [{"id": i} for i in ids], "pagination": {key: more}}


@pytest.mark.anyio
async def test_page_numbers_stop_at_max_pages(sleeper) -> None:
    fetch = RecordingFetcher((200, _page(1, 2)))

    result = await paginate(
        fetch, "/followers", PageNumberStrategy(), max_pages=3, sleep=sleeper
    )

    assert [r["page"] for r in fetch.requests] == [1, 2, 3]
    assert all(r["size"] == 50 for r in fetch.requests)
    assert result.pages_fetched == 3
    assert result.total_count == 6
    assert result.has_more is True
    assert sleeper.delays == [0.1, 0.1]


@pytest.mark.anyio
async def test_has_next_page_and_empty_page_end_the_walk(sleeper) -> None:
    fetch = RecordingFetcher(
        (200, _page(1, key="hasNextPage")),
        (200, {"data": [], "pagination": {"hasNextPage": True}}),
    )

    result = await paginate(fetch, "/earnings", PageNumberStrategy(), max_pages=5, sleep=sleeper)

    assert len(fetch.requests) == 2
    assert [r["id"] for r in result.records] == [1]
    assert result.has_more is False
    assert result.error_status is None


@pytest.mark.anyio
async def test_cursor_follows_next_cursor_until_null(sleeper) -> None:
    fetch = RecordingFetcher(
        (200, {"data": [{"id": 1}, {"id": 2}], "nextCursor": "c1"}),
        (200, {"data": [{"id": 3}], "nextCursor": None}),
    )

    result = await paginate(
        fetch,
        "/creators/u1/insights/earnings",
        CursorStrategy(),
        params={"startDate": "2025-01-01T00:00:00.000Z", "endDate": None},
        max_pages=5,
        sleep=sleeper,
    )

    assert len(fetch.requests) == 2
    assert "cursor" not in fetch.requests[0]
    assert "endDate" not in fetch.requests[0]
    assert fetch.requests[1]["cursor"] == "c1"
    assert [r["id"] for r in result.records] == [1, 2, 3]
    assert result.has_more is False
    assert result.pages_fetched == 2


@pytest.mark.anyio
async def test_error_mid_walk_returns_partial_result(sleeper) -> None:
    fetch = RecordingFetcher((200, _page(1, 2)), (403, {"error": "forbidden"}))

    result = await paginate(fetch, "/followers", PageNumberStrategy(), sleep=sleeper)

    assert [r["id"] for r in result.records] == [1, 2]
    assert result.pages_fetched == 1
    assert result.error_status == 403
    assert result.has_more is False
    assert result.failed is False


@pytest.mark.anyio
async def test_error_on_first_page_marks_failure(sleeper) -> None:
    fetch = RecordingFetcher((404, {"error": "missing"}))

    result = await paginate(fetch, "/followers", PageNumberStrategy(), sleep=sleeper)

    assert result.failed is True
    assert result.records == []


@pytest.mark.anyio
async def test_accepted_status_stops_silently(sleeper) -> None:
    fetch = RecordingFetcher((200, _page(1)), (404, {}))

    result = await paginate(
        fetch, "/messages", PageNumberStrategy(), accept_statuses=(404,), sleep=sleeper
    )

    assert result.total_count == 1
    assert result.error_status is None
    assert result.has_more is False
