try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

import httpx
import pytest

from app.clients.fanvue import FanvueAPIError
from app.schemas.fanvue import Creator
from app.services.aggregation import CreatorAggregator
from app.services.engagement import (
    EngagementService,
    engagement_level,
    fan_engagement_score,
)
from app.utils.dates import normalize_range

MARCH = normalize_range("2025-03-01", "2025-03-31")


def _serve(routes: dict[str, dict]):
    def handler(request: httpx.Request) -> httpx.Response:
        body = routes.get(request.url.path)
        if body is None:
            return httpx.Response(404, json={"error": "not found"})
        return httpx.Response(200, json=body)

    return handler


def _page(items: list[dict]) -> dict:
    return {"data": items, "pagination": {"hasMore": False}}


def _service(make_client, routes: dict[str, dict]) -> EngagementService:
    return EngagementService(CreatorAggregator(make_client(_serve(routes))))


def _creator(uuid: str, name: str | None = None) -> Creator:
    return Creator(uuid=uuid, displayName=name or uuid.upper())


@pytest.mark.parametrize(
    "messages, creators, expected",
    [(3, 1, 16), (10, 2, 40), (50, 1, 100), (0, 0, 0)],
)
def test_fan_engagement_score_is_capped_at_100(messages, creators, expected) -> None:
    assert fan_engagement_score(messages, creators) == expected


@pytest.mark.parametrize("score, level", [(70, "high"), (69, "medium"), (40, "medium"), (39, "low")])
def test_engagement_level_thresholds(score, level) -> None:
    assert engagement_level(score) == level


@pytest.mark.anyio
async def test_fan_engagement_counts_fan_messages_across_creators(make_client) -> None:
    fan = "fanaaaaa-1111"
    service = _service(
        make_client,
        {
            "/creators/c1/chats": _page([{"uuid": "ch1"}]),
            "/chats/ch1/messages": _page(
                [
                    {"senderType": "fan", "senderId": fan, "createdAt": "2025-03-02T10:00:00Z"},
                    {"senderType": "fan", "senderId": fan, "createdAt": "2025-03-05T10:00:00Z"},
                    {"senderType": "creator", "senderId": "c1", "createdAt": "2025-03-05T11:00:00Z"},
                    {"senderType": "fan", "senderId": fan, "createdAt": "2025-04-05T10:00:00Z"},
                    {"senderType": "fan", "createdAt": "2025-03-07T10:00:00Z"},
                ]
            ),
            "/creators/c2/chats": _page([{"uuid": "ch2"}]),
            "/chats/ch2/messages": _page(
                [{"senderType": "fan", "senderId": fan, "createdAt": "2025-03-10T10:00:00Z"}]
            ),
        },
    )

    report = await service.fan_engagement(
        [_creator("c1"), _creator("c2")], MARCH, min_messages=2
    )

    assert report["summary"]["totalActiveFans"] == 1
    row = report["fanEngagement"][0]
    assert row["fanUuid"] == fan
    assert row["fanName"] == "Fan fanaaaaa"
    assert row["totalMessages"] == 3
    assert row["creatorsEngaged"] == ["c1", "c2"]
    assert row["engagementScore"] == 26
    assert row["firstMessageDate"] == "2025-03-02T10:00:00.000Z"
    assert row["lastMessageDate"] == "2025-03-10T10:00:00.000Z"
    assert report["summary"]["engagementDistribution"] == {"high": 0, "medium": 0, "low": 1}


@pytest.mark.anyio
async def test_fan_engagement_skips_creators_without_chats(make_client) -> None:
    service = _service(make_client, {})

    report = await service.fan_engagement([_creator("c1")], MARCH)

    assert report["fanEngagement"] == []
    assert report["summary"]["averageMessagesPerFan"] == 0


@pytest.mark.anyio
async def test_message_volume_rolls_up_nested_messages(make_client) -> None:
    def msg(sender: str, recipient: str, sent_at: str) -> dict:
        return {
            "sender": {"uuid": sender, "displayName": sender.upper()},
            "recipient": {"uuid": recipient, "handle": recipient},
            "sentAt": sent_at,
        }

    service = _service(
        make_client,
        {
            "/creators/c1/chats": _page([{"uuid": "ch1"}]),
            "/chats/ch1/messages": _page(
                [
                    msg("c1", "f1", "2025-03-01T10:00:00Z"),
                    msg("f1", "c1", "2025-03-01T11:00:00Z"),
                    msg("f1", "c1", "2025-03-02T09:00:00Z"),
                    msg("f2", "c1", "2025-03-02T09:30:00Z"),
                    msg("f1", "c1", "2025-04-10T09:00:00Z"),
                ]
            ),
        },
    )

    report = await service.message_volume("c1", MARCH)

    assert report["totalMessagesSent"] == 1
    assert report["totalMessagesReceived"] == 3
    assert [fan["fanUuid"] for fan in report["fanEngagement"]] == ["f1", "f2"]
    f1 = report["fanEngagement"][0]
    assert f1["fanName"] == "f1"
    assert (f1["messagesSent"], f1["messagesReceived"]) == (2, 1)
    assert f1["engagementScore"] == 3
    assert f1["firstMessageDate"] == "2025-03-01"
    assert report["dailyBreakdown"] == [
        {"date": "2025-03-01", "messagesSent": 1, "messagesReceived": 1, "totalMessages": 2},
        {"date": "2025-03-02", "messagesSent": 0, "messagesReceived": 2, "totalMessages": 2},
    ]
    summary = report["summary"]
    assert summary["totalChats"] == 1
    assert summary["activeFans"] == 2
    assert summary["averageMessagesPerFan"] == 2
    assert summary["responseRate"] == pytest.approx(100 / 3)


@pytest.mark.anyio
async def test_message_volume_surfaces_chat_listing_errors(make_client) -> None:
    service = _service(make_client, {})

    with pytest.raises(FanvueAPIError) as excinfo:
        await service.message_volume("c1", MARCH)

    assert excinfo.value.status_code == 404


@pytest.mark.anyio
async def test_message_analytics_limits_creators_and_merges_fans(make_client) -> None:
    routes = {
        "/creators/c1/chats": _page([{"uuid": "ch1"}]),
        "/creators/c1/chats/ch1/messages": _page(
            [
                {
                    "uuid": "m1",
                    "senderType": "creator",
                    "receiverUuid": "f1",
                    "receiverName": "Fan One",
                    "createdAt": "2025-03-03T08:00:00Z",
                },
                {
                    "uuid": "m2",
                    "senderType": "fan",
                    "senderUuid": "f1",
                    "senderName": "Fan One",
                    "createdAt": "2025-03-03T09:00:00Z",
                },
            ]
        ),
        "/creators/c2/chats": _page([{"uuid": "ch2"}]),
        "/creators/c2/chats/ch2/messages": _page(
            [
                {
                    "uuid": "m3",
                    "senderType": "fan",
                    "senderUuid": "f1",
                    "createdAt": "2025-03-04T09:00:00Z",
                }
            ]
        ),
    }
    service = _service(make_client, routes)
    creators = [_creator(f"c{i}") for i in range(1, 7)]

    report = await service.message_analytics(creators, MARCH)

    assert report["totalMessagesSent"] == 1
    assert report["totalMessagesReceived"] == 2
    assert len(report["messageVolumeByCreator"]) == 5
    first = report["messageVolumeByCreator"][0]
    assert first["creatorName"] == "C1"
    assert first["fanCount"] == 1
    assert first["messageTimestamps"][0]["messageId"] == "m1"
    assert first["messageTimestamps"][0]["date"] == "2025-03-03"
    assert report["messageVolumeByFan"] == [
        {
            "fanUuid": "f1",
            "fanName": "Fan One",
            "messagesSent": 2,
            "messagesReceived": 1,
            "totalMessages": 3,
            "messageTimestamps": report["messageVolumeByFan"][0]["messageTimestamps"],
        }
    ]
    assert len(report["messageVolumeByFan"][0]["messageTimestamps"]) == 3
    assert report["summary"] == {
        "totalCreators": 6,
        "totalMessages": 3,
        "averageMessagesPerCreator": 0.5,
    }


@pytest.mark.anyio
async def test_malformed_chat_is_skipped_not_fatal(make_client) -> None:
    fan = "fanbbbbb-2222"
    service = _service(
        make_client,
        {
            "/creators/c1/chats": _page([{"uuid": "ch1"}, {"uuid": "ch2"}, {"title": "no id"}]),
            "/chats/ch1/messages": _page(
                [{"senderType": "fan", "senderId": fan, "createdAt": "not-a-date"}]
            ),
            "/chats/ch2/messages": _page(
                [{"senderType": "fan", "senderId": fan, "createdAt": "2025-03-03T10:00:00Z"}]
            ),
        },
    )

    report = await service.fan_engagement([_creator("c1")], MARCH)

    assert report["summary"]["totalActiveFans"] == 1
    assert report["fanEngagement"][0]["totalMessages"] == 1
