"""
Chat/message rollups: per-fan engagement, multi-creator message analytics and
single-creator message volume.

Each report keeps its own engagement formula; they are reporting policy and
intentionally not unified.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Set

import httpx
from pydantic import ValidationError

from app.clients.fanvue import (
    CHATS,
    CHAT_MESSAGES,
    CREATOR_CHAT_MESSAGES,
    FanvueAPIError,
    ResourceEndpoint,
)
from app.schemas.fanvue import Chat, ChatMessage, Creator
from app.services.aggregation import CreatorAggregator
from app.utils.dates import DateRange, ensure_utc, to_iso_z
from app.utils.http import RateLimitExceededError

logger = logging.getLogger(__name__)

MESSAGE_PAGE_SIZE = 100
CHAT_PAGE_SIZE = 50
ANALYTICS_CREATOR_LIMIT = 5
CREATOR_TIMESTAMP_LIMIT = 50
FAN_TIMESTAMP_LIMIT = 20

_SKIPPABLE_ERRORS = (RateLimitExceededError, FanvueAPIError, httpx.HTTPError)


def fan_engagement_score(total_messages: int, creator_diversity: int) -> int:
    """Message count plus a bonus per distinct creator, capped at 100."""
    return round(min(100, total_messages * 2 + creator_diversity * 10))


def engagement_level(score: int) -> str:
    if score >= 70:
        return "high"
    if score >= 40:
        return "medium"
    return "low"


def _timestamp_entry(moment: datetime, message: ChatMessage) -> Dict[str, Any]:
    iso = to_iso_z(moment)
    return {
        "timestamp": iso,
        "date": iso[:10],
        "time": iso[11:19],
        "senderType": message.sender_type,
    }


@dataclass
class FanActivity:
    fan_uuid: str
    fan_name: Optional[str]
    messages_sent: int = 0
    messages_received: int = 0
    creators: Set[str] = field(default_factory=set)
    first_message: Optional[datetime] = None
    last_message: Optional[datetime] = None
    timestamps: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def total_messages(self) -> int:
        return self.messages_sent + self.messages_received

    def touch(self, moment: datetime) -> None:
        if self.first_message is None or moment < self.first_message:
            self.first_message = moment
        if self.last_message is None or moment > self.last_message:
            self.last_message = moment


class EngagementService:
    """Walk creators' chats and fold their messages into fan-level rollups."""

    def __init__(self, aggregator: CreatorAggregator) -> None:
        self._aggregator = aggregator
        self._client = aggregator.client

    async def _chats(
        self,
        creator_uuid: str,
        *,
        max_pages: int,
        params: Optional[Dict[str, Any]] = None,
    ) -> List[Chat]:
        result = await self._client.paginate(
            CHATS,
            ids={"creator_uuid": creator_uuid},
            params=params,
            page_size=CHAT_PAGE_SIZE,
            max_pages=max_pages,
        )
        if result.failed:
            raise FanvueAPIError(result.error_status or 0, path=CHATS.path(creator_uuid=creator_uuid))
        chats = []
        for item in result.records:
            try:
                chats.append(Chat.model_validate(item))
            except ValidationError as exc:
                logger.warning("Skipping malformed chat for creator %s: %s", creator_uuid, exc)
        return chats

    async def _messages(
        self,
        endpoint: ResourceEndpoint,
        ids: Dict[str, str],
        *,
        params: Optional[Dict[str, Any]] = None,
    ) -> Optional[List[ChatMessage]]:
        """First page of a chat's messages, or ``None`` when it cannot be read."""
        try:
            result = await self._client.paginate(
                endpoint,
                ids=ids,
                params=params,
                page_size=MESSAGE_PAGE_SIZE,
                max_pages=1,
            )
        except _SKIPPABLE_ERRORS as exc:
            logger.warning("Error processing chat %s: %s", ids.get("chat_uuid"), exc)
            return None
        if result.failed:
            logger.warning(
                "Failed to get messages for chat %s: %s",
                ids.get("chat_uuid"),
                result.error_status,
            )
            return None
        try:
            return [ChatMessage.model_validate(item) for item in result.records]
        except ValidationError as exc:
            logger.warning("Malformed messages in chat %s: %s", ids.get("chat_uuid"), exc)
            return None

    async def fan_engagement(
        self,
        creators: Sequence[Creator],
        date_range: DateRange,
        *,
        min_messages: int = 1,
        max_pages: int = 1,
    ) -> Dict[str, Any]:
        """Per-fan rollup of fan-sent messages across every creator."""
        fans: Dict[str, FanActivity] = {}

        for creator in creators:
            try:
                chats = await self._chats(creator.uuid, max_pages=max_pages)
            except _SKIPPABLE_ERRORS as exc:
                logger.warning("Failed to get chats for creator %s: %s", creator.uuid, exc)
                continue

            for chat in chats:
                messages = await self._messages(CHAT_MESSAGES, {"chat_uuid": chat.uuid})
                for message in messages or []:
                    moment = message.timestamp
                    if message.sender_type != "fan" or not date_range.contains(moment):
                        continue
                    moment = ensure_utc(moment)
                    fan_id = message.sender_id or message.sender_uuid or "unknown"
                    fan = fans.get(fan_id)
                    if fan is None:
                        fan = fans[fan_id] = FanActivity(fan_uuid=fan_id, fan_name=f"Fan {fan_id[:8]}")
                    fan.messages_sent += 1
                    fan.creators.add(creator.uuid)
                    fan.touch(moment)

        engaged: List[Dict[str, Any]] = []
        distribution = {"high": 0, "medium": 0, "low": 0}
        total_messages = 0
        for fan in fans.values():
            if fan.total_messages < min_messages:
                continue
            score = fan_engagement_score(fan.total_messages, len(fan.creators))
            distribution[engagement_level(score)] += 1
            total_messages += fan.total_messages
            engaged.append(
                {
                    "fanUuid": fan.fan_uuid,
                    "fanName": fan.fan_name,
                    "totalMessages": fan.total_messages,
                    "messagesSent": fan.messages_sent,
                    "messagesReceived": fan.messages_received,
                    "creatorsEngaged": sorted(fan.creators),
                    "engagementScore": score,
                    "firstMessageDate": to_iso_z(fan.first_message) if fan.first_message else None,
                    "lastMessageDate": to_iso_z(fan.last_message) if fan.last_message else None,
                }
            )

        active = len(engaged)
        return {
            "fanEngagement": engaged,
            "summary": {
                "totalActiveFans": active,
                "totalMessages": total_messages,
                "averageMessagesPerFan": total_messages / active if active else 0,
                "engagementDistribution": distribution,
            },
        }

    async def message_analytics(
        self,
        creators: Sequence[Creator],
        date_range: DateRange,
        *,
        max_pages: int = 3,
        creator_limit: int = ANALYTICS_CREATOR_LIMIT,
    ) -> Dict[str, Any]:
        """Sent/received volume per creator plus a fan map merged across creators."""
        window = {"startDate": date_range.start, "endDate": date_range.end}
        by_creator: List[Dict[str, Any]] = []
        global_fans: Dict[str, FanActivity] = {}
        total_sent = total_received = 0

        for creator in creators[:creator_limit]:
            sent = received = 0
            creator_fans: Dict[str, FanActivity] = {}
            timestamps: List[Dict[str, Any]] = []

            try:
                chats = await self._chats(creator.uuid, max_pages=max_pages, params=window)
            except _SKIPPABLE_ERRORS as exc:
                logger.warning("Failed to get chats for creator %s: %s", creator.uuid, exc)
                chats = []

            for chat in chats:
                messages = await self._messages(
                    CREATOR_CHAT_MESSAGES,
                    {"creator_uuid": creator.uuid, "chat_uuid": chat.uuid},
                    params=window,
                )
                for message in messages or []:
                    moment = message.timestamp
                    if moment is None:
                        continue
                    from_fan = message.sender_type == "fan"
                    if message.sender_type == "creator":
                        sent += 1
                    elif from_fan:
                        received += 1

                    entry = _timestamp_entry(moment, message)
                    timestamps.append({**entry, "messageId": message.uuid, "chatId": chat.uuid})

                    fan_uuid = message.sender_uuid if from_fan else message.receiver_uuid
                    if not fan_uuid:
                        continue
                    fan = creator_fans.get(fan_uuid)
                    if fan is None:
                        fan_name = message.sender_name if from_fan else message.receiver_name
                        fan = creator_fans[fan_uuid] = FanActivity(fan_uuid=fan_uuid, fan_name=fan_name)
                    if from_fan:
                        fan.messages_sent += 1
                    else:
                        fan.messages_received += 1
                    fan.timestamps.append(entry)

            total_sent += sent
            total_received += received
            by_creator.append(
                {
                    "creatorUuid": creator.uuid,
                    "creatorName": creator.display_name,
                    "messagesSent": sent,
                    "messagesReceived": received,
                    "totalMessages": sent + received,
                    "fanCount": len(creator_fans),
                    "messageTimestamps": timestamps[:CREATOR_TIMESTAMP_LIMIT],
                }
            )

            for fan_uuid, fan in creator_fans.items():
                merged = global_fans.get(fan_uuid)
                if merged is None:
                    global_fans[fan_uuid] = fan
                    continue
                merged.messages_sent += fan.messages_sent
                merged.messages_received += fan.messages_received
                merged.timestamps.extend(fan.timestamps)

        total_creators = len(creators)
        total_messages = total_sent + total_received
        return {
            "totalMessagesSent": total_sent,
            "totalMessagesReceived": total_received,
            "messageVolumeByCreator": by_creator,
            "messageVolumeByFan": [
                {
                    "fanUuid": fan.fan_uuid,
                    "fanName": fan.fan_name,
                    "messagesSent": fan.messages_sent,
                    "messagesReceived": fan.messages_received,
                    "totalMessages": fan.total_messages,
                    "messageTimestamps": fan.timestamps[:FAN_TIMESTAMP_LIMIT],
                }
                for fan in global_fans.values()
            ],
            "dateRange": date_range.as_dict(),
            "summary": {
                "totalCreators": total_creators,
                "totalMessages": total_messages,
                "averageMessagesPerCreator": (
                    total_messages / total_creators if total_creators else 0
                ),
            },
        }

    async def message_volume(self, creator_uuid: str, date_range: DateRange) -> Dict[str, Any]:
        """Message volume between one creator and each of their fans.

        A failure listing the creator's chats is an error for the caller;
        individual chats that cannot be read are skipped.
        """
        chats = await self._chats(creator_uuid, max_pages=1)

        fans: Dict[str, FanActivity] = {}
        daily: Dict[str, Dict[str, int]] = defaultdict(lambda: {"sent": 0, "received": 0})
        total_sent = total_received = 0

        for chat in chats:
            messages = await self._messages(CHAT_MESSAGES, {"chat_uuid": chat.uuid})
            for message in messages or []:
                moment = message.sent_at
                if not date_range.contains(moment) or message.sender is None:
                    continue
                from_creator = message.sender.uuid == creator_uuid
                counterpart = message.recipient if from_creator else message.sender
                if counterpart is None or not counterpart.uuid:
                    continue

                day = ensure_utc(moment).date()
                fan = fans.get(counterpart.uuid)
                if fan is None:
                    fan = fans[counterpart.uuid] = FanActivity(
                        fan_uuid=counterpart.uuid, fan_name=counterpart.label
                    )
                fan.touch(ensure_utc(moment))

                bucket = daily[day.isoformat()]
                if from_creator:
                    total_sent += 1
                    fan.messages_received += 1
                    bucket["sent"] += 1
                else:
                    total_received += 1
                    fan.messages_sent += 1
                    bucket["received"] += 1

        total = total_sent + total_received
        fan_engagement = sorted(
            (
                {
                    "fanUuid": fan.fan_uuid,
                    "fanName": fan.fan_name,
                    "messagesSent": fan.messages_sent,
                    "messagesReceived": fan.messages_received,
                    "totalMessages": fan.total_messages,
                    "firstMessageDate": fan.first_message.date().isoformat() if fan.first_message else None,
                    "lastMessageDate": fan.last_message.date().isoformat() if fan.last_message else None,
                    "engagementScore": fan.total_messages,
                }
                for fan in fans.values()
            ),
            key=lambda row: row["totalMessages"],
            reverse=True,
        )
        daily_breakdown = [
            {
                "date": day,
                "messagesSent": counts["sent"],
                "messagesReceived": counts["received"],
                "totalMessages": counts["sent"] + counts["received"],
            }
            for day, counts in sorted(daily.items())
        ]
        active = len(fans)
        return {
            "creatorUuid": creator_uuid,
            "dateRange": date_range.as_dict(),
            "totalMessagesSent": total_sent,
            "totalMessagesReceived": total_received,
            "totalMessages": total,
            "fanEngagement": fan_engagement,
            "dailyBreakdown": daily_breakdown,
            "summary": {
                "totalChats": len(chats),
                "activeFans": active,
                "averageMessagesPerFan": total / active if active else 0,
                "responseRate": (total_sent / total_received) * 100 if total_received else 0,
            },
        }


__all__ = [
    "EngagementService",
    "FanActivity",
    "engagement_level",
    "fan_engagement_score",
]
