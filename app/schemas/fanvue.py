"""
Pydantic models for the upstream Fanvue API payloads.

Records keep every upstream field (``extra="allow"``) so proxied responses stay
verbatim; only the fields the aggregations read are declared.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _UpstreamModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_unset=True)


class PaginationInfo(_UpstreamModel):
    """Pagination block used by page-addressed endpoints."""

    has_more: Optional[bool] = Field(None, alias="hasMore")
    has_next_page: Optional[bool] = Field(None, alias="hasNextPage")
    page: Optional[int] = None
    size: Optional[int] = None

    @property
    def more(self) -> bool:
        return bool(self.has_more or self.has_next_page)


class PageEnvelope(_UpstreamModel):
    """``{data, pagination: {hasMore | hasNextPage}}`` response envelope."""

    data: List[Dict[str, Any]] = Field(default_factory=list)
    pagination: Optional[PaginationInfo] = None


class CursorEnvelope(_UpstreamModel):
    """``{data, nextCursor}`` response envelope."""

    data: List[Dict[str, Any]] = Field(default_factory=list)
    next_cursor: Optional[str] = Field(None, alias="nextCursor")


class Creator(_UpstreamModel):
    uuid: str
    display_name: Optional[str] = Field(None, alias="displayName")
    name: Optional[str] = None
    handle: Optional[str] = None
    username: Optional[str] = None

    @property
    def label(self) -> str:
        return self.display_name or self.name or "Unknown"


class EarningsItem(_UpstreamModel):
    """Single earnings transaction; amounts are in cents."""

    date: Optional[datetime] = None
    gross: float = 0
    net: float = 0
    source: Optional[str] = None

    @field_validator("gross", "net", mode="before")
    @classmethod
    def _missing_amount_is_zero(cls, value: Any) -> Any:
        return 0 if value is None else value


class Chat(_UpstreamModel):
    uuid: str


class MessageParty(_UpstreamModel):
    uuid: Optional[str] = None
    display_name: Optional[str] = Field(None, alias="displayName")
    handle: Optional[str] = None

    @property
    def label(self) -> Optional[str]:
        return self.display_name or self.handle


class ChatMessage(_UpstreamModel):
    """Chat message in either the flat or the nested sender/recipient shape."""

    uuid: Optional[str] = None
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    sent_at: Optional[datetime] = Field(None, alias="sentAt")
    sender_type: Optional[str] = Field(None, alias="senderType")
    sender_uuid: Optional[str] = Field(None, alias="senderUuid")
    sender_id: Optional[str] = Field(None, alias="senderId")
    sender_name: Optional[str] = Field(None, alias="senderName")
    receiver_uuid: Optional[str] = Field(None, alias="receiverUuid")
    receiver_name: Optional[str] = Field(None, alias="receiverName")
    sender: Optional[MessageParty] = None
    recipient: Optional[MessageParty] = None

    @property
    def timestamp(self) -> Optional[datetime]:
        return self.sent_at or self.created_at


__all__ = [
    "Chat",
    "ChatMessage",
    "Creator",
    "CursorEnvelope",
    "EarningsItem",
    "MessageParty",
    "PageEnvelope",
    "PaginationInfo",
]
