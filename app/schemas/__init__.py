"""Public schema exports."""

from .auth import AuthStatus, OAuthCallbackParams
from .fanvue import (
    Chat,
    ChatMessage,
    Creator,
    CursorEnvelope,
    EarningsItem,
    MessageParty,
    PageEnvelope,
    PaginationInfo,
)

__all__ = [
    "AuthStatus",
    "Chat",
    "ChatMessage",
    "Creator",
    "CursorEnvelope",
    "EarningsItem",
    "MessageParty",
    "OAuthCallbackParams",
    "PageEnvelope",
    "PaginationInfo",
]
