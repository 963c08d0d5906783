"""
Domain models for OAuth token pairs carried in the caller's session.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field


class TokenPair(BaseModel):
    """Access/refresh token pair; replaced wholesale on refresh, never mutated."""

    model_config = ConfigDict(frozen=True)

    access_token: str = Field(..., min_length=1)
    refresh_token: Optional[str] = None
    token_type: str = "Bearer"
    expires_at: Optional[datetime] = None

    @property
    def authorization_header(self) -> str:
        return f"{self.token_type} {self.access_token}"

    @property
    def can_refresh(self) -> bool:
        return bool(self.refresh_token)

    @classmethod
    def from_token_response(
        cls,
        payload: Mapping[str, Any],
        *,
        previous_refresh_token: str | None = None,
        issued_at: datetime | None = None,
    ) -> "TokenPair":
        """Build a pair from an OAuth token endpoint response body.

        Servers that do not rotate refresh tokens omit ``refresh_token`` on a
        refresh grant; the previous one stays valid in that case.
        """
        expires_in = payload.get("expires_in")
        expires_at = None
        if expires_in:
            now = issued_at or datetime.now(timezone.utc)
            expires_at = now + timedelta(seconds=int(expires_in))
        return cls(
            access_token=payload.get("access_token") or "",
            refresh_token=payload.get("refresh_token") or previous_refresh_token,
            token_type=payload.get("token_type") or "Bearer",
            expires_at=expires_at,
        )


__all__ = ["TokenPair"]
