"""Schemas for the OAuth session endpoints."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class OAuthCallbackParams(BaseModel):
    """Query parameters the authorization server sends back to the callback."""

    code: Optional[str] = Field(None, description="Authorization code issued by Fanvue.")
    state: Optional[str] = Field(None, description="State echoed from the authorize request.")
    error: Optional[str] = Field(None, description="Error reported by the authorization server.")

    @property
    def complete(self) -> bool:
        return bool(self.code and self.state)


class AuthStatus(BaseModel):
    """Whether the browser session holds usable tokens."""

    authenticated: bool
    has_refresh_token: bool = Field(False, serialization_alias="hasRefreshToken")
    auth_mode: Optional[str] = Field(None, serialization_alias="authMode")


__all__ = ["AuthStatus", "OAuthCallbackParams"]
