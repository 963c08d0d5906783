"""Expose constructed client wrappers."""

from .fanvue import ConfigurationMissingError, FanvueAPIError, FanvueClient
from .fanvue_auth import (
    FanvueOAuthClient,
    OAuthConfigurationError,
    OAuthTokenExchangeError,
)

__all__ = [
    "ConfigurationMissingError",
    "FanvueAPIError",
    "FanvueClient",
    "FanvueOAuthClient",
    "OAuthConfigurationError",
    "OAuthTokenExchangeError",
]
