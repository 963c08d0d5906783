"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    FeedSource,
    build_fanvue_client,
    build_service_account_client,
    get_aggregator,
    get_engagement_service,
    get_fanvue_client,
    get_fanvue_oauth_client,
    get_http_client,
    get_powerbi_source,
    get_token_manager,
)
from .config import SettingsDependency, get_app_settings, get_retry_config

__all__ = [
    "FeedSource",
    "SettingsDependency",
    "build_fanvue_client",
    "build_service_account_client",
    "get_aggregator",
    "get_app_settings",
    "get_engagement_service",
    "get_fanvue_client",
    "get_fanvue_oauth_client",
    "get_http_client",
    "get_powerbi_source",
    "get_retry_config",
    "get_token_manager",
]
