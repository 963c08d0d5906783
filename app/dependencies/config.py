"""
FastAPI dependency utilities for injecting configuration.
"""

from functools import lru_cache

from fastapi import Depends

from app.core.config import AppSettings, get_settings
from app.utils.http import RetryConfig


@lru_cache()
def _settings_singleton() -> AppSettings:
    """Ensure configuration is created once per process."""
    return get_settings()


def get_app_settings() -> AppSettings:
    """FastAPI dependency returning application settings."""
    return _settings_singleton()


SettingsDependency = Depends(get_app_settings)


def get_retry_config(settings: AppSettings = SettingsDependency) -> RetryConfig:
    """Rate-limit policy for upstream calls; tests override it with a no-op sleep."""
    return RetryConfig(
        max_retries=settings.rate_limit.max_retries,
        backoff_base=settings.rate_limit.backoff_base_seconds,
    )


__all__ = ["SettingsDependency", "get_app_settings", "get_retry_config"]
