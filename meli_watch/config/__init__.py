"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository
from .models import DEFAULT_API_URL, RetryPolicy, ThumbnailRule, WatcherConfig

__all__ = [
    "ConfigLocator",
    "ConfigRepository",
    "DEFAULT_API_URL",
    "RetryPolicy",
    "ThumbnailRule",
    "WatcherConfig",
]
