"""
Configuration management for app_publish.

This module provides configuration models and loading from configuration
files and environment variables.
"""

from .loader import ConfigLoader
from .models import (
    LoggingConfig,
    LogLevel,
    PublishConfig,
    RateLimitSettings,
    RetryPolicy,
)

__all__ = [
    "ConfigLoader",
    "LogLevel",
    "LoggingConfig",
    "PublishConfig",
    "RateLimitSettings",
    "RetryPolicy",
]
